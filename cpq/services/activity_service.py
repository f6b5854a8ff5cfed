"""Activity service — bulk summary entries and activity log queries.

Bulk callers (import wizard, bulk delete, bulk field edit) write exactly one
summary entry after the registry bracket closes; per-row entries were
suppressed by the gate while the marker was active.

Usage:
    from cpq.services.activity_service import log_bulk_summary, query_activity_logs
"""

import logging
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models import ActivityLog
from ..schemas.activity import Actor, LogEntry
from .activity_formatter import build_change_details, bulk_entity_name, format_summary
from .activity_sink import ActivitySink

log = logging.getLogger("cpq.activity")


# ═══════════════════════════════════════════════════════════════════════
#  BULK SUMMARIES
# ═══════════════════════════════════════════════════════════════════════


def build_bulk_entry(
    team_id: int,
    action_type: str,
    count: int,
    actor: Actor | None = None,
    file_name: str | None = None,
    file_type: str | None = None,
    names: list[str] | None = None,
    field: str | None = None,
    field_label: str | None = None,
    value=None,
    source_metadata: dict | None = None,
    locale: str | None = None,
) -> LogEntry:
    """One team-wide summary entry for a bulk import / delete / update."""
    if action_type not in ("bulk_import", "bulk_delete", "bulk_update"):
        raise ValueError(f"Not a bulk action: {action_type}")
    payload = {
        "count": count,
        "file_name": file_name,
        "names": names or [],
        "field": field,
        "field_label": field_label,
        "value": value,
    }
    if action_type == "bulk_import":
        source_metadata = {**(source_metadata or {}), "total_items": count}
    actor = actor or Actor()
    return LogEntry(
        team_id=team_id,
        entity_type="component",
        entity_name=bulk_entity_name(action_type, count, locale),
        action_type=action_type,
        change_summary=format_summary(action_type, payload, locale),
        change_details=build_change_details(action_type, payload),
        source_file_name=file_name,
        source_file_type=file_type,
        source_metadata=source_metadata,
        user_id=actor.user_id,
        user_email=actor.email,
        user_name=actor.name,
    )


def log_bulk_summary(sink: ActivitySink, team_id: int, action_type: str, count: int, **kwargs) -> LogEntry | None:
    """Build and append a bulk summary. Count 0 → nothing logged."""
    if count <= 0:
        return None
    entry = build_bulk_entry(team_id, action_type, count, **kwargs)
    sink.append(entry)
    return entry


# ═══════════════════════════════════════════════════════════════════════
#  QUERIES
# ═══════════════════════════════════════════════════════════════════════


def _as_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return list(value)


def query_activity_logs(
    db: Session,
    team_id: int,
    entity_type=None,
    entity_id: str | None = None,
    action_type=None,
    user_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> dict:
    """Team-scoped, newest-first page of activity entries.

    Returns {"logs": [ActivityLog, ...], "total": int, "has_more": bool}.
    entity_type / action_type accept one value, a list, or a comma string.
    """
    q = db.query(ActivityLog).filter(ActivityLog.team_id == team_id)

    entity_types = _as_list(entity_type)
    if entity_types:
        q = q.filter(ActivityLog.entity_type.in_(entity_types))
    if entity_id:
        q = q.filter(ActivityLog.entity_id == entity_id)
    action_types = _as_list(action_type)
    if action_types:
        q = q.filter(ActivityLog.action_type.in_(action_types))
    if user_id:
        q = q.filter(ActivityLog.user_id == user_id)
    if start:
        q = q.filter(ActivityLog.created_at >= start)
    if end:
        q = q.filter(ActivityLog.created_at <= end)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            ActivityLog.change_summary.ilike(pattern),
            ActivityLog.entity_name.ilike(pattern),
            ActivityLog.user_name.ilike(pattern),
        ))

    total = q.count()
    rows = (
        q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {"logs": rows, "total": total, "has_more": offset + limit < total}


def get_entity_activity(db: Session, team_id: int, entity_type: str, entity_id: str, limit: int = 50) -> list[ActivityLog]:
    """History for one quotation / component / project."""
    return query_activity_logs(db, team_id, entity_type=entity_type, entity_id=entity_id, limit=limit)["logs"]


def activity_to_dict(row: ActivityLog) -> dict:
    return {
        "id": row.id,
        "team_id": row.team_id,
        "entity_type": row.entity_type,
        "entity_id": row.entity_id,
        "entity_name": row.entity_name,
        "action_type": row.action_type,
        "change_summary": row.change_summary,
        "change_details": row.change_details,
        "source_file_name": row.source_file_name,
        "source_file_type": row.source_file_type,
        "source_metadata": row.source_metadata,
        "user_id": row.user_id,
        "user_email": row.user_email,
        "user_name": row.user_name,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }
