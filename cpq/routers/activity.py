"""Activity API — editing-context lifecycle, bulk markers, and log queries."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import actor_for, get_coordinator, get_registry, get_sink, require_user
from ..models import User
from ..schemas.activity import (
    ActivityLogListResponse,
    BeginBulkRequest,
    BulkLogRequest,
    ChangeRequest,
    EditingContext,
    EndBulkRequest,
    ItemRef,
    ItemRequest,
    OpenContextRequest,
)
from ..schemas.responses import OkResponse
from ..services.activity_service import activity_to_dict, log_bulk_summary, query_activity_logs
from ..services.activity_sink import ActivitySink
from ..services.bulk_registry import BulkOperationRegistry, new_operation_id
from ..services.flush_coordinator import FlushCoordinator

router = APIRouter(prefix="/api/activity", tags=["activity"])


def _entries_out(entries) -> list[dict]:
    return [e.model_dump(mode="json") for e in entries]


def _owned_context(coordinator: FlushCoordinator, context_id: str, user: User) -> EditingContext:
    ctx = coordinator.get_context(context_id)
    if ctx is None or ctx.team_id != user.team_id:
        raise HTTPException(404, f"Editing context {context_id} is not open")
    return ctx


# ── Bulk markers ─────────────────────────────────────────────────────


@router.post("/begin-bulk")
def begin_bulk(
    body: BeginBulkRequest,
    user: User = Depends(require_user),
    registry: BulkOperationRegistry = Depends(get_registry),
):
    """Register a bulk marker. suppressed=False means per-row logs may leak through.

    An operation_id already held by another team is not armed for the caller.
    """
    operation_id = body.operation_id or new_operation_id(body.operation_kind)
    armed = registry.begin(operation_id, user.team_id, body.operation_kind)
    return {"ok": True, "operation_id": operation_id, "suppressed": armed}


@router.post("/end-bulk", response_model=OkResponse)
def end_bulk(
    body: EndBulkRequest,
    user: User = Depends(require_user),
    registry: BulkOperationRegistry = Depends(get_registry),
):
    """Only the caller's own team marker is removed; foreign ids are left alone."""
    if not registry.end(body.operation_id, user.team_id):
        logger.warning("end-bulk {} by {} left for sweep", body.operation_id, user.email)
    return {"ok": True}


@router.post("/bulk-log")
def bulk_log(
    body: BulkLogRequest,
    user: User = Depends(require_user),
    sink: ActivitySink = Depends(get_sink),
):
    """Write the one summary entry for a finished bulk operation."""
    entry = log_bulk_summary(
        sink, user.team_id, body.action_type, body.count,
        actor=actor_for(user),
        file_name=body.file_name,
        file_type=body.file_type,
        names=body.names,
        field=body.field,
        field_label=body.field_label,
        value=body.value,
        source_metadata=body.source_metadata,
        locale=user.locale,
    )
    return {"ok": True, "entry": entry.model_dump(mode="json") if entry else None}


# ── Editing contexts ─────────────────────────────────────────────────


@router.post("/contexts/{context_id}/open")
def open_context(
    context_id: str,
    body: OpenContextRequest,
    user: User = Depends(require_user),
    coordinator: FlushCoordinator = Depends(get_coordinator),
):
    existing = coordinator.get_context(context_id)
    if existing is not None and existing.team_id != user.team_id:
        raise HTTPException(409, f"Editing context {context_id} belongs to another team")
    ctx = coordinator.open_context(EditingContext(
        context_id=context_id,
        team_id=user.team_id,
        entity_type=body.entity_type,
        entity_name=body.entity_name,
        actor=actor_for(user),
        locale=body.locale or user.locale,
    ))
    return {"ok": True, "context": ctx.model_dump(mode="json")}


@router.post("/contexts/{context_id}/changes", response_model=OkResponse)
def record_change(
    context_id: str,
    body: ChangeRequest,
    user: User = Depends(require_user),
    coordinator: FlushCoordinator = Depends(get_coordinator),
):
    _owned_context(coordinator, context_id, user)
    coordinator.record_change(context_id, body.field_key, body.label, body.old_value, body.new_value)
    return {"ok": True}


@router.post("/contexts/{context_id}/items")
def add_item(
    context_id: str,
    body: ItemRequest,
    user: User = Depends(require_user),
    coordinator: FlushCoordinator = Depends(get_coordinator),
):
    _owned_context(coordinator, context_id, user)
    pending = coordinator.add_item(
        context_id, ItemRef(name=body.name, quantity=body.quantity, system_name=body.system_name)
    )
    return {"ok": True, "pending": pending}


@router.post("/flush/{context_id}")
def flush_context(
    context_id: str,
    user: User = Depends(require_user),
    coordinator: FlushCoordinator = Depends(get_coordinator),
):
    """Idempotent: flushing an unknown or empty context returns no entries."""
    ctx = coordinator.get_context(context_id)
    if ctx is not None and ctx.team_id != user.team_id:
        raise HTTPException(404, f"Editing context {context_id} is not open")
    return {"ok": True, "entries": _entries_out(coordinator.flush(context_id))}


@router.post("/contexts/{context_id}/close")
def close_context(
    context_id: str,
    user: User = Depends(require_user),
    coordinator: FlushCoordinator = Depends(get_coordinator),
):
    _owned_context(coordinator, context_id, user)
    return {"ok": True, "entries": _entries_out(coordinator.close_context(context_id))}


@router.post("/contexts/{context_id}/teardown", response_model=OkResponse)
def teardown_context(
    context_id: str,
    user: User = Depends(require_user),
    coordinator: FlushCoordinator = Depends(get_coordinator),
):
    ctx = coordinator.get_context(context_id)
    if ctx is not None and ctx.team_id == user.team_id:
        coordinator.teardown_context(context_id)
    return {"ok": True}


# ── Log queries ──────────────────────────────────────────────────────


@router.get("", response_model=ActivityLogListResponse)
def list_activity(
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    action_type: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    result = query_activity_logs(
        db, user.team_id,
        entity_type=entity_type, entity_id=entity_id, action_type=action_type,
        user_id=user_id, start=start, end=end, search=search,
        limit=limit, offset=offset,
    )
    return {
        "logs": [activity_to_dict(r) for r in result["logs"]],
        "total": result["total"],
        "has_more": result["has_more"],
    }
