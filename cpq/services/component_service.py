"""
component_service.py — Component writes that feed the activity log

Single writes rely on the suppression gate's mapper events for their
individual "created"/"updated"/"deleted" entries. Bulk writes (import from a
parsed document, multi-select delete) are bracketed by a bulk marker so the
gate stays silent, then log one summary entry.

Business Rules:
- More than one row → bracket with the registry + one bulk_* summary
- Exactly one row → plain single write, individual entry from the gate
- Bulk summary is written after end(), counting rows actually written,
  also when a row fails partway (the error still propagates)
- A registry failure never stops the import/delete itself

Called by: routers/components.py
Depends on: services/bulk_registry.py, services/activity_service.py,
            services/activity_sink.py, models/catalog.py
"""

import logging
from contextlib import nullcontext

from sqlalchemy.orm import Session

from ..models import Component
from ..schemas.activity import Actor
from ..schemas.components import ComponentIn, ComponentImportRequest, ComponentUpdate
from .activity_service import log_bulk_summary
from .activity_sink import ActivitySink
from .bulk_registry import BulkOperationRegistry

log = logging.getLogger("cpq.components")


def bind_actor(db: Session, actor: Actor | None, locale: str | None = None) -> None:
    """Make the actor visible to the gate's mapper events for this session."""
    db.info["actor"] = actor
    db.info["locale"] = locale


def create_component(db: Session, team_id: int, data: ComponentIn) -> Component:
    comp = Component(team_id=team_id, **data.model_dump())
    db.add(comp)
    db.commit()
    db.refresh(comp)
    return comp


def update_component(db: Session, comp: Component, data: ComponentUpdate) -> Component:
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(comp, key, value)
    db.commit()
    db.refresh(comp)
    return comp


def delete_component(db: Session, comp: Component) -> None:
    db.delete(comp)
    db.commit()


def import_components(
    db: Session,
    team_id: int,
    body: ComponentImportRequest,
    registry: BulkOperationRegistry,
    sink: ActivitySink,
    actor: Actor | None = None,
    locale: str | None = None,
) -> dict:
    """Create every parsed row; one bulk_import entry when more than one row.

    If a row fails, the rows already committed still get their summary
    before the error propagates.
    """
    bulk = len(body.rows) > 1
    bracket = registry.bulk_operation(team_id, "import") if bulk else nullcontext()
    created: list[Component] = []
    try:
        with bracket as operation_id:
            for row in body.rows:
                created.append(create_component(db, team_id, row))
    finally:
        if bulk:
            metadata = {
                k: v for k, v in {
                    "parser": body.parser,
                    "confidence": body.confidence,
                    "extraction_method": body.extraction_method,
                }.items() if v is not None
            }
            log_bulk_summary(
                sink, team_id, "bulk_import", len(created),
                actor=actor, file_name=body.file_name, file_type=body.file_type,
                source_metadata=metadata, locale=locale,
            )
    log.info("Imported %d components from %s (team %s, op %s)",
             len(created), body.file_name, team_id, operation_id or "-")
    return {"created": [c.id for c in created], "operation_id": operation_id}


def bulk_delete_components(
    db: Session,
    team_id: int,
    ids: list[int],
    registry: BulkOperationRegistry,
    sink: ActivitySink,
    actor: Actor | None = None,
    locale: str | None = None,
) -> dict:
    """Delete the team's components with these ids, one row at a time."""
    comps = (
        db.query(Component)
        .filter(Component.team_id == team_id, Component.id.in_(ids))
        .order_by(Component.id)
        .all()
    )
    bulk = len(comps) > 1
    bracket = registry.bulk_operation(team_id, "delete") if bulk else nullcontext()
    names: list[str] = []
    try:
        with bracket as operation_id:
            for comp in comps:
                name = comp.name
                delete_component(db, comp)
                names.append(name)
    finally:
        if bulk:
            log_bulk_summary(
                sink, team_id, "bulk_delete", len(names),
                actor=actor, names=names, locale=locale,
            )
    return {"deleted": len(names), "operation_id": operation_id}
