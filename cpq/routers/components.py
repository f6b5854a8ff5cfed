"""Components API — single and bulk component writes."""

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import actor_for, get_registry, get_sink, require_user
from ..models import Component, User
from ..schemas.components import BulkDeleteRequest, ComponentImportRequest, ComponentIn, ComponentUpdate
from ..schemas.responses import ComponentOut, OkResponse
from ..services import component_service
from ..services.activity_sink import ActivitySink
from ..services.bulk_registry import BulkOperationRegistry

router = APIRouter(prefix="/api/components", tags=["components"])


def _get_owned(db: Session, user: User, component_id: int) -> Component:
    comp = db.get(Component, component_id)
    if comp is None or comp.team_id != user.team_id:
        raise HTTPException(404, "Component not found")
    return comp


def _bound_session(db: Session, user: User) -> Session:
    component_service.bind_actor(db, actor_for(user), user.locale)
    return db


@router.post("", response_model=ComponentOut)
def create_component(
    body: ComponentIn,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    comp = component_service.create_component(_bound_session(db, user), user.team_id, body)
    logger.info("Component #{} created by {}", comp.id, user.email)
    return ComponentOut.model_validate(comp, from_attributes=True)


@router.put("/{component_id}", response_model=ComponentOut)
def update_component(
    component_id: int,
    body: ComponentUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    comp = _get_owned(db, user, component_id)
    comp = component_service.update_component(_bound_session(db, user), comp, body)
    return ComponentOut.model_validate(comp, from_attributes=True)


@router.delete("/{component_id}", response_model=OkResponse)
def delete_component(
    component_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    comp = _get_owned(db, user, component_id)
    component_service.delete_component(_bound_session(db, user), comp)
    logger.info("Component #{} deleted by {}", component_id, user.email)
    return {"ok": True}


@router.post("/bulk-delete")
def bulk_delete(
    body: BulkDeleteRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    registry: BulkOperationRegistry = Depends(get_registry),
    sink: ActivitySink = Depends(get_sink),
):
    result = component_service.bulk_delete_components(
        _bound_session(db, user), user.team_id, body.ids, registry, sink,
        actor=actor_for(user), locale=user.locale,
    )
    logger.info("Bulk delete by {}: {} components", user.email, result["deleted"])
    return result


@router.post("/import")
def import_components(
    body: ComponentImportRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    registry: BulkOperationRegistry = Depends(get_registry),
    sink: ActivitySink = Depends(get_sink),
):
    """Store rows extracted by the document parser (Excel / PDF / AI vision)."""
    return component_service.import_components(
        _bound_session(db, user), user.team_id, body, registry, sink,
        actor=actor_for(user), locale=user.locale,
    )
