"""
schemas/activity.py — Activity log value objects and request bodies

LogEntry is the immutable unit the batching engine hands to the sink; the
ORM row (models/activity.py ActivityLog) is what the sink writes. Request
models back the /api/activity routes.

Called by: services/activity_*.py, services/flush_coordinator.py, routers/activity.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.activity import ACTION_TYPES

EntityType = Literal["quotation", "component", "project"]
BulkKind = Literal["import", "delete", "update"]


# ── Core value objects ──────────────────────────────────────────────────


class Actor(BaseModel):
    """Who performed the action — snapshotted onto every entry."""

    model_config = ConfigDict(frozen=True)

    user_id: int | None = None
    email: str | None = None
    name: str | None = None


class ItemRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    quantity: int = 1
    system_name: str | None = None


class FieldDelta(BaseModel):
    model_config = ConfigDict(frozen=True)

    field_key: str
    label: str
    original_value: Any = None
    current_value: Any = None


class EditingContext(BaseModel):
    """One open editing session (e.g. one open quotation)."""

    model_config = ConfigDict(frozen=True)

    context_id: str
    team_id: int
    entity_type: EntityType = "quotation"
    entity_name: str | None = None
    actor: Actor | None = None
    locale: str | None = None


class LogEntry(BaseModel):
    """Terminal output unit. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    team_id: int
    entity_type: EntityType
    entity_id: str | None = None
    entity_name: str | None = None
    action_type: str
    change_summary: str
    change_details: dict | None = None
    source_file_name: str | None = None
    source_file_type: str | None = None
    source_metadata: dict | None = None
    user_id: int | None = None
    user_email: str | None = None
    user_name: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("action_type")
    @classmethod
    def _known_action(cls, v: str) -> str:
        if v not in ACTION_TYPES:
            raise ValueError(f"Unknown action_type: {v}")
        return v


# ── Request bodies ──────────────────────────────────────────────────────


class BeginBulkRequest(BaseModel):
    operation_id: str | None = Field(None, max_length=100)
    operation_kind: BulkKind


class EndBulkRequest(BaseModel):
    operation_id: str = Field(..., min_length=1, max_length=100)


class BulkLogRequest(BaseModel):
    action_type: Literal["bulk_import", "bulk_delete", "bulk_update"]
    count: int = Field(..., ge=0)
    file_name: str | None = None
    file_type: str | None = None
    field: str | None = None
    field_label: str | None = None
    value: Any = None
    names: list[str] = Field(default_factory=list)
    source_metadata: dict | None = None


class OpenContextRequest(BaseModel):
    entity_type: EntityType = "quotation"
    entity_name: str | None = Field(None, max_length=500)
    locale: str | None = Field(None, max_length=10)


class ChangeRequest(BaseModel):
    field_key: str = Field(..., min_length=1, max_length=100)
    label: str | None = Field(None, max_length=255)
    old_value: Any = None
    new_value: Any = None


class ItemRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(1, ge=1)
    system_name: str | None = Field(None, max_length=255)


class ActivityLogListResponse(BaseModel):
    logs: list[dict] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False
