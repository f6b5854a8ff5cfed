"""Activity models — append-only log and durable bulk-operation markers."""

from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, Column, ForeignKey, Index, Integer, String, Text

from ..database import UTCDateTime
from .base import Base

ENTITY_TYPES = ("quotation", "component", "project")
ACTION_TYPES = (
    "created",
    "updated",
    "deleted",
    "status_changed",
    "items_added",
    "items_removed",
    "items_updated",
    "parameters_changed",
    "bulk_update",
    "bulk_import",
    "bulk_delete",
    "imported",
    "exported",
    "version_created",
)
BULK_OPERATION_TYPES = ("import", "delete", "update")


def _in_list(column: str, values) -> str:
    return f"{column} IN (" + ", ".join(f"'{v}'" for v in values) + ")"


class ActivityLog(Base):
    """One row per logical user action. Never updated or deleted here."""

    __tablename__ = "activity_logs"
    id = Column(Integer, primary_key=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)

    # Entity
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(String(64))  # context id; NULL for team-wide bulk entries
    entity_name = Column(String(500))

    # Action
    action_type = Column(String(30), nullable=False)
    change_summary = Column(Text, nullable=False)
    change_details = Column(JSON)  # fields_changed / items_added / bulk_changes

    # Source tracking (imports)
    source_file_name = Column(String(500))
    source_file_type = Column(String(50))  # excel, pdf, csv
    source_metadata = Column(JSON)  # parser, confidence, extraction_method

    # Actor snapshot
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    user_email = Column(String(255))
    user_name = Column(String(255))

    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint(_in_list("entity_type", ENTITY_TYPES), name="ck_activity_logs_entity_type"),
        CheckConstraint(_in_list("action_type", ACTION_TYPES), name="ck_activity_logs_action_type"),
        Index("ix_activity_logs_team_created", "team_id", "created_at"),
        Index("ix_activity_logs_team_entity", "team_id", "entity_type", "entity_id"),
        Index("ix_activity_logs_action", "action_type"),
        Index("ix_activity_logs_user", "user_id"),
    )


class BulkOperation(Base):
    """Marker: a bulk operation is in progress for a team.

    Lives in a table (not a connection setting) so that every pooled
    connection sees it. Rows older than the staleness threshold are ignored
    by the gate and removed by the hourly sweep.
    """

    __tablename__ = "bulk_operations"
    operation_id = Column(String(100), primary_key=True)
    team_id = Column(Integer, nullable=False)
    operation_type = Column(String(20), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint(_in_list("operation_type", BULK_OPERATION_TYPES), name="ck_bulk_operations_type"),
        Index("ix_bulk_operations_team", "team_id", "created_at"),
    )
