"""activity_logs + bulk_operations

bulk_operations replaces connection-level "in bulk operation" flags, which
are not visible across pooled connections.

Revision ID: 002_activity
Revises: 001_initial
Create Date: 2026-01-03
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002_activity"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("entity_id", sa.String(64)),
        sa.Column("entity_name", sa.String(500)),
        sa.Column("action_type", sa.String(30), nullable=False),
        sa.Column("change_summary", sa.Text(), nullable=False),
        sa.Column("change_details", sa.JSON()),
        sa.Column("source_file_name", sa.String(500)),
        sa.Column("source_file_type", sa.String(50)),
        sa.Column("source_metadata", sa.JSON()),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("user_email", sa.String(255)),
        sa.Column("user_name", sa.String(255)),
        sa.Column("created_at", sa.DateTime()),
        sa.CheckConstraint(
            "entity_type IN ('quotation', 'component', 'project')",
            name="ck_activity_logs_entity_type",
        ),
        sa.CheckConstraint(
            "action_type IN ('created', 'updated', 'deleted', 'status_changed', "
            "'items_added', 'items_removed', 'items_updated', 'parameters_changed', "
            "'bulk_update', 'bulk_import', 'bulk_delete', 'imported', 'exported', "
            "'version_created')",
            name="ck_activity_logs_action_type",
        ),
    )
    op.create_index("ix_activity_logs_team_created", "activity_logs", ["team_id", "created_at"])
    op.create_index("ix_activity_logs_team_entity", "activity_logs", ["team_id", "entity_type", "entity_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action_type"])
    op.create_index("ix_activity_logs_user", "activity_logs", ["user_id"])

    op.create_table(
        "bulk_operations",
        sa.Column("operation_id", sa.String(100), primary_key=True),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("operation_type", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "operation_type IN ('import', 'delete', 'update')",
            name="ck_bulk_operations_type",
        ),
    )
    op.create_index("ix_bulk_operations_team", "bulk_operations", ["team_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_bulk_operations_team", table_name="bulk_operations")
    op.drop_table("bulk_operations")
    for name in ("ix_activity_logs_user", "ix_activity_logs_action",
                 "ix_activity_logs_team_entity", "ix_activity_logs_team_created"):
        op.drop_index(name, table_name="activity_logs")
    op.drop_table("activity_logs")
