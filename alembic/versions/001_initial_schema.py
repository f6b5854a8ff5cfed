"""initial schema - teams, users, components

Revision ID: 001_initial
Revises: None
Create Date: 2026-01-02
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), unique=True),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255)),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id")),
        sa.Column("locale", sa.String(10)),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_table(
        "components",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("manufacturer", sa.String(255)),
        sa.Column("part_number", sa.String(255)),
        sa.Column("category", sa.String(100)),
        sa.Column("unit_cost", sa.Numeric(14, 4)),
        sa.Column("currency", sa.String(3)),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )
    op.create_index("ix_components_team", "components", ["team_id"])
    op.create_index("ix_components_team_name", "components", ["team_id", "name"])


def downgrade() -> None:
    """⚠️ DESTRUCTIVE — only for dev/test environments."""
    op.drop_index("ix_components_team_name", table_name="components")
    op.drop_index("ix_components_team", table_name="components")
    op.drop_table("components")
    op.drop_table("users")
    op.drop_table("teams")
