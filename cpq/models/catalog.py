"""Catalog models — components are the row-mutation trigger point.

Every insert/update/delete on `components` goes through the mutation
suppression gate (see services/suppression_gate.py), which either writes an
individual activity row or stays silent while a bulk marker is active.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text

from .base import Base


class Component(Base):
    __tablename__ = "components"
    id = Column(Integer, primary_key=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    name = Column(String(500), nullable=False)
    manufacturer = Column(String(255))
    part_number = Column(String(255))
    category = Column(String(100))
    unit_cost = Column(Numeric(14, 4))
    currency = Column(String(3), default="USD")  # USD, EUR, ILS
    notes = Column(Text)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_components_team", "team_id"),
        Index("ix_components_team_name", "team_id", "name"),
    )
