"""
schemas/responses.py — Shared response models for OpenAPI documentation

Called by: routers/*.py
Depends on: pydantic
"""

from __future__ import annotations

from pydantic import BaseModel


class OkResponse(BaseModel):
    ok: bool = True


class ComponentOut(BaseModel, extra="allow"):
    id: int
    team_id: int
    name: str
    manufacturer: str | None = None
    part_number: str | None = None
    category: str | None = None
    unit_cost: float | None = None
    currency: str | None = None
