"""
schemas/components.py — Request bodies for the component endpoints

The import body is the output of the upstream document parser (Excel / PDF /
AI vision): file descriptor plus the extracted rows.

Called by: routers/components.py, services/component_service.py
Depends on: pydantic
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class ComponentIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=500)
    manufacturer: str | None = Field(None, max_length=255)
    part_number: str | None = Field(None, max_length=255)
    category: str | None = Field(None, max_length=100)
    unit_cost: Decimal | None = None
    currency: str = Field("USD", pattern="^(USD|EUR|ILS)$")
    notes: str | None = None


class ComponentUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=500)
    manufacturer: str | None = None
    part_number: str | None = None
    category: str | None = None
    unit_cost: Decimal | None = None
    currency: str | None = Field(None, pattern="^(USD|EUR|ILS)$")
    notes: str | None = None


class BulkDeleteRequest(BaseModel):
    ids: list[int] = Field(..., min_length=1)


class ComponentImportRequest(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=500)
    file_type: str = Field("excel", max_length=50)
    parser: str | None = None
    confidence: float | None = Field(None, ge=0, le=1)
    extraction_method: str | None = None
    rows: list[ComponentIn] = Field(..., min_length=1)
