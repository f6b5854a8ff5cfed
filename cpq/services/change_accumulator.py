"""
change_accumulator.py — Per-context pending field changes with net delta

Absorbs keystroke-level parameter edits for an open editing context
(e.g. one quotation) and reduces them to one change per field.

Business Rules:
- One PendingChange per (context_id, field_key)
- First edit captures original_value; later edits only move current_value
- A field edited back to its starting value produces no delta line,
  however many intermediate edits there were
- Value equality, not identity: "25", 25 and 25.0 are the same value
- No I/O — the coordinator decides when to flush and where to write

Called by: services/flush_coordinator.py
Depends on: schemas/activity.py (FieldDelta)
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from ..schemas.activity import FieldDelta


@dataclass
class PendingChange:
    context_id: str
    field_key: str
    display_label: str
    original_value: Any
    current_value: Any


def normalize_value(value):
    """Comparable form of a form value. Numeric text compares as a number."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float, Decimal)):
        candidate = str(value)
    elif isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
    else:
        return value
    try:
        number = Decimal(candidate)
    except InvalidOperation:
        return candidate
    if not number.is_finite():
        return candidate
    return number.normalize()


def values_equal(a, b) -> bool:
    return normalize_value(a) == normalize_value(b)


class ChangeAccumulator:
    """In-memory map of pending field changes, keyed by context."""

    def __init__(self):
        # context_id → {field_key → PendingChange}; dicts keep first-touch order
        self._pending: dict[str, dict[str, PendingChange]] = {}

    def record_change(self, context_id: str, field_key: str, display_label: str | None, old_value, new_value) -> None:
        fields = self._pending.setdefault(context_id, {})
        change = fields.get(field_key)
        if change is None:
            fields[field_key] = PendingChange(
                context_id=context_id,
                field_key=field_key,
                display_label=display_label or field_key,
                original_value=old_value,
                current_value=new_value,
            )
            return
        change.current_value = new_value
        if display_label:
            change.display_label = display_label

    def compute_delta(self, context_id: str) -> list[FieldDelta]:
        """Net changes for the context, net-zero fields filtered out."""
        return [
            FieldDelta(
                field_key=c.field_key,
                label=c.display_label,
                original_value=c.original_value,
                current_value=c.current_value,
            )
            for c in self._pending.get(context_id, {}).values()
            if not values_equal(c.original_value, c.current_value)
        ]

    def clear(self, context_id: str) -> None:
        self._pending.pop(context_id, None)

    def pop_delta(self, context_id: str) -> list[FieldDelta]:
        delta = self.compute_delta(context_id)
        self.clear(context_id)
        return delta

    def has_pending(self, context_id: str) -> bool:
        return bool(self._pending.get(context_id))

    def pending_fields(self, context_id: str) -> list[str]:
        return list(self._pending.get(context_id, {}))
