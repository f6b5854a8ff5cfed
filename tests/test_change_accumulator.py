"""
test_change_accumulator.py — Tests for per-context parameter deltas

Called by: pytest
Depends on: cpq/services/change_accumulator.py
"""

from decimal import Decimal

import pytest

from cpq.services.change_accumulator import ChangeAccumulator, normalize_value, values_equal


@pytest.fixture()
def acc():
    return ChangeAccumulator()


# ── value equality ───────────────────────────────────────────────────


@pytest.mark.parametrize("a,b", [
    ("25", 25),
    (25, 25.0),
    ("25.00", Decimal("25")),
    (" 7 ", "7"),
    (None, ""),
    ("Tier 1", "Tier 1"),
])
def test_values_equal(a, b):
    assert values_equal(a, b)


@pytest.mark.parametrize("a,b", [
    ("25", 26),
    (None, 0),
    ("Tier 1", "Tier 2"),
])
def test_values_not_equal(a, b):
    assert not values_equal(a, b)


def test_normalize_keeps_non_numeric_text():
    assert normalize_value("  abc ") == "abc"
    assert normalize_value("nan") == "nan"


# ── accumulation ─────────────────────────────────────────────────────


def test_first_edit_keeps_original(acc):
    acc.record_change("q1", "margin", "Margin", 20, 22)
    acc.record_change("q1", "margin", "Margin", 22, 25)
    acc.record_change("q1", "margin", "Margin", 25, 30)
    (delta,) = acc.compute_delta("q1")
    assert delta.original_value == 20
    assert delta.current_value == 30
    assert delta.label == "Margin"


def test_partial_keystroke_is_not_kept(acc):
    acc.record_change("q1", "usdRate", "usdRate", 3.7, "3.")
    acc.record_change("q1", "usdRate", "usdRate", "3.", 3.75)
    (delta,) = acc.compute_delta("q1")
    assert (delta.original_value, delta.current_value) == (3.7, 3.75)


def test_net_zero_field_filtered(acc):
    for old, new in ((20, 21), (21, 25), (25, 20)):
        acc.record_change("q1", "margin", "Margin", old, new)
    assert acc.compute_delta("q1") == []
    assert acc.has_pending("q1")


def test_string_number_round_trip_is_net_zero(acc):
    acc.record_change("q1", "margin", "Margin", 25, "26")
    acc.record_change("q1", "margin", "Margin", "26", "25.0")
    assert acc.compute_delta("q1") == []


def test_delta_keeps_first_touch_order(acc):
    acc.record_change("q1", "discount", "Discount", 0, 5)
    acc.record_change("q1", "margin", "Margin", 20, 25)
    acc.record_change("q1", "discount", "Discount", 5, 10)
    assert [d.field_key for d in acc.compute_delta("q1")] == ["discount", "margin"]


def test_label_defaults_to_key_and_updates(acc):
    acc.record_change("q1", "vat", None, 17, 18)
    assert acc.compute_delta("q1")[0].label == "vat"
    acc.record_change("q1", "vat", "VAT %", 18, 19)
    assert acc.compute_delta("q1")[0].label == "VAT %"


def test_contexts_are_independent(acc):
    acc.record_change("q1", "margin", "Margin", 20, 25)
    acc.record_change("q2", "margin", "Margin", 10, 15)
    acc.clear("q1")
    assert acc.compute_delta("q1") == []
    assert len(acc.compute_delta("q2")) == 1


def test_pop_delta_clears(acc):
    acc.record_change("q1", "margin", "Margin", 20, 25)
    assert len(acc.pop_delta("q1")) == 1
    assert not acc.has_pending("q1")
    assert acc.pop_delta("q1") == []


def test_pending_fields(acc):
    acc.record_change("q1", "a", "A", 1, 2)
    acc.record_change("q1", "b", "B", 1, 1)
    assert acc.pending_fields("q1") == ["a", "b"]
    assert acc.pending_fields("missing") == []
