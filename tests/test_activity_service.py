"""
test_activity_service.py — Tests for bulk summary entries and log queries

Called by: pytest
Depends on: cpq/services/activity_service.py, tests/conftest.py
"""

from datetime import datetime, timedelta, timezone

import pytest

from cpq.models import ActivityLog
from cpq.schemas.activity import Actor
from cpq.services.activity_service import (
    activity_to_dict,
    build_bulk_entry,
    get_entity_activity,
    log_bulk_summary,
    query_activity_logs,
)


# ── Bulk summaries ───────────────────────────────────────────────────


def test_build_bulk_import_entry():
    entry = build_bulk_entry(
        1, "bulk_import", 40,
        actor=Actor(user_id=3, email="a@b.c", name="Avi"),
        file_name="bom.xlsx", file_type="excel",
        source_metadata={"parser": "openpyxl"},
        locale="en",
    )
    assert entry.entity_type == "component"
    assert entry.entity_id is None
    assert entry.entity_name == "Bulk import (40 components)"
    assert entry.source_metadata == {"parser": "openpyxl", "total_items": 40}
    assert entry.user_name == "Avi"


def test_build_bulk_update_entry():
    entry = build_bulk_entry(1, "bulk_update", 5, field="currency", field_label="Currency", value="ILS", locale="en")
    assert entry.change_summary == 'Bulk update: set Currency to "ILS" for 5 components'
    assert entry.change_details["bulk_changes"]["value"] == "ILS"


def test_build_rejects_non_bulk_action():
    with pytest.raises(ValueError):
        build_bulk_entry(1, "items_added", 3)


def test_log_bulk_summary_writes(sink, test_team, activity_rows):
    entry = log_bulk_summary(sink, test_team.id, "bulk_delete", 2, names=["A", "B"], locale="en")
    assert entry.change_summary == "Deleted 2 components in bulk: A, B"
    assert len(activity_rows("bulk_delete")) == 1


def test_log_bulk_summary_zero_count(sink, test_team, activity_rows):
    assert log_bulk_summary(sink, test_team.id, "bulk_import", 0) is None
    assert activity_rows() == []


# ── Queries ──────────────────────────────────────────────────────────


@pytest.fixture()
def seeded(db_session, test_team, test_user):
    now = datetime.now(timezone.utc)
    rows = [
        ActivityLog(team_id=test_team.id, entity_type="quotation", entity_id="Q-1", action_type="items_added",
                    change_summary="2 items added: Rail, Clamp", user_id=test_user.id, user_name="Dana Levi",
                    created_at=now - timedelta(hours=3)),
        ActivityLog(team_id=test_team.id, entity_type="quotation", entity_id="Q-2", action_type="parameters_changed",
                    change_summary="Parameters changed: Margin: 20 → 25", created_at=now - timedelta(hours=2)),
        ActivityLog(team_id=test_team.id, entity_type="component", action_type="bulk_import",
                    entity_name="Bulk import (40 components)", change_summary="Bulk import of 40 components",
                    created_at=now - timedelta(hours=1)),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return now


def test_query_newest_first(db_session, test_team, seeded):
    result = query_activity_logs(db_session, test_team.id)
    assert [r.action_type for r in result["logs"]] == ["bulk_import", "parameters_changed", "items_added"]
    assert result["total"] == 3
    assert result["has_more"] is False


def test_query_date_range(db_session, test_team, seeded):
    result = query_activity_logs(db_session, test_team.id, start=seeded - timedelta(hours=2, minutes=30))
    assert result["total"] == 2
    result = query_activity_logs(db_session, test_team.id, end=seeded - timedelta(hours=2, minutes=30))
    assert result["total"] == 1


def test_query_by_user_and_search(db_session, test_team, test_user, seeded):
    assert query_activity_logs(db_session, test_team.id, user_id=test_user.id)["total"] == 1
    assert query_activity_logs(db_session, test_team.id, search="margin")["total"] == 1
    assert query_activity_logs(db_session, test_team.id, search="Dana")["total"] == 1


def test_query_action_type_list(db_session, test_team, seeded):
    result = query_activity_logs(db_session, test_team.id, action_type=["items_added", "bulk_import"])
    assert result["total"] == 2


def test_get_entity_activity(db_session, test_team, seeded):
    rows = get_entity_activity(db_session, test_team.id, "quotation", "Q-1")
    assert [r.action_type for r in rows] == ["items_added"]


def test_activity_to_dict(db_session, test_team, seeded):
    row = query_activity_logs(db_session, test_team.id, limit=1)["logs"][0]
    d = activity_to_dict(row)
    assert d["action_type"] == "bulk_import"
    assert d["entity_id"] is None
    assert d["created_at"].startswith(str(seeded.year))
