"""
test_routers_components.py — Tests for /api/components endpoints

The app lifespan installs the component activity gate, so every write here
goes through the same mapper events as production.

Called by: pytest
Depends on: cpq/routers/components.py, tests/conftest.py (client fixture)
"""

from cpq.models import ActivityLog, BulkOperation, Component


def _actions(db_session):
    db_session.expire_all()
    return [r.action_type for r in db_session.query(ActivityLog).order_by(ActivityLog.id)]


def test_create_component_logs_created(client, db_session, test_user):
    resp = client.post("/api/components", json={"name": "Inverter 10kW", "unit_cost": "1450.00"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["team_id"] == test_user.team_id
    assert data["unit_cost"] == 1450.0

    (row,) = db_session.query(ActivityLog).all()
    assert row.action_type == "created"
    assert row.change_summary == "Created component: Inverter 10kW"
    assert row.user_email == test_user.email


def test_create_component_validation(client):
    resp = client.post("/api/components", json={"name": "X", "currency": "GBP"})
    assert resp.status_code == 422


def test_update_and_delete(client, db_session):
    comp_id = client.post("/api/components", json={"name": "Rail"}).json()["id"]
    resp = client.put(f"/api/components/{comp_id}", json={"category": "mounting"})
    assert resp.json()["category"] == "mounting"
    resp = client.delete(f"/api/components/{comp_id}")
    assert resp.json() == {"ok": True}
    assert _actions(db_session) == ["created", "updated", "deleted"]


def test_other_teams_component_404(client, db_session, other_team):
    comp = Component(team_id=other_team.id, name="Theirs")
    db_session.add(comp)
    db_session.commit()
    assert client.put(f"/api/components/{comp.id}", json={"name": "Mine"}).status_code == 404
    assert client.delete(f"/api/components/{comp.id}").status_code == 404


def test_import_logs_one_bulk_entry(client, db_session):
    resp = client.post("/api/components/import", json={
        "file_name": "roof-bom.xlsx",
        "parser": "openpyxl",
        "rows": [{"name": f"Panel {i}"} for i in range(4)],
    })
    assert resp.status_code == 200
    assert len(resp.json()["created"]) == 4
    assert _actions(db_session) == ["bulk_import"]
    assert db_session.query(BulkOperation).count() == 0


def test_bulk_delete_logs_one_bulk_entry(client, db_session):
    ids = client.post("/api/components/import", json={
        "file_name": "bom.csv",
        "file_type": "csv",
        "rows": [{"name": f"Panel {i}"} for i in range(26)],
    }).json()["created"]

    resp = client.post("/api/components/bulk-delete", json={"ids": ids})
    assert resp.json()["deleted"] == 26
    assert _actions(db_session) == ["bulk_import", "bulk_delete"]


def test_bulk_delete_requires_ids(client):
    assert client.post("/api/components/bulk-delete", json={"ids": []}).status_code == 422
