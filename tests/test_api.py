from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from laundry_tracker.api import app, get_engine

DRIVER = {"X-Actor-Id": "drv-1", "X-Actor-Role": "driver"}
MANAGER = {"X-Actor-Id": "mgr-1", "X-Actor-Role": "hotel_manager"}
ADMIN = {"X-Actor-Id": "admin-1", "X-Actor-Role": "admin"}


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def collect(client, items):
    resp = client.post("/loads", headers=DRIVER, json={"hotel_id": "hotel-1", "items": items})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_item_types(client):
    assert "Towel" in client.get("/item-types").json()


def test_collect_requires_driver_role(client):
    resp = client.post("/loads", headers=MANAGER,
                       json={"hotel_id": "hotel-1", "items": [{"type": "Towel", "quantity": 1}]})
    assert resp.status_code == 403


def test_collect_without_items_is_422(client):
    resp = client.post("/loads", headers=DRIVER,
                       json={"hotel_id": "hotel-1", "items": [{"type": "Towel", "quantity": 0}]})
    assert resp.status_code == 422
    assert resp.json()["reason"] == "no_items"


def test_full_lifecycle_over_http(client, clock):
    load = collect(client, [{"type": "Towel", "quantity": 10}, {"type": "Bedsheet", "quantity": 5}])
    assert load["status"] == "collected" and load["overdue"] is False

    due = (clock.now + timedelta(days=2)).isoformat()
    resp = client.post(f"/loads/{load['id']}/acknowledge", headers=MANAGER, json={"due_date": due})
    assert resp.status_code == 200 and resp.json()["pickup_acknowledged"] is True

    resp = client.post(f"/loads/{load['id']}/drop", headers=DRIVER,
                       json={"items": [{"type": "Towel", "quantity": 4}]})
    assert resp.json()["status"] == "partially_dropped"

    pending = client.get("/drivers/drv-1/pending-drops", headers=DRIVER).json()
    assert pending[0]["outstanding_items"] == [{"type": "Towel", "quantity": 6}, {"type": "Bedsheet", "quantity": 5}]

    resp = client.post(f"/loads/{load['id']}/drop", headers=DRIVER,
                       json={"items": [{"type": "Towel", "quantity": 6}, {"type": "Bedsheet", "quantity": 5}]})
    assert resp.json()["status"] == "dropped"

    approvals = client.get("/hotels/hotel-1/pending-approvals", headers=MANAGER).json()
    assert [l["id"] for l in approvals] == [load["id"]]

    resp = client.post(f"/loads/{load['id']}/approve", headers=MANAGER,
                       json={"items": [{"type": "Towel", "quantity": 10}, {"type": "Bedsheet", "quantity": 3}],
                             "notes": "2 sheets short"})
    body = resp.json()
    assert body["status"] == "partial"
    assert body["remaining_items"] == [{"type": "Bedsheet", "quantity": 2}]

    inbox = client.get("/notifications", headers=DRIVER).json()
    assert [n["type"] for n in inbox] == ["load_partial", "load_collected"]


def test_zero_drop_reports_specific_reason(client):
    load = collect(client, [{"type": "Towel", "quantity": 3}])
    resp = client.post(f"/loads/{load['id']}/drop", headers=DRIVER,
                       json={"items": [{"type": "Towel", "quantity": 0}]})
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "validation_error"
    assert body["reason"] == "all_quantities_zero"
    assert "zero" in body["detail"]


def test_approve_before_drop_is_conflict(client):
    load = collect(client, [{"type": "Towel", "quantity": 3}])
    resp = client.post(f"/loads/{load['id']}/approve", headers=MANAGER,
                       json={"items": [{"type": "Towel", "quantity": 3}]})
    assert resp.status_code == 409
    assert resp.json()["reason"] == "status_not_dropped"


def test_acknowledge_without_due_date(client):
    load = collect(client, [{"type": "Towel", "quantity": 3}])
    resp = client.post(f"/loads/{load['id']}/acknowledge", headers=MANAGER, json={"remark": "ok"})
    assert resp.status_code == 422
    assert resp.json()["reason"] == "missing_due_date"


def test_unknown_load_is_404(client):
    resp = client.get("/loads/load-nope", headers=ADMIN)
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_unknown_role_is_rejected(client):
    resp = client.get("/loads", headers={"X-Actor-Id": "x", "X-Actor-Role": "guest"})
    assert resp.status_code == 400


def test_processing_is_admin_only(client):
    load = collect(client, [{"type": "Towel", "quantity": 3}])
    assert client.post(f"/loads/{load['id']}/processing", headers=DRIVER).status_code == 403
    resp = client.post(f"/loads/{load['id']}/processing", headers=ADMIN)
    assert resp.json()["status"] == "processing"
    listed = client.get("/loads", headers=ADMIN, params={"status": ["processing", "collected"]}).json()
    assert [l["id"] for l in listed] == [load["id"]]


def test_overdue_listing_and_single_delayed_alert(client, clock):
    load = collect(client, [{"type": "Towel", "quantity": 3}])
    client.post(f"/loads/{load['id']}/acknowledge", headers=MANAGER, json={"due_date": clock.now.isoformat()})
    clock.advance(days=2)
    for _ in range(2):
        listed = client.get("/loads", headers=ADMIN, params={"hotel_id": "hotel-1"}).json()
        assert listed[0]["overdue"] is True
    inbox = client.get("/notifications", headers=ADMIN).json()
    assert [n["type"] for n in inbox].count("load_delayed") == 1


def test_mark_notifications_read(client):
    load = collect(client, [{"type": "Towel", "quantity": 3}])
    client.post(f"/loads/{load['id']}/drop", headers=DRIVER, json={"items": [{"type": "Towel", "quantity": 1}]})
    inbox = client.get("/notifications", headers=MANAGER).json()
    assert len(inbox) == 1
    resp = client.post(f"/notifications/{inbox[0]['id']}/read", headers=MANAGER)
    assert resp.json() == {"id": inbox[0]["id"], "read": True}
    assert client.get("/notifications", headers=MANAGER, params={"unread_only": True}).json() == []
    assert client.post("/notifications/read-all", headers=ADMIN).json() == {"updated": 1}
    assert client.post("/notifications/ntf-missing/read", headers=ADMIN).status_code == 404


def test_stats_endpoints(client, clock):
    load = collect(client, [{"type": "Towel", "quantity": 3}])
    client.post(f"/loads/{load['id']}/drop", headers=DRIVER, json={"items": [{"type": "Towel", "quantity": 3}]})
    assert client.get("/stats", headers=DRIVER).status_code == 403
    summary = client.get("/stats", headers=ADMIN).json()
    assert summary["hotels"] == 2 and summary["collections_today"] == 1 and summary["active_loads"] == 0
    series = client.get("/stats/activity", headers=ADMIN).json()
    assert len(series) == 7
    assert series[-1]["date"] == clock.now.date().isoformat()
    assert (series[-1]["picked"], series[-1]["dropped"]) == (3, 3)
