"""
tests/test_api.py
=================

Tests for the FastAPI endpoints.

These tests use FastAPI TestClient and swap the shared store dependency
for a fresh in-memory store, so nothing touches the SQLite file.  The real
`get_service` still runs, scoping that store to the caller's pharmacy.
"""

import pytest
from fastapi.testclient import TestClient

from api.deps import get_store
from api.main import app
from dispensary.store import MemoryRecordStore, StoreError

# Create test client
client = TestClient(app)

PHARMACIST = {"X-User-Id": "u-pharm", "X-User-Role": "pharmacist", "X-Pharmacy-Id": "ph1"}
TECHNICIAN = {"X-User-Id": "u-tech", "X-User-Role": "technician", "X-Pharmacy-Id": "ph1"}

RX = {
    "patient_name": "Ann Smith",
    "medication": "Amoxicillin",
    "dosage": "500mg",
    "quantity": 21,
    "prescriber": "Dr Lee",
}


class BrokenStore(MemoryRecordStore):
    def list(self, table, filter=None, order_by=None, limit=None):
        raise StoreError("database is locked")


@pytest.fixture(autouse=True)
def fresh_store():
    store = MemoryRecordStore()
    app.dependency_overrides[get_store] = lambda: store
    yield store
    app.dependency_overrides.clear()


def _create_rx(**overrides):
    resp = client.post("/prescriptions", json={**RX, **overrides}, headers=PHARMACIST)
    assert resp.status_code == 201
    return resp.json()


def test_health():
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_whoami_defaults_to_technician():
    body = client.get("/me").json()
    assert body["role"] == "technician"
    assert body["capabilities"] == []

    body = client.get("/me", headers=PHARMACIST).json()
    assert body["capabilities"] == ["manage_inventory", "send_notifications"]


# ---------------------------------------------------------------------
# Prescriptions
# ---------------------------------------------------------------------
def test_prescription_status_flow():
    rx = _create_rx()
    assert rx["status"] == "pending"
    assert rx["pharmacy_id"] == "ph1"

    resp = client.post(f"/prescriptions/{rx['id']}/status", json={"status": "ready"}, headers=TECHNICIAN)
    assert resp.status_code == 200
    assert resp.json()["status"] == "ready"
    assert resp.json()["date_ready"] is not None

    resp = client.post(f"/prescriptions/{rx['id']}/status", json={"status": "pending"}, headers=TECHNICIAN)
    assert resp.status_code == 409
    assert resp.json()["error"] == "InvalidTransition"


def test_other_pharmacy_cannot_see_or_change_prescription():
    rx = _create_rx()
    other = {**PHARMACIST, "X-Pharmacy-Id": "ph2"}

    assert client.get("/prescriptions", headers=other).json() == []
    resp = client.post(f"/prescriptions/{rx['id']}/status", json={"status": "ready"}, headers=other)
    assert resp.status_code == 404
    assert client.get(f"/prescriptions/{rx['id']}", headers=other).status_code == 404

    assert client.get(f"/prescriptions/{rx['id']}", headers=PHARMACIST).json()["status"] == "pending"
    assert len(client.get("/prescriptions", headers=PHARMACIST).json()) == 1


def test_unknown_status_is_422():
    rx = _create_rx()
    resp = client.post(f"/prescriptions/{rx['id']}/status", json={"status": "shipped"})
    assert resp.status_code == 422
    assert resp.json()["error"] == "ValidationError"


def test_missing_prescription_is_404():
    assert client.get("/prescriptions/nope").status_code == 404
    assert client.delete("/prescriptions/nope").status_code == 404


def test_list_prescriptions_rows():
    _create_rx()
    rows = client.get("/prescriptions").json()
    assert len(rows) == 1
    assert rows[0]["renewal"] == "none"
    assert client.get("/prescriptions", params={"status": "ready"}).json() == []


def test_renewals_groups_every_category():
    _create_rx()
    groups = client.get("/prescriptions/renewals").json()
    assert set(groups) == {"none", "due_soon", "overdue", "completed"}
    assert len(groups["none"]) == 1


# ---------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------
def test_technician_cannot_send_reminders():
    rx = _create_rx()
    resp = client.post(f"/prescriptions/{rx['id']}/reminders", json={"channel": "sms"}, headers=TECHNICIAN)
    assert resp.status_code == 403
    assert resp.json()["error"] == "PermissionDenied"


def test_reminder_is_recorded():
    rx = _create_rx()
    resp = client.post(f"/prescriptions/{rx['id']}/reminders", json={"channel": "email"}, headers=PHARMACIST)
    assert resp.status_code == 201
    assert resp.json()["channel"] == "email"

    history = client.get(f"/prescriptions/{rx['id']}/reminders").json()
    assert [e["sent_by"] for e in history] == ["u-pharm"]


def test_bulk_reminders_report_failures():
    rx = _create_rx()
    body = {"prescription_ids": [rx["id"], "nope"], "channel": "sms"}
    resp = client.post("/prescriptions/reminders", json=body, headers=PHARMACIST)
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is False
    assert list(data["sent"]) == [rx["id"]]
    assert "nope" in data["failed"]


# ---------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------
def test_order_flow_and_timeline():
    resp = client.post("/orders", json={"customer_name": "Bob", "item_name": "Insulin pens",
                                        "order_type": "special_order"}, headers=TECHNICIAN)
    assert resp.status_code == 201
    order = resp.json()

    resp = client.post(f"/orders/{order['id']}/notified", headers=PHARMACIST)
    assert resp.status_code == 422

    client.post(f"/orders/{order['id']}/status", json={"status": "ready_for_collection"})
    rows = client.get("/orders").json()
    assert rows[0]["severity"] == "normal"

    client.post(f"/orders/{order['id']}/status", json={"status": "collected"})
    actions = [e["action"] for e in client.get(f"/orders/{order['id']}/timeline").json()]
    assert actions[0] == "Order Collected"
    assert actions[-1] == "Order Created"


def test_order_created_ready_arrives_after_it_was_ordered():
    resp = client.post("/orders", json={"customer_name": "Bob", "item_name": "Insulin pens",
                                        "order_type": "missed_pickup",
                                        "status": "ready_for_collection"}, headers=TECHNICIAN)
    assert resp.status_code == 201
    order = resp.json()
    assert order["date_ordered"] == order["arrived_at"]

    actions = [e["action"] for e in client.get(f"/orders/{order['id']}/timeline").json()]
    assert actions == ["Item Arrived", "Order Created"]


def test_order_cannot_start_as_overdue():
    resp = client.post("/orders", json={"customer_name": "Bob", "item_name": "Insulin pens",
                                        "order_type": "back_order", "status": "overdue"})
    assert resp.status_code == 422


# ---------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------
def test_stock_reorder_and_delivery():
    resp = client.post("/stock", json={"name": "Insulin pens", "current_stock": 2,
                                       "minimum_stock": 20, "supplier": "DiabetesCare Ltd"},
                       headers=PHARMACIST)
    assert resp.status_code == 201
    item = resp.json()

    assert client.get("/stock").json()[0]["tier"] == "critical"
    assert client.put(f"/stock/{item['id']}", json={"current_stock": 30}, headers=TECHNICIAN).status_code == 403

    todo = client.post(f"/stock/{item['id']}/reorder", json={"order_quantity": 50}, headers=PHARMACIST).json()
    assert client.post(f"/todos/{todo['id']}/ordered", headers=PHARMACIST).json()["status"] == "ordered"
    assert client.post(f"/todos/{todo['id']}/cancel", headers=PHARMACIST).status_code == 409

    resp = client.post("/deliveries", json={"item_name": "Insulin pens", "quantity_received": 50,
                                            "supplier": "DiabetesCare Ltd"}, headers=PHARMACIST)
    assert resp.status_code == 201
    history = client.get(f"/stock/{item['id']}/history").json()
    assert [h["type"] for h in history] == ["received", "ordered"]


def test_dashboard_counts():
    _create_rx()
    summary = client.get("/dashboard").json()
    assert summary["prescriptions"] == {"pending": 1, "ready": 0, "collected": 0}
    assert summary["todos"] == {"pending": 0, "ordered": 0, "cancelled": 0}


# ---------------------------------------------------------------------
# Store failures
# ---------------------------------------------------------------------
def test_store_failure_is_503():
    app.dependency_overrides[get_store] = lambda: BrokenStore()
    resp = client.get("/prescriptions")
    assert resp.status_code == 503
    assert resp.json()["error"] == "PersistenceError"
    assert "locked" not in resp.json()["detail"]
