"""
tests/test_store.py
===================

Unit tests for dispensary.store.MemoryRecordStore
"""

from datetime import datetime, timezone

import pytest

from dispensary.store import MemoryRecordStore, StoreError

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _demo_store():
    store = MemoryRecordStore(clock=lambda: NOW)
    store.insert("stock_items", {"name": "Paracetamol", "current_stock": 40, "minimum_stock": 20})
    store.insert("stock_items", {"name": "Amoxicillin", "current_stock": 2, "minimum_stock": 10})
    store.insert("stock_items", {"name": "Ibuprofen", "current_stock": 0, "minimum_stock": 10})
    return store


def test_insert_assigns_id_and_default_timestamp():
    store = MemoryRecordStore(clock=lambda: NOW)
    row = store.insert("prescriptions", {"patient_name": "Ann"})
    assert row["id"]
    assert row["date_created"] == NOW
    assert store.get("prescriptions", row["id"]) == row


def test_returned_rows_are_copies():
    store = MemoryRecordStore()
    row = store.insert("stock_items", {"name": "Paracetamol"})
    row["name"] = "changed"
    assert store.get("stock_items", row["id"])["name"] == "Paracetamol"


def test_list_filters_orders_and_limits():
    store = _demo_store()
    names = [r["name"] for r in store.list("stock_items", order_by="name")]
    assert names == ["Amoxicillin", "Ibuprofen", "Paracetamol"]

    desc = [r["name"] for r in store.list("stock_items", order_by="-current_stock", limit=2)]
    assert desc == ["Paracetamol", "Amoxicillin"]

    hits = store.list("stock_items", filter={"minimum_stock": 10})
    assert {r["name"] for r in hits} == {"Amoxicillin", "Ibuprofen"}


def test_update_merges_patch():
    store = _demo_store()
    row = store.list("stock_items", filter={"name": "Ibuprofen"})[0]
    updated = store.update("stock_items", row["id"], {"current_stock": 30})
    assert updated["current_stock"] == 30
    assert updated["minimum_stock"] == 10


def test_missing_ids():
    store = MemoryRecordStore()
    assert store.get("prescriptions", "nope") is None
    with pytest.raises(KeyError):
        store.update("prescriptions", "nope", {"status": "ready"})
    with pytest.raises(KeyError):
        store.delete("prescriptions", "nope")


def test_unknown_table_is_a_store_error():
    with pytest.raises(StoreError):
        MemoryRecordStore().list("patients")


def test_len_counts_all_rows():
    assert len(_demo_store()) == 3


def test_scoped_views_share_rows_but_not_tenants():
    store = MemoryRecordStore(clock=lambda: NOW)
    ph1, ph2 = store.scoped("ph1"), store.scoped("ph2")
    row = ph1.insert("stock_items", {"name": "Paracetamol", "pharmacy_id": "ph2"})
    assert row["pharmacy_id"] == "ph1"

    assert ph2.get("stock_items", row["id"]) is None
    assert ph2.list("stock_items") == []
    assert len(ph2) == 0
    with pytest.raises(KeyError):
        ph2.update("stock_items", row["id"], {"current_stock": 9})
    with pytest.raises(KeyError):
        ph2.delete("stock_items", row["id"])

    assert ph1.update("stock_items", row["id"], {"pharmacy_id": "ph2"})["pharmacy_id"] == "ph1"
    assert store.get("stock_items", row["id"])["name"] == "Paracetamol"
    assert len(store) == 1
