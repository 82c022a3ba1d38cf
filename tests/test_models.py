"""
tests/test_models.py
====================

Unit tests for the dataclasses and enums defined in dispensary.models.

Run:  pytest -q
"""

from datetime import datetime, timedelta, timezone

import pytest

from dispensary.errors import ValidationError
from dispensary.models import (
    CustomerOrder,
    OrderStatus,
    OrderTodo,
    OrderType,
    Prescription,
    PrescriptionStatus,
    ReminderChannel,
    ReminderEvent,
    StockItem,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _rx(**overrides):
    fields = dict(patient_name="Ann", medication="Amoxicillin", dosage="500mg",
                  quantity=21, prescriber="Dr Lee")
    fields.update(overrides)
    return Prescription(**fields)


def test_default_status():
    """New prescription defaults to PENDING."""
    assert _rx().status is PrescriptionStatus.PENDING


def test_str_on_status():
    """Enum __str__ returns its stored value."""
    assert str(OrderStatus.READY_FOR_COLLECTION) == "ready_for_collection"


@pytest.mark.parametrize("quantity", [0, -3, 2.5, "10", True])
def test_non_positive_or_non_integer_quantity_raises(quantity):
    with pytest.raises(ValidationError):
        _rx(quantity=quantity)


def test_blank_required_text_raises():
    with pytest.raises(ValidationError):
        _rx(medication="  ")


def test_ready_requires_date_ready():
    with pytest.raises(ValidationError):
        _rx(status=PrescriptionStatus.READY)
    with pytest.raises(ValidationError):
        _rx(date_ready=NOW)  # still pending


def test_collected_requires_both_stamps():
    with pytest.raises(ValidationError):
        _rx(status="collected", date_collected=NOW)
    rx = _rx(status="collected", date_ready=NOW, date_collected=NOW)
    assert rx.status is PrescriptionStatus.COLLECTED


def test_unknown_status_raises_validation_error():
    with pytest.raises(ValidationError):
        _rx(status="shipped")


def test_record_round_trip_coerces_strings():
    row = {
        "id": "rx-1",
        "patient_name": "Ann",
        "medication": "Amoxicillin",
        "dosage": "500mg",
        "quantity": 21,
        "prescriber": "Dr Lee",
        "status": "ready",
        "date_ready": "2024-03-01T12:00:00Z",
        "updated_at": "ignored column",
    }
    rx = Prescription.from_record(row)
    assert rx.status is PrescriptionStatus.READY
    assert rx.date_ready == NOW

    out = rx.to_record()
    assert out["status"] == "ready"
    assert "updated_at" not in out


def test_row_missing_required_column_is_validation_error():
    """A truncated store row is reported, not a bare TypeError."""
    with pytest.raises(ValidationError, match="Prescription"):
        Prescription.from_record({"id": "rx-1", "patient_name": "Ann", "status": "pending"})


def test_order_arrival_invariants():
    with pytest.raises(ValidationError):
        CustomerOrder("Bob", "Insulin pens", OrderType.SPECIAL_ORDER,
                      status=OrderStatus.READY_FOR_COLLECTION)
    order = CustomerOrder("Bob", "Insulin pens", "special_order",
                          status="ready_for_collection", arrived_at=NOW)
    assert order.order_type is OrderType.SPECIAL_ORDER


def test_order_cannot_be_notified_before_arrival():
    with pytest.raises(ValidationError):
        CustomerOrder("Bob", "Insulin pens", "back_order", notified_at=NOW)


def test_legacy_overdue_status_is_rejected():
    """'overdue' is derived from arrived_at, never stored."""
    with pytest.raises(ValidationError, match="overdue"):
        CustomerOrder.from_record({
            "customer_name": "Bob", "item_name": "Insulin pens",
            "order_type": "special_order", "status": "overdue",
        })


def test_stock_item_low_stock_flag():
    assert StockItem("Paracetamol", current_stock=5, minimum_stock=5).is_low_stock
    assert not StockItem("Paracetamol", current_stock=6, minimum_stock=5).is_low_stock
    with pytest.raises(ValidationError):
        StockItem("Paracetamol", current_stock=-1)


def test_todo_requires_positive_quantity():
    with pytest.raises(ValidationError):
        OrderTodo("Insulin pens", 0, "DiabetesCare Ltd")


def test_reminder_event_is_immutable():
    event = ReminderEvent("rx-1", "sms", sent_at=NOW - timedelta(hours=1))
    assert event.channel is ReminderChannel.SMS
    with pytest.raises(AttributeError):
        event.channel = ReminderChannel.EMAIL
