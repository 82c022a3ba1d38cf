#!/usr/bin/env python
"""
Seed database with sample pharmacy records for testing.

This script creates prescriptions, customer orders and stock items in the
database to populate the dashboard with meaningful data.
"""

import json
import sys
from datetime import timedelta

from dispensary.dates import utcnow
from dispensary.db import SQLRecordStore, create_all
from dispensary.errors import LifecycleError
from dispensary.permissions import Actor, Role
from dispensary.service import LifecycleService

SEED_ACTOR = Actor("seed-script", Role.ADMIN, pharmacy_id="demo")

# Sample prescriptions; "advance" lists the statuses to move through after creation
SAMPLE_PRESCRIPTIONS = [
    dict(patient_name="John Smith", medication="Amoxicillin", dosage="500mg",
         quantity=21, prescriber="Dr Patel", renewal_due_days=2),
    dict(patient_name="Jane Doe", medication="Metformin", dosage="850mg",
         quantity=56, prescriber="Dr Okafor", renewal_due_days=-3, advance=["ready"]),
    dict(patient_name="Maria Garcia", medication="Atorvastatin", dosage="20mg",
         quantity=28, prescriber="Dr Patel", advance=["ready", "collected"]),
    dict(patient_name="David Kim", medication="Salbutamol inhaler", dosage="100mcg",
         quantity=1, prescriber="Dr Chen", renewal_due_days=20),
]

SAMPLE_ORDERS = [
    dict(customer_name="Thomas Brown", item_name="Insulin pens", order_type="special_order",
         customer_phone="555-0101"),
    dict(customer_name="Patricia White", item_name="Omeprazole 20mg", order_type="missed_pickup",
         status="ready_for_collection", arrived_days_ago=9),
    dict(customer_name="William Davis", item_name="Ferrous sulfate", order_type="back_order",
         status="ready_for_collection", arrived_days_ago=4),
]

SAMPLE_STOCK = [
    dict(name="Paracetamol 500mg", current_stock=240, minimum_stock=100, supplier="MedSupply Co"),
    dict(name="Insulin pens", current_stock=3, minimum_stock=20, supplier="DiabetesCare Ltd"),
    dict(name="Amoxicillin 500mg", current_stock=45, minimum_stock=60, supplier="MedSupply Co"),
]

# Add additional stock items from sample_stock.json if available
try:
    with open('sample_stock.json', 'r') as f:
        SAMPLE_STOCK.extend(json.load(f))
except (FileNotFoundError, json.JSONDecodeError):
    # Continue with default sample stock
    pass


def seed_database(svc: LifecycleService) -> int:
    """Add sample records through the lifecycle service; returns how many were added."""
    now = utcnow()
    added = 0

    for sample in SAMPLE_PRESCRIPTIONS:
        sample = dict(sample)
        advance = sample.pop("advance", [])
        due_days = sample.pop("renewal_due_days", None)
        if due_days is not None:
            sample["renewal_due_date"] = now + timedelta(days=due_days)
        rx = svc.create_prescription(SEED_ACTOR, **sample)
        for status in advance:
            rx = svc.transition_prescription(rx.id, status, SEED_ACTOR)
        print(f"Added: {rx.medication} for {rx.patient_name} ({rx.status})")
        added += 1

    for sample in SAMPLE_ORDERS:
        sample = dict(sample)
        arrived = now - timedelta(days=sample.pop("arrived_days_ago", 0))
        order = svc.create_order(SEED_ACTOR, now=arrived, **sample)
        print(f"Added: {order.order_type} order of {order.item_name} ({order.status})")
        added += 1

    for sample in SAMPLE_STOCK:
        item = svc.create_stock_item(SEED_ACTOR, **sample)
        print(f"Added: {item.name} ({item.current_stock}/{item.minimum_stock})")
        added += 1

    return added


if __name__ == "__main__":
    # Initialize DB if needed
    print("Ensuring database tables exist...")
    create_all()

    # Seed the database
    print("Seeding database with sample records...")
    try:
        count = seed_database(LifecycleService(SQLRecordStore(pharmacy_id=SEED_ACTOR.pharmacy_id)))
    except LifecycleError as exc:
        print(f"Seeding failed: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"\nAdded {count} records to the database!")
    print("\nDone! You can now run the API server with:")
    print("uvicorn api.main:app --reload --port 8001")
