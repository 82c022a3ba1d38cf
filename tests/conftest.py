"""
Pytest configuration: make sure `import dispensary` works regardless of
where pytest is invoked, and provide shared fixtures.

It prepends the project root (one directory above *tests/*) to
``sys.path`` **before** any tests are collected.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# /path/to/project/tests -> project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from dispensary.permissions import Actor, Role  # noqa: E402
from dispensary.service import LifecycleService  # noqa: E402
from dispensary.store import MemoryRecordStore  # noqa: E402

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    return MemoryRecordStore(clock=lambda: NOW)


@pytest.fixture
def svc(store):
    return LifecycleService(store)


@pytest.fixture
def pharmacist():
    return Actor("u-pharm", Role.PHARMACIST, pharmacy_id="ph1")


@pytest.fixture
def technician():
    return Actor("u-tech", Role.TECHNICIAN, pharmacy_id="ph1")


@pytest.fixture
def rx_fields():
    return dict(
        patient_name="Ann Smith",
        medication="Amoxicillin",
        dosage="500mg",
        quantity=21,
        prescriber="Dr Lee",
    )
