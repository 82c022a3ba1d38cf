"""
Dispensary
==========

A lightweight toolkit for the lifecycle of pharmacy back-office records:
prescriptions, customer special orders, stock and reorders.

Import structure
----------------
`import dispensary` is intentionally cheap: the core sub‑modules use only
the standard library.  SQLModel/SQLAlchemy are only imported when you
explicitly access :pymod:`dispensary.db`, and pydantic-settings only via
:pymod:`dispensary.settings`.

Sub‑modules
~~~~~~~~~~~
- :pymod:`dispensary.models`       – record dataclasses + status enums
- :pymod:`dispensary.lifecycle`    – status model (`can_transition`, `apply_status`)
- :pymod:`dispensary.views`        – derived categories (renewal, pickup severity, stock tier)
- :pymod:`dispensary.permissions`  – role → capability table and the `Actor`
- :pymod:`dispensary.store`        – record-store contract + in‑memory store
- :pymod:`dispensary.service`      – `LifecycleService`
- :pymod:`dispensary.db`           – SQL-backed record store

Quick start
-----------
>>> from dispensary.permissions import Actor, Role
>>> from dispensary.service import LifecycleService
>>> from dispensary.store import MemoryRecordStore
>>> svc = LifecycleService(MemoryRecordStore())
>>> me = Actor("u1", Role.PHARMACIST)
>>> rx = svc.create_prescription(me, patient_name="Ann", medication="Amoxicillin",
...                              dosage="500mg", quantity=21, prescriber="Dr Lee")
>>> svc.transition_prescription(rx.id, "ready", me).status
<PrescriptionStatus.READY: 'ready'>

"""

__all__ = [
    "dates",
    "errors",
    "models",
    "lifecycle",
    "views",
    "permissions",
    "store",
    "service",
    "db",
]

__version__ = "0.1.0"
