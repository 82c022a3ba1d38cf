"""
dispensary.lifecycle
====================

Status model for prescriptions, customer orders and reorder to-dos.

A tiny finite-state-machine per entity kind describes which statuses are
legal successors of each status, and which timestamp field gets stamped
when an edge is taken.  :pyfunc:`apply_status` never mutates its input;
it returns a copy with the new status and stamp.

Examples
--------
>>> rx = Prescription("Ann", "Amoxicillin", "500mg", 21, "Dr Lee")
>>> ready = apply_status(rx, PrescriptionStatus.READY, now)
>>> apply_status(ready, PrescriptionStatus.PENDING, now)
Traceback (most recent call last):
    ...
InvalidTransition: illegal prescriptions transition ready → pending
"""

from __future__ import annotations

import dataclasses
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Set, Type, TypeVar, Union

from .errors import InvalidTransition
from .models import (
    CustomerOrder,
    EntityKind,
    OrderStatus,
    OrderTodo,
    Prescription,
    PrescriptionStatus,
    TodoStatus,
    coerce_enum,
)

Entity = Union[Prescription, CustomerOrder, OrderTodo]
E = TypeVar("E", Prescription, CustomerOrder, OrderTodo)

# ---------------------------------------------------------------------
# Allowed transitions: kind → source status → set[valid target statuses]
# ---------------------------------------------------------------------
RULES: Dict[EntityKind, Dict[Enum, Set[Enum]]] = {
    EntityKind.PRESCRIPTION: {
        PrescriptionStatus.PENDING: {PrescriptionStatus.READY},
        PrescriptionStatus.READY:   {PrescriptionStatus.COLLECTED},
    },
    EntityKind.CUSTOMER_ORDER: {
        OrderStatus.AWAITING_ARRIVAL:     {OrderStatus.READY_FOR_COLLECTION},
        OrderStatus.READY_FOR_COLLECTION: {OrderStatus.COLLECTED},
    },
    EntityKind.ORDER_TODO: {
        TodoStatus.PENDING: {TodoStatus.ORDERED, TodoStatus.CANCELLED},
    },
}

# Timestamp field stamped with ``now`` when a target status is entered
STAMPS: Dict[Enum, str] = {
    PrescriptionStatus.READY:         "date_ready",
    PrescriptionStatus.COLLECTED:     "date_collected",
    OrderStatus.READY_FOR_COLLECTION: "arrived_at",
    OrderStatus.COLLECTED:            "collected_at",
}

_STATUS_ENUMS: Dict[EntityKind, Type[Enum]] = {
    EntityKind.PRESCRIPTION: PrescriptionStatus,
    EntityKind.CUSTOMER_ORDER: OrderStatus,
    EntityKind.ORDER_TODO: TodoStatus,
}

_ENTITY_CLASSES: Dict[EntityKind, type] = {
    EntityKind.PRESCRIPTION: Prescription,
    EntityKind.CUSTOMER_ORDER: CustomerOrder,
    EntityKind.ORDER_TODO: OrderTodo,
}


def status_enum(kind: EntityKind) -> Type[Enum]:
    """Status enum used by *kind*."""
    return _STATUS_ENUMS[kind]


def entity_class(kind: EntityKind) -> type:
    """Dataclass used by *kind*."""
    return _ENTITY_CLASSES[kind]


def kind_of(entity: Entity) -> EntityKind:
    for kind, cls in _ENTITY_CLASSES.items():
        if isinstance(entity, cls):
            return kind
    raise TypeError(f"{type(entity).__name__} has no lifecycle")


def coerce_status(kind: EntityKind, value: Any) -> Enum:
    """Parse *value* as a status of *kind* (ValidationError if unknown)."""
    return coerce_enum(status_enum(kind), value, "status")


def can_transition(kind: EntityKind, current: Any, target: Any) -> bool:
    """True if ``current → target`` is an allowed edge for *kind*."""
    enum_cls = status_enum(kind)
    try:
        current, target = enum_cls(current), enum_cls(target)
    except ValueError:
        return False
    return target in RULES[kind].get(current, set())


def stamp_field(target: Enum) -> Optional[str]:
    """Timestamp field stamped on entering *target*, if any."""
    return STAMPS.get(target)


def apply_status(entity: E, target: Any, now: datetime) -> E:
    """
    Return a copy of *entity* moved to *target*, stamped with *now*.

    If the entity already has *target* as its status it is returned
    unchanged (no new stamp), so a duplicated UI action is harmless.
    Raises :class:`InvalidTransition` for any edge outside :data:`RULES`.
    """
    kind = kind_of(entity)
    target = coerce_status(kind, target)
    current = entity.status
    if current is target:
        return entity
    if not can_transition(kind, current, target):
        raise InvalidTransition(kind, current, target)

    changes: Dict[str, Any] = {"status": target}
    field_name = stamp_field(target)
    if field_name is not None:
        changes[field_name] = now
    return dataclasses.replace(entity, **changes)
