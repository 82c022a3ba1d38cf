"""
dispensary.errors
=================

Exception taxonomy shared by the lifecycle core and its callers.

``NotFound``, ``InvalidTransition``, ``ValidationError`` and
``PermissionDenied`` are local faults: they are never retried and their
message is safe to show to a user as-is.  ``PersistenceError`` wraps a
record-store failure (the original fault is kept as ``__cause__``) and is
likewise surfaced without any automatic retry.
"""

from __future__ import annotations

from typing import Any


class LifecycleError(Exception):
    """Base class for every error raised by :pymod:`dispensary`."""


class NotFound(LifecycleError, LookupError):
    """No row with the requested id exists in *table*."""

    def __init__(self, table: str, entity_id: Any) -> None:
        self.table = table
        self.entity_id = entity_id
        super().__init__(f"{table} {entity_id!r} not found")


class InvalidTransition(LifecycleError, ValueError):
    """The status edge ``current → target`` is not in the allowed table."""

    def __init__(self, kind: Any, current: Any, target: Any) -> None:
        self.kind = kind
        self.current = current
        self.target = target
        super().__init__(f"illegal {kind} transition {current} → {target}")


class ValidationError(LifecycleError, ValueError):
    """Malformed input, e.g. a non-positive quantity or an unknown status."""


class PermissionDenied(LifecycleError):
    """The acting user's role lacks the capability an operation needs."""

    def __init__(self, role: Any, capability: Any) -> None:
        self.role = role
        self.capability = capability
        super().__init__(f"role {role} lacks capability {capability}")


class PersistenceError(LifecycleError):
    """The record store failed (network or storage fault)."""
