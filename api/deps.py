"""
api.deps
========

FastAPI dependency providers.

`get_store` returns a process-wide record store (SQL by default, or the
in-memory store when ``DISPENSARY_STORE_BACKEND=memory``) and
`get_service` wraps it in a :class:`LifecycleService` scoped to the
acting pharmacy.  `get_actor`
builds the explicit :class:`Actor` from request headers.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Header

from dispensary.permissions import Actor, Role
from dispensary.service import LifecycleService
from dispensary.settings import settings
from dispensary.store import MemoryRecordStore, RecordStore


@lru_cache
def get_settings():
    """Return application settings."""
    return settings


@lru_cache
def get_store() -> RecordStore:
    """Singleton record store (persists across requests)."""
    if settings.store_backend == "memory":
        return MemoryRecordStore()
    from dispensary.db import SQLRecordStore, create_all

    create_all()
    return SQLRecordStore()


def get_actor(
    x_user_id: str = Header("anonymous"),
    x_user_role: str = Header(Role.TECHNICIAN.value),
    x_pharmacy_id: str | None = Header(None),
) -> Actor:
    """
    The acting user, taken from request headers.

    An unknown role falls back to technician (lowest privilege).
    """
    return Actor(
        user_id=x_user_id,
        role=Role.parse(x_user_role),
        pharmacy_id=x_pharmacy_id or settings.default_pharmacy_id,
    )


def get_service(
    actor: Actor = Depends(get_actor),
    store: RecordStore = Depends(get_store),
) -> LifecycleService:
    """
    Lifecycle service over the shared store, scoped to the actor's pharmacy.

    Without a pharmacy id (header or default) the store is unscoped, which
    suits a single-pharmacy deployment.
    """
    return LifecycleService(
        store.scoped(actor.pharmacy_id),
        delivery_limit=get_settings().delivery_log_limit,
    )
