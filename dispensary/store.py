"""
dispensary.store
================

The record-store contract the lifecycle core depends on, plus a
dictionary-backed implementation.

The core only ever talks to a :class:`RecordStore`: CRUD by id and
ordered/filtered listing over plain ``dict`` rows.  How rows are actually
persisted (and how tenants are isolated) is the adapter's business.  The
in-memory :class:`MemoryRecordStore` uses only the standard library so the
core can be unit-tested without a database; :class:`dispensary.db.SQLRecordStore`
is the persistent drop-in replacement.
"""

from __future__ import annotations

import copy
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from .dates import utcnow
from .models import TABLES

# Field each table defaults to "now" on insert
DEFAULT_TIMESTAMPS: Dict[str, str] = {
    "prescriptions": "date_created",
    "customer_orders": "date_ordered",
    "stock_items": "last_updated",
    "orders_todo": "created_at",
    "delivery_log": "received_at",
    "reminder_events": "sent_at",
}


class StoreError(Exception):
    """Raised by an adapter when the underlying storage call fails."""


class RecordStore(Protocol):
    """Operations the core needs from a persistence adapter."""

    def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    def list(
        self,
        table: str,
        filter: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        ...

    def insert(self, table: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    def update(self, table: str, record_id: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    def delete(self, table: str, record_id: str) -> None:
        ...

    def scoped(self, pharmacy_id: Optional[str]) -> "RecordStore":
        """Same storage, restricted to one pharmacy (None: unrestricted)."""
        ...


def parse_order_by(order_by: Optional[str]) -> tuple[Optional[str], bool]:
    """``"-name"`` → ``("name", True)``; returns (field, descending)."""
    if not order_by:
        return None, False
    if order_by.startswith("-"):
        return order_by[1:], True
    return order_by, False


class MemoryRecordStore:
    """
    Dictionary-backed record store.

    Rows are deep-copied on the way in and out so callers never alias
    stored state; an ``update`` applies its whole patch at once.  When
    *pharmacy_id* is given every read is scoped to that tenant and every
    insert is stamped with it, as :class:`dispensary.db.SQLRecordStore` does.

    Example
    -------
    >>> store = MemoryRecordStore()
    >>> row = store.insert("stock_items", {"name": "Insulin pens"})
    >>> store.get("stock_items", row["id"])["name"]
    'Insulin pens'
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow, pharmacy_id: Optional[str] = None) -> None:
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {t: {} for t in TABLES}
        self._clock = clock
        self._pharmacy_id = pharmacy_id

    def scoped(self, pharmacy_id: Optional[str]) -> "MemoryRecordStore":
        """A view over the same tables, restricted to *pharmacy_id*."""
        view = copy.copy(self)
        view._pharmacy_id = pharmacy_id
        return view

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        try:
            return self._tables[table]
        except KeyError:
            raise StoreError(f"unknown table {table!r}") from None

    def _in_scope(self, row: Optional[Dict[str, Any]]) -> bool:
        return row is not None and (self._pharmacy_id is None or row.get("pharmacy_id") == self._pharmacy_id)

    def _scoped_row(self, table: str, record_id: str) -> Dict[str, Any]:
        row = self._table(table).get(record_id)
        if not self._in_scope(row):
            raise KeyError(record_id)
        return row

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        row = self._table(table).get(record_id)
        return copy.deepcopy(row) if self._in_scope(row) else None

    def list(
        self,
        table: str,
        filter: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        rows = [
            r for r in self._table(table).values()
            if self._in_scope(r) and all(r.get(k) == v for k, v in (filter or {}).items())
        ]
        field, descending = parse_order_by(order_by)
        if field:
            # rows missing the field sort last either way
            present = [r for r in rows if r.get(field) is not None]
            missing = [r for r in rows if r.get(field) is None]
            rows = sorted(present, key=lambda r: r[field], reverse=descending) + missing
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    def insert(self, table: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        rows = self._table(table)
        row = copy.deepcopy(dict(record))
        if not row.get("id"):
            row["id"] = str(uuid.uuid4())
        if row["id"] in rows:
            raise StoreError(f"duplicate id {row['id']!r} in {table}")
        if self._pharmacy_id is not None:
            row["pharmacy_id"] = self._pharmacy_id
        stamp = DEFAULT_TIMESTAMPS.get(table)
        if stamp and row.get(stamp) is None:
            row[stamp] = self._clock()
        rows[row["id"]] = row
        return copy.deepcopy(row)

    def update(self, table: str, record_id: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
        row = self._scoped_row(table, record_id)
        updated = {**row, **copy.deepcopy(dict(patch)), "id": record_id}
        if self._pharmacy_id is not None:
            updated["pharmacy_id"] = self._pharmacy_id
        self._tables[table][record_id] = updated
        return copy.deepcopy(updated)

    def delete(self, table: str, record_id: str) -> None:
        self._scoped_row(table, record_id)
        del self._tables[table][record_id]

    def __len__(self) -> int:
        return sum(1 for rows in self._tables.values() for row in rows.values() if self._in_scope(row))
