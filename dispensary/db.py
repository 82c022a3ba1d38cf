"""
dispensary.db
=============

SQL persistence layer for Dispensary.

This module exposes:

* ``engine`` – a global SQLModel engine built from :pydata:`dispensary.settings.DB_URL`
* ``create_all()`` – helper to create tables at first run
* :class:`SQLRecordStore` – the :class:`dispensary.store.RecordStore`
  implementation the service uses in production

Timestamps are stored as UTC; SQLite hands them back naive, which
:pyfunc:`dispensary.dates.parse_timestamp` treats as UTC when the rows are
turned back into records.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Type

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from dispensary.dates import utcnow
from dispensary.settings import DB_ECHO, DB_URL
from dispensary.store import StoreError, parse_order_by

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
engine = create_engine(DB_URL, echo=DB_ECHO)


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# ORM models, one per record-store table
# ---------------------------------------------------------------------------
class PrescriptionDB(SQLModel, table=True):
    __tablename__ = "prescriptions"

    id: str = Field(default_factory=_new_id, primary_key=True)
    pharmacy_id: Optional[str] = Field(default=None, index=True)
    patient_name: str
    patient_dob: Optional[str] = None
    patient_phone: Optional[str] = None
    patient_address: Optional[str] = None
    medication: str
    dosage: str
    quantity: int
    prescriber: str
    status: str = Field(default="pending", index=True)
    date_created: datetime = Field(default_factory=utcnow)
    date_ready: Optional[datetime] = None
    date_collected: Optional[datetime] = None
    insurance_info: Optional[str] = None
    special_instructions: Optional[str] = None
    renewal_due_date: Optional[datetime] = None
    renewed_at: Optional[datetime] = None
    created_by: Optional[str] = None


class CustomerOrderDB(SQLModel, table=True):
    __tablename__ = "customer_orders"

    id: str = Field(default_factory=_new_id, primary_key=True)
    pharmacy_id: Optional[str] = Field(default=None, index=True)
    customer_name: str
    customer_phone: Optional[str] = None
    item_name: str
    order_type: str
    status: str = Field(default="awaiting_arrival", index=True)
    date_ordered: datetime = Field(default_factory=utcnow)
    expected_date: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    notified_at: Optional[datetime] = None
    collected_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None


class StockItemDB(SQLModel, table=True):
    __tablename__ = "stock_items"

    id: str = Field(default_factory=_new_id, primary_key=True)
    pharmacy_id: Optional[str] = Field(default=None, index=True)
    name: str = Field(index=True)
    current_stock: int = 0
    minimum_stock: int = 0
    location: Optional[str] = None
    supplier: Optional[str] = None
    supplier_contact: Optional[str] = None
    last_updated: datetime = Field(default_factory=utcnow)
    updated_by: Optional[str] = None


class OrderTodoDB(SQLModel, table=True):
    __tablename__ = "orders_todo"

    id: str = Field(default_factory=_new_id, primary_key=True)
    pharmacy_id: Optional[str] = Field(default=None, index=True)
    item_name: str = Field(index=True)
    current_stock: int = 0
    order_quantity: int
    supplier: str
    supplier_contact: Optional[str] = None
    notes: Optional[str] = None
    status: str = Field(default="pending", index=True)
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class DeliveryLogDB(SQLModel, table=True):
    __tablename__ = "delivery_log"

    id: str = Field(default_factory=_new_id, primary_key=True)
    pharmacy_id: Optional[str] = Field(default=None, index=True)
    item_name: str = Field(index=True)
    quantity_received: int
    supplier: str
    received_by: Optional[str] = None
    received_at: datetime = Field(default_factory=utcnow)
    notes: Optional[str] = None


class ReminderEventDB(SQLModel, table=True):
    __tablename__ = "reminder_events"

    id: str = Field(default_factory=_new_id, primary_key=True)
    pharmacy_id: Optional[str] = Field(default=None, index=True)
    prescription_id: str = Field(foreign_key="prescriptions.id", index=True)
    reminder_type: str
    channel: str
    sent_at: datetime = Field(default_factory=utcnow)
    sent_by: Optional[str] = None
    notes: Optional[str] = None


MODELS: Dict[str, Type[SQLModel]] = {
    m.__tablename__: m
    for m in (PrescriptionDB, CustomerOrderDB, StockItemDB, OrderTodoDB, DeliveryLogDB, ReminderEventDB)
}


# ---------------------------------------------------------------------------
# Record store adapter
# ---------------------------------------------------------------------------
class SQLRecordStore:
    """
    Drop-in replacement for :class:`dispensary.store.MemoryRecordStore`
    backed by any SQLAlchemy database.

    Each call runs in its own short session, so a status update commits
    as a single row write.  When *pharmacy_id* is given every read is
    scoped to that tenant and every insert is stamped with it.
    """

    def __init__(self, bind: Engine | None = None, pharmacy_id: str | None = None) -> None:
        self._engine = bind or engine
        self._pharmacy_id = pharmacy_id

    def scoped(self, pharmacy_id: str | None) -> "SQLRecordStore":
        """A store over the same engine, restricted to *pharmacy_id*."""
        return SQLRecordStore(self._engine, pharmacy_id)

    # ------------------------------------------------------------------ helpers
    @staticmethod
    def _model(table: str) -> Type[SQLModel]:
        try:
            return MODELS[table]
        except KeyError:
            raise StoreError(f"unknown table {table!r}") from None

    def _in_scope(self, row: SQLModel | None) -> bool:
        return row is not None and (self._pharmacy_id is None or row.pharmacy_id == self._pharmacy_id)

    def _session(self) -> Session:
        return Session(self._engine, expire_on_commit=False)

    # ------------------------------------------------------------------ CRUD
    def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        model = self._model(table)
        try:
            with self._session() as s:
                row = s.get(model, record_id)
                return row.model_dump() if self._in_scope(row) else None
        except SQLAlchemyError as exc:
            logger.error(f"get {table}/{record_id} failed: {exc}")
            raise StoreError(str(exc)) from exc

    def list(
        self,
        table: str,
        filter: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        model = self._model(table)
        stmt = select(model)
        criteria = dict(filter or {})
        if self._pharmacy_id is not None:
            criteria["pharmacy_id"] = self._pharmacy_id
        for key, value in criteria.items():
            stmt = stmt.where(getattr(model, key) == value)
        field, descending = parse_order_by(order_by)
        if field:
            column = getattr(model, field)
            stmt = stmt.order_by(column.is_(None), column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self._session() as s:
                return [row.model_dump() for row in s.exec(stmt).all()]
        except SQLAlchemyError as exc:
            logger.error(f"list {table} failed: {exc}")
            raise StoreError(str(exc)) from exc

    def insert(self, table: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        model = self._model(table)
        values = {k: v for k, v in record.items() if v is not None}
        if self._pharmacy_id is not None:
            values["pharmacy_id"] = self._pharmacy_id
        try:
            with self._session() as s:
                row = model(**values)
                s.add(row)
                s.commit()
                s.refresh(row)
                return row.model_dump()
        except SQLAlchemyError as exc:
            logger.error(f"insert into {table} failed: {exc}")
            raise StoreError(str(exc)) from exc

    def update(self, table: str, record_id: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
        model = self._model(table)
        try:
            with self._session() as s:
                row = s.get(model, record_id)
                if not self._in_scope(row):
                    raise KeyError(record_id)
                for key, value in patch.items():
                    if key != "id":
                        setattr(row, key, value)
                s.add(row)
                s.commit()
                s.refresh(row)
                return row.model_dump()
        except SQLAlchemyError as exc:
            logger.error(f"update {table}/{record_id} failed: {exc}")
            raise StoreError(str(exc)) from exc

    def delete(self, table: str, record_id: str) -> None:
        model = self._model(table)
        try:
            with self._session() as s:
                row = s.get(model, record_id)
                if not self._in_scope(row):
                    raise KeyError(record_id)
                s.delete(row)
                s.commit()
        except SQLAlchemyError as exc:
            logger.error(f"delete {table}/{record_id} failed: {exc}")
            raise StoreError(str(exc)) from exc


# ---------------------------------------------------------------------------
# Utility: create tables
# ---------------------------------------------------------------------------
def create_all(bind: Engine | None = None) -> None:
    """Create all tables for the SQLModel classes above (safe if they exist)."""
    SQLModel.metadata.create_all(bind or engine)


# ---------------------------------------------------------------------------
# Lightweight CLI
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    """
    Quick bootstrap helper.

    Examples
    --------
    $ python -m dispensary.db --create        # first‑time table creation
    """
    import argparse

    parser = argparse.ArgumentParser(
        prog="python -m dispensary.db",
        description="Dispensary DB utilities",
    )
    parser.add_argument("--create", action="store_true", help="create tables")
    args = parser.parse_args()

    if args.create:
        create_all()
        print(f"✅ schema initialised at {DB_URL}")
