"""
dispensary.models
=================

Dataclasses and enums for the records a pharmacy back-office keeps:
prescriptions, customer special orders, stock items, the reorder to-do
list, the delivery log and prescription reminder events.

Like the rest of the core these carry **no** external-library
dependencies.  Each record converts to and from the plain ``dict`` rows a
:class:`dispensary.store.RecordStore` deals in via ``to_record`` /
``from_record``; enums travel as their string values and timestamps as
aware UTC datetimes.

Invariants that can be checked on a single record are checked on
construction and raise :class:`dispensary.errors.ValidationError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

from .dates import parse_timestamp
from .errors import ValidationError

R = TypeVar("R", bound="_Record")


class _ValueEnum(Enum):
    def __str__(self) -> str:        # nicer REPL / log display
        return self.value


class PrescriptionStatus(_ValueEnum):
    """Stored status of a prescription."""
    PENDING = "pending"
    READY = "ready"
    COLLECTED = "collected"


class OrderStatus(_ValueEnum):
    """Stored status of a customer order.  "Overdue" is derived, never stored."""
    AWAITING_ARRIVAL = "awaiting_arrival"
    READY_FOR_COLLECTION = "ready_for_collection"
    COLLECTED = "collected"


class OrderType(_ValueEnum):
    SPECIAL_ORDER = "special_order"
    MISSED_PICKUP = "missed_pickup"
    BACK_ORDER = "back_order"


class TodoStatus(_ValueEnum):
    """Status of an entry on the supplier reorder to-do list."""
    PENDING = "pending"
    ORDERED = "ordered"
    CANCELLED = "cancelled"


class ReminderChannel(_ValueEnum):
    EMAIL = "email"
    SMS = "sms"


class EntityKind(_ValueEnum):
    """Lifecycle-bearing entities, valued by their record-store table."""
    PRESCRIPTION = "prescriptions"
    CUSTOMER_ORDER = "customer_orders"
    ORDER_TODO = "orders_todo"

    @property
    def table(self) -> str:
        return self.value


# Table names for the records that have no lifecycle of their own
STOCK_ITEMS = "stock_items"
DELIVERY_LOG = "delivery_log"
REMINDER_EVENTS = "reminder_events"

TABLES = (
    EntityKind.PRESCRIPTION.table,
    EntityKind.CUSTOMER_ORDER.table,
    EntityKind.ORDER_TODO.table,
    STOCK_ITEMS,
    DELIVERY_LOG,
    REMINDER_EVENTS,
)

# Legacy screens stored this as a customer-order status
LEGACY_OVERDUE_STATUS = "overdue"


# ---------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------
def coerce_enum(enum_cls: Type[Enum], value: Any, name: str) -> Any:
    """Return *value* as a member of *enum_cls* or raise ValidationError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{name} must be one of: {allowed} (got {value!r})") from None


def _require_text(value: Optional[str], name: str) -> None:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")


class _Record:
    """
    Shared record conversion.

    Subclasses list their enum-typed fields in ``_ENUMS`` and their
    timestamp fields in ``_TIMESTAMPS``; ``_normalise`` coerces both so a
    record can be built from native values or from a store row alike.
    """

    _ENUMS: Dict[str, Type[Enum]] = {}
    _TIMESTAMPS: tuple = ()

    def _normalise(self) -> None:
        for name, enum_cls in self._ENUMS.items():
            object.__setattr__(self, name, coerce_enum(enum_cls, getattr(self, name), name))
        for name in self._TIMESTAMPS:
            object.__setattr__(self, name, parse_timestamp(getattr(self, name)))

    def to_record(self) -> Dict[str, Any]:
        """Plain dict row; enums become their string values."""
        row: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            row[f.name] = value.value if isinstance(value, Enum) else value
        return row

    @classmethod
    def from_record(cls: Type[R], row: Dict[str, Any]) -> R:
        """Build a record from a store row, ignoring columns it does not model."""
        known = {f.name for f in fields(cls)}
        try:
            return cls(**{k: v for k, v in row.items() if k in known})
        except TypeError as exc:
            raise ValidationError(f"malformed {cls.__name__} row: {exc}") from exc


# ---------------------------------------------------------------------
# Prescriptions
# ---------------------------------------------------------------------
@dataclass
class Prescription(_Record):
    """
    A dispensing job moving pending → ready → collected.

    ``date_ready`` is set iff the prescription has reached *ready* (or
    later) and ``date_collected`` iff it is *collected*.  Renewal state is
    derived from ``renewal_due_date`` / ``renewed_at`` by
    :pyfunc:`dispensary.views.renewal_category`.
    """
    patient_name: str
    medication: str
    dosage: str
    quantity: int
    prescriber: str
    id: Optional[str] = None
    pharmacy_id: Optional[str] = None
    status: PrescriptionStatus = PrescriptionStatus.PENDING
    date_created: Optional[datetime] = None
    date_ready: Optional[datetime] = None
    date_collected: Optional[datetime] = None
    patient_dob: Optional[str] = None
    patient_phone: Optional[str] = None
    patient_address: Optional[str] = None
    insurance_info: Optional[str] = None
    special_instructions: Optional[str] = None
    renewal_due_date: Optional[datetime] = None
    renewed_at: Optional[datetime] = None
    created_by: Optional[str] = None

    _ENUMS = {"status": PrescriptionStatus}
    _TIMESTAMPS = ("date_created", "date_ready", "date_collected", "renewal_due_date", "renewed_at")

    def __post_init__(self) -> None:
        self._normalise()
        for name in ("patient_name", "medication", "dosage", "prescriber"):
            _require_text(getattr(self, name), name)
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValidationError(f"quantity must be a positive integer (got {self.quantity!r})")

        reached_ready = self.status in (PrescriptionStatus.READY, PrescriptionStatus.COLLECTED)
        if reached_ready != (self.date_ready is not None):
            raise ValidationError(f"date_ready inconsistent with status {self.status}")
        if (self.status is PrescriptionStatus.COLLECTED) != (self.date_collected is not None):
            raise ValidationError(f"date_collected inconsistent with status {self.status}")


# ---------------------------------------------------------------------
# Customer orders
# ---------------------------------------------------------------------
@dataclass
class CustomerOrder(_Record):
    """
    A customer special order, missed pickup or back order.

    ``arrived_at`` is set iff status is ready_for_collection or collected,
    ``collected_at`` iff collected.  ``notified_at`` is independent of the
    status but only allowed once the item has arrived.
    """
    customer_name: str
    item_name: str
    order_type: OrderType
    id: Optional[str] = None
    pharmacy_id: Optional[str] = None
    status: OrderStatus = OrderStatus.AWAITING_ARRIVAL
    date_ordered: Optional[datetime] = None
    customer_phone: Optional[str] = None
    expected_date: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    notified_at: Optional[datetime] = None
    collected_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None

    _ENUMS = {"order_type": OrderType, "status": OrderStatus}
    _TIMESTAMPS = ("date_ordered", "expected_date", "arrived_at", "notified_at", "collected_at")

    def __post_init__(self) -> None:
        if self.status == LEGACY_OVERDUE_STATUS:
            raise ValidationError(
                "stored order status 'overdue' is not supported; overdue is derived "
                "from arrived_at, store ready_for_collection instead"
            )
        self._normalise()
        _require_text(self.customer_name, "customer_name")
        _require_text(self.item_name, "item_name")

        arrived = self.status in (OrderStatus.READY_FOR_COLLECTION, OrderStatus.COLLECTED)
        if arrived != (self.arrived_at is not None):
            raise ValidationError(f"arrived_at inconsistent with status {self.status}")
        if (self.status is OrderStatus.COLLECTED) != (self.collected_at is not None):
            raise ValidationError(f"collected_at inconsistent with status {self.status}")
        if self.notified_at is not None and not arrived:
            raise ValidationError("notified_at cannot be set before the item has arrived")


# ---------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------
@dataclass
class StockItem(_Record):
    name: str
    current_stock: int = 0
    minimum_stock: int = 0
    id: Optional[str] = None
    pharmacy_id: Optional[str] = None
    location: Optional[str] = None
    supplier: Optional[str] = None
    supplier_contact: Optional[str] = None
    last_updated: Optional[datetime] = None
    updated_by: Optional[str] = None

    _TIMESTAMPS = ("last_updated",)

    def __post_init__(self) -> None:
        self._normalise()
        _require_text(self.name, "name")
        for name in ("current_stock", "minimum_stock"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValidationError(f"{name} must be a non-negative integer (got {value!r})")

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.minimum_stock


@dataclass
class OrderTodo(_Record):
    """An item waiting to be ordered from its supplier."""
    item_name: str
    order_quantity: int
    supplier: str
    current_stock: int = 0
    id: Optional[str] = None
    pharmacy_id: Optional[str] = None
    supplier_contact: Optional[str] = None
    notes: Optional[str] = None
    status: TodoStatus = TodoStatus.PENDING
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    _ENUMS = {"status": TodoStatus}
    _TIMESTAMPS = ("created_at",)

    def __post_init__(self) -> None:
        self._normalise()
        _require_text(self.item_name, "item_name")
        if isinstance(self.order_quantity, bool) or not isinstance(self.order_quantity, int) \
                or self.order_quantity <= 0:
            raise ValidationError(f"order_quantity must be a positive integer (got {self.order_quantity!r})")


@dataclass
class DeliveryLog(_Record):
    """A received supplier delivery (append-only)."""
    item_name: str
    quantity_received: int
    supplier: str
    id: Optional[str] = None
    pharmacy_id: Optional[str] = None
    received_by: Optional[str] = None
    received_at: Optional[datetime] = None
    notes: Optional[str] = None

    _TIMESTAMPS = ("received_at",)

    def __post_init__(self) -> None:
        self._normalise()
        _require_text(self.item_name, "item_name")
        _require_text(self.supplier, "supplier")
        if isinstance(self.quantity_received, bool) or not isinstance(self.quantity_received, int) \
                or self.quantity_received <= 0:
            raise ValidationError(
                f"quantity_received must be a positive integer (got {self.quantity_received!r})"
            )


# ---------------------------------------------------------------------
# Reminder events
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ReminderEvent(_Record):
    """An outbound renewal reminder; immutable once created."""
    prescription_id: str
    channel: ReminderChannel
    reminder_type: str = "renewal_reminder"
    id: Optional[str] = None
    pharmacy_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    sent_by: Optional[str] = None
    notes: Optional[str] = None

    _ENUMS = {"channel": ReminderChannel}
    _TIMESTAMPS = ("sent_at",)

    def __post_init__(self) -> None:
        self._normalise()
        _require_text(self.prescription_id, "prescription_id")
