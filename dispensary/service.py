"""
dispensary.service
==================

Lifecycle service: the single entry point screens use to change state.

Each operation loads the record from a :class:`dispensary.store.RecordStore`,
checks it against the status model, stamps the relevant timestamp and
writes the patch back, returning the updated record.  Store failures are
surfaced as :class:`dispensary.errors.PersistenceError` and never retried;
the caller decides whether to re-issue the action.

The acting user is always passed in explicitly as an
:class:`dispensary.permissions.Actor`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Type, TypeVar

from .dates import parse_timestamp, utcnow
from .errors import LifecycleError, NotFound, PersistenceError, ValidationError
from .lifecycle import apply_status, coerce_status, entity_class, stamp_field
from .models import (
    DELIVERY_LOG,
    REMINDER_EVENTS,
    STOCK_ITEMS,
    CustomerOrder,
    DeliveryLog,
    EntityKind,
    OrderStatus,
    OrderTodo,
    OrderType,
    Prescription,
    PrescriptionStatus,
    ReminderChannel,
    ReminderEvent,
    StockItem,
    TodoStatus,
    coerce_enum,
)
from .permissions import Actor, Capability, require
from .store import RecordStore, StoreError
from .views import HistoryEvent, item_history

logger = logging.getLogger(__name__)

T = TypeVar("T")

RENEWAL_REMINDER = "renewal_reminder"
DEFAULT_DELIVERY_LIMIT = 20


@dataclass
class BulkReminderResult:
    """Per-prescription outcome of :pymeth:`LifecycleService.record_reminders`."""
    sent: Dict[str, ReminderEvent] = field(default_factory=dict)
    failed: Dict[str, LifecycleError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


@contextmanager
def _persisting(action: str) -> Iterator[None]:
    """Translate adapter faults into PersistenceError."""
    try:
        yield
    except StoreError as exc:
        logger.error(f"{action} failed: {exc}")
        raise PersistenceError(f"{action} failed: {exc}") from exc


class LifecycleService:
    """
    Orchestrates status transitions and append-only bookkeeping.

    Example
    -------
    >>> svc = LifecycleService(MemoryRecordStore())
    >>> rx = svc.create_prescription(actor, patient_name="Ann", medication="Amoxicillin",
    ...                              dosage="500mg", quantity=21, prescriber="Dr Lee")
    >>> svc.transition_prescription(rx.id, "ready", actor).status
    <PrescriptionStatus.READY: 'ready'>
    """

    def __init__(self, store: RecordStore, delivery_limit: int = DEFAULT_DELIVERY_LIMIT) -> None:
        self.store = store
        self.delivery_limit = delivery_limit

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _load(self, table: str, record_id: str, cls: Type[T]) -> T:
        with _persisting(f"load {table}/{record_id}"):
            row = self.store.get(table, record_id)
        if row is None:
            raise NotFound(table, record_id)
        return cls.from_record(row)

    def _list(self, table: str, cls: Type[T], order_by: str, **kwargs: Any) -> List[T]:
        with _persisting(f"list {table}"):
            rows = self.store.list(table, order_by=order_by, **kwargs)
        return [cls.from_record(r) for r in rows]

    def _insert(self, table: str, record: Any, cls: Type[T]) -> T:
        values = {k: v for k, v in record.to_record().items() if v is not None}
        with _persisting(f"insert into {table}"):
            row = self.store.insert(table, values)
        return cls.from_record(row)

    def _update(self, table: str, record_id: str, patch: Mapping[str, Any], cls: Type[T]) -> T:
        try:
            with _persisting(f"update {table}/{record_id}"):
                row = self.store.update(table, record_id, patch)
        except KeyError:
            raise NotFound(table, record_id) from None
        return cls.from_record(row)

    def _delete(self, table: str, record_id: str) -> None:
        try:
            with _persisting(f"delete {table}/{record_id}"):
                self.store.delete(table, record_id)
        except KeyError:
            raise NotFound(table, record_id) from None

    @staticmethod
    def _build(cls: Type[T], **fields: Any) -> T:
        try:
            return cls(**fields)
        except TypeError as exc:
            raise ValidationError(str(exc)) from exc

    @staticmethod
    def _now(now: Optional[datetime]) -> datetime:
        return parse_timestamp(now) if now is not None else utcnow()

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------
    def transition(
        self,
        kind: EntityKind,
        entity_id: str,
        target: Any,
        actor: Actor,
        now: Optional[datetime] = None,
    ):
        """
        Move entity *entity_id* of *kind* to status *target*.

        Raises NotFound, InvalidTransition, ValidationError (unknown
        status) or PersistenceError.  If the entity is already in *target*
        the stored record is returned and nothing is written.
        """
        kind = coerce_enum(EntityKind, kind, "kind")
        target = coerce_status(kind, target)
        now = self._now(now)
        cls = entity_class(kind)

        current = self._load(kind.table, entity_id, cls)
        try:
            moved = apply_status(current, target, now)
        except LifecycleError:
            logger.warning(f"{actor.user_id} rejected: {kind} {entity_id} {current.status} → {target}")
            raise
        if moved is current:
            logger.info(f"{kind} {entity_id} already {target}; nothing to do")
            return current

        patch: Dict[str, Any] = {"status": target.value}
        stamp = stamp_field(target)
        if stamp is not None:
            patch[stamp] = getattr(moved, stamp)
        updated = self._update(kind.table, entity_id, patch, cls)
        logger.info(f"{actor.user_id} moved {kind} {entity_id} {current.status} → {target}")
        return updated

    def transition_prescription(self, prescription_id: str, target: Any, actor: Actor,
                                now: Optional[datetime] = None) -> Prescription:
        return self.transition(EntityKind.PRESCRIPTION, prescription_id, target, actor, now)

    def transition_order(self, order_id: str, target: Any, actor: Actor,
                         now: Optional[datetime] = None) -> CustomerOrder:
        return self.transition(EntityKind.CUSTOMER_ORDER, order_id, target, actor, now)

    def mark_todo_ordered(self, todo_id: str, actor: Actor, now: Optional[datetime] = None) -> OrderTodo:
        require(actor, Capability.MANAGE_INVENTORY)
        return self.transition(EntityKind.ORDER_TODO, todo_id, TodoStatus.ORDERED, actor, now)

    def cancel_todo(self, todo_id: str, actor: Actor, now: Optional[datetime] = None) -> OrderTodo:
        require(actor, Capability.MANAGE_INVENTORY)
        return self.transition(EntityKind.ORDER_TODO, todo_id, TodoStatus.CANCELLED, actor, now)

    # ------------------------------------------------------------------
    # Prescriptions
    # ------------------------------------------------------------------
    def create_prescription(self, actor: Actor, **fields: Any) -> Prescription:
        """Insert a new pending prescription."""
        fields.setdefault("pharmacy_id", actor.pharmacy_id)
        fields.setdefault("created_by", actor.user_id)
        status = fields.pop("status", PrescriptionStatus.PENDING)
        if coerce_enum(PrescriptionStatus, status, "status") is not PrescriptionStatus.PENDING:
            raise ValidationError("new prescriptions start as pending")
        for stamped in ("id", "date_ready", "date_collected", "renewed_at"):
            if fields.get(stamped) is not None:
                raise ValidationError(f"{stamped} cannot be set on a new prescription")
        rx = self._insert(EntityKind.PRESCRIPTION.table, self._build(Prescription, **fields), Prescription)
        logger.info(f"{actor.user_id} created prescription {rx.id} for {rx.medication}")
        return rx

    def get_prescription(self, prescription_id: str) -> Prescription:
        return self._load(EntityKind.PRESCRIPTION.table, prescription_id, Prescription)

    def list_prescriptions(self, status: Any = None) -> List[Prescription]:
        """Newest first; optionally only one status."""
        kwargs = {}
        if status is not None:
            kwargs["filter"] = {"status": coerce_enum(PrescriptionStatus, status, "status").value}
        return self._list(EntityKind.PRESCRIPTION.table, Prescription, "-date_created", **kwargs)

    def delete_prescription(self, prescription_id: str, actor: Actor) -> None:
        self._delete(EntityKind.PRESCRIPTION.table, prescription_id)
        logger.info(f"{actor.user_id} deleted prescription {prescription_id}")

    def mark_renewed(self, prescription_id: str, actor: Actor, now: Optional[datetime] = None) -> Prescription:
        """Stamp ``renewed_at``; a second call keeps the first stamp."""
        rx = self.get_prescription(prescription_id)
        if rx.renewed_at is not None:
            return rx
        now = self._now(now)
        updated = self._update(EntityKind.PRESCRIPTION.table, prescription_id, {"renewed_at": now}, Prescription)
        logger.info(f"{actor.user_id} marked prescription {prescription_id} renewed")
        return updated

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------
    def record_reminder(
        self,
        prescription_id: str,
        channel: Any,
        actor: Actor,
        now: Optional[datetime] = None,
        reminder_type: str = RENEWAL_REMINDER,
        notes: Optional[str] = None,
    ) -> ReminderEvent:
        """
        Append one immutable reminder event for *prescription_id*.

        The prescription itself is never modified.
        """
        require(actor, Capability.SEND_NOTIFICATIONS)
        channel = coerce_enum(ReminderChannel, channel, "channel")
        rx = self.get_prescription(prescription_id)
        event = ReminderEvent(
            prescription_id=prescription_id,
            channel=channel,
            reminder_type=reminder_type,
            pharmacy_id=rx.pharmacy_id or actor.pharmacy_id,
            sent_at=self._now(now),
            sent_by=actor.user_id,
            notes=notes or f"Renewal reminder sent via {channel}",
        )
        saved = self._insert(REMINDER_EVENTS, event, ReminderEvent)
        logger.info(f"{actor.user_id} sent {channel} reminder for prescription {prescription_id}")
        return saved

    def record_reminders(
        self,
        prescription_ids: Iterable[str],
        channel: Any,
        actor: Actor,
        now: Optional[datetime] = None,
    ) -> BulkReminderResult:
        """
        Append one reminder per distinct prescription id.

        Failures do not stop the batch; each failing id is reported in
        ``failed`` with its error, so no partial commit goes unreported.
        Capability and channel are checked once, before anything is written.
        """
        if isinstance(prescription_ids, str):
            raise ValidationError("prescription_ids must be a collection of ids, not a single string")
        require(actor, Capability.SEND_NOTIFICATIONS)
        channel = coerce_enum(ReminderChannel, channel, "channel")
        now = self._now(now)
        result = BulkReminderResult()
        for prescription_id in dict.fromkeys(prescription_ids):
            try:
                result.sent[prescription_id] = self.record_reminder(
                    prescription_id, channel, actor, now,
                    notes=f"Bulk renewal reminder sent via {channel}",
                )
            except LifecycleError as exc:
                result.failed[prescription_id] = exc
        if result.failed:
            logger.warning(f"bulk {channel} reminders: {len(result.sent)} sent, "
                           f"{len(result.failed)} failed ({', '.join(result.failed)})")
        return result

    def reminder_history(self, prescription_id: str) -> List[ReminderEvent]:
        """Reminders sent for *prescription_id*, newest first."""
        return self._list(REMINDER_EVENTS, ReminderEvent, "-sent_at",
                          filter={"prescription_id": prescription_id})

    # ------------------------------------------------------------------
    # Customer orders
    # ------------------------------------------------------------------
    def create_order(self, actor: Actor, now: Optional[datetime] = None, **fields: Any) -> CustomerOrder:
        """
        Insert a new customer order.

        Orders normally start awaiting arrival; a missed pickup may be
        created directly as ready_for_collection, in which case it is
        stamped as arrived at *now*.  ``date_ordered`` defaults to *now*
        too, so the order never arrives before it was placed.
        """
        fields.setdefault("pharmacy_id", actor.pharmacy_id)
        fields.setdefault("created_by", actor.user_id)
        status = coerce_enum(OrderStatus, fields.pop("status", OrderStatus.AWAITING_ARRIVAL), "status")
        if status is OrderStatus.COLLECTED:
            raise ValidationError("new orders cannot start as collected")
        for stamped in ("id", "arrived_at", "notified_at", "collected_at"):
            if fields.get(stamped) is not None:
                raise ValidationError(f"{stamped} cannot be set on a new order")
        now = self._now(now)
        fields["date_ordered"] = parse_timestamp(fields.get("date_ordered")) or now
        if status is OrderStatus.READY_FOR_COLLECTION:
            if fields["date_ordered"] > now:
                raise ValidationError("an order cannot arrive before it was ordered")
            fields["arrived_at"] = now
        order = self._insert(EntityKind.CUSTOMER_ORDER.table,
                             self._build(CustomerOrder, status=status, **fields), CustomerOrder)
        logger.info(f"{actor.user_id} created {order.order_type} order {order.id} for {order.item_name}")
        return order

    def get_order(self, order_id: str) -> CustomerOrder:
        return self._load(EntityKind.CUSTOMER_ORDER.table, order_id, CustomerOrder)

    def list_orders(self, status: Any = None, order_type: Any = None) -> List[CustomerOrder]:
        """Newest first; optionally filtered by status and/or type."""
        criteria = {}
        if status is not None:
            criteria["status"] = coerce_enum(OrderStatus, status, "status").value
        if order_type is not None:
            criteria["order_type"] = coerce_enum(OrderType, order_type, "order_type").value
        return self._list(EntityKind.CUSTOMER_ORDER.table, CustomerOrder, "-date_ordered",
                          filter=criteria or None)

    def delete_order(self, order_id: str, actor: Actor) -> None:
        self._delete(EntityKind.CUSTOMER_ORDER.table, order_id)
        logger.info(f"{actor.user_id} deleted order {order_id}")

    def mark_notified(self, order_id: str, actor: Actor, now: Optional[datetime] = None) -> CustomerOrder:
        """Record that the customer was told their item arrived (latest wins)."""
        require(actor, Capability.SEND_NOTIFICATIONS)
        order = self.get_order(order_id)
        if order.arrived_at is None:
            raise ValidationError("cannot notify a customer before the item has arrived")
        updated = self._update(EntityKind.CUSTOMER_ORDER.table, order_id,
                               {"notified_at": self._now(now)}, CustomerOrder)
        logger.info(f"{actor.user_id} notified customer for order {order_id}")
        return updated

    # ------------------------------------------------------------------
    # Stock, reorders and deliveries
    # ------------------------------------------------------------------
    def create_stock_item(self, actor: Actor, now: Optional[datetime] = None, **fields: Any) -> StockItem:
        require(actor, Capability.MANAGE_INVENTORY)
        fields.setdefault("pharmacy_id", actor.pharmacy_id)
        fields.setdefault("updated_by", actor.user_id)
        fields["last_updated"] = self._now(now)
        item = self._insert(STOCK_ITEMS, self._build(StockItem, **fields), StockItem)
        logger.info(f"{actor.user_id} added stock item {item.name}")
        return item

    def get_stock_item(self, item_id: str) -> StockItem:
        return self._load(STOCK_ITEMS, item_id, StockItem)

    def list_stock(self) -> List[StockItem]:
        """Alphabetical by name."""
        return self._list(STOCK_ITEMS, StockItem, "name")

    def update_stock(self, item_id: str, current_stock: int, actor: Actor,
                     now: Optional[datetime] = None) -> StockItem:
        """Set the on-hand count, stamping last_updated / updated_by."""
        require(actor, Capability.MANAGE_INVENTORY)
        if isinstance(current_stock, bool) or not isinstance(current_stock, int) or current_stock < 0:
            raise ValidationError(f"current_stock must be a non-negative integer (got {current_stock!r})")
        self.get_stock_item(item_id)
        patch = {"current_stock": current_stock, "last_updated": self._now(now), "updated_by": actor.user_id}
        item = self._update(STOCK_ITEMS, item_id, patch, StockItem)
        logger.info(f"{actor.user_id} set stock of {item.name} to {current_stock}")
        return item

    def add_order_todo(self, item_id: str, order_quantity: int, actor: Actor,
                       notes: Optional[str] = None, now: Optional[datetime] = None) -> OrderTodo:
        """Put *order_quantity* of a stock item on the reorder to-do list."""
        require(actor, Capability.MANAGE_INVENTORY)
        item = self.get_stock_item(item_id)
        todo = OrderTodo(
            item_name=item.name,
            order_quantity=order_quantity,
            supplier=item.supplier or "Unknown Supplier",
            current_stock=item.current_stock,
            pharmacy_id=item.pharmacy_id or actor.pharmacy_id,
            supplier_contact=item.supplier_contact,
            notes=notes or f"Reorder for {item.name}",
            created_by=actor.user_id,
            created_at=self._now(now),
        )
        saved = self._insert(EntityKind.ORDER_TODO.table, todo, OrderTodo)
        logger.info(f"{actor.user_id} queued reorder of {order_quantity} × {item.name}")
        return saved

    def list_todos(self, status: Any = None) -> List[OrderTodo]:
        kwargs = {}
        if status is not None:
            kwargs["filter"] = {"status": coerce_enum(TodoStatus, status, "status").value}
        return self._list(EntityKind.ORDER_TODO.table, OrderTodo, "-created_at", **kwargs)

    def delete_todo(self, todo_id: str, actor: Actor) -> None:
        require(actor, Capability.MANAGE_INVENTORY)
        self._delete(EntityKind.ORDER_TODO.table, todo_id)
        logger.info(f"{actor.user_id} removed reorder {todo_id}")

    def log_delivery(self, actor: Actor, now: Optional[datetime] = None, **fields: Any) -> DeliveryLog:
        """Append a received delivery to the log."""
        require(actor, Capability.MANAGE_INVENTORY)
        fields.setdefault("pharmacy_id", actor.pharmacy_id)
        fields.setdefault("received_by", actor.user_id)
        fields["received_at"] = self._now(now)
        entry = self._insert(DELIVERY_LOG, self._build(DeliveryLog, **fields), DeliveryLog)
        logger.info(f"{actor.user_id} logged delivery of {entry.quantity_received} × {entry.item_name}")
        return entry

    def list_deliveries(self, limit: Optional[int] = None) -> List[DeliveryLog]:
        """Most recent deliveries first."""
        if limit is None:
            limit = self.delivery_limit
        return self._list(DELIVERY_LOG, DeliveryLog, "-received_at", limit=limit)

    def item_history(self, item_id: str) -> List[HistoryEvent]:
        """Reorders and deliveries of one stock item, newest first."""
        item = self.get_stock_item(item_id)
        todos = self._list(EntityKind.ORDER_TODO.table, OrderTodo, "-created_at",
                           filter={"item_name": item.name})
        deliveries = self._list(DELIVERY_LOG, DeliveryLog, "-received_at",
                                filter={"item_name": item.name})
        return item_history(item.name, todos, deliveries)
