"""
dispensary.views
================

Derived display categories computed from stored data and the current
time.  Every function here is a pure function of its arguments: nothing
is read from the clock or the store, and nothing computed here is ever
persisted.  Screens call these instead of re-deriving badges themselves.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .dates import days_overdue, days_until
from .models import (
    CustomerOrder,
    DeliveryLog,
    OrderStatus,
    OrderTodo,
    Prescription,
    PrescriptionStatus,
    StockItem,
    TodoStatus,
)

RENEWAL_WINDOW_DAYS = 7
RENEWAL_URGENT_DAYS = 3
PICKUP_WARNING_DAYS = 3
PICKUP_CRITICAL_DAYS = 7
STOCK_CRITICAL_RATIO = 0.25
STOCK_LOW_RATIO = 0.5


class RenewalCategory(Enum):
    NONE = "none"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"
    COMPLETED = "completed"


class PickupSeverity(Enum):
    """Row highlight for an order waiting on the shelf."""
    NONE = "none"
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class StockTier(Enum):
    GOOD = "good"
    LOW = "low"
    CRITICAL = "critical"


# ---------------------------------------------------------------------
# Single-entity derivations
# ---------------------------------------------------------------------
def renewal_category(rx: Prescription, now: datetime) -> RenewalCategory:
    """
    Renewal state of *rx* at *now*.

    ``completed`` whenever ``renewed_at`` is set, regardless of due date;
    otherwise ``overdue`` once the due date has passed and ``due_soon``
    within the next :data:`RENEWAL_WINDOW_DAYS` days.
    """
    if rx.renewed_at is not None:
        return RenewalCategory.COMPLETED
    if rx.renewal_due_date is None:
        return RenewalCategory.NONE
    days = days_until(rx.renewal_due_date, now)
    if days < 0:
        return RenewalCategory.OVERDUE
    if days <= RENEWAL_WINDOW_DAYS:
        return RenewalCategory.DUE_SOON
    return RenewalCategory.NONE


def renewal_badge(rx: Prescription, now: datetime) -> Optional[Tuple[str, str]]:
    """``(label, tone)`` for the due-date badge, or None without a due date."""
    if rx.renewal_due_date is None:
        return None
    days = days_until(rx.renewal_due_date, now)
    if days < 0:
        return f"{abs(days)} days overdue", "destructive"
    if days <= RENEWAL_URGENT_DAYS:
        return f"{days} days left", "warning"
    return f"{days} days left", "outline"


def pickup_severity(order: CustomerOrder, now: datetime) -> PickupSeverity:
    """
    How long an arrived order has been waiting for collection.

    Only meaningful while the order is ready_for_collection; every other
    status yields :attr:`PickupSeverity.NONE`.
    """
    if order.status is not OrderStatus.READY_FOR_COLLECTION or order.arrived_at is None:
        return PickupSeverity.NONE
    waited = days_overdue(order.arrived_at, now)
    if waited >= PICKUP_CRITICAL_DAYS:
        return PickupSeverity.CRITICAL
    if waited >= PICKUP_WARNING_DAYS:
        return PickupSeverity.WARNING
    return PickupSeverity.NORMAL


def stock_ratio(item: StockItem) -> Optional[float]:
    """current / minimum, or None when no minimum is configured."""
    if item.minimum_stock <= 0:
        return None
    return item.current_stock / item.minimum_stock


def stock_tier(item: StockItem) -> StockTier:
    """
    Stock level tier.

    A minimum of zero has no meaningful ratio and is reported as
    ``critical`` rather than dividing by zero.
    """
    ratio = stock_ratio(item)
    if ratio is None or ratio <= STOCK_CRITICAL_RATIO:
        return StockTier.CRITICAL
    if ratio <= STOCK_LOW_RATIO:
        return StockTier.LOW
    return StockTier.GOOD


def is_low_stock(item: StockItem) -> bool:
    return item.current_stock <= item.minimum_stock


# ---------------------------------------------------------------------
# Timelines
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class TimelineEvent:
    action: str
    timestamp: datetime


def order_timeline(order: CustomerOrder) -> List[TimelineEvent]:
    """Activity timeline of an order, newest first."""
    candidates = [
        ("Order Created", order.date_ordered),
        ("Item Arrived", order.arrived_at),
        ("Customer Notified", order.notified_at),
        ("Order Collected", order.collected_at),
    ]
    events = [TimelineEvent(action, ts) for action, ts in candidates if ts is not None]
    # equal stamps keep stage order, so the later stage lists first
    events.sort(key=lambda e: e.timestamp)
    return events[::-1]


@dataclass(frozen=True)
class HistoryEvent:
    """One line of a stock item's order/delivery history."""
    id: Optional[str]
    type: str                   # "ordered" | "received"
    date: datetime
    quantity: int
    supplier: str
    notes: Optional[str] = None
    created_by: Optional[str] = None


def item_history(
    item_name: str,
    todos: Iterable[OrderTodo],
    deliveries: Iterable[DeliveryLog],
) -> List[HistoryEvent]:
    """Merge reorders and deliveries of *item_name*, newest first."""
    events = [
        HistoryEvent(t.id, "ordered", t.created_at, t.order_quantity, t.supplier, t.notes, t.created_by)
        for t in todos
        if t.item_name == item_name and t.created_at is not None
    ]
    events += [
        HistoryEvent(d.id, "received", d.received_at, d.quantity_received, d.supplier, d.notes, d.received_by)
        for d in deliveries
        if d.item_name == item_name and d.received_at is not None
    ]
    return sorted(events, key=lambda e: e.date, reverse=True)


# ---------------------------------------------------------------------
# Row view models handed to the rendering layer
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PrescriptionRow:
    prescription: Prescription
    renewal: RenewalCategory
    days_until_renewal: Optional[int]
    badge: Optional[Tuple[str, str]]


@dataclass(frozen=True)
class OrderRow:
    order: CustomerOrder
    severity: PickupSeverity
    days_waiting: Optional[int]


@dataclass(frozen=True)
class StockRow:
    item: StockItem
    tier: StockTier
    is_low_stock: bool
    percentage: Optional[float]


def prescription_rows(prescriptions: Iterable[Prescription], now: datetime) -> List[PrescriptionRow]:
    return [
        PrescriptionRow(
            prescription=rx,
            renewal=renewal_category(rx, now),
            days_until_renewal=days_until(rx.renewal_due_date, now) if rx.renewal_due_date else None,
            badge=renewal_badge(rx, now),
        )
        for rx in prescriptions
    ]


def order_rows(orders: Iterable[CustomerOrder], now: datetime) -> List[OrderRow]:
    rows = []
    for order in orders:
        severity = pickup_severity(order, now)
        waiting = days_overdue(order.arrived_at, now) if severity is not PickupSeverity.NONE else None
        rows.append(OrderRow(order=order, severity=severity, days_waiting=waiting))
    return rows


def stock_rows(items: Iterable[StockItem]) -> List[StockRow]:
    rows = []
    for item in items:
        ratio = stock_ratio(item)
        rows.append(
            StockRow(
                item=item,
                tier=stock_tier(item),
                is_low_stock=is_low_stock(item),
                percentage=round(ratio * 100, 1) if ratio is not None else None,
            )
        )
    return rows


def categorize_renewals(
    prescriptions: Iterable[Prescription], now: datetime
) -> Dict[RenewalCategory, List[Prescription]]:
    """Group prescriptions by renewal category (every category present)."""
    groups: Dict[RenewalCategory, List[Prescription]] = {c: [] for c in RenewalCategory}
    for rx in prescriptions:
        groups[renewal_category(rx, now)].append(rx)
    return groups


def dashboard_summary(
    prescriptions: Sequence[Prescription],
    orders: Sequence[CustomerOrder],
    stock: Sequence[StockItem],
    todos: Sequence[OrderTodo],
    now: datetime,
) -> Dict[str, Dict[str, int]]:
    """Headline counts for the dashboard; zero counts are always present."""

    def _counts(values, members) -> Dict[str, int]:
        counter = Counter(v.value for v in values)
        return {m.value: counter.get(m.value, 0) for m in members}

    return {
        "prescriptions": _counts((rx.status for rx in prescriptions), PrescriptionStatus),
        "orders": _counts((o.status for o in orders), OrderStatus),
        "renewals": _counts((renewal_category(rx, now) for rx in prescriptions), RenewalCategory),
        "pickups": _counts((pickup_severity(o, now) for o in orders), PickupSeverity),
        "stock": {
            **_counts((stock_tier(i) for i in stock), StockTier),
            "low_stock": sum(1 for i in stock if is_low_stock(i)),
        },
        "todos": _counts((t.status for t in todos), TodoStatus),
    }
