"""
api.orders
==========

FastAPI router for customer special orders, missed pickups and back orders.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dispensary.dates import utcnow
from dispensary.permissions import Actor
from dispensary.service import LifecycleService
from dispensary.views import order_rows, order_timeline
from .deps import get_actor, get_service
from .schemas import OrderIn, StatusChange

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("")
def list_orders(
    status: str | None = None,
    order_type: str | None = None,
    svc: LifecycleService = Depends(get_service),
):
    """Order rows with their derived pickup severity (row highlight)."""
    return order_rows(svc.list_orders(status, order_type), utcnow())


@router.post("", status_code=201)
def create_order(
    body: OrderIn,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.create_order(actor, **body.model_dump(exclude_none=True))


@router.get("/{order_id}")
def get_order(order_id: str, svc: LifecycleService = Depends(get_service)):
    return svc.get_order(order_id)


@router.delete("/{order_id}", status_code=204)
def delete_order(
    order_id: str,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    svc.delete_order(order_id, actor)


@router.post("/{order_id}/status")
def change_status(
    order_id: str,
    body: StatusChange,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.transition_order(order_id, body.status, actor)


@router.post("/{order_id}/notified")
def mark_notified(
    order_id: str,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.mark_notified(order_id, actor)


@router.get("/{order_id}/timeline")
def timeline(order_id: str, svc: LifecycleService = Depends(get_service)):
    """Created / arrived / notified / collected events, newest first."""
    return order_timeline(svc.get_order(order_id))
