"""
api.stock
=========

FastAPI router for stock levels, the reorder to-do list and the delivery log.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dispensary.permissions import Actor
from dispensary.service import LifecycleService
from dispensary.views import stock_rows
from .deps import get_actor, get_service
from .schemas import DeliveryIn, ReorderIn, StockCount, StockItemIn

router = APIRouter(tags=["stock"])


# ---------- stock items ----------
@router.get("/stock")
def list_stock(svc: LifecycleService = Depends(get_service)):
    """Stock rows with tier (critical / low / good) and low-stock flag."""
    return stock_rows(svc.list_stock())


@router.post("/stock", status_code=201)
def create_stock_item(
    body: StockItemIn,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.create_stock_item(actor, **body.model_dump(exclude_none=True))


@router.put("/stock/{item_id}")
def update_stock(
    item_id: str,
    body: StockCount,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.update_stock(item_id, body.current_stock, actor)


@router.post("/stock/{item_id}/reorder", status_code=201)
def reorder(
    item_id: str,
    body: ReorderIn,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.add_order_todo(item_id, body.order_quantity, actor, notes=body.notes)


@router.get("/stock/{item_id}/history")
def history(item_id: str, svc: LifecycleService = Depends(get_service)):
    return svc.item_history(item_id)


# ---------- reorder to-do list ----------
@router.get("/todos")
def list_todos(status: str | None = None, svc: LifecycleService = Depends(get_service)):
    return svc.list_todos(status)


@router.post("/todos/{todo_id}/ordered")
def mark_ordered(
    todo_id: str,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.mark_todo_ordered(todo_id, actor)


@router.post("/todos/{todo_id}/cancel")
def cancel(
    todo_id: str,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.cancel_todo(todo_id, actor)


@router.delete("/todos/{todo_id}", status_code=204)
def delete_todo(
    todo_id: str,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    svc.delete_todo(todo_id, actor)


# ---------- deliveries ----------
@router.get("/deliveries")
def list_deliveries(svc: LifecycleService = Depends(get_service)):
    return svc.list_deliveries()


@router.post("/deliveries", status_code=201)
def log_delivery(
    body: DeliveryIn,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_service),
):
    return svc.log_delivery(actor, **body.model_dump(exclude_none=True))
