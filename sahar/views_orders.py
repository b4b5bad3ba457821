# sahar/views_orders.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from .auth import SessionCtxDep
from .db import BackendDep
from .models import Order, OrderStatus, OrderType
from .ws import manager

router = APIRouter(prefix="/orders", tags=["orders"])

HISTORY_LIMIT = 100


def filter_orders(orders: List[Order], search: str = "", status: str = "All") -> List[Order]:
    """Search by customer name, phone or order number; optional status filter."""
    s = (search or "").strip().lower()
    out = []
    for o in orders:
        if status and status != "All" and o.status != status:
            continue
        if s and not (
            s in (o.customer_name or "").lower()
            or s in (o.phone or "")
            or s == str(o.order_id)
        ):
            continue
        out.append(o)
    return out


@router.get("")
def orders_history(
    backend: BackendDep,
    ctx: SessionCtxDep,
    search: str = "",
    status: str = "All",
    limit: int = Query(HISTORY_LIMIT, ge=1, le=500),
):
    rows = backend.select(Order, order_by=[Order.created_at.desc()], limit=limit)
    return [o.model_dump(mode="json") for o in filter_orders(rows, search, status)]


# --- website orders -------------------------------------------------------------

@router.get("/web")
def web_orders(backend: BackendDep, ctx: SessionCtxDep):
    """Orders placed on the website, waiting for the cashier to confirm payment."""
    rows = backend.select(
        Order,
        Order.order_type == OrderType.WEBSITE.value,
        Order.is_paid == False,  # noqa: E712
        Order.status != OrderStatus.CANCELLED.value,
        order_by=[Order.created_at.asc(), Order.order_id.asc()],
    )
    return [o.model_dump(mode="json") for o in rows]


def _web_order_or_404(backend, order_id: int) -> Order:
    order: Optional[Order] = backend.get(Order, order_id)
    if order is None or order.order_type != OrderType.WEBSITE.value:
        raise HTTPException(status_code=404, detail="Website order not found")
    return order


@router.post("/web/{order_id}/confirm")
async def web_order_confirm(order_id: int, backend: BackendDep, ctx: SessionCtxDep):
    """Payment received: the order goes to the kitchen as New."""
    _web_order_or_404(backend, order_id)
    backend.update(Order, {"is_paid": True, "status": OrderStatus.NEW.value}, Order.order_id == order_id)
    await manager.order_created(order_id)
    return {"ok": True, "order_id": order_id}


@router.post("/web/{order_id}/cancel")
async def web_order_cancel(order_id: int, backend: BackendDep, ctx: SessionCtxDep):
    # flagged paid as well so it leaves the pending list
    _web_order_or_404(backend, order_id)
    backend.update(
        Order,
        {"is_paid": True, "status": OrderStatus.CANCELLED.value},
        Order.order_id == order_id,
    )
    await manager.order_status(order_id, OrderStatus.CANCELLED.value)
    return {"ok": True, "order_id": order_id}


@router.get("/{order_id}")
def order_detail(order_id: int, backend: BackendDep, ctx: SessionCtxDep):
    order = backend.get(Order, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order.model_dump(mode="json")
