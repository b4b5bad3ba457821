# sahar/views_kds.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Form, HTTPException
from sqlalchemy import func
from sqlmodel import select

from .auth import SessionCtxDep
from .config import CONFIG
from .db import BackendDep
from .models import MenuItem, Order, OrderItem, OrderStatus
from .ws import manager

router = APIRouter(prefix="/kitchen", tags=["kitchen"])

# statuses the kitchen screen no longer shows
CLOSED_STATES = (OrderStatus.CANCELLED.value, OrderStatus.DELIVERED.value)

TRANSITIONS: Dict[str, tuple] = {
    OrderStatus.NEW.value: (OrderStatus.PREPARING.value, OrderStatus.CANCELLED.value),
    OrderStatus.PREPARING.value: (OrderStatus.COMPLETED.value, OrderStatus.READY.value, OrderStatus.CANCELLED.value),
    OrderStatus.COMPLETED.value: (OrderStatus.DELIVERED.value,),
    OrderStatus.READY.value: (OrderStatus.DELIVERED.value,),
}


# --- util -------------------------------------------------------------------

def elapsed_label(start: Optional[datetime], now: Optional[datetime] = None) -> str:
    if not start:
        return ""
    minutes = int(((now or datetime.now()) - start).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    return f"{minutes} min ago"


def parse_summary(summary: Optional[str]) -> List[Dict[str, str]]:
    """'2x Latte (Sugar: Zero) extra hot, 1x Tea ' → [{qty, name, note}, ...]"""
    if not summary:
        return []
    out = []
    for part in (p.strip() for p in summary.split(",")):
        if not part:
            continue
        qty, sep, rest = part.partition("x ")
        if not sep:
            qty, rest = "1", part
        paren = rest.find("(")
        name, note = (rest[:paren].strip(), rest[paren:].strip()) if paren != -1 else (rest.strip(), "")
        out.append({"qty": qty.strip(), "name": name, "note": note})
    return out


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, ())


# --- screens ----------------------------------------------------------------

@router.get("/orders")
def kitchen_orders(backend: BackendDep, ctx: SessionCtxDep):
    """Paid, still open orders, oldest first. Polled every few seconds."""
    orders = backend.select(
        Order,
        Order.is_paid == True,  # noqa: E712
        Order.status.not_in(CLOSED_STATES),
        order_by=[Order.created_at.asc()],
    )
    now = datetime.now()
    return {
        "poll_seconds": CONFIG.kitchen.poll_seconds,
        "orders": [
            {
                "order_id": o.order_id,
                "customer_name": o.customer_name,
                "status": o.status,
                "order_type": o.order_type,
                "elapsed": elapsed_label(o.created_at, now),
                "items": parse_summary(o.order_summary),
                "next": list(TRANSITIONS.get(o.status, ())),
            }
            for o in orders
        ],
    }


@router.get("/summary")
def kitchen_summary(backend: BackendDep, ctx: SessionCtxDep):
    """Quantity still to prepare per item across New/Preparing orders."""
    rows = backend.query(
        select(MenuItem.name_ar, func.sum(OrderItem.quantity).label("total_qty"))
        .select_from(OrderItem)
        .join(Order, Order.order_id == OrderItem.order_id)
        .join(MenuItem, MenuItem.id == OrderItem.menu_item_id)
        .where(
            Order.is_paid == True,  # noqa: E712
            Order.status.in_((OrderStatus.NEW.value, OrderStatus.PREPARING.value)),
        )
        .group_by(MenuItem.name_ar)
        .order_by(func.sum(OrderItem.quantity).desc(), MenuItem.name_ar.asc()),
        label="order_items",
    )
    return [{"name": n, "total_qty": int(q or 0)} for (n, q) in rows]


# --- actions ----------------------------------------------------------------

@router.post("/orders/{order_id}/status")
async def kitchen_status(order_id: int, backend: BackendDep, ctx: SessionCtxDep, status: str = Form(...)):
    order = backend.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if not can_transition(order.status, status):
        raise HTTPException(status_code=409, detail=f"Cannot move order from {order.status} to {status}")

    backend.update(Order, {"status": status}, Order.order_id == order_id)
    await manager.order_status(order_id, status)
    return {"ok": True, "order_id": order_id, "status": status}
