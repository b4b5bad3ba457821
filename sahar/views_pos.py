# sahar/views_pos.py
from __future__ import annotations

import threading
from typing import Annotated, Any, Dict, Tuple

from fastapi import APIRouter, Depends, Form, HTTPException
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .auth import SessionCtxDep
from .backend import Backend, BackendError
from .cart import SUGAR_LEVELS, customization_note
from .catalog import categories, filter_catalog, get_item, list_catalog
from .checkout import CheckoutOrchestrator, CheckoutResult, PosTerminal
from .config import CONFIG
from .customers import CustomerDirectory
from .db import BackendDep
from .models import Order
from .receipts.order_receipt import print_order_receipt
from .ws import manager

router = APIRouter(prefix="/pos", tags=["pos"])


class TerminalRegistry:
    """One cart + one checkout guard per register, kept in process memory."""

    def __init__(self) -> None:
        self._items: Dict[str, Tuple[PosTerminal, CheckoutOrchestrator]] = {}
        self._lock = threading.Lock()

    def get(self, name: str, backend: Backend) -> Tuple[PosTerminal, CheckoutOrchestrator]:
        with self._lock:
            hit = self._items.get(name)
            if hit is None or hit[1].backend is not backend:
                hit = (PosTerminal(name=name), CheckoutOrchestrator(backend))
                self._items[name] = hit
            return hit

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


terminals = TerminalRegistry()


def get_terminals() -> TerminalRegistry:
    return terminals


TerminalsDep = Annotated[TerminalRegistry, Depends(get_terminals)]


def _terminal_view(t: PosTerminal, orch: CheckoutOrchestrator) -> Dict[str, Any]:
    c = t.customer
    return {
        "terminal": t.name,
        "lines": [l.to_dict() for l in t.cart.lines],
        "total": t.cart.compute_total(),
        "phone": t.phone,
        "customer_name": t.customer_name,
        "customer": (
            {"id": c.id, "name": c.name, "total_orders": c.total_orders, "total_spent": c.total_spent}
            if c else None
        ),
        "payment_method": t.payment_method,
        "state": orch.state.value,
        "submitting": orch.submitting,
    }


# --- catalog ----------------------------------------------------------------

@router.get("/menu")
def pos_menu(backend: BackendDep, ctx: SessionCtxDep, category: str = "All", search: str = ""):
    items = list_catalog(backend)
    return {
        "categories": categories(items),
        "items": [i.to_dict() for i in filter_catalog(items, category, search)],
        "sugar_levels": list(SUGAR_LEVELS),
        "payment_methods": CONFIG.pos.payment_methods,
    }


# --- cart -------------------------------------------------------------------

@router.get("/{terminal}/cart")
def pos_cart(terminal: str, backend: BackendDep, regs: TerminalsDep, ctx: SessionCtxDep):
    t, orch = regs.get(terminal, backend)
    return _terminal_view(t, orch)


@router.post("/{terminal}/cart/add")
def pos_cart_add(
    terminal: str,
    backend: BackendDep,
    regs: TerminalsDep,
    ctx: SessionCtxDep,
    menu_item_id: int = Form(...),
    sugar: str = Form(""),
    note: str = Form(""),
):
    """sugar is only sent for drinks, from the customization modal."""
    t, orch = regs.get(terminal, backend)
    item = get_item(backend, menu_item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Menu item not found")
    if sugar and sugar not in SUGAR_LEVELS:
        raise HTTPException(status_code=400, detail=f"Unknown sugar level {sugar}")
    line = t.cart.add_line(item, customization_note(sugar, note.strip()) if sugar else note.strip())
    view = _terminal_view(t, orch)
    view["added"] = line is not None
    return view


@router.delete("/{terminal}/cart/{index}")
def pos_cart_remove(terminal: str, index: int, backend: BackendDep, regs: TerminalsDep, ctx: SessionCtxDep):
    t, orch = regs.get(terminal, backend)
    t.cart.remove_line(index)
    return _terminal_view(t, orch)


# --- customer / payment ------------------------------------------------------

@router.post("/{terminal}/customer")
def pos_customer(
    terminal: str,
    backend: BackendDep,
    regs: TerminalsDep,
    ctx: SessionCtxDep,
    phone: str = Form(""),
    name: str = Form(""),
):
    """Phone typed at the register: look up once it is long enough."""
    t, orch = regs.get(terminal, backend)
    t.phone = phone
    t.customer = CustomerDirectory(backend).lookup_by_phone(phone)
    if t.customer is not None:
        t.customer_name = t.customer.name
    else:
        t.customer_name = name
    view = _terminal_view(t, orch)
    view["found"] = t.customer is not None
    return view


@router.post("/{terminal}/payment")
def pos_payment(terminal: str, backend: BackendDep, regs: TerminalsDep, ctx: SessionCtxDep, method: str = Form(...)):
    if method not in CONFIG.pos.payment_methods:
        raise HTTPException(status_code=400, detail=f"Unknown payment method {method}")
    t, orch = regs.get(terminal, backend)
    t.payment_method = method
    return _terminal_view(t, orch)


# --- checkout ----------------------------------------------------------------

def _status_for(result: CheckoutResult) -> int:
    if result.ok:
        return 200
    if result.busy:
        return 409
    return 502


@router.post("/{terminal}/checkout")
async def pos_checkout(terminal: str, backend: BackendDep, regs: TerminalsDep, ctx: SessionCtxDep):
    t, orch = regs.get(terminal, backend)
    result = await run_in_threadpool(orch.submit, t)

    if result.ok and not result.noop:
        order = {
            "order_id": result.order_id,
            "total_amount": result.total,
            "order_summary": result.summary,
            "customer_name": "",
            "phone": "",
            "payment_method": "",
        }
        saved = await run_in_threadpool(_load_order, backend, result.order_id)
        if saved:
            order.update(saved)
        await run_in_threadpool(print_order_receipt, order, result.lines)
        await manager.order_created(result.order_id)

    payload = result.to_dict()
    payload["cart"] = _terminal_view(t, orch)
    return JSONResponse(payload, status_code=_status_for(result))


def _load_order(backend: Backend, order_id: int) -> Dict[str, Any]:
    # only feeds the receipt: the sale is already recorded
    try:
        o = backend.get(Order, order_id)
    except BackendError:
        return {}
    return o.model_dump(mode="json") if o else {}
