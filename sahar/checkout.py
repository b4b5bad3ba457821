# sahar/checkout.py
"""
POS checkout.

The backend has no multi-statement transaction, so a checkout is a saga of
separate writes: draft → customer → order → order items → stock. Each
attempt on the same cart carries the cart's idempotency key; the draft row
keyed by it records which steps already went through, so a retry after a
partial failure resumes instead of duplicating the order or the customer
counters. A changed cart gets a new key; the attempt it replaces gives
back its customer counters before the new one applies them.
`reconcile_drafts` repairs what a retry never came back for.
"""
from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from .backend import Backend, BackendError
from .cart import Cart, CartLine
from .config import CONFIG, PosConfig
from .customers import CustomerDirectory
from .inventory import consume_for_order
from .models import CheckoutDraft, Customer, Order, OrderItem, OrderStatus, OrderType

log = logging.getLogger("sahar.checkout")


class CheckoutState(str, Enum):
    IDLE = "Idle"
    SUBMITTING = "Submitting"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@dataclass
class CheckoutResult:
    ok: bool
    state: CheckoutState
    message: str
    order_id: Optional[int] = None
    total: float = 0
    summary: str = ""
    noop: bool = False
    busy: bool = False
    # what was sold, for the receipt
    lines: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "state": self.state.value,
            "message": self.message,
            "order_id": self.order_id,
            "total": self.total,
            "summary": self.summary,
        }


@dataclass
class PosTerminal:
    """One register: the cart being built plus the customer/payment fields."""
    name: str = "main"
    cart: Cart = field(default_factory=Cart)
    phone: str = ""
    customer_name: str = ""
    customer: Optional[Customer] = None
    payment_method: str = CONFIG.pos.default_payment

    def reset(self, default_payment: str = CONFIG.pos.default_payment, sold: Optional[List[CartLine]] = None) -> None:
        if sold is None:
            self.cart.clear()
        else:
            self.cart.discard(sold)
        self.phone = ""
        self.customer_name = ""
        self.customer = None
        self.payment_method = default_payment


def build_summary(cart: Cart) -> str:
    return cart.summary_text(", ")


class CheckoutOrchestrator:
    def __init__(
        self,
        backend: Backend,
        directory: Optional[CustomerDirectory] = None,
        cfg: PosConfig = CONFIG.pos,
    ) -> None:
        self.backend = backend
        self.cfg = cfg
        self.directory = directory or CustomerDirectory(backend, cfg)
        self.state = CheckoutState.IDLE
        self._lock = threading.Lock()

    @property
    def submitting(self) -> bool:
        return self.state == CheckoutState.SUBMITTING

    # --- entry point ----------------------------------------------------------

    def submit(self, terminal: PosTerminal) -> CheckoutResult:
        cart = terminal.cart
        if cart.is_empty():
            return CheckoutResult(ok=True, state=self.state, message="Cart is empty", noop=True)

        # a second confirm while one is in flight is refused, not queued
        if not self._lock.acquire(blocking=False):
            return CheckoutResult(
                ok=False, state=CheckoutState.SUBMITTING,
                message="Checkout already in progress", busy=True,
            )
        try:
            self.state = CheckoutState.SUBMITTING
            result = self._run(terminal)
            self.state = result.state
            return result
        finally:
            self._lock.release()

    # --- saga -------------------------------------------------------------------

    def _run(self, terminal: PosTerminal) -> CheckoutResult:
        cart = terminal.cart
        key = cart.ensure_checkout_key()
        # lines added while this runs belong to the next sale
        sold = Cart(list(cart.lines), key)
        total = sold.compute_total()
        summary = build_summary(sold)

        try:
            draft = self._load_draft(key, terminal, sold)
        except BackendError:
            return self._failed("Order could not be saved, try again", total, summary)

        # customer: best effort, never blocks the sale
        if not draft.customer_applied:
            self._apply_customer(draft, terminal, total)

        try:
            order_id = self._ensure_order(draft, terminal, total, summary)
        except BackendError:
            return self._failed("Order could not be saved, try again", total, summary)

        try:
            self._ensure_items(order_id, draft.lines)
        except BackendError:
            log.error("order #%s saved without items (checkout %s)", order_id, key)
            return self._failed(
                f"Order #{order_id} was saved without its items, confirm again to complete it",
                total, summary, order_id,
            )

        if self.cfg.deduct_stock and not draft.stock_applied:
            self._apply_stock(draft, order_id)

        self._mark(draft, status="completed", best_effort=True)
        terminal.reset(self.cfg.default_payment, sold=sold.lines)
        log.info("order #%s checked out: %s (%s)", order_id, total, summary)
        return CheckoutResult(
            ok=True, state=CheckoutState.SUCCEEDED, message="Order paid & sent",
            order_id=order_id, total=total, summary=summary,
            lines=[l.to_dict() for l in sold.lines],
        )

    def _failed(self, message: str, total: float, summary: str, order_id: Optional[int] = None) -> CheckoutResult:
        # cart stays as it is so the cashier can confirm again
        return CheckoutResult(
            ok=False, state=CheckoutState.FAILED, message=message,
            order_id=order_id, total=total, summary=summary,
        )

    def _load_draft(self, key: str, terminal: PosTerminal, sold: Cart) -> CheckoutDraft:
        draft = self.backend.get(CheckoutDraft, key)
        if draft is not None:
            return draft
        self._release_superseded(terminal, key)
        return self.backend.insert_one(CheckoutDraft, {
            "key": key,
            "terminal": terminal.name,
            "lines": [l.to_dict() for l in sold.lines],
            "total": sold.compute_total(),
            "phone": terminal.phone,
            "customer_name": terminal.customer_name,
            "payment_method": terminal.payment_method,
        })

    def _release_superseded(self, terminal: PosTerminal, key: str) -> None:
        """
        Earlier attempts on this register whose cart changed before an order
        was saved. Their customer counters are taken back here, so the new
        attempt counts the visit once with the new total.
        """
        try:
            stale = self.backend.select(
                CheckoutDraft,
                CheckoutDraft.terminal == terminal.name,
                CheckoutDraft.status == "pending",
                CheckoutDraft.order_id == None,  # noqa: E711
                CheckoutDraft.key != key,
            )
        except BackendError as e:
            log.warning("superseded drafts of %s not checked: %s", terminal.name, e)
            return
        for old in stale:
            try:
                if self.backend.first(Order, Order.checkout_key == old.key) is not None:
                    continue  # saved after all: reconcile_drafts finishes it
                release_draft(self.backend, old, "superseded", directory=self.directory)
            except BackendError as e:
                log.warning("draft %s not released: %s", old.key, e)

    def _apply_customer(self, draft: CheckoutDraft, terminal: PosTerminal, total: float) -> None:
        try:
            customer = self.directory.upsert_on_checkout(
                terminal.customer, terminal.customer_name, terminal.phone, total,
            )
        except BackendError as e:
            log.warning("customer update skipped for checkout %s: %s", draft.key, e)
            return
        if customer is not None:
            terminal.customer = customer
        self._mark(
            draft, best_effort=True,
            customer_applied=True, customer_id=customer.id if customer else None,
        )

    def _mark(self, draft: CheckoutDraft, best_effort: bool = False, **values) -> None:
        values["updated_at"] = datetime.now()
        try:
            self.backend.update(CheckoutDraft, values, CheckoutDraft.key == draft.key)
        except BackendError as e:
            if not best_effort:
                raise
            log.warning("draft %s not updated: %s", draft.key, e)
            return
        for k, v in values.items():
            setattr(draft, k, v)

    def _ensure_order(self, draft: CheckoutDraft, terminal: PosTerminal, total: float, summary: str) -> int:
        if draft.order_id is not None:
            return int(draft.order_id)
        existing = self.backend.first(Order, Order.checkout_key == draft.key)
        if existing is not None:
            order_id = int(existing.order_id)
        else:
            order = self.backend.insert_one(Order, {
                "customer_name": terminal.customer_name or self.cfg.walk_in_name,
                "phone": terminal.phone or self.cfg.sentinel_phone,
                "total_amount": total,
                "order_summary": summary,
                "status": OrderStatus.NEW.value,
                "payment_method": terminal.payment_method,
                "is_paid": True,
                "order_type": OrderType.POS.value,
                "checkout_key": draft.key,
            })
            order_id = int(order.order_id)
        self._mark(draft, order_id=order_id, best_effort=True)
        return order_id

    def _ensure_items(self, order_id: int, lines: List[Dict[str, Any]]) -> None:
        if self.backend.first(OrderItem, OrderItem.order_id == order_id) is not None:
            return
        insert_order_items(self.backend, order_id, lines)

    def _apply_stock(self, draft: CheckoutDraft, order_id: int) -> None:
        try:
            consume_for_order(self.backend, order_id, quantities_of(draft.lines))
        except BackendError as e:
            log.warning("stock not updated for order #%s: %s", order_id, e)
            return
        self._mark(draft, stock_applied=True, best_effort=True)


def quantities_of(lines: List[Dict[str, Any]]) -> Dict[int, int]:
    q: Counter = Counter()
    for l in lines:
        q[int(l["menu_item_id"])] += int(l.get("quantity") or 1)
    return dict(q)


def insert_order_items(backend: Backend, order_id: int, lines: List[Dict[str, Any]]) -> List[OrderItem]:
    return backend.insert(OrderItem, [
        {
            "order_id": order_id,
            "menu_item_id": int(l["menu_item_id"]),
            "quantity": int(l.get("quantity") or 1),
            "price_at_time": float(l["unit_price"]),
        }
        for l in lines
    ])


def release_draft(
    backend: Backend,
    draft: CheckoutDraft,
    status: str,
    directory: Optional[CustomerDirectory] = None,
    now: Optional[datetime] = None,
) -> bool:
    """
    Close a pending draft that never got an order and take back the customer
    counters it applied. Returns False when someone else closed it first.
    """
    now = now or datetime.now()
    claimed = backend.update(
        CheckoutDraft,
        {"status": status, "updated_at": now},
        CheckoutDraft.key == draft.key,
        CheckoutDraft.status == "pending",
    )
    if not claimed:
        return False
    if draft.customer_applied and draft.customer_id is not None:
        (directory or CustomerDirectory(backend)).take_back(draft.customer_id, draft.total)
        log.info("customer %s: checkout %s taken back (%s)", draft.customer_id, draft.key, status)
    return True


# --- reconciliation -----------------------------------------------------------

@dataclass
class ReconcileReport:
    repaired: List[int] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)
    abandoned: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repaired": self.repaired,
            "completed": self.completed,
            "abandoned": self.abandoned,
            "errors": self.errors,
        }


def reconcile_drafts(backend: Backend, cfg: PosConfig = CONFIG.pos, now: Optional[datetime] = None) -> ReconcileReport:
    """
    Close out checkouts nobody retried:
    - order written but items missing → insert items from the draft snapshot
    - no order and older than the expiry → abandoned, customer counters taken back
    """
    now = now or datetime.now()
    report = ReconcileReport()
    expiry = now - timedelta(hours=cfg.draft_expiry_hours)

    for draft in backend.select(CheckoutDraft, CheckoutDraft.status == "pending", order_by=[CheckoutDraft.created_at]):
        try:
            order_id = draft.order_id
            if order_id is None:
                order = backend.first(Order, Order.checkout_key == draft.key)
                order_id = order.order_id if order else None

            if order_id is None:
                if draft.created_at <= expiry and release_draft(backend, draft, "abandoned", now=now):
                    report.abandoned.append(draft.key)
                continue

            if backend.first(OrderItem, OrderItem.order_id == order_id) is None:
                insert_order_items(backend, int(order_id), draft.lines)
                report.repaired.append(int(order_id))
                log.info("order #%s repaired from draft %s", order_id, draft.key)

            stock_applied = draft.stock_applied
            if cfg.deduct_stock and not stock_applied:
                consume_for_order(backend, int(order_id), quantities_of(draft.lines))
                stock_applied = True

            backend.update(
                CheckoutDraft,
                {"status": "completed", "order_id": order_id, "stock_applied": stock_applied, "updated_at": now},
                CheckoutDraft.key == draft.key,
            )
            report.completed.append(draft.key)
        except BackendError as e:
            report.errors.append(f"{draft.key}: {e}")
    return report
