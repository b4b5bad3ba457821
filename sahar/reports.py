# sahar/reports.py
"""
Report reducers. Rows are fetched with a single lower time bound (no upper
bound: "today" runs up to now), then grouped, summed and ranked in Python.
"""
from __future__ import annotations

import calendar
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlmodel import select

from .backend import Backend
from .config import CONFIG, ReportsConfig
from .models import Expense, Ingredient, InventoryLog, MenuItem, Order, OrderItem

PERIODS = ("today", "week", "month")
FINANCE_RANGES = ("daily", "weekly", "monthly")


# --- time windows -------------------------------------------------------------

def _midnight(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _month_back(now: datetime) -> datetime:
    y, m = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
    day = min(now.day, calendar.monthrange(y, m)[1])
    return now.replace(year=y, month=m, day=day)


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    """Dashboard / best sellers: today = midnight, week = now-7d, month = now-1 month."""
    now = now or datetime.now()
    if period == "today":
        return _midnight(now)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return _month_back(now)
    raise ValueError(f"unknown period {period!r}")


def finance_start(time_range: str, now: Optional[datetime] = None) -> datetime:
    """Finance: midnight-anchored; monthly starts on the 1st of the current month."""
    start = _midnight(now or datetime.now())
    if time_range == "daily":
        return start
    if time_range == "weekly":
        return start - timedelta(days=7)
    if time_range == "monthly":
        return start.replace(day=1)
    raise ValueError(f"unknown range {time_range!r}")


# --- generic reducer ----------------------------------------------------------

def group_and_rank(
    rows: Iterable[Any],
    key: Callable[[Any], Any],
    value: Callable[[Any], float],
    weight: Callable[[Any], float] = lambda r: 1,
    top: Optional[int] = None,
    by: str = "total",
) -> List[Dict[str, Any]]:
    """Group rows by key; per group: count (Σ weight), total (Σ value), rows (number of rows)."""
    acc: "OrderedDict[Any, Dict[str, Any]]" = OrderedDict()
    for r in rows:
        k = key(r)
        g = acc.setdefault(k, {"key": k, "count": 0, "total": 0.0, "rows": 0})
        g["count"] += weight(r)
        g["total"] += value(r)
        g["rows"] += 1
    ranked = sorted(acc.values(), key=lambda g: g[by], reverse=True)
    return ranked[:top] if top else ranked


# --- best sellers ---------------------------------------------------------------

def best_sellers(items: Iterable[OrderItem], menu: Dict[int, MenuItem], top: int = 20) -> List[Dict[str, Any]]:
    groups = group_and_rank(
        items,
        key=lambda i: int(i.menu_item_id),
        value=lambda i: int(i.quantity or 0) * float(i.price_at_time or 0),
        weight=lambda i: int(i.quantity or 0),
        top=top,
        by="count",
    )
    out = []
    for g in groups:
        m = menu.get(g["key"])
        out.append({
            "menu_item_id": g["key"],
            "total_quantity": g["count"],
            "total_revenue": g["total"],
            "count": g["rows"],
            "name_ar": m.name_ar if m else None,
            "name_en": m.name_en if m else "Unknown Item",
            "category": m.category if m else None,
            "image": m.image if m else None,
        })
    return out


# --- dashboard ------------------------------------------------------------------

def dashboard_stats(orders: List[Order], recent: int = 5) -> Dict[str, Any]:
    """orders: paid orders in the window, newest first."""
    revenue = sum(float(o.total_amount or 0) for o in orders)
    count = len(orders)
    cash = sum(1 for o in orders if o.payment_method == "Cash")
    return {
        "revenue": revenue,
        "orders_count": count,
        "avg_order": round(revenue / count) if count else 0,
        "cash": cash,
        "non_cash": count - cash,
        "recent_orders": [
            {
                "order_id": o.order_id,
                "customer_name": o.customer_name,
                "total_amount": o.total_amount,
                "payment_method": o.payment_method,
                "created_at": o.created_at.isoformat() if o.created_at else None,
            }
            for o in orders[:recent]
        ],
    }


def totals_by_payment_method(orders: Iterable[Order]) -> List[Dict[str, Any]]:
    return [
        {"payment_method": g["key"], "orders": g["count"], "total": g["total"]}
        for g in group_and_rank(orders, key=lambda o: o.payment_method or "Unknown",
                                value=lambda o: float(o.total_amount or 0))
    ]


def totals_by_hour(orders: Iterable[Order]) -> List[Dict[str, Any]]:
    return [
        {"hour": g["key"], "orders": g["count"], "total": g["total"]}
        for g in group_and_rank(orders, key=lambda o: o.created_at.hour,
                                value=lambda o: float(o.total_amount or 0))
    ]


# --- finance --------------------------------------------------------------------

def finance_summary(orders: Iterable[Order], cost_rows: Iterable[tuple], expenses: Iterable[Expense]) -> Dict[str, float]:
    """cost_rows: (quantity, menu cost) per order item of the orders."""
    income = sum(float(o.total_amount or 0) for o in orders)
    cogs = sum(int(q or 0) * float(c or 0) for q, c in cost_rows)
    spent = sum(float(e.amount or 0) for e in expenses)
    return {
        "income": income,
        "expenses": spent,
        "cogs": cogs,
        "net_profit": income - (spent + cogs),
    }


# --- stock usage ------------------------------------------------------------------

STOCK_SORTS = ("total_used", "times_used", "name")


def usage_badge(amount: float) -> str:
    if amount == 0:
        return "Not Used"
    if amount < 10:
        return "Low Usage"
    if amount < 50:
        return "Medium"
    return "High Usage"


def stock_usage(
    logs: Iterable[InventoryLog],
    ingredients: Dict[int, Ingredient],
    sort_by: str = "total_used",
    search: str = "",
) -> List[Dict[str, Any]]:
    used = {
        g["key"]: g
        for g in group_and_rank(
            (l for l in logs if float(l.change_amount or 0) < 0),
            key=lambda l: int(l.ingredient_id),
            value=lambda l: -float(l.change_amount),
        )
    }
    rows = []
    for ing_id, ing in ingredients.items():
        g = used.get(ing_id)
        total = g["total"] if g else 0.0
        rows.append({
            "ingredient_id": ing_id,
            "ingredient_name": ing.name,
            "unit": ing.unit,
            "total_used": total,
            "times_used": g["rows"] if g else 0,
            "badge": usage_badge(total),
        })

    s = (search or "").lower()
    if s:
        rows = [
            r for r in rows
            if s in (r["ingredient_name"] or "").lower() or s in str(r["ingredient_id"]) or s in (r["unit"] or "").lower()
        ]
    if sort_by == "name":
        rows.sort(key=lambda r: (r["ingredient_name"] or "").lower())
    elif sort_by in ("total_used", "times_used"):
        rows.sort(key=lambda r: r[sort_by], reverse=True)
    else:
        raise ValueError(f"unknown sort {sort_by!r}")
    return rows


# --- data access ------------------------------------------------------------------

class ReportService:
    def __init__(self, backend: Backend, cfg: ReportsConfig = CONFIG.reports) -> None:
        self.backend = backend
        self.cfg = cfg

    def paid_orders_since(self, start: datetime) -> List[Order]:
        return self.backend.select(
            Order,
            Order.is_paid == True,  # noqa: E712
            Order.created_at >= start,
            order_by=[Order.created_at.desc()],
        )

    def dashboard(self, period: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        orders = self.paid_orders_since(period_start(period, now))
        stats = dashboard_stats(orders, self.cfg.recent_orders)
        stats["by_payment_method"] = totals_by_payment_method(orders)
        stats["by_hour"] = totals_by_hour(orders)
        return stats

    def best_sellers(self, period: str, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        start = period_start(period, now)
        items = [
            oi for oi, _ in self.backend.query(
                select(OrderItem, Order)
                .join(Order, Order.order_id == OrderItem.order_id)
                .where(Order.created_at >= start),
                label="order_items",
            )
        ]
        ids = list({int(i.menu_item_id) for i in items})
        menu = {int(m.id): m for m in self.backend.select(MenuItem, MenuItem.id.in_(ids))} if ids else {}
        return best_sellers(items, menu, top=self.cfg.best_sellers_top)

    def finance(self, time_range: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        start = finance_start(time_range, now)
        orders = self.paid_orders_since(start)
        cost_rows: list = []
        if orders:
            cost_rows = self.backend.query(
                select(OrderItem.quantity, MenuItem.cost)
                .join(MenuItem, MenuItem.id == OrderItem.menu_item_id, isouter=True)
                .where(OrderItem.order_id.in_([o.order_id for o in orders])),
                label="order_items",
            )
        expenses = self.backend.select(Expense, Expense.created_at >= start, order_by=[Expense.created_at.desc()])
        summary = finance_summary(orders, cost_rows, expenses)
        summary["expenses_list"] = [e.model_dump(mode="json") for e in expenses]
        summary["start"] = start.isoformat()
        return summary

    def stock_usage(self, sort_by: str = "total_used", search: str = "") -> List[Dict[str, Any]]:
        logs = self.backend.select(InventoryLog, InventoryLog.change_amount < 0)
        ingredients = {int(i.id): i for i in self.backend.select(Ingredient)}
        return stock_usage(logs, ingredients, sort_by=sort_by, search=search)
