# sahar/inventory.py
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional

from sqlmodel import select

from .backend import Backend
from .models import Ingredient, InventoryItem, InventoryLog, Recipe
from .validation import ValidationError

log = logging.getLogger("sahar.inventory")

LOG_KINDS = ("All", "Addition", "Waste", "Sale", "Adjustment")


@dataclass
class InventoryRow:
    """inventory joined with its ingredient: one flat, typed row."""
    ingredient_id: int
    name: str
    unit: str
    stock: float
    min_limit: float
    cost_per_unit: float

    @property
    def is_low(self) -> bool:
        return self.stock <= self.min_limit

    def to_dict(self) -> dict:
        d = asdict(self)
        d["is_low"] = self.is_low
        return d


def load_inventory(backend: Backend) -> List[InventoryRow]:
    rows = backend.query(
        select(InventoryItem, Ingredient)
        .join(Ingredient, Ingredient.id == InventoryItem.ingredient_id, isouter=True)
        .order_by(InventoryItem.ingredient_id),
        label="inventory",
    )
    out = []
    for inv, ing in rows:
        out.append(InventoryRow(
            ingredient_id=int(inv.ingredient_id),
            name=(ing.name if ing else None) or "Unknown Item",
            unit=(ing.unit if ing else None) or "Unit",
            stock=float(inv.stock or 0),
            min_limit=float(inv.min_limit or 0),
            cost_per_unit=float(inv.cost_per_unit or 0),
        ))
    return out


def filter_inventory(rows: Iterable[InventoryRow], search: str = "", only_low: bool = False) -> List[InventoryRow]:
    s = (search or "").lower()
    return [r for r in rows if s in r.name.lower() and (r.is_low or not only_low)]


def low_stock(rows: Iterable[InventoryRow]) -> List[InventoryRow]:
    return [r for r in rows if r.is_low]


def log_change(backend: Backend, ingredient_id: int, change: float, reason: str, admin_name: str = "Admin") -> InventoryLog:
    return backend.insert_one(InventoryLog, {
        "ingredient_id": ingredient_id,
        "change_amount": change,
        "reason": reason,
        "admin_name": admin_name,
    })


def quick_update_stock(backend: Backend, ingredient_id: int, change: float, admin_name: str = "Admin") -> float:
    """+/- buttons: the stock never goes below zero."""
    inv = backend.get(InventoryItem, ingredient_id)
    if inv is None:
        raise ValidationError(f"Ingredient {ingredient_id} has no inventory row")
    new_stock = float(inv.stock or 0) + float(change)
    if new_stock < 0:
        raise ValidationError("Stock cannot be negative")
    backend.update(InventoryItem, {"stock": new_stock}, InventoryItem.ingredient_id == ingredient_id)
    log_change(backend, ingredient_id, float(change), "Quick Update", admin_name)
    return new_stock


def save_changes(
    backend: Backend,
    ingredient_id: int,
    stock: float,
    min_limit: float,
    cost_per_unit: float,
    admin_name: str = "Admin",
) -> InventoryRow:
    """Full edit; a stock difference is written to the log as a manual edit."""
    if stock < 0 or min_limit < 0 or cost_per_unit < 0:
        raise ValidationError("Values cannot be negative")
    inv = backend.get(InventoryItem, ingredient_id)
    if inv is None:
        raise ValidationError(f"Ingredient {ingredient_id} has no inventory row")
    diff = float(stock) - float(inv.stock or 0)
    backend.update(
        InventoryItem,
        {"stock": float(stock), "min_limit": float(min_limit), "cost_per_unit": float(cost_per_unit)},
        InventoryItem.ingredient_id == ingredient_id,
    )
    if diff != 0:
        log_change(backend, ingredient_id, diff, "Manual Edit (Admin)", admin_name)
    ing = backend.get(Ingredient, ingredient_id)
    return InventoryRow(
        ingredient_id=ingredient_id,
        name=ing.name if ing else "Unknown Item",
        unit=ing.unit if ing else "Unit",
        stock=float(stock),
        min_limit=float(min_limit),
        cost_per_unit=float(cost_per_unit),
    )


# --- sales ------------------------------------------------------------------

def consumption_for(backend: Backend, quantities: Dict[int, int]) -> Dict[int, float]:
    """ingredient_id -> amount used, from the recipes of the sold menu items."""
    if not quantities:
        return {}
    recipes = backend.select(Recipe, Recipe.menu_item_id.in_(list(quantities)))
    used: Dict[int, float] = defaultdict(float)
    for r in recipes:
        used[int(r.ingredient_id)] += float(r.amount or 0) * quantities.get(int(r.menu_item_id), 0)
    return dict(used)


def consume_for_order(backend: Backend, order_id: int, quantities: Dict[int, int]) -> Dict[int, float]:
    """
    Deduct recipe ingredients for a sale and log one 'Sale' entry per ingredient.
    Stock may go negative here: the sale already happened.
    """
    used = consumption_for(backend, quantities)
    if not used:
        return used
    stock = {int(i.ingredient_id): i for i in backend.select(InventoryItem, InventoryItem.ingredient_id.in_(list(used)))}
    for ing_id, amount in used.items():
        inv = stock.get(ing_id)
        if inv is None:
            log.warning("ingredient %s used by order %s has no inventory row", ing_id, order_id)
            continue
        backend.update(
            InventoryItem,
            {"stock": InventoryItem.stock - amount},
            InventoryItem.ingredient_id == ing_id,
        )
        log_change(backend, ing_id, -amount, f"Sale - Order #{order_id}", "POS")
    return used


# --- log --------------------------------------------------------------------

def classify_reason(reason: Optional[str]) -> str:
    r = (reason or "").lower()
    if "waste" in r:
        return "Waste"
    if "sale" in r or "order" in r:
        return "Sale"
    if "addition" in r or "restock" in r or "purchase" in r:
        return "Addition"
    if "adjustment" in r:
        return "Adjustment"
    return reason or "Other"


def matches_kind(entry: InventoryLog, kind: str) -> bool:
    reason = (entry.reason or "").lower()
    change = float(entry.change_amount or 0)
    if kind == "All":
        return True
    if kind == "Addition":
        return change > 0
    if kind == "Waste":
        return change < 0 and "waste" in reason
    if kind == "Sale":
        return change < 0 and "waste" not in reason
    if kind == "Adjustment":
        return "adjustment" in reason
    return False


def recent_log(backend: Backend, limit: int = 100) -> List[InventoryLog]:
    return backend.select(InventoryLog, order_by=[InventoryLog.created_at.desc()], limit=limit)


def filter_log(entries: Iterable[InventoryLog], kind: str = "All", search: str = "") -> List[InventoryLog]:
    s = (search or "").lower()
    out = []
    for e in entries:
        hit = (
            s in (e.reason or "").lower()
            or s in (e.admin_name or "").lower()
            or s in str(e.ingredient_id)
        )
        if hit and matches_kind(e, kind):
            out.append(e)
    return out
