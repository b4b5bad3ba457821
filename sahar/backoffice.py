# sahar/backoffice.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlmodel import select

from .backend import Backend
from .models import Expense, Ingredient, MenuItem, Recipe, Supplier
from .validation import ValidationError, require, require_positive, sanitize

EXPENSE_CATEGORIES = ("Bills", "Salaries", "Supplies", "Rent", "Maintenance", "Other")


# --- expenses -----------------------------------------------------------------

def add_expense(backend: Backend, data: Dict[str, Any]) -> Expense:
    """Amount, description and the name of who records it are all required."""
    amount = require_positive(data.get("amount"), "Amount")
    description = require(data.get("description"), "Description")
    recorded_by = require(data.get("recorded_by"), "Name")
    category = data.get("category") or "Bills"
    if category not in EXPENSE_CATEGORIES:
        raise ValidationError(f"Unknown expense category {category}")
    return backend.insert_one(Expense, {
        "amount": amount,
        "description": description,
        "category": category,
        "recorded_by": recorded_by,
    })


def delete_expense(backend: Backend, expense_id: int) -> int:
    return backend.delete(Expense, Expense.id == expense_id)


# --- suppliers ----------------------------------------------------------------

def _supplier_values(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": require(data.get("name"), "Name"),
        "phone": require(data.get("phone"), "Phone"),
        "contact_person": sanitize(data.get("contact_person")) or None,
        "address": sanitize(data.get("address")) or None,
    }


def list_suppliers(backend: Backend, search: str = "") -> List[Supplier]:
    rows = backend.select(Supplier, order_by=[Supplier.name])
    s = (search or "").lower()
    if not s:
        return rows
    return [
        r for r in rows
        if s in (r.name or "").lower() or s in (r.contact_person or "").lower() or s in (r.phone or "")
    ]


def save_supplier(backend: Backend, data: Dict[str, Any], supplier_id: Optional[int] = None) -> Supplier:
    values = _supplier_values(data)
    if supplier_id is None:
        return backend.insert_one(Supplier, values)
    if not backend.update(Supplier, values, Supplier.id == supplier_id):
        raise ValidationError(f"Supplier {supplier_id} not found")
    return backend.get(Supplier, supplier_id)


def delete_supplier(backend: Backend, supplier_id: int) -> int:
    return backend.delete(Supplier, Supplier.id == supplier_id)


# --- recipes ------------------------------------------------------------------

@dataclass
class RecipeRow:
    id: int
    menu_item_id: int
    menu_name: Optional[str]
    ingredient_id: int
    ingredient_name: Optional[str]
    unit: Optional[str]
    amount: float


def list_recipes(backend: Backend, search: str = "") -> List[RecipeRow]:
    rows = backend.query(
        select(Recipe, MenuItem, Ingredient)
        .join(MenuItem, MenuItem.id == Recipe.menu_item_id, isouter=True)
        .join(Ingredient, Ingredient.id == Recipe.ingredient_id, isouter=True)
        .order_by(Recipe.menu_item_id),
        label="recipes",
    )
    out = [
        RecipeRow(
            id=int(r.id),
            menu_item_id=int(r.menu_item_id),
            menu_name=m.name_ar if m else None,
            ingredient_id=int(r.ingredient_id),
            ingredient_name=i.name if i else None,
            unit=i.unit if i else None,
            amount=float(r.amount or 0),
        )
        for r, m, i in rows
    ]
    s = (search or "").lower()
    if s:
        out = [r for r in out if s in (r.menu_name or "").lower() or s in (r.ingredient_name or "").lower()]
    return out


def save_recipe(backend: Backend, data: Dict[str, Any], recipe_id: Optional[int] = None) -> Recipe:
    if not data.get("menu_item_id") or not data.get("ingredient_id") or not data.get("amount"):
        raise ValidationError("Please fill all fields")
    values = {
        "menu_item_id": int(data["menu_item_id"]),
        "ingredient_id": int(data["ingredient_id"]),
        "amount": require_positive(data["amount"], "Amount"),
    }
    if recipe_id is None:
        return backend.insert_one(Recipe, values)
    if not backend.update(Recipe, values, Recipe.id == recipe_id):
        raise ValidationError(f"Recipe {recipe_id} not found")
    return backend.get(Recipe, recipe_id)


def delete_recipe(backend: Backend, recipe_id: int) -> int:
    return backend.delete(Recipe, Recipe.id == recipe_id)
