# sahar/views_admin.py
from __future__ import annotations

from dataclasses import asdict
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

from .auth import ManagerDep
from .backoffice import (
    EXPENSE_CATEGORIES,
    add_expense,
    delete_expense,
    delete_recipe,
    delete_supplier,
    list_recipes,
    list_suppliers,
    save_recipe,
    save_supplier,
)
from .catalog import create_item, delete_item, list_catalog, set_availability, update_item
from .checkout import reconcile_drafts
from .customers import CustomerDirectory, customer_tier
from .db import BackendDep
from .inventory import (
    LOG_KINDS,
    classify_reason,
    filter_inventory,
    filter_log,
    load_inventory,
    low_stock,
    quick_update_stock,
    recent_log,
    save_changes,
)
from .models import Expense
from .reports import FINANCE_RANGES, finance_start
from .storage import FileStore, store

router = APIRouter(prefix="/admin", tags=["admin"])


def get_store() -> FileStore:
    return store


StoreDep = Annotated[FileStore, Depends(get_store)]


def _actor(ctx) -> str:
    return ctx.display_name or ctx.email


# ---------------------------------------------------------------------------
# Menu
# ---------------------------------------------------------------------------

@router.get("/menu")
def admin_menu(backend: BackendDep, ctx: ManagerDep):
    return [i.to_dict() for i in list_catalog(backend)]


@router.post("/menu")
async def admin_menu_create(
    backend: BackendDep,
    files: StoreDep,
    ctx: ManagerDep,
    name_ar: str = Form(...),
    price: str = Form(...),
    name_en: str = Form(""),
    category: str = Form("hot"),
    discount_price: str = Form("0"),
    cost: str = Form("0"),
    is_trending: bool = Form(False),
    image: Optional[UploadFile] = File(None),
):
    data = {
        "name_ar": name_ar,
        "name_en": name_en,
        "category": category,
        "price": price,
        "discount_price": discount_price,
        "cost": cost,
        "is_trending": is_trending,
    }
    upload = None
    if image is not None and image.filename:
        upload = (image.filename, await image.read())
    item = await run_in_threadpool(create_item, backend, data, upload, files)
    return {"ok": True, "item": item.to_dict()}


@router.post("/menu/{item_id}")
def admin_menu_update(
    item_id: int,
    backend: BackendDep,
    ctx: ManagerDep,
    name_ar: Optional[str] = Form(None),
    name_en: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    discount_price: Optional[str] = Form(None),
    cost: Optional[str] = Form(None),
    is_trending: Optional[bool] = Form(None),
):
    changes = {
        k: v for k, v in {
            "name_ar": name_ar,
            "name_en": name_en,
            "category": category,
            "price": price,
            "discount_price": discount_price,
            "cost": cost,
            "is_trending": is_trending,
        }.items() if v is not None
    }
    if not update_item(backend, item_id, changes):
        raise HTTPException(status_code=404, detail="Menu item not found")
    return {"ok": True}


@router.post("/menu/{item_id}/availability")
def admin_menu_availability(item_id: int, backend: BackendDep, ctx: ManagerDep, available: bool = Form(...)):
    if not set_availability(backend, item_id, available):
        raise HTTPException(status_code=404, detail="Menu item not found")
    return {"ok": True, "is_available": available}


@router.delete("/menu/{item_id}")
def admin_menu_delete(item_id: int, backend: BackendDep, files: StoreDep, ctx: ManagerDep):
    if not delete_item(backend, item_id, files):
        raise HTTPException(status_code=404, detail="Menu item not found")
    return {"ok": True}


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

@router.get("/inventory")
def admin_inventory(backend: BackendDep, ctx: ManagerDep, search: str = "", only_low: bool = False):
    rows = load_inventory(backend)
    return {
        "items": [r.to_dict() for r in filter_inventory(rows, search, only_low)],
        "low_count": len(low_stock(rows)),
    }


@router.post("/inventory/{ingredient_id}/quick")
def admin_inventory_quick(ingredient_id: int, backend: BackendDep, ctx: ManagerDep, change: float = Form(...)):
    stock = quick_update_stock(backend, ingredient_id, change, _actor(ctx))
    return {"ok": True, "ingredient_id": ingredient_id, "stock": stock}


@router.post("/inventory/{ingredient_id}")
def admin_inventory_save(
    ingredient_id: int,
    backend: BackendDep,
    ctx: ManagerDep,
    stock: float = Form(...),
    min_limit: float = Form(...),
    cost_per_unit: float = Form(0),
):
    row = save_changes(backend, ingredient_id, stock, min_limit, cost_per_unit, _actor(ctx))
    return {"ok": True, "item": row.to_dict()}


@router.get("/inventory/log")
def admin_inventory_log(backend: BackendDep, ctx: ManagerDep, kind: str = "All", search: str = ""):
    if kind not in LOG_KINDS:
        raise HTTPException(status_code=400, detail=f"Unknown log kind {kind}")
    entries = filter_log(recent_log(backend), kind, search)
    return [dict(e.model_dump(mode="json"), kind=classify_reason(e.reason)) for e in entries]


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------

@router.get("/expenses")
def admin_expenses(backend: BackendDep, ctx: ManagerDep, time_range: str = "all"):
    where = []
    if time_range != "all":
        if time_range not in FINANCE_RANGES:
            raise HTTPException(status_code=400, detail=f"Unknown range {time_range}")
        where.append(Expense.created_at >= finance_start(time_range))
    rows = backend.select(Expense, *where, order_by=[Expense.created_at.desc()])
    return {
        "categories": list(EXPENSE_CATEGORIES),
        "expenses": [e.model_dump(mode="json") for e in rows],
    }


@router.post("/expenses")
def admin_expense_add(
    backend: BackendDep,
    ctx: ManagerDep,
    amount: str = Form(""),
    description: str = Form(""),
    category: str = Form("Bills"),
    recorded_by: str = Form(""),
):
    e = add_expense(backend, {
        "amount": amount,
        "description": description,
        "category": category,
        "recorded_by": recorded_by or _actor(ctx),
    })
    return {"ok": True, "expense": e.model_dump(mode="json")}


@router.delete("/expenses/{expense_id}")
def admin_expense_delete(expense_id: int, backend: BackendDep, ctx: ManagerDep):
    if not delete_expense(backend, expense_id):
        raise HTTPException(status_code=404, detail="Expense not found")
    return {"ok": True}


# ---------------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------------

@router.get("/suppliers")
def admin_suppliers(backend: BackendDep, ctx: ManagerDep, search: str = ""):
    return [s.model_dump(mode="json") for s in list_suppliers(backend, search)]


@router.post("/suppliers")
def admin_supplier_save(
    backend: BackendDep,
    ctx: ManagerDep,
    name: str = Form(""),
    phone: str = Form(""),
    contact_person: str = Form(""),
    address: str = Form(""),
    supplier_id: Optional[int] = Form(None),
):
    s = save_supplier(
        backend,
        {"name": name, "phone": phone, "contact_person": contact_person, "address": address},
        supplier_id,
    )
    return {"ok": True, "supplier": s.model_dump(mode="json")}


@router.delete("/suppliers/{supplier_id}")
def admin_supplier_delete(supplier_id: int, backend: BackendDep, ctx: ManagerDep):
    if not delete_supplier(backend, supplier_id):
        raise HTTPException(status_code=404, detail="Supplier not found")
    return {"ok": True}


# ---------------------------------------------------------------------------
# Recipes
# ---------------------------------------------------------------------------

@router.get("/recipes")
def admin_recipes(backend: BackendDep, ctx: ManagerDep, search: str = ""):
    return [asdict(r) for r in list_recipes(backend, search)]


@router.post("/recipes")
def admin_recipe_save(
    backend: BackendDep,
    ctx: ManagerDep,
    menu_item_id: Optional[int] = Form(None),
    ingredient_id: Optional[int] = Form(None),
    amount: Optional[str] = Form(None),
    recipe_id: Optional[int] = Form(None),
):
    r = save_recipe(
        backend,
        {"menu_item_id": menu_item_id, "ingredient_id": ingredient_id, "amount": amount},
        recipe_id,
    )
    return {"ok": True, "recipe": r.model_dump(mode="json")}


@router.delete("/recipes/{recipe_id}")
def admin_recipe_delete(recipe_id: int, backend: BackendDep, ctx: ManagerDep):
    if not delete_recipe(backend, recipe_id):
        raise HTTPException(status_code=404, detail="Recipe not found")
    return {"ok": True}


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

@router.get("/customers")
def admin_customers(backend: BackendDep, ctx: ManagerDep, search: str = ""):
    return [
        dict(c.model_dump(mode="json"), tier=customer_tier(c))
        for c in CustomerDirectory(backend).list_customers(search)
    ]


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------

@router.post("/reconcile")
def admin_reconcile(backend: BackendDep, ctx: ManagerDep):
    """Finish checkouts that stopped half way (order saved, items missing)."""
    return reconcile_drafts(backend).to_dict()
