# sahar/db.py
from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy import event
from sqlmodel import SQLModel, create_engine

# Models (import only: registers the tables on the metadata)
from . import models  # noqa: F401
from .backend import Backend
from .config import CONFIG
from .models import Ingredient, InventoryItem, MenuItem, Recipe, UserAccount

# ---- Engine ----
DB_URL = CONFIG.db_url
IS_SQLITE = DB_URL.startswith("sqlite")

connect_args = {"check_same_thread": False, "timeout": 30} if IS_SQLITE else {}

engine = create_engine(
    DB_URL,
    echo=False,
    connect_args=connect_args,
    pool_pre_ping=True,
    pool_recycle=1800,  # recycle stale connections
)

if IS_SQLITE:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragmas(dbapi_connection, connection_record):
        cur = dbapi_connection.cursor()
        # WAL: parallel reads while a register is writing
        cur.execute("PRAGMA journal_mode=WAL;")
        cur.execute("PRAGMA busy_timeout=30000;")
        cur.close()

backend = Backend(engine)


# ---- Schema ----
def create_db_and_tables(bind=None):
    SQLModel.metadata.create_all(bind or engine)


# ---- FastAPI dependency ----
def get_backend() -> Backend:
    return backend


BackendDep = Annotated[Backend, Depends(get_backend)]


# ---- Seed helpers ----
def seed_if_empty(be: Backend | None = None):
    """Minimal seed: a handful of drinks, their ingredients and an admin account."""
    from werkzeug.security import generate_password_hash

    be = be or backend

    if not be.first(MenuItem):
        be.insert(MenuItem, [
            {"name_ar": "لاتيه", "name_en": "Latte", "category": "hot", "price": 45, "cost": 18},
            {"name_ar": "كرواسون", "name_en": "Croissant", "category": "bakery", "price": 30, "cost": 12},
            {"name_ar": "شاي", "name_en": "Tea", "category": "hot", "price": 15, "cost": 4},
            {"name_ar": "موهيتو", "name_en": "Mojito", "category": "cold", "price": 55,
             "discount_price": 45, "cost": 20, "is_trending": True},
        ])

    if not be.first(Ingredient):
        milk, coffee, sugar = be.insert(Ingredient, [
            {"name": "Milk", "unit": "ml"},
            {"name": "Coffee beans", "unit": "g"},
            {"name": "Sugar", "unit": "g"},
        ])
        be.insert(InventoryItem, [
            {"ingredient_id": milk.id, "stock": 10000, "min_limit": 2000, "cost_per_unit": 0.03},
            {"ingredient_id": coffee.id, "stock": 3000, "min_limit": 500, "cost_per_unit": 0.6},
            {"ingredient_id": sugar.id, "stock": 5000, "min_limit": 1000, "cost_per_unit": 0.02},
        ])
        latte = be.first(MenuItem, MenuItem.name_en == "Latte")
        if latte:
            be.insert(Recipe, [
                {"menu_item_id": latte.id, "ingredient_id": milk.id, "amount": 200},
                {"menu_item_id": latte.id, "ingredient_id": coffee.id, "amount": 18},
            ])

    if not be.first(UserAccount):
        be.insert_one(UserAccount, {
            "email": "admin@sahar.local",
            "password_hash": generate_password_hash("admin123"),
            "display_name": "Admin",
            "role": "admin",
        })
