import os

# before any sahar import: CONFIG is read at import time
os.environ.setdefault("SAHAR_DB_URL", "sqlite://")
os.environ.setdefault("SAHAR_SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine
from werkzeug.security import generate_password_hash

from sahar.auth import SessionRegistry, get_registry
from sahar.backend import Backend, BackendError
from sahar.catalog import CatalogItem
from sahar.db import get_backend
from sahar.main import app
from sahar.models import Ingredient, InventoryItem, MenuItem, Recipe, UserAccount
from sahar.views_pos import TerminalRegistry, get_terminals


class FlakyBackend(Backend):
    """Backend whose writes on chosen tables fail, and which counts writes."""

    def __init__(self, engine) -> None:
        super().__init__(engine)
        self.fail_on = set()  # {("insert", "order_items"), ...}
        self.writes = []

    def _check(self, op, model):
        table = model.__tablename__
        if (op, table) in self.fail_on:
            raise BackendError(f"{op} {table} failed: simulated outage")
        self.writes.append((op, table))

    def insert(self, model, rows):
        self._check("insert", model)
        return super().insert(model, rows)

    def update(self, model, values, *where):
        self._check("update", model)
        return super().update(model, values, *where)

    def delete(self, model, *where):
        self._check("delete", model)
        return super().delete(model, *where)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def backend(engine):
    return FlakyBackend(engine)


@pytest.fixture
def menu(backend):
    """name_en -> CatalogItem"""
    rows = backend.insert(MenuItem, [
        {"name_ar": "Latte", "name_en": "Latte", "category": "hot", "price": 45, "cost": 18},
        {"name_ar": "Croissant", "name_en": "Croissant", "category": "bakery", "price": 30, "cost": 12},
        {"name_ar": "Tea", "name_en": "Tea", "category": "hot", "price": 20, "cost": 4},
        {"name_ar": "Mojito", "name_en": "Mojito", "category": "cold", "price": 55, "discount_price": 45,
         "cost": 20, "is_trending": True},
        {"name_ar": "Soup", "name_en": "Soup", "category": "kitchen", "price": 60, "is_available": False},
    ])
    backend.writes.clear()
    return {r.name_en: CatalogItem.from_row(r) for r in rows}


@pytest.fixture
def stock(backend, menu):
    """Milk/coffee with inventory rows; a Latte uses 200 milk + 18 coffee."""
    milk, coffee = backend.insert(Ingredient, [
        {"name": "Milk", "unit": "ml"},
        {"name": "Coffee beans", "unit": "g"},
    ])
    backend.insert(InventoryItem, [
        {"ingredient_id": milk.id, "stock": 1000, "min_limit": 200, "cost_per_unit": 0.03},
        {"ingredient_id": coffee.id, "stock": 100, "min_limit": 100, "cost_per_unit": 0.6},
    ])
    backend.insert(Recipe, [
        {"menu_item_id": menu["Latte"].id, "ingredient_id": milk.id, "amount": 200},
        {"menu_item_id": menu["Latte"].id, "ingredient_id": coffee.id, "amount": 18},
    ])
    backend.writes.clear()
    return {"milk": milk.id, "coffee": coffee.id}


@pytest.fixture
def users(backend):
    backend.insert(UserAccount, [
        {"email": "admin@sahar.local", "password_hash": generate_password_hash("admin123"),
         "display_name": "Admin", "role": "admin"},
        {"email": "cashier@sahar.local", "password_hash": generate_password_hash("cashier123"),
         "display_name": "Cashier", "role": "user"},
    ])


@pytest.fixture
def registry():
    return SessionRegistry("test-secret")


@pytest.fixture
def client(backend, registry):
    # no `with`: the startup hook would create and seed the configured database
    regs = TerminalRegistry()
    app.dependency_overrides[get_backend] = lambda: backend
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_terminals] = lambda: regs
    yield TestClient(app)
    app.dependency_overrides.clear()


def _login(client, email, password):
    r = client.post("/auth/login", data={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['token']}"}


@pytest.fixture
def admin_headers(client, users):
    return _login(client, "admin@sahar.local", "admin123")


@pytest.fixture
def cashier_headers(client, users):
    return _login(client, "cashier@sahar.local", "cashier123")
