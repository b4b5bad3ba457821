# sahar/models.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON
from sqlmodel import SQLModel, Field


class OrderStatus(str, Enum):
    NEW = "New"
    PREPARING = "Preparing"
    COMPLETED = "Completed"
    READY = "Ready"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class OrderType(str, Enum):
    POS = "pos"
    WEBSITE = "website"


class MenuItem(SQLModel, table=True):
    __tablename__ = "menu"
    id: Optional[int] = Field(default=None, primary_key=True)
    name_ar: str
    name_en: Optional[str] = None
    category: str = "hot"
    price: float = 0
    discount_price: float = 0
    cost: float = 0                # unit cost, used for COGS
    is_available: bool = True
    is_trending: bool = False
    image: Optional[str] = None


class Customer(SQLModel, table=True):
    __tablename__ = "customers"
    id: Optional[int] = Field(default=None, primary_key=True)
    phone: str = Field(index=True, unique=True)
    name: str = "Unknown"
    first_visit: datetime = Field(default_factory=datetime.now)
    last_visit: datetime = Field(default_factory=datetime.now)
    total_orders: int = 0
    total_spent: float = 0


class Order(SQLModel, table=True):
    __tablename__ = "orders"
    order_id: Optional[int] = Field(default=None, primary_key=True)
    customer_name: str = "Walk-in"
    phone: str = "000000000"
    total_amount: float = 0
    order_summary: str = ""
    status: str = Field(default=OrderStatus.NEW.value, index=True)
    payment_method: str = "Cash"
    is_paid: bool = False
    order_type: str = Field(default=OrderType.POS.value, index=True)
    checkout_key: Optional[str] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=datetime.now, index=True)


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_items"
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.order_id", index=True)
    menu_item_id: int = Field(foreign_key="menu.id", index=True)
    quantity: int = 1
    price_at_time: float = 0
    created_at: datetime = Field(default_factory=datetime.now, index=True)


class Ingredient(SQLModel, table=True):
    __tablename__ = "ingredients"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    unit: str = "Unit"


class InventoryItem(SQLModel, table=True):
    __tablename__ = "inventory"
    ingredient_id: int = Field(foreign_key="ingredients.id", primary_key=True)
    stock: float = 0
    min_limit: float = 0
    cost_per_unit: float = 0


class InventoryLog(SQLModel, table=True):
    __tablename__ = "inventory_log"
    id: Optional[int] = Field(default=None, primary_key=True)
    ingredient_id: int = Field(foreign_key="ingredients.id", index=True)
    change_amount: float
    reason: str = ""
    admin_name: str = "Admin"
    created_at: datetime = Field(default_factory=datetime.now, index=True)


class Recipe(SQLModel, table=True):
    __tablename__ = "recipes"
    id: Optional[int] = Field(default=None, primary_key=True)
    menu_item_id: int = Field(foreign_key="menu.id", index=True)
    ingredient_id: int = Field(foreign_key="ingredients.id")
    amount: float          # ingredient units consumed per sold item


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"
    id: Optional[int] = Field(default=None, primary_key=True)
    amount: float
    description: str
    category: str = "Bills"
    recorded_by: str
    created_at: datetime = Field(default_factory=datetime.now, index=True)


class Supplier(SQLModel, table=True):
    __tablename__ = "suppliers"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    contact_person: Optional[str] = None
    phone: str
    address: Optional[str] = None


class UserAccount(SQLModel, table=True):
    __tablename__ = "users"
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    display_name: Optional[str] = None
    role: str = "user"             # "admin" | "manager" | "user"


class CheckoutDraft(SQLModel, table=True):
    __tablename__ = "checkout_drafts"
    key: str = Field(primary_key=True)
    # [{menu_item_id, name, quantity, unit_price, note}]
    lines: list[dict] = Field(default_factory=list, sa_type=JSON)
    total: float = 0
    phone: str = ""
    customer_name: str = ""
    payment_method: str = "Cash"
    terminal: str = Field(default="main", index=True)
    customer_applied: bool = False
    customer_id: Optional[int] = None
    stock_applied: bool = False
    order_id: Optional[int] = Field(default=None, index=True)
    status: str = Field(default="pending", index=True)   # pending | completed | abandoned | superseded
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
