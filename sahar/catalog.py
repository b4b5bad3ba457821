# sahar/catalog.py
from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .backend import Backend
from .models import MenuItem
from .storage import ALLOWED_IMAGE_EXTS, FileStore
from .validation import ValidationError, optional_price, require


@dataclass(frozen=True)
class CatalogItem:
    id: int
    name_ar: str
    name_en: Optional[str]
    category: str
    price: float
    discount_price: float
    cost: float
    is_available: bool
    is_trending: bool
    image: Optional[str]

    @property
    def effective_price(self) -> float:
        return effective_price(self.price, self.discount_price)

    @classmethod
    def from_row(cls, m: MenuItem) -> "CatalogItem":
        return cls(
            id=int(m.id),
            name_ar=m.name_ar,
            name_en=m.name_en,
            category=m.category or "",
            price=float(m.price or 0),
            discount_price=float(m.discount_price or 0),
            cost=float(m.cost or 0),
            is_available=bool(m.is_available),
            is_trending=bool(m.is_trending),
            image=m.image,
        )

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["effective_price"] = self.effective_price
        return d


def effective_price(price: float, discount_price: Optional[float]) -> float:
    if discount_price and 0 < discount_price < price:
        return float(discount_price)
    return float(price)


def list_catalog(backend: Backend) -> List[CatalogItem]:
    # unavailable items are listed too: the POS greys them out
    rows = backend.select(MenuItem, order_by=[MenuItem.name_ar])
    return [CatalogItem.from_row(m) for m in rows]


def get_item(backend: Backend, item_id: int) -> Optional[CatalogItem]:
    m = backend.get(MenuItem, item_id)
    return CatalogItem.from_row(m) if m else None


def filter_catalog(items: List[CatalogItem], category: str = "All", search: str = "") -> List[CatalogItem]:
    s = (search or "").strip()
    out = []
    for it in items:
        if category and category != "All" and it.category != category:
            continue
        if s and s not in it.name_ar and s.lower() not in (it.name_en or "").lower():
            continue
        out.append(it)
    return out


def categories(items: List[CatalogItem]) -> List[str]:
    seen: List[str] = []
    for it in items:
        if it.category not in seen:
            seen.append(it.category)
    return ["All", *seen]


# --- menu admin -------------------------------------------------------------

EDITABLE_FIELDS = {
    "name_ar", "name_en", "category", "price", "discount_price",
    "cost", "is_available", "is_trending",
}


def create_item(
    backend: Backend,
    data: Dict[str, Any],
    image: Optional[tuple[str, bytes]] = None,
    store: Optional[FileStore] = None,
) -> CatalogItem:
    """Add a menu item; uploads the image first when one is given."""
    name_ar = require(data.get("name_ar"), "Name")
    if data.get("price") in (None, ""):
        raise ValidationError("Price is required")
    price = optional_price(data.get("price"), "Price")

    image_url = None
    if image is not None:
        if store is None:
            raise ValueError("image given without a file store")
        filename, payload = image
        ext = ("." + filename.rsplit(".", 1)[-1].lower()) if "." in filename else ""
        if ext not in ALLOWED_IMAGE_EXTS:
            raise ValidationError(f"Unsupported image type {ext or '(none)'}")
        name = store.upload("menu_images", f"new_{int(time.time() * 1000)}{ext}", payload)
        image_url = store.public_url("menu_images", name)

    row: Dict[str, Any] = {
        "name_ar": name_ar,
        "name_en": (data.get("name_en") or None),
        "category": data.get("category") or "hot",
        "price": price,
        "discount_price": optional_price(data.get("discount_price"), "Discount price"),
        "cost": optional_price(data.get("cost"), "Cost"),
        "is_available": bool(data.get("is_available", True)),
        "is_trending": bool(data.get("is_trending", False)),
        "image": image_url,
    }
    if data.get("id"):
        row["id"] = int(data["id"])
    return CatalogItem.from_row(backend.insert_one(MenuItem, row))


def update_item(backend: Backend, item_id: int, changes: Dict[str, Any]) -> int:
    values = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
    if not values:
        raise ValidationError("Nothing to update")
    for k in ("price", "discount_price", "cost"):
        if k in values:
            values[k] = optional_price(values[k], k)
    return backend.update(MenuItem, values, MenuItem.id == item_id)


def set_availability(backend: Backend, item_id: int, available: bool) -> int:
    return backend.update(MenuItem, {"is_available": bool(available)}, MenuItem.id == item_id)


def delete_item(backend: Backend, item_id: int, store: Optional[FileStore] = None) -> int:
    m = backend.get(MenuItem, item_id)
    if m is None:
        return 0
    n = backend.delete(MenuItem, MenuItem.id == item_id)
    # only images uploaded through the store are ours to remove
    if n and store is not None and m.image and m.image.startswith(store.public_url("menu_images", "")):
        store.remove("menu_images", m.image.rsplit("/", 1)[-1])
    return n
