# sahar/cart.py
from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .catalog import CatalogItem

SUGAR_LEVELS = ("Zero", "Medium", "Extra")


def customization_note(sugar: str = "Medium", note: str = "") -> str:
    """The POS modal's note: sugar level first, then the free text."""
    return f"(Sugar: {sugar}) {note}".strip()


@dataclass
class CartLine:
    menu_item_id: int
    name: str
    unit_price: float
    note: str = ""
    quantity: int = 1

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity

    def summary(self) -> str:
        return f"{self.quantity}x {self.name} {self.note}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Cart:
    lines: List[CartLine] = field(default_factory=list)
    # idempotency key of the checkout attempts on this cart, see checkout.py
    checkout_key: Optional[str] = None

    def add_line(self, item: CatalogItem, note: str = "") -> Optional[CartLine]:
        # unavailable items are ignored, the UI should not offer them
        if not item.is_available:
            return None
        line = CartLine(
            menu_item_id=item.id,
            name=item.name_ar,
            unit_price=item.effective_price,
            note=note or "",
        )
        self.lines.append(line)
        self.checkout_key = None
        return line

    def remove_line(self, index: int) -> Optional[CartLine]:
        if index < 0 or index >= len(self.lines):
            return None
        self.checkout_key = None
        return self.lines.pop(index)

    def compute_total(self) -> float:
        return sum(l.unit_price * l.quantity for l in self.lines)

    def summary_text(self, sep: str = ", ") -> str:
        return sep.join(l.summary() for l in self.lines)

    def ensure_checkout_key(self) -> str:
        if not self.checkout_key:
            self.checkout_key = uuid.uuid4().hex
        return self.checkout_key

    def clear(self) -> None:
        self.lines.clear()
        self.checkout_key = None

    def discard(self, sold: List[CartLine]) -> None:
        """Drop the lines of a finished sale, keeping any added since."""
        gone = {id(l) for l in sold}
        self.lines[:] = [l for l in self.lines if id(l) not in gone]
        self.checkout_key = None

    def is_empty(self) -> bool:
        return not self.lines

    def __len__(self) -> int:
        return len(self.lines)
