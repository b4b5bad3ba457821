# sahar/customers.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from .backend import Backend
from .config import CONFIG, PosConfig
from .models import Customer

log = logging.getLogger("sahar.customers")


class CustomerDirectory:
    def __init__(self, backend: Backend, cfg: PosConfig = CONFIG.pos) -> None:
        self.backend = backend
        self.cfg = cfg

    def is_lookup_key(self, phone: str) -> bool:
        return len(phone or "") >= self.cfg.min_phone_length

    def lookup_by_phone(self, phone: str) -> Optional[Customer]:
        """Exact match on the phone as typed. Short input is free text: no query."""
        if not self.is_lookup_key(phone):
            return None
        return self.backend.first(Customer, Customer.phone == phone)

    def upsert_on_checkout(
        self,
        customer: Optional[Customer],
        name: str,
        phone: str,
        order_total: float,
        now: Optional[datetime] = None,
    ) -> Optional[Customer]:
        """
        Existing customer → +1 order, +total spent, last visit refreshed.
        Unknown but identifiable phone → new customer with this first order.
        Short phone → walk-in, nothing written.
        """
        now = now or datetime.now()
        # typed phone may already belong to someone the register did not look up
        customer = customer or self.lookup_by_phone(phone)
        if customer is not None:
            self.backend.update(
                Customer,
                {
                    "last_visit": now,
                    "total_orders": Customer.total_orders + 1,
                    "total_spent": Customer.total_spent + order_total,
                },
                Customer.id == customer.id,
            )
            return self.backend.get(Customer, customer.id)

        if not self.is_lookup_key(phone):
            return None

        return self.backend.insert_one(Customer, {
            "phone": phone,
            "name": name or self.cfg.unknown_name,
            "first_visit": now,
            "last_visit": now,
            "total_orders": 1,
            "total_spent": order_total,
        })

    def take_back(self, customer_id: int, order_total: float) -> int:
        """Undo one checkout's counters for a sale that never got its order."""
        return self.backend.update(
            Customer,
            {
                "total_orders": Customer.total_orders - 1,
                "total_spent": Customer.total_spent - order_total,
            },
            Customer.id == customer_id,
        )

    def list_customers(self, search: str = "") -> List[Customer]:
        rows = self.backend.select(Customer, order_by=[Customer.total_spent.desc()])
        s = (search or "").strip()
        if not s:
            return rows
        return [c for c in rows if s.lower() in (c.name or "").lower() or s in (c.phone or "")]


def customer_tier(c: Customer, vip_threshold: float = CONFIG.reports.vip_threshold) -> str:
    return "VIP" if float(c.total_spent or 0) > vip_threshold else "Regular"
