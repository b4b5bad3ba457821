# sahar/receipts/order_receipt.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..config import CONFIG, PrinterConfig
from .printing_service import print_text, render_jinja

log = logging.getLogger("sahar.printing")

ORDER_RECEIPT = (
    "{% if logo %}[[LOGO:{{ logo }}|w=384]]\n{% endif %}"
    "[[C]][[BIG]]SAHAR\n"
    "[[C]]{{ now.strftime('%d/%m/%Y %H:%M') }}\n"
    "{{ '-' * width }}\n"
    "[[B]]Order #{{ order.order_id }}\n"
    "{% if order.phone and order.phone != sentinel %}{{ order.customer_name }} - {{ order.phone }}\n"
    "{% else %}{{ order.customer_name }}\n{% endif %}"
    "{{ '-' * width }}\n"
    "{% for l in lines %}"
    "{{ '%2dx ' % l.quantity }}{{ l.name }}  {{ '%.2f' % (l.unit_price * l.quantity) }}\n"
    "{% if l.note %}   {{ l.note }}\n{% endif %}"
    "{% endfor %}"
    "{{ '-' * width }}\n"
    "[[B]]TOTAL {{ '%.2f' % order.total_amount }} LE\n"
    "Paid: {{ order.payment_method }}\n"
)


def render_order_receipt(order: Dict[str, Any], lines: List[Dict[str, Any]], cfg: PrinterConfig = CONFIG.printer,
                         now: Optional[datetime] = None) -> str:
    return render_jinja(ORDER_RECEIPT, {
        "now": now or datetime.now(),
        "order": order,
        "lines": lines,
        "width": cfg.width_chars,
        "logo": cfg.logo_path,
        "sentinel": CONFIG.pos.sentinel_phone,
    })


def print_order_receipt(order: Dict[str, Any], lines: List[Dict[str, Any]], cfg: PrinterConfig = CONFIG.printer) -> bool:
    """Print after checkout. A printer problem never undoes the sale: log and move on."""
    if not cfg.enabled:
        return False
    text = render_order_receipt(order, lines, cfg)
    try:
        print_text(cfg.host, cfg.port, text, do_cut=True)
        return True
    except Exception as e:
        log.warning("receipt for order #%s not printed: %s", order.get("order_id"), e)
        return False
