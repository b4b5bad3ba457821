# sahar/validation.py
"""Input checks run before any backend call."""
from __future__ import annotations

import re
from typing import Any

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PRICE_RE = re.compile(r"^\d+(\.\d{1,2})?$")
TAG_RE = re.compile(r"<[^>]*>")
CTRL_RE = re.compile(r"[\x00-\x1F\x7F]")


class ValidationError(ValueError):
    pass


def is_required(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def is_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ""))


def is_positive(value: Any) -> bool:
    try:
        return float(value) > 0
    except (TypeError, ValueError):
        return False


def is_price(value: Any) -> bool:
    return bool(PRICE_RE.match(str(value)))


def sanitize(value: Any) -> Any:
    """Strip HTML tags and control characters from free text."""
    if not isinstance(value, str):
        return value
    return CTRL_RE.sub("", TAG_RE.sub("", value)).strip()


def require(value: Any, label: str) -> Any:
    if not is_required(value):
        raise ValidationError(f"{label} is required")
    return sanitize(value)


def require_positive(value: Any, label: str) -> float:
    if not is_required(value) or not is_positive(value):
        raise ValidationError(f"{label} must be a positive number")
    return float(value)


def optional_price(value: Any, label: str) -> float:
    """Empty → 0; otherwise a non-negative amount with up to 2 decimals."""
    if value in (None, ""):
        return 0.0
    if not is_price(value):
        raise ValidationError(f"{label} is not a valid price")
    return float(value)
