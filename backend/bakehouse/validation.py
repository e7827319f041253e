from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any

from .services.errors import InvalidQuantityError


def _coerce_number(value: Any, field: str, *, integer: bool):
    # bool is an int subclass; a checkbox value is never a quantity
    if isinstance(value, bool) or value is None:
        raise InvalidQuantityError(f"{field} must be a number")

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise InvalidQuantityError(f"{field} must be a finite number")
        if integer:
            if not value.is_integer():
                raise InvalidQuantityError(f"{field} must be a whole number of pieces")
            return int(value)
        return value

    if isinstance(value, Decimal):
        if not value.is_finite():
            raise InvalidQuantityError(f"{field} must be a finite number")
        if integer:
            if value != value.to_integral_value():
                raise InvalidQuantityError(f"{field} must be a whole number of pieces")
            return int(value)
        return float(value)

    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidQuantityError(f"{field} must be a number")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise InvalidQuantityError(f"{field} must be a plain number (scientific notation not allowed)")
        try:
            parsed = Decimal(stripped)
        except InvalidOperation:
            raise InvalidQuantityError(f"{field} must be a number")
        return _coerce_number(parsed, field, integer=integer)

    raise InvalidQuantityError(f"{field} must be a number")


def require_quantity(
    value: Any,
    field: str = "quantity",
    *,
    integer: bool = False,
    allow_zero: bool = True,
):
    """
    Normalize a user-supplied amount and enforce the non-negative rule.

    integer=True is used for piece counts and package units; raw-material
    quantities and money amounts are continuous.
    """
    number = _coerce_number(value, field, integer=integer)
    if number < 0:
        raise InvalidQuantityError(f"{field} must be >= 0")
    if not allow_zero and number == 0:
        raise InvalidQuantityError(f"{field} must be > 0")
    return number


def require_percentage(value: Any, field: str) -> float:
    """Percentages may be zero but never negative."""
    return float(require_quantity(value, field))
