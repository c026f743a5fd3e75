"""
Exact decimal helpers for monetary amounts and stock quantities.

Amounts cross the JSON boundary as decimal strings and live as Decimal
everywhere else. JSON floats are converted through their shortest repr, never
through binary arithmetic, so rounding noise cannot reach a balance.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

# Columns are Numeric(12, 2)
DECIMAL_PLACES = 2
QUANT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(value: Decimal) -> Decimal:
    """Round to storage precision (half-up)."""
    return value.quantize(QUANT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Parse an amount into a Decimal at storage precision.

    Accepts Decimal, int, float and numeric strings ("10", "10.5", "1,234.50").
    Raises ValueError with the field name on anything else.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field} must be a decimal number")
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, int):
        parsed = Decimal(value)
    elif isinstance(value, float):
        parsed = Decimal(repr(value))
    elif isinstance(value, str):
        text = value.strip().replace(",", "").replace("$", "")
        if not text:
            raise ValueError(f"{field} must be a decimal number")
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"{field} must be a decimal number")
    else:
        raise ValueError(f"{field} must be a decimal number")

    if not parsed.is_finite():
        raise ValueError(f"{field} must be a finite number")
    return quantize(parsed)


def money_str(value: Decimal | None) -> str | None:
    """Serialize an amount as a fixed two-place decimal string."""
    if value is None:
        return None
    return str(quantize(Decimal(value)))


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return quantize(quantity * unit_price)


def percent_of(amount: Decimal, rate: Decimal) -> Decimal:
    """amount x rate%, rounded to cents."""
    return quantize(amount * rate / Decimal(100))
