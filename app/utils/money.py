"""Decimal helpers for monetary amounts."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_decimal(value: object) -> Decimal:
    """Coerce a stored amount to a two-place Decimal; junk becomes zero."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    if not parsed.is_finite():
        return ZERO
    return parsed.quantize(CENT, rounding=ROUND_HALF_UP)


def as_amount(value: Decimal) -> str:
    """Serialize a Decimal for a numeric column."""
    return str(value.quantize(CENT, rounding=ROUND_HALF_UP))
