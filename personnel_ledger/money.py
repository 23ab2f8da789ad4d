"""Decimal helpers for hours and money.

Both are carried as two-place Decimals and stored as TEXT so that
SQLite never rounds them through a float.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Decimal | float | int | str) -> Decimal:
    """Two-place Decimal, rounding half up ("10.005" -> 10.01)."""
    if isinstance(value, Decimal):
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_text(value: Decimal | None) -> str | None:
    """Storage form of a two-place amount."""
    return None if value is None else f"{to_decimal(value):.2f}"
