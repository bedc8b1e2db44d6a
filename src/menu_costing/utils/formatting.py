"""
Formatting boundary for money, percentages and waste rates.

All costing math runs on unrounded Decimals. Rounding happens only here,
when figures leave the engine:
- currency rounds to 2 decimals (half up)
- percentages round to 2 decimals (1 for display when requested)
- waste percent converts between the stored fraction (0.10) and the whole
  percentage (10) some input forms use
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from .constants import CURRENCY_PLACES, PERCENT_PLACES


def to_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Convert a number-like value to Decimal.

    Floats go through str() so 2.2 becomes Decimal("2.2") rather than its
    binary expansion.

    Args:
        value: int, float, str or Decimal
        default: Returned when value is None, empty, not numeric or not
            finite (NaN, Infinity)

    Returns:
        Decimal value or default
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, str) and not value.strip():
        return default
    if isinstance(value, Decimal):
        number = value
    else:
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return default
    if not number.is_finite():
        return default
    return number


def round_currency(amount: Decimal) -> Decimal:
    """Round a money amount to 2 decimal places."""
    return Decimal(amount).quantize(CURRENCY_PLACES, rounding=ROUND_HALF_UP)


def round_percent(value: Decimal, places: int = 2) -> Decimal:
    """Round a percentage (already multiplied by 100) to 1 or 2 places."""
    quantum = PERCENT_PLACES if places == 2 else Decimal("0.1")
    return Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def format_cost(amount: Optional[Decimal], currency_symbol: str = "€") -> str:
    """
    Format a cost for display.

    Returns:
        Formatted string (e.g., "12.50€"), or "-" when amount is None
    """
    if amount is None:
        return "-"
    return f"{round_currency(amount)}{currency_symbol}"


def format_percent(value: Optional[Decimal], places: int = 1) -> str:
    """Format a percentage for display (e.g., "91.2%")."""
    if value is None:
        return "-"
    return f"{round_percent(value, places)}%"


def waste_from_whole_percent(value: Any) -> Optional[Decimal]:
    """
    Convert a whole-number waste percentage (10) to the stored fraction (0.10).

    Returns:
        Fraction, or None if value is empty or not numeric
    """
    number = to_decimal(value)
    if number is None:
        return None
    return number / Decimal("100")


def waste_to_whole_percent(fraction: Any) -> Optional[Decimal]:
    """Convert a stored waste fraction (0.10) to a whole percentage (10)."""
    number = to_decimal(fraction)
    if number is None:
        return None
    return number * Decimal("100")
