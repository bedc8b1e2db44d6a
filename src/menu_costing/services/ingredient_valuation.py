"""
Ingredient Valuation - waste-adjusted price derivation.

``net_price = base_price * (1 + waste_percent)`` where waste_percent is a
fraction (0.10 for 10%).

The net price exists in two phases:
1. a client-side preview computed from the form values, and
2. the authoritative value recalculated by the database layer on save.
Once the authoritative value is known it always wins; a preview is never
stored as final state.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from menu_costing.utils.formatting import to_decimal
from menu_costing.utils.validators import validate_ingredient_data

_MONTH_TAGS = (
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
)


def compute_net_price(base_price: Any, waste_percent: Any) -> Optional[Decimal]:
    """
    Waste-adjusted unit price.

    Args:
        base_price: Purchase price per unit
        waste_percent: Loss as a fraction (0.10 = 10%)

    Returns:
        base_price * (1 + waste_percent), or None if either input is missing
        or not numeric ("not yet computable")

    Example:
        >>> compute_net_price("2.00", "0.10")
        Decimal('2.2000')
    """
    base = to_decimal(base_price)
    waste = to_decimal(waste_percent)
    if base is None or waste is None:
        return None
    return base * (1 + waste)


def validate_ingredient(data: dict) -> Dict[str, str]:
    """
    Validate ingredient form data.

    Name and unit are required and all numeric fields must be >= 0. The
    result blocks persistence when non-empty but nothing is raised.

    Returns:
        Map of field name to error message
    """
    return validate_ingredient_data(data)


@dataclass(frozen=True)
class NetPriceValue:
    """
    A net price together with where it came from.

    Attributes:
        amount: The price, or None when not yet computable
        authoritative: True when recalculated by the database layer after save
    """

    amount: Optional[Decimal]
    authoritative: bool = False

    @property
    def is_computable(self) -> bool:
        return self.amount is not None


def preview_net_price(base_price: Any, waste_percent: Any) -> NetPriceValue:
    """Provisional net price for display while the user edits a form."""
    return NetPriceValue(compute_net_price(base_price, waste_percent), authoritative=False)


def authoritative_net_price(ingredient: Any) -> NetPriceValue:
    """
    Net price as stored after a save.

    Args:
        ingredient: Persisted ingredient (ORM row or dict with ``net_price``)
    """
    if isinstance(ingredient, dict):
        value = ingredient.get("net_price")
    else:
        value = getattr(ingredient, "net_price", None)
    return NetPriceValue(to_decimal(value), authoritative=True)


def effective_net_price(
    preview: NetPriceValue, authoritative: Optional[NetPriceValue] = None
) -> NetPriceValue:
    """
    Pick the value to show: the authoritative one whenever it is available.

    Args:
        preview: Client-side preview
        authoritative: Value read back after save, if any
    """
    if authoritative is not None and authoritative.authoritative:
        return authoritative
    return preview


def is_low_stock(ingredient: Any) -> bool:
    """True when stock on hand is below the ingredient's minimum."""
    stock = to_decimal(getattr(ingredient, "stock", None), Decimal("0"))
    minimum = to_decimal(getattr(ingredient, "stock_minimum", None), Decimal("0"))
    return stock < minimum


def is_in_season(ingredient: Any, when: Union[date, int]) -> bool:
    """
    Check an ingredient's season tags against a month.

    An ingredient without season tags is available all year. Tags are
    matched on the first three letters of the English month name, or the
    month number.

    Args:
        ingredient: Snapshot (or anything with a ``season`` tuple)
        when: A date or a month number (1-12)
    """
    month = when.month if isinstance(when, date) else int(when)
    season = getattr(ingredient, "season", ()) or ()
    if not season:
        return True
    wanted = {_MONTH_TAGS[month - 1], str(month)}
    return any(tag.strip().lower()[:3] in wanted or tag.strip() in wanted for tag in season)
