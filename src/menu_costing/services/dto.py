"""Immutable snapshots used as inputs to every costing computation.

Rows coming from the persistence collaborator (ORM objects or plain dicts
from an API payload) are converted exactly once into frozen dataclasses.
A compute pass therefore works on a fixed view of ingredient master data,
and field-shape quirks (season/allergens sent as lists, comma strings or
JSON strings) are normalized here and nowhere else.
"""

import json
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Tuple

from menu_costing.services.ingredient_valuation import compute_net_price
from menu_costing.utils.formatting import to_decimal


def normalize_tags(value: Any) -> Tuple[str, ...]:
    """
    Normalize a tag field into an ordered tuple of unique strings.

    Accepts None, a list/tuple/set, a comma-separated string or a JSON array
    string. Blank entries are dropped; first occurrence wins.

    Examples:
        >>> normalize_tags("jan, feb,jan")
        ('jan', 'feb')
        >>> normalize_tags('["gluten", "milk"]')
        ('gluten', 'milk')
    """
    if value is None:
        return ()

    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return normalize_tags(parsed)
            text = text.strip("[]")
        items: Iterable[Any] = text.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
    else:
        items = [value]

    seen = []
    for item in items:
        if item is None:
            continue
        tag = str(getattr(item, "name", item)).strip().strip('"').strip()
        if tag and tag not in seen:
            seen.append(tag)
    return tuple(seen)


def _get(source: Any, key: str, default: Any = None) -> Any:
    if isinstance(source, Mapping):
        return source.get(key, default)
    return getattr(source, key, default)


@dataclass(frozen=True)
class IngredientSnapshot:
    """Read-only view of an ingredient for one compute pass."""

    id: Optional[int]
    name: str
    unit: str
    base_price: Optional[Decimal] = None
    waste_percent: Optional[Decimal] = None
    net_price: Optional[Decimal] = None
    stock: Decimal = Decimal("0")
    stock_minimum: Decimal = Decimal("0")
    season: Tuple[str, ...] = ()
    allergens: Tuple[str, ...] = ()
    calories: Optional[float] = None
    protein: Optional[float] = None
    carbs: Optional[float] = None
    fat: Optional[float] = None
    is_available: bool = True

    @classmethod
    def from_record(cls, record: Any) -> "IngredientSnapshot":
        """
        Build a snapshot from an ORM Ingredient or a dict.

        A stored net_price is authoritative and kept as-is. When the record
        has none (e.g., an unsaved form), the waste-adjusted preview is used.
        """
        base_price = to_decimal(_get(record, "base_price"))
        waste_percent = to_decimal(_get(record, "waste_percent"))
        net_price = to_decimal(_get(record, "net_price"))
        if net_price is None:
            net_price = compute_net_price(base_price, waste_percent)

        return cls(
            id=_get(record, "id"),
            name=_get(record, "name") or "",
            unit=_get(record, "unit") or "",
            base_price=base_price,
            waste_percent=waste_percent,
            net_price=net_price,
            stock=to_decimal(_get(record, "stock"), Decimal("0")),
            stock_minimum=to_decimal(_get(record, "stock_minimum"), Decimal("0")),
            season=normalize_tags(_get(record, "season")),
            allergens=normalize_tags(_get(record, "allergens")),
            calories=_float_or_none(_get(record, "calories")),
            protein=_float_or_none(_get(record, "protein")),
            carbs=_float_or_none(_get(record, "carbs")),
            fat=_float_or_none(_get(record, "fat")),
            is_available=bool(_get(record, "is_available", True)),
        )


def _float_or_none(value: Any) -> Optional[float]:
    number = to_decimal(value)
    return None if number is None else float(number)


@dataclass(frozen=True)
class LineSnapshot:
    """Ingredient line of a recipe. quantity_per_serving is per ONE serving."""

    ingredient_id: int
    quantity_per_serving: Decimal
    id: Optional[int] = None
    recipe_id: Optional[int] = None
    section_id: Optional[int] = None
    notes: Optional[str] = None
    ingredient: Optional[IngredientSnapshot] = None

    @classmethod
    def from_record(cls, record: Any) -> "LineSnapshot":
        ingredient = _get(record, "ingredient")
        return cls(
            id=_get(record, "id"),
            recipe_id=_get(record, "recipe_id"),
            ingredient_id=_get(record, "ingredient_id"),
            section_id=_get(record, "section_id"),
            quantity_per_serving=to_decimal(_get(record, "quantity_per_serving"), Decimal("0")),
            notes=_get(record, "notes"),
            ingredient=IngredientSnapshot.from_record(ingredient) if ingredient is not None else None,
        )


@dataclass(frozen=True)
class SectionSnapshot:
    """Named section of a recipe."""

    name: str
    order: int = 0
    id: Optional[int] = None
    recipe_id: Optional[int] = None

    @classmethod
    def from_record(cls, record: Any) -> "SectionSnapshot":
        return cls(
            id=_get(record, "id"),
            recipe_id=_get(record, "recipe_id"),
            name=_get(record, "name") or "",
            order=_get(record, "order") or 0,
        )


@dataclass(frozen=True)
class RecipeSnapshot:
    """Recipe with its sections and lines. net_price is the TOTAL selling price."""

    name: str
    servings: int
    production_servings: int = 0
    net_price: Optional[Decimal] = None
    id: Optional[int] = None
    sections: Tuple[SectionSnapshot, ...] = ()
    lines: Tuple[LineSnapshot, ...] = ()

    @classmethod
    def from_record(cls, record: Any) -> "RecipeSnapshot":
        return cls(
            id=_get(record, "id"),
            name=_get(record, "name") or "",
            servings=int(_get(record, "servings") or 0),
            production_servings=int(_get(record, "production_servings") or 0),
            net_price=to_decimal(_get(record, "net_price")),
            sections=tuple(
                sorted(
                    (SectionSnapshot.from_record(s) for s in _get(record, "sections") or ()),
                    key=lambda s: s.order,
                )
            ),
            lines=tuple(LineSnapshot.from_record(line) for line in _get(record, "lines") or ()),
        )

    def with_servings(self, servings: int) -> "RecipeSnapshot":
        """Copy of this recipe planned for a different number of diners."""
        return replace(self, servings=servings)


@dataclass(frozen=True)
class MenuItemSnapshot:
    """
    Recipe on an event menu.

    ``lines`` is the embedded ingredient-line snapshot of the source recipe,
    or None when only ``cost_per_serving`` is known.
    """

    recipe_id: int
    portions: int
    course_type: str
    recipe_name: str = ""
    id: Optional[int] = None
    event_id: Optional[int] = None
    notes: Optional[str] = None
    cost_per_serving: Optional[Decimal] = None
    lines: Optional[Tuple[LineSnapshot, ...]] = None

    @classmethod
    def from_record(cls, record: Any, include_lines: bool = True) -> "MenuItemSnapshot":
        recipe = _get(record, "recipe")
        lines = _get(record, "lines")
        if lines is None and include_lines and recipe is not None:
            lines = _get(recipe, "lines")

        return cls(
            id=_get(record, "id"),
            event_id=_get(record, "event_id"),
            recipe_id=_get(record, "recipe_id"),
            recipe_name=_get(record, "recipe_name") or (_get(recipe, "name") if recipe is not None else "") or "",
            portions=int(_get(record, "portions") or 0),
            course_type=_get(record, "course_type") or "",
            notes=_get(record, "notes"),
            cost_per_serving=to_decimal(_get(record, "cost_per_serving")),
            lines=tuple(LineSnapshot.from_record(line) for line in lines) if lines else None,
        )


@dataclass(frozen=True)
class EventSnapshot:
    """Event with its menu. budget None means no budget was set."""

    name: str
    guests_count: int
    budget: Optional[Decimal] = None
    status: str = "planned"
    id: Optional[int] = None
    menu: Tuple[MenuItemSnapshot, ...] = field(default_factory=tuple)

    @classmethod
    def from_record(cls, record: Any, include_lines: bool = True) -> "EventSnapshot":
        menu = _get(record, "menu")
        if menu is None:
            menu = _get(record, "menu_items") or ()
        return cls(
            id=_get(record, "id"),
            name=_get(record, "name") or "",
            guests_count=int(_get(record, "guests_count") or 0),
            budget=to_decimal(_get(record, "budget")),
            status=_get(record, "status") or "planned",
            menu=tuple(MenuItemSnapshot.from_record(item, include_lines) for item in menu),
        )
