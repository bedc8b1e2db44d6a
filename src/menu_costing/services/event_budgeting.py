"""
Event Menu Budgeting.

Costs an event menu from already-fetched data:

- item_cost: with the source recipe's ingredient lines embedded, the
  waste-adjusted cost scaled to the item's own ``portions`` (not the
  recipe's servings); otherwise cost_per_serving * portions.
- event_totals: total cost, cost per guest, remaining budget, budget usage
  and a suggested budget (total * 1.4).

MenuBudget keeps a working copy of one event. Edits recompute totals
locally and then issue the persistence call as a separate step whose
failure is reported next to the new totals, never hidden.
"""

from collections import OrderedDict
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from menu_costing.services import event_service
from menu_costing.services.costing import line_cost
from menu_costing.services.dto import EventSnapshot, IngredientSnapshot, MenuItemSnapshot
from menu_costing.services.exceptions import MenuItemNotFound, ValidationError
from menu_costing.services.logging_utils import get_service_logger
from menu_costing.services.saga import Saga, SagaReport, StepOutcome
from menu_costing.utils.constants import COURSE_TYPES, SUGGESTED_BUDGET_FACTOR
from menu_costing.utils.validators import validate_menu_item_data

logger = get_service_logger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class EventTotals:
    """Derived budget figures of an event."""

    total_cost: Decimal
    cost_per_guest: Decimal
    budget: Decimal
    remaining_budget: Decimal
    budget_usage_percent: Decimal
    suggested_budget: Decimal

    @property
    def over_budget(self) -> bool:
        """Informational only; a negative remaining budget is not an error."""
        return self.budget > 0 and self.remaining_budget < 0


@dataclass(frozen=True)
class ShoppingListItem:
    """Aggregated need for one ingredient across an event menu."""

    ingredient_id: int
    ingredient_name: str
    unit: str
    quantity: Decimal
    cost: Decimal


@dataclass
class MenuChange:
    """
    Result of a local menu edit.

    Attributes:
        totals: Totals recomputed from the working copy
        persisted: Outcome of the separate persistence call
    """

    totals: EventTotals
    persisted: StepOutcome


# ============================================================================
# Pure computations
# ============================================================================


def item_cost(
    item: MenuItemSnapshot,
    ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
) -> Decimal:
    """
    Cost of one menu item for its event portions.

    Args:
        item: Menu item snapshot
        ingredients: Lookup for embedded lines that don't carry their ingredient
    """
    if item.lines:
        total = ZERO
        for line in item.lines:
            ingredient = line.ingredient
            if ingredient is None and ingredients is not None:
                ingredient = ingredients.get(line.ingredient_id)
            total += line_cost(line, ingredient, item.portions)
        return total
    return (item.cost_per_serving or ZERO) * item.portions


def event_totals(
    event: EventSnapshot,
    ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
) -> EventTotals:
    """
    Budget figures for an event.

    guests_count >= 1 is enforced when the event is saved; a 0 here yields a
    cost per guest of 0. A missing budget counts as 0 and then the usage
    percentage is 0.
    """
    total = sum((item_cost(item, ingredients) for item in event.menu), ZERO)
    budget = event.budget or ZERO
    return EventTotals(
        total_cost=total,
        cost_per_guest=total / event.guests_count if event.guests_count else ZERO,
        budget=budget,
        remaining_budget=budget - total,
        budget_usage_percent=total / budget * 100 if budget > 0 else ZERO,
        suggested_budget=total * SUGGESTED_BUDGET_FACTOR,
    )


def sorted_menu(event: EventSnapshot) -> List[MenuItemSnapshot]:
    """Menu in course order (starter, main, side, dessert, beverage), then by name."""
    rank = {course: index for index, course in enumerate(COURSE_TYPES)}
    return sorted(
        event.menu,
        key=lambda item: (rank.get(item.course_type, len(COURSE_TYPES)), item.recipe_name),
    )


def shopping_list(
    event: EventSnapshot,
    ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
) -> List[ShoppingListItem]:
    """
    Ingredients to buy for the whole menu, sorted by name.

    Quantity is quantity_per_serving * portions summed over menu items;
    cost is the waste-adjusted cost of that quantity. Items without embedded
    lines contribute nothing.
    """
    needs: Dict[int, dict] = OrderedDict()
    for item in event.menu:
        for line in item.lines or ():
            ingredient = line.ingredient
            if ingredient is None and ingredients is not None:
                ingredient = ingredients.get(line.ingredient_id)
            entry = needs.setdefault(
                line.ingredient_id,
                {
                    "name": ingredient.name if ingredient else "",
                    "unit": ingredient.unit if ingredient else "",
                    "quantity": ZERO,
                    "cost": ZERO,
                },
            )
            entry["quantity"] += line.quantity_per_serving * item.portions
            entry["cost"] += line_cost(line, ingredient, item.portions)

    items = [
        ShoppingListItem(
            ingredient_id=ingredient_id,
            ingredient_name=entry["name"],
            unit=entry["unit"],
            quantity=entry["quantity"],
            cost=entry["cost"],
        )
        for ingredient_id, entry in needs.items()
    ]
    return sorted(items, key=lambda i: i.ingredient_name.lower())


def check_menu_item(event: EventSnapshot, recipe_id: int, portions: int, course_type: str) -> None:
    """
    Validate a new menu item against the event.

    Raises:
        ValidationError: Bad portions/course type, or recipe already on the menu
    """
    errors = validate_menu_item_data({"portions": portions, "course_type": course_type})
    if any(item.recipe_id == recipe_id for item in event.menu):
        errors["recipe_id"] = "Recipe is already on the event menu"
    if errors:
        raise ValidationError(errors)


# ============================================================================
# Bulk attach
# ============================================================================


def add_recipes_to_event(
    event: EventSnapshot,
    recipe_ids: Sequence[int],
    portions_override: Optional[int] = None,
    course_type: Union[str, Mapping[int, str]] = "main",
    notes: Optional[str] = None,
) -> SagaReport:
    """
    Attach several recipes to an event, one call per recipe.

    Portions default to the event's guests_count. Calls run sequentially;
    a failing recipe is reported and the rest are still attached.

    Args:
        event: Event snapshot (guests_count and current menu)
        recipe_ids: Recipes to attach, in order
        portions_override: Portions for every recipe instead of guests_count
        course_type: One course type for all, or a recipe_id -> course map

    Returns:
        SagaReport keyed by recipe_id; successful results are MenuItemSnapshots
    """
    portions = portions_override if portions_override is not None else event.guests_count
    saga = Saga("add_recipes_to_event", event_id=event.id)

    for recipe_id in recipe_ids:
        course = course_type.get(recipe_id, "main") if isinstance(course_type, Mapping) else course_type
        saga.add(recipe_id, _attach_recipe, event, recipe_id, portions, course, notes)

    return saga.run()


def _attach_recipe(
    event: EventSnapshot, recipe_id: int, portions: int, course_type: str, notes: Optional[str]
) -> MenuItemSnapshot:
    check_menu_item(event, recipe_id, portions, course_type)
    return event_service.add_menu_item(
        event.id,
        {"recipe_id": recipe_id, "portions": portions, "course_type": course_type, "notes": notes},
    )


# ============================================================================
# Working copy
# ============================================================================


class MenuBudget:
    """
    Working copy of an event's menu with locally recomputed totals.

    Example:
        budget = MenuBudget.load(event_id)
        change = budget.update_menu_item(recipe_id, portions=30)
        show(change.totals)
        if not change.persisted.succeeded:
            warn(change.persisted.error)
    """

    def __init__(self, event: EventSnapshot):
        self.event = event

    @classmethod
    def load(cls, event_id: int) -> "MenuBudget":
        """Fetch the event with its menu (including recipe lines)."""
        return cls(event_service.get_event_snapshot(event_id))

    @property
    def totals(self) -> EventTotals:
        return event_totals(self.event)

    def _find(self, recipe_id: int) -> MenuItemSnapshot:
        for item in self.event.menu:
            if item.recipe_id == recipe_id:
                return item
        raise MenuItemNotFound(self.event.id, recipe_id)

    def add_recipes(
        self,
        recipe_ids: Sequence[int],
        portions_override: Optional[int] = None,
        course_type: Union[str, Mapping[int, str]] = "main",
    ) -> SagaReport:
        """Bulk attach; successfully attached items join the working copy."""
        report = add_recipes_to_event(self.event, recipe_ids, portions_override, course_type)
        added = tuple(outcome.result for outcome in report.succeeded)
        self.event = replace(self.event, menu=self.event.menu + added)
        return report

    def update_menu_item(self, recipe_id: int, **changes: Any) -> MenuChange:
        """
        Change portions, course_type or notes of a menu item.

        Raises:
            MenuItemNotFound: If the recipe is not on the menu
            ValidationError: If the new values are invalid (nothing changes)
        """
        current = self._find(recipe_id)
        allowed = {k: v for k, v in changes.items() if k in ("portions", "course_type", "notes")}
        updated = replace(current, **allowed)

        errors = validate_menu_item_data(
            {"portions": updated.portions, "course_type": updated.course_type}
        )
        if errors:
            raise ValidationError(errors)

        self.event = replace(
            self.event,
            menu=tuple(updated if item.recipe_id == recipe_id else item for item in self.event.menu),
        )
        totals = self.totals

        report = (
            Saga("update_menu_item", event_id=self.event.id, recipe_id=recipe_id)
            .add(recipe_id, event_service.update_menu_item, self.event.id, recipe_id, allowed)
            .run()
        )
        return MenuChange(totals=totals, persisted=report.outcomes[0])

    def remove_menu_item(self, recipe_id: int) -> MenuChange:
        """
        Drop a recipe from the menu.

        Raises:
            MenuItemNotFound: If the recipe is not on the menu
        """
        self._find(recipe_id)
        self.event = replace(
            self.event,
            menu=tuple(item for item in self.event.menu if item.recipe_id != recipe_id),
        )
        totals = self.totals

        report = (
            Saga("remove_menu_item", event_id=self.event.id, recipe_id=recipe_id)
            .add(recipe_id, event_service.remove_menu_item, self.event.id, recipe_id)
            .run()
        )
        return MenuChange(totals=totals, persisted=report.outcomes[0])
