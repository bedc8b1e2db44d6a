"""
Recipe Composition & Costing.

All functions are pure and operate on snapshots (see dto.py):

- line_cost:         quantity_per_serving * servings * ingredient.net_price
- recipe_cost:       sum of line costs at the recipe's servings, sections ignored
- cost_per_serving:  recipe_cost / servings, flagged instead of raising at 0
- margin:            recipe.net_price - recipe_cost (net_price is the TOTAL price)
- margin_percent:    margin / net_price * 100, 0 when net_price is 0
- suggested_price:   cost_per_serving / (1 - target_margin)

Amounts are unrounded Decimals; round them with utils.formatting when they
leave the engine.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from menu_costing.services.dto import IngredientSnapshot, LineSnapshot, RecipeSnapshot
from menu_costing.services.exceptions import ValidationError
from menu_costing.services.logging_utils import get_service_logger, log_operation
from menu_costing.utils.constants import DEFAULT_TARGET_MARGIN
from menu_costing.utils.formatting import to_decimal
from menu_costing.utils.validators import validate_recipe_data

logger = get_service_logger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class CostPerServing:
    """
    Cost per serving with a division flag.

    Attributes:
        value: Cost per serving (0 when undefined)
        division_undefined: True when servings was 0
    """

    value: Decimal
    division_undefined: bool = False


@dataclass(frozen=True)
class RecipeCostSummary:
    """All derived cost figures of a recipe, computed in one pass."""

    recipe_id: Optional[int]
    servings: int
    total_cost: Decimal
    cost_per_serving: CostPerServing
    net_price: Decimal
    margin: Decimal
    margin_percent: Decimal
    suggested_price: Decimal


def _ingredient_of(
    line: LineSnapshot, ingredients: Optional[Mapping[int, IngredientSnapshot]]
) -> Optional[IngredientSnapshot]:
    if line.ingredient is not None:
        return line.ingredient
    if ingredients is not None:
        return ingredients.get(line.ingredient_id)
    return None


def line_cost(line: LineSnapshot, ingredient: Optional[IngredientSnapshot], servings: Any) -> Decimal:
    """
    Cost of one ingredient line for ``servings`` diners.

    An ingredient whose net price is not yet computable contributes 0.

    Example:
        0.2 kg/serving * 10 servings * 2.20/kg = 4.40
    """
    if ingredient is None or ingredient.net_price is None:
        logger.debug(
            f"No net price for ingredient {line.ingredient_id}; line costed at 0"
        )
        return ZERO
    return line.quantity_per_serving * to_decimal(servings, ZERO) * ingredient.net_price


def recipe_cost(
    recipe: RecipeSnapshot,
    servings: Optional[int] = None,
    ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
) -> Decimal:
    """
    Total ingredient cost of a recipe over all lines, regardless of section.

    Args:
        recipe: Recipe snapshot
        servings: Optional what-if diner count (defaults to recipe.servings)
        ingredients: Lookup for lines that don't embed their ingredient

    Returns:
        Total cost for the whole batch
    """
    if servings is None:
        servings = recipe.servings
    total = ZERO
    for line in recipe.lines:
        ingredient = _ingredient_of(line, ingredients)
        if ingredient is None:
            log_operation(
                logger,
                operation="recipe_cost",
                outcome="ingredient_missing",
                level=logging.WARNING,
                recipe_id=recipe.id,
                ingredient_id=line.ingredient_id,
            )
        total += line_cost(line, ingredient, servings)
    return total


def cost_per_serving(
    recipe: RecipeSnapshot,
    ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
) -> CostPerServing:
    """
    Recipe cost divided by servings.

    With 0 servings the result is 0 flagged ``division_undefined``; nothing
    is raised.
    """
    if not recipe.servings:
        log_operation(
            logger,
            operation="cost_per_serving",
            outcome="division_undefined",
            level=logging.WARNING,
            recipe_id=recipe.id,
        )
        return CostPerServing(ZERO, division_undefined=True)
    return CostPerServing(recipe_cost(recipe, ingredients=ingredients) / recipe.servings)


def margin(
    recipe: RecipeSnapshot,
    ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
) -> Decimal:
    """Selling price for all servings minus total cost. A missing price counts as 0."""
    return (recipe.net_price or ZERO) - recipe_cost(recipe, ingredients=ingredients)


def margin_percent(
    recipe: RecipeSnapshot,
    ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
) -> Decimal:
    """Margin as a percentage of the selling price; 0 when there is no price."""
    price = recipe.net_price or ZERO
    if price <= 0:
        return ZERO
    return margin(recipe, ingredients) / price * 100


def _target_fraction(target_margin: Any) -> Decimal:
    target = to_decimal(target_margin)
    if target is None or target < 0 or target >= 1:
        raise ValueError("target_margin must be a fraction in [0, 1)")
    return target


def suggested_price(
    recipe: RecipeSnapshot,
    target_margin: Any = DEFAULT_TARGET_MARGIN,
    ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
) -> Decimal:
    """
    Per-serving price that yields ``target_margin`` on the cost per serving.

    Args:
        recipe: Recipe snapshot
        target_margin: Desired margin as a fraction in [0, 1)

    Raises:
        ValueError: If target_margin is outside [0, 1)
    """
    return cost_per_serving(recipe, ingredients).value / (1 - _target_fraction(target_margin))


def summarize(
    recipe: RecipeSnapshot,
    target_margin: Any = DEFAULT_TARGET_MARGIN,
    ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
) -> RecipeCostSummary:
    """Compute every derived cost figure of a recipe."""
    total = recipe_cost(recipe, ingredients=ingredients)
    per_serving = cost_per_serving(recipe, ingredients)
    price = recipe.net_price or ZERO
    recipe_margin = price - total
    target = _target_fraction(target_margin)

    return RecipeCostSummary(
        recipe_id=recipe.id,
        servings=recipe.servings,
        total_cost=total,
        cost_per_serving=per_serving,
        net_price=price,
        margin=recipe_margin,
        margin_percent=recipe_margin / price * 100 if price > 0 else ZERO,
        suggested_price=per_serving.value / (1 - target),
    )


def recipe_save_errors(recipe: Any) -> Dict[str, str]:
    """
    Field errors that block saving a recipe.

    Enforces ``servings >= production_servings`` (naming both values) along
    with name and number checks.

    Args:
        recipe: RecipeSnapshot or dict of recipe fields
    """
    if isinstance(recipe, RecipeSnapshot):
        data = {
            "name": recipe.name,
            "servings": recipe.servings,
            "production_servings": recipe.production_servings,
            "net_price": recipe.net_price,
        }
    else:
        data = dict(recipe)
    return validate_recipe_data(data)


def validate_recipe_for_save(recipe: Any) -> None:
    """
    Raise if the recipe may not be saved.

    Raises:
        ValidationError: With the field -> message map
    """
    errors = recipe_save_errors(recipe)
    if errors:
        raise ValidationError(errors)


def recipe_allergens(
    recipe: RecipeSnapshot,
    ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
) -> Tuple[str, ...]:
    """Sorted union of the allergens of every ingredient in the recipe."""
    found = set()
    for line in recipe.lines:
        ingredient = _ingredient_of(line, ingredients)
        if ingredient is not None:
            found.update(ingredient.allergens)
    return tuple(sorted(found))
