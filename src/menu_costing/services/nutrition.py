"""
Nutrition Aggregator.

Ingredient nutrition facts are given per 100 g. A line's quantity is
converted to grams through the fixed UNIT_TO_GRAMS table (liquids assume a
density of 1) and the facts are scaled by grams / 100.

recipe_nutrition() reports the whole planned batch (quantity_per_serving *
servings); call per_serving() for the per-portion view.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping, Optional

from menu_costing.services.dto import IngredientSnapshot, LineSnapshot, RecipeSnapshot
from menu_costing.services.logging_utils import get_service_logger
from menu_costing.utils.constants import UNIT_TO_GRAMS
from menu_costing.utils.validators import canonical_unit

logger = get_service_logger(__name__)


@dataclass(frozen=True)
class NutritionFacts:
    """Calories (kcal) and macronutrients (g)."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    def __add__(self, other: "NutritionFacts") -> "NutritionFacts":
        return NutritionFacts(
            calories=self.calories + other.calories,
            protein=self.protein + other.protein,
            carbs=self.carbs + other.carbs,
            fat=self.fat + other.fat,
        )

    def scaled(self, factor: float) -> "NutritionFacts":
        return NutritionFacts(
            calories=self.calories * factor,
            protein=self.protein * factor,
            carbs=self.carbs * factor,
            fat=self.fat * factor,
        )

    def rounded(self) -> "NutritionFacts":
        """Calories to whole kcal, macronutrients to 1 decimal."""
        return NutritionFacts(
            calories=_round(self.calories, "1"),
            protein=_round(self.protein, "0.1"),
            carbs=_round(self.carbs, "0.1"),
            fat=_round(self.fat, "0.1"),
        )

    def to_dict(self) -> dict:
        return {
            "calories": self.calories,
            "protein": self.protein,
            "carbs": self.carbs,
            "fat": self.fat,
        }


def _round(value: float, quantum: str) -> float:
    return float(Decimal(str(value)).quantize(Decimal(quantum), rounding=ROUND_HALF_UP))


def grams_per_unit(unit: Optional[str]) -> float:
    """
    Grams in one ``unit``.

    Unknown units fall back to 1 (the quantity is taken as grams).
    """
    canonical = canonical_unit(unit)
    if canonical is None:
        logger.debug(f"Unknown unit '{unit}' for nutrition; assuming grams")
        return 1.0
    return UNIT_TO_GRAMS[canonical]


def facts_per_100g(ingredient: IngredientSnapshot) -> NutritionFacts:
    """Ingredient nutrition facts with missing values read as 0."""
    return NutritionFacts(
        calories=ingredient.calories or 0.0,
        protein=ingredient.protein or 0.0,
        carbs=ingredient.carbs or 0.0,
        fat=ingredient.fat or 0.0,
    )


def line_nutrition(
    line: LineSnapshot, ingredient: Optional[IngredientSnapshot], servings: Any
) -> NutritionFacts:
    """
    Nutrition contributed by one line for ``servings`` diners.

    grams = quantity_per_serving * servings * grams_per_unit(ingredient.unit)
    """
    if ingredient is None:
        return NutritionFacts()
    grams = float(line.quantity_per_serving) * float(servings or 0) * grams_per_unit(ingredient.unit)
    return facts_per_100g(ingredient).scaled(grams / 100.0)


def recipe_nutrition(
    recipe: RecipeSnapshot,
    ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
) -> NutritionFacts:
    """Element-wise sum of line nutrition at the recipe's current servings."""
    total = NutritionFacts()
    for line in recipe.lines:
        ingredient = line.ingredient
        if ingredient is None and ingredients is not None:
            ingredient = ingredients.get(line.ingredient_id)
        total = total + line_nutrition(line, ingredient, recipe.servings)
    return total


def per_serving(facts: NutritionFacts, servings: Any) -> NutritionFacts:
    """Divide batch nutrition by servings; 0 servings gives all zeros."""
    if not servings:
        return NutritionFacts()
    return facts.scaled(1.0 / float(servings))
