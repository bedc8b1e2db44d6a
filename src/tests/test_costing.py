"""Tests for recipe composition and costing."""

import logging
from decimal import Decimal

import pytest

from menu_costing.services import costing
from menu_costing.services.dto import IngredientSnapshot, LineSnapshot, RecipeSnapshot
from menu_costing.services.exceptions import ValidationError


@pytest.fixture
def tomato_salad(tomato):
    """One tomato line, 0.2 kg per serving, 10 servings, sold for 50.00 in total."""
    return RecipeSnapshot(
        id=1,
        name="Tomato Salad",
        servings=10,
        production_servings=2,
        net_price=Decimal("50.00"),
        lines=(
            LineSnapshot(ingredient_id=tomato.id, quantity_per_serving=Decimal("0.2"), ingredient=tomato),
        ),
    )


class TestLineAndRecipeCost:
    def test_line_cost(self, tomato, tomato_salad):
        line = tomato_salad.lines[0]
        assert costing.line_cost(line, tomato, 10) == Decimal("4.40")

    def test_recipe_cost(self, tomato_salad):
        assert costing.recipe_cost(tomato_salad) == Decimal("4.40")

    def test_sections_do_not_affect_cost(self, caprese):
        # 0.2 * 10 * 2.20 + 0.1 * 10 * 9.00
        assert costing.recipe_cost(caprese) == Decimal("13.40")

    def test_cost_scales_linearly_with_servings(self, caprese):
        assert costing.recipe_cost(caprese.with_servings(20)) == 2 * costing.recipe_cost(caprese)
        assert costing.recipe_cost(caprese, servings=20) == 2 * costing.recipe_cost(caprese)

    def test_ingredient_without_price_costs_zero(self):
        unpriced = IngredientSnapshot(id=3, name="Herbs", unit="g")
        line = LineSnapshot(ingredient_id=3, quantity_per_serving=Decimal("5"), ingredient=unpriced)
        assert costing.line_cost(line, unpriced, 4) == Decimal("0")

    def test_lines_resolved_through_lookup(self, tomato):
        recipe = RecipeSnapshot(
            name="Sauce",
            servings=10,
            lines=(LineSnapshot(ingredient_id=tomato.id, quantity_per_serving=Decimal("0.2")),),
        )
        assert costing.recipe_cost(recipe, ingredients={tomato.id: tomato}) == Decimal("4.40")

    def test_missing_ingredient_is_logged(self, caplog):
        recipe = RecipeSnapshot(
            id=9, name="Ghost", servings=1, lines=(LineSnapshot(ingredient_id=77, quantity_per_serving=Decimal("1")),)
        )
        with caplog.at_level(logging.WARNING, logger="menu_costing.services.costing"):
            assert costing.recipe_cost(recipe) == Decimal("0")
        assert any(r.outcome == "ingredient_missing" and r.ingredient_id == 77 for r in caplog.records)


class TestPerServingAndMargin:
    def test_cost_per_serving(self, tomato_salad):
        result = costing.cost_per_serving(tomato_salad)
        assert result.value == Decimal("0.44")
        assert result.division_undefined is False

    def test_zero_servings_flags_division(self, tomato_salad, caplog):
        with caplog.at_level(logging.WARNING, logger="menu_costing.services.costing"):
            result = costing.cost_per_serving(tomato_salad.with_servings(0))
        assert result.value == Decimal("0")
        assert result.division_undefined is True
        assert any(r.outcome == "division_undefined" for r in caplog.records)

    def test_margin_on_total_price(self, tomato_salad):
        assert costing.margin(tomato_salad) == Decimal("45.60")
        assert costing.margin_percent(tomato_salad) == Decimal("91.2")

    def test_margin_percent_zero_without_price(self, tomato_salad):
        free = RecipeSnapshot(name="Free", servings=10, net_price=None, lines=tomato_salad.lines)
        assert costing.margin_percent(free) == Decimal("0")
        assert costing.margin(free) == Decimal("-4.40")

    def test_suggested_price_default_margin(self, tomato_salad):
        # 0.44 / (1 - 0.4)
        assert costing.suggested_price(tomato_salad).quantize(Decimal("0.0001")) == Decimal("0.7333")

    def test_suggested_price_custom_margin(self, tomato_salad):
        assert costing.suggested_price(tomato_salad, "0.5") == Decimal("0.88")

    @pytest.mark.parametrize("target", ["1", "1.5", "-0.1", None])
    def test_suggested_price_rejects_bad_margin(self, tomato_salad, target):
        with pytest.raises(ValueError):
            costing.suggested_price(tomato_salad, target)

    def test_summarize(self, tomato_salad):
        summary = costing.summarize(tomato_salad, "0.5")
        assert summary.total_cost == Decimal("4.40")
        assert summary.cost_per_serving.value == Decimal("0.44")
        assert summary.margin == Decimal("45.60")
        assert summary.margin_percent == Decimal("91.2")
        assert summary.suggested_price == Decimal("0.88")


class TestSaveValidation:
    def test_servings_below_production_names_both_values(self):
        recipe = RecipeSnapshot(name="Stew", servings=3, production_servings=8)
        with pytest.raises(ValidationError) as exc_info:
            costing.validate_recipe_for_save(recipe)
        assert list(exc_info.value.errors) == ["servings"]
        assert "3" in exc_info.value.errors["servings"]
        assert "8" in exc_info.value.errors["servings"]

    def test_equal_servings_allowed(self):
        costing.validate_recipe_for_save(RecipeSnapshot(name="Stew", servings=8, production_servings=8))

    def test_dict_input(self):
        errors = costing.recipe_save_errors({"name": "", "servings": "2.5", "net_price": "-1"})
        assert set(errors) == {"name", "servings", "net_price"}


class TestAllergens:
    def test_union_is_sorted(self, caprese):
        assert costing.recipe_allergens(caprese) == ("Milk",)
