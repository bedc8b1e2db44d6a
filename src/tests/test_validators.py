"""Tests for input validators and the formatting boundary."""

from decimal import Decimal

import pytest

from menu_costing.utils.formatting import (
    format_cost,
    format_percent,
    round_currency,
    to_decimal,
    waste_from_whole_percent,
    waste_to_whole_percent,
)
from menu_costing.utils.validators import (
    canonical_unit,
    validate_event_data,
    validate_line_data,
    validate_menu_item_data,
    validate_recipe_data,
    validate_unit,
)


class TestUnits:
    @pytest.mark.parametrize("unit, expected", [("KG", "kg"), ("l", "L"), ("gr", "g"), ("Units", "unit"), ("cup", None)])
    def test_canonical_unit(self, unit, expected):
        assert canonical_unit(unit) == expected

    def test_validate_unit(self):
        assert validate_unit("ml") == (True, "")
        is_valid, error = validate_unit("cup")
        assert not is_valid
        assert "kg" in error


class TestEntityValidators:
    def test_recipe_production_rule(self):
        errors = validate_recipe_data({"name": "Pie", "servings": 4, "production_servings": 6})
        assert errors == {"servings": "Servings (4) must be at least the production servings (6)"}

    def test_recipe_zero_servings_allowed(self):
        assert validate_recipe_data({"name": "Pie", "servings": 0, "production_servings": 0}) == {}

    def test_line_requires_positive_quantity(self):
        errors = validate_line_data({"ingredient_id": None, "quantity_per_serving": "-1"})
        assert set(errors) == {"ingredient_id", "quantity_per_serving"}

    def test_event_budget_non_negative(self):
        errors = validate_event_data({"name": "Party", "guests_count": 10, "budget": "-5"})
        assert set(errors) == {"budget"}

    @pytest.mark.parametrize("value", ["nan", "inf", "-Infinity", "snan", float("nan")])
    def test_non_finite_numbers_are_reported_not_raised(self, value):
        errors = validate_recipe_data({"name": "Pie", "servings": value, "production_servings": 1})
        assert set(errors) == {"servings"}

    def test_menu_item(self):
        assert validate_menu_item_data({"portions": 1, "course_type": "beverage"}) == {}
        errors = validate_menu_item_data({"portions": 0, "course_type": "snack"})
        assert set(errors) == {"portions", "course_type"}


class TestFormatting:
    def test_to_decimal_goes_through_str(self):
        assert to_decimal(2.2) == Decimal("2.2")
        assert to_decimal("abc", Decimal("0")) == Decimal("0")
        assert to_decimal(True) is None

    @pytest.mark.parametrize("value", ["nan", "NaN", "inf", "-inf", "snan", Decimal("NaN"), float("inf")])
    def test_to_decimal_rejects_non_finite(self, value):
        assert to_decimal(value) is None
        assert to_decimal(value, Decimal("0")) == Decimal("0")

    def test_round_currency_half_up(self):
        assert round_currency(Decimal("2.345")) == Decimal("2.35")
        assert round_currency(Decimal("2.344")) == Decimal("2.34")

    def test_format_cost_and_percent(self):
        assert format_cost(Decimal("45.6")) == "45.60€"
        assert format_cost(None) == "-"
        assert format_percent(Decimal("91.2")) == "91.2%"
        assert format_percent(Decimal("60"), places=2) == "60.00%"

    def test_waste_conversion(self):
        assert waste_from_whole_percent("10") == Decimal("0.1")
        assert waste_to_whole_percent(Decimal("0.10")) == Decimal("10")
        assert waste_from_whole_percent("") is None
