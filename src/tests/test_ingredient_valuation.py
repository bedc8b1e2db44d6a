"""Tests for waste-adjusted net price derivation and ingredient helpers."""

from datetime import date
from decimal import Decimal

import pytest

from menu_costing.services.dto import IngredientSnapshot
from menu_costing.services.ingredient_valuation import (
    authoritative_net_price,
    compute_net_price,
    effective_net_price,
    is_in_season,
    is_low_stock,
    preview_net_price,
    validate_ingredient,
)


class TestComputeNetPrice:
    def test_tomato_with_ten_percent_waste(self):
        assert compute_net_price(Decimal("2.00"), Decimal("0.10")) == Decimal("2.20")

    @pytest.mark.parametrize(
        "base_price, waste_percent",
        [("0", "0"), ("1.99", "0.05"), ("12.3456", "0.333"), ("1000", "1"), (3.3, 0.07)],
    )
    def test_matches_formula_within_tolerance(self, base_price, waste_percent):
        expected = Decimal(str(base_price)) * (1 + Decimal(str(waste_percent)))
        assert abs(compute_net_price(base_price, waste_percent) - expected) <= Decimal("1e-6")

    def test_zero_waste_keeps_base_price(self):
        assert compute_net_price("4.50", "0") == Decimal("4.50")

    @pytest.mark.parametrize("base_price, waste_percent", [(None, "0.1"), ("2", None), ("abc", "0.1")])
    def test_missing_input_is_not_computable(self, base_price, waste_percent):
        assert compute_net_price(base_price, waste_percent) is None


class TestTwoPhaseNetPrice:
    def test_preview_is_not_authoritative(self):
        preview = preview_net_price("2.00", "0.10")
        assert preview.amount == Decimal("2.20")
        assert preview.authoritative is False

    def test_authoritative_value_wins(self):
        preview = preview_net_price("2.00", "0.10")
        stored = authoritative_net_price({"net_price": "2.25"})
        assert effective_net_price(preview, stored).amount == Decimal("2.25")

    def test_preview_used_until_saved(self):
        preview = preview_net_price("2.00", "0.10")
        assert effective_net_price(preview) is preview

    def test_preview_not_computable_without_price(self):
        assert not preview_net_price(None, "0.10").is_computable


class TestValidateIngredient:
    def test_valid_data_has_no_errors(self):
        assert validate_ingredient({"name": "Tomato", "unit": "kg", "base_price": "2"}) == {}

    def test_name_and_unit_required(self):
        errors = validate_ingredient({"name": " ", "unit": ""})
        assert set(errors) == {"name", "unit"}

    def test_negative_numbers_rejected(self):
        errors = validate_ingredient(
            {"name": "Salt", "unit": "kg", "base_price": "-1", "stock": "-5", "calories": -1}
        )
        assert set(errors) == {"base_price", "stock", "calories"}

    def test_waste_must_be_a_fraction(self):
        errors = validate_ingredient({"name": "Salt", "unit": "kg", "waste_percent": "10"})
        assert "waste_percent" in errors

    @pytest.mark.parametrize("field", ["base_price", "waste_percent", "stock", "calories"])
    def test_non_finite_values_reported(self, field):
        errors = validate_ingredient({"name": "Salt", "unit": "kg", field: "nan"})
        assert set(errors) == {field}

    def test_infinite_price_is_not_computable(self):
        assert compute_net_price("inf", "0.1") is None

    def test_unit_aliases_accepted(self):
        assert validate_ingredient({"name": "Milk", "unit": "l"}) == {}


class TestStockAndSeason:
    def test_low_stock_below_minimum(self):
        snapshot = IngredientSnapshot.from_record(
            {"name": "Flour", "unit": "kg", "stock": "1", "stock_minimum": "5"}
        )
        assert is_low_stock(snapshot)

    def test_stock_at_minimum_is_not_low(self):
        snapshot = IngredientSnapshot.from_record(
            {"name": "Flour", "unit": "kg", "stock": "5", "stock_minimum": "5"}
        )
        assert not is_low_stock(snapshot)

    def test_in_season_by_month_tag(self, tomato):
        assert is_in_season(tomato, date(2024, 7, 15))
        assert not is_in_season(tomato, 1)

    def test_no_season_means_all_year(self, mozzarella):
        assert is_in_season(mozzarella, 12)
