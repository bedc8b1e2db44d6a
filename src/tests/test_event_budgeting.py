"""Tests for event menu budgeting."""

from dataclasses import replace
from decimal import Decimal
from unittest.mock import patch

import pytest

from menu_costing.services import event_budgeting, event_service
from menu_costing.services.dto import EventSnapshot, MenuItemSnapshot
from menu_costing.services.event_budgeting import (
    MenuBudget,
    add_recipes_to_event,
    event_totals,
    item_cost,
    shopping_list,
    sorted_menu,
)
from menu_costing.services.exceptions import (
    DatabaseError,
    MenuItemNotFound,
    RecipeNotFound,
    ValidationError,
)


def _item(recipe_id, portions, course_type="main", cost=None, lines=None, name=""):
    return MenuItemSnapshot(
        recipe_id=recipe_id,
        recipe_name=name or f"Recipe {recipe_id}",
        portions=portions,
        course_type=course_type,
        cost_per_serving=Decimal(cost) if cost is not None else None,
        lines=lines,
    )


class TestItemCost:
    def test_fallback_to_cost_per_serving(self):
        assert item_cost(_item(1, 20, cost="6.00")) == Decimal("120.00")

    def test_embedded_lines_scale_with_portions(self, caprese):
        # 0.2 * 4 * 2.20 + 0.1 * 4 * 9.00, independent of the recipe's 10 servings
        item = _item(caprese.id, 4, lines=caprese.lines)
        assert item_cost(item) == Decimal("5.36")

    def test_no_cost_information(self):
        assert item_cost(_item(1, 10)) == Decimal("0")


class TestEventTotals:
    def test_budget_figures(self, gala_dinner):
        totals = event_totals(gala_dinner)
        assert totals.total_cost == Decimal("120")
        assert totals.cost_per_guest == Decimal("6.00")
        assert totals.remaining_budget == Decimal("80")
        assert totals.budget_usage_percent == Decimal("60")
        assert totals.suggested_budget == Decimal("168.00")
        assert not totals.over_budget

    def test_over_budget_is_informational(self, gala_dinner):
        event = replace(gala_dinner, budget=Decimal("100"))
        totals = event_totals(event)
        assert totals.remaining_budget == Decimal("-20")
        assert totals.over_budget

    def test_no_budget(self, gala_dinner):
        totals = event_totals(replace(gala_dinner, budget=None))
        assert totals.budget_usage_percent == Decimal("0")
        assert not totals.over_budget

    def test_empty_menu(self):
        totals = event_totals(EventSnapshot(name="Empty", guests_count=10, budget=Decimal("50")))
        assert totals.total_cost == Decimal("0")
        assert totals.remaining_budget == Decimal("50")


class TestMenuViews:
    def test_sorted_by_course_then_name(self):
        event = EventSnapshot(
            name="Dinner",
            guests_count=2,
            menu=(
                _item(1, 2, "dessert", name="Tiramisu"),
                _item(2, 2, "main", name="Risotto"),
                _item(3, 2, "starter", name="Soup"),
                _item(4, 2, "main", name="Lasagna"),
            ),
        )
        assert [i.recipe_name for i in sorted_menu(event)] == ["Soup", "Lasagna", "Risotto", "Tiramisu"]

    def test_shopping_list_aggregates_ingredients(self, caprese, tomato):
        event = EventSnapshot(
            name="Picnic",
            guests_count=5,
            menu=(_item(caprese.id, 5, lines=caprese.lines), _item(11, 3, lines=caprese.lines[:1])),
        )
        items = {i.ingredient_name: i for i in shopping_list(event)}
        assert items["Tomato"].quantity == Decimal("1.6")
        assert items["Tomato"].cost == Decimal("3.52")
        assert items["Mozzarella"].quantity == Decimal("0.5")
        assert [i.ingredient_name for i in shopping_list(event)] == ["Mozzarella", "Tomato"]


class TestAddRecipesToEvent:
    def test_partial_failure_is_reported(self, gala_dinner):
        created = _item(21, 20)
        with patch.object(
            event_service,
            "add_menu_item",
            side_effect=[created, DatabaseError("connection reset"), _item(23, 20)],
        ) as add_menu_item:
            report = add_recipes_to_event(gala_dinner, [21, 22, 23])

        assert add_menu_item.call_count == 3
        assert [o.key for o in report.succeeded] == [21, 23]
        assert report.outcome_for(22).succeeded is False
        assert isinstance(report.outcome_for(22).error, DatabaseError)

    def test_default_portions_is_guests_count(self, gala_dinner):
        with patch.object(event_service, "add_menu_item", return_value=_item(21, 20)) as add_menu_item:
            add_recipes_to_event(gala_dinner, [21], course_type={21: "dessert"})
        event_id, data = add_menu_item.call_args[0]
        assert event_id == gala_dinner.id
        assert data["portions"] == 20
        assert data["course_type"] == "dessert"

    def test_duplicate_recipe_fails_without_call(self, gala_dinner):
        with patch.object(event_service, "add_menu_item") as add_menu_item:
            report = add_recipes_to_event(gala_dinner, [10])
        add_menu_item.assert_not_called()
        assert isinstance(report.outcomes[0].error, ValidationError)

    def test_invalid_portions_override(self, gala_dinner):
        with patch.object(event_service, "add_menu_item") as add_menu_item:
            report = add_recipes_to_event(gala_dinner, [21], portions_override=0)
        add_menu_item.assert_not_called()
        assert "portions" in report.outcomes[0].error.errors


class TestMenuBudget:
    def test_update_recomputes_totals_even_if_persist_fails(self, gala_dinner):
        budget = MenuBudget(gala_dinner)
        with patch.object(event_service, "update_menu_item", side_effect=DatabaseError("timeout")):
            change = budget.update_menu_item(10, portions=30)

        assert change.totals.total_cost == Decimal("180")
        assert change.persisted.succeeded is False
        assert isinstance(change.persisted.error, DatabaseError)
        assert budget.event.menu[0].portions == 30

    def test_update_passes_only_menu_fields(self, gala_dinner):
        budget = MenuBudget(gala_dinner)
        with patch.object(event_service, "update_menu_item", return_value=None) as update:
            change = budget.update_menu_item(10, portions=25, cost_per_serving="1")
        update.assert_called_once_with(gala_dinner.id, 10, {"portions": 25})
        assert change.persisted.succeeded

    def test_invalid_update_changes_nothing(self, gala_dinner):
        budget = MenuBudget(gala_dinner)
        with patch.object(event_service, "update_menu_item") as update:
            with pytest.raises(ValidationError):
                budget.update_menu_item(10, course_type="brunch")
        update.assert_not_called()
        assert budget.event == gala_dinner

    def test_remove(self, gala_dinner):
        budget = MenuBudget(gala_dinner)
        with patch.object(event_service, "remove_menu_item", return_value=True):
            change = budget.remove_menu_item(10)
        assert change.totals.total_cost == Decimal("0")
        assert change.persisted.succeeded

    def test_remove_unknown_recipe(self, gala_dinner):
        with pytest.raises(MenuItemNotFound):
            MenuBudget(gala_dinner).remove_menu_item(999)


class TestAgainstDatabase:
    def test_attach_and_load(self, stored_event, stored_recipe, stored_tomato):
        from menu_costing.services import recipe_service

        recipe_service.add_line(
            stored_recipe.id, {"ingredient_id": stored_tomato.id, "quantity_per_serving": "0.2"}
        )
        event = event_service.get_event_snapshot(stored_event.id)
        report = add_recipes_to_event(event, [stored_recipe.id, 9999])

        assert report.outcome_for(stored_recipe.id).succeeded
        assert isinstance(report.outcome_for(9999).error, RecipeNotFound)

        budget = MenuBudget.load(stored_event.id)
        # 0.2 kg * 20 portions * 2.20
        assert budget.totals.total_cost == Decimal("8.8")
        assert budget.totals.cost_per_guest == Decimal("0.44")

    def test_add_recipes_updates_working_copy(self, stored_event, stored_recipe):
        budget = MenuBudget.load(stored_event.id)
        report = budget.add_recipes([stored_recipe.id], course_type="starter")
        assert report.all_succeeded
        assert [i.course_type for i in budget.event.menu] == ["starter"]
