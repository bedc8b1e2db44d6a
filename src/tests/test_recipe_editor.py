"""Tests for the recipe editing workflow."""

from decimal import Decimal
from unittest.mock import patch

import pytest

from menu_costing.services import ingredient_service, recipe_service
from menu_costing.services.exceptions import (
    DatabaseError,
    InvalidStateTransition,
    SaveInProgressError,
    ValidationError,
)
from menu_costing.services.recipe_editor import EditorState, RecipeEditor


@pytest.fixture
def tomato_snapshot(stored_tomato):
    return ingredient_service.get_ingredient_snapshot(stored_tomato.id)


@pytest.fixture
def basil_snapshot(stored_basil):
    return ingredient_service.get_ingredient_snapshot(stored_basil.id)


class TestStateMachine:
    def test_load_starts_viewing(self, stored_recipe):
        editor = RecipeEditor.load(stored_recipe.id)
        assert editor.state is EditorState.VIEWING
        assert not editor.is_draft

    def test_save_requires_editing(self, stored_recipe):
        editor = RecipeEditor.load(stored_recipe.id)
        with pytest.raises(InvalidStateTransition):
            editor.save()

    def test_edit_save_returns_to_viewing(self, stored_recipe):
        editor = RecipeEditor.load(stored_recipe.id)
        editor.begin_edit()
        editor.set_fields(servings=12, prep_time=20)
        result = editor.save()

        assert result.saved
        assert editor.state is EditorState.VIEWING
        stored = recipe_service.get_recipe(stored_recipe.id)
        assert stored.servings == 12
        assert stored.prep_time == 20

    def test_invalid_save_returns_to_editing_and_persists_nothing(self, stored_recipe):
        editor = RecipeEditor.load(stored_recipe.id)
        editor.begin_edit()
        editor.set_fields(servings=2)

        result = editor.save()

        assert not result.saved
        assert editor.state is EditorState.EDITING
        assert "(2)" in editor.errors["servings"]
        assert "(4)" in editor.errors["servings"]
        assert recipe_service.get_recipe(stored_recipe.id).servings == 10

    def test_second_save_while_saving_rejected(self, stored_recipe):
        editor = RecipeEditor.load(stored_recipe.id)
        editor.begin_edit()

        def reentrant_update(*args, **kwargs):
            assert editor.state is EditorState.SAVING
            return editor.save()

        with patch.object(recipe_service, "update_recipe", side_effect=reentrant_update):
            with pytest.raises(SaveInProgressError):
                editor.save()
        assert editor.state is EditorState.EDITING

    def test_database_error_surfaces(self, stored_recipe):
        editor = RecipeEditor.load(stored_recipe.id)
        editor.begin_edit()
        with patch.object(recipe_service, "update_recipe", side_effect=DatabaseError("disk full")):
            with pytest.raises(DatabaseError, match="disk full"):
                editor.save()
        assert editor.state is EditorState.EDITING

    def test_cancel_restores_fields(self, stored_recipe):
        editor = RecipeEditor.load(stored_recipe.id)
        editor.begin_edit()
        editor.set_fields(name="Changed")
        editor.cancel()
        assert editor.state is EditorState.VIEWING
        assert editor.recipe.name == "Tomato Salad"

    def test_edits_require_editing(self, stored_recipe):
        editor = RecipeEditor.load(stored_recipe.id)
        with pytest.raises(InvalidStateTransition):
            editor.create_section("Base")


class TestStoredRecipeEdits:
    def test_line_and_section_edits_write_through(self, stored_recipe, tomato_snapshot):
        editor = RecipeEditor.load(stored_recipe.id)
        editor.begin_edit()
        section = editor.create_section("Base")
        line = editor.add_line(tomato_snapshot, "0.2", section_id=section.id)

        stored = recipe_service.get_recipe_snapshot(stored_recipe.id)
        assert [s.id for s in stored.sections] == [section.id]
        assert stored.lines[0].id == line.id
        assert stored.lines[0].section_id == section.id

        with pytest.raises(ValidationError, match="section not empty"):
            editor.delete_section(section.id)

        editor.move_line(line.id, None)
        editor.delete_section(section.id)
        assert recipe_service.get_recipe_snapshot(stored_recipe.id).sections == ()

    def test_summary_uses_working_copy(self, stored_recipe, tomato_snapshot):
        editor = RecipeEditor.load(stored_recipe.id)
        editor.begin_edit()
        editor.add_line(tomato_snapshot, "0.2")
        summary = editor.summary()
        assert summary.total_cost == Decimal("4.40")
        assert summary.margin == Decimal("45.60")


class TestDraft:
    def test_new_draft_is_editing(self, test_db):
        editor = RecipeEditor.new("Bruschetta", servings=8, production_servings=4)
        assert editor.is_draft
        assert editor.state is EditorState.EDITING

    def test_draft_buffers_until_save(self, test_db, tomato_snapshot, basil_snapshot):
        editor = RecipeEditor.new("Bruschetta", servings=10, production_servings=4, net_price="30")
        topping = editor.create_section("Topping")
        editor.add_line(tomato_snapshot, "0.2", section_id=topping.id)
        editor.add_line(basil_snapshot, "2")
        draft_cost = editor.total_cost()

        assert recipe_service.list_recipes() == []

        result = editor.save()

        assert result.saved
        assert result.lines_report.all_succeeded
        assert editor.state is EditorState.VIEWING
        assert not editor.is_draft

        stored = recipe_service.get_recipe_snapshot(result.recipe.id)
        assert [s.name for s in stored.sections] == ["Topping"]
        by_ingredient = {line.ingredient_id: line for line in stored.lines}
        assert by_ingredient[tomato_snapshot.id].section_id == stored.sections[0].id
        assert by_ingredient[basil_snapshot.id].section_id is None
        assert editor.total_cost() == draft_cost

    def test_draft_flush_reports_partial_failure(self, test_db, tomato_snapshot, basil_snapshot):
        editor = RecipeEditor.new("Bruschetta", servings=10, production_servings=4)
        editor.add_line(tomato_snapshot, "0.2")
        editor.add_line(basil_snapshot, "2")

        real_add_line = recipe_service.add_line

        def flaky_add_line(recipe_id, data):
            if data["ingredient_id"] == tomato_snapshot.id:
                raise DatabaseError("connection lost")
            return real_add_line(recipe_id, data)

        with patch.object(recipe_service, "add_line", side_effect=flaky_add_line):
            result = editor.save()

        assert result.saved
        assert result.has_failures
        assert [o.key for o in result.lines_report.failed] == [tomato_snapshot.id]
        assert [o.key for o in result.lines_report.succeeded] == [basil_snapshot.id]
        assert [line.ingredient_id for line in result.recipe.lines] == [basil_snapshot.id]

    def test_retry_after_failed_reload_does_not_duplicate(self, test_db, tomato_snapshot):
        editor = RecipeEditor.new("Soup", servings=10, production_servings=4)
        editor.add_line(tomato_snapshot, "0.2")

        with patch.object(recipe_service, "get_recipe", side_effect=DatabaseError("connection lost")):
            with pytest.raises(DatabaseError):
                editor.save()

        assert editor.state is EditorState.EDITING
        assert not editor.is_draft

        result = editor.save()

        assert result.saved
        assert [r.name for r in recipe_service.list_recipes()] == ["Soup"]
        assert [line.ingredient_id for line in result.recipe.lines] == [tomato_snapshot.id]

    def test_invalid_draft_creates_nothing(self, test_db, tomato_snapshot):
        editor = RecipeEditor.new("", servings=1, production_servings=1)
        editor.add_line(tomato_snapshot, "0.2")
        result = editor.save()

        assert not result.saved
        assert "name" in result.errors
        assert editor.is_draft
        assert len(editor.recipe.lines) == 1
        assert recipe_service.list_recipes() == []

    def test_draft_rejects_non_positive_quantity(self, test_db, tomato_snapshot):
        editor = RecipeEditor.new("Soup")
        with pytest.raises(ValidationError):
            editor.add_line(tomato_snapshot, "0")

    @pytest.mark.parametrize("quantity", ["-1", "abc", "0"])
    def test_draft_update_line_keeps_quantity_positive(self, test_db, tomato_snapshot, quantity):
        editor = RecipeEditor.new("Soup", servings=10, production_servings=4)
        line = editor.add_line(tomato_snapshot, "0.2")
        before = editor.total_cost()

        with pytest.raises(ValidationError):
            editor.update_line(line.id, quantity_per_serving=quantity)

        assert editor.recipe.lines[0].quantity_per_serving == Decimal("0.2")
        assert editor.total_cost() == before
        assert editor.summary().total_cost == before

    def test_cancel_discards_draft_lines(self, test_db, tomato_snapshot):
        editor = RecipeEditor.new("Soup")
        editor.add_line(tomato_snapshot, "0.2")
        editor.cancel()
        assert editor.recipe.lines == ()
        assert editor.state is EditorState.VIEWING
