"""
Recipe Service - persistence of recipes, their sections and ingredient lines.

Every call changes a single entity; callers that need several changes
(flushing a draft recipe) compose them with saga.Saga. Lines and sections
are returned as snapshots so they can be fed straight back into the
costing and section rules.

Session Management Pattern:
- All functions accept an optional `session` parameter
- If session is provided, use it directly (caller manages the transaction)
- If session is None, create a new session_scope for the operation
"""

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from menu_costing.models import Ingredient, Recipe, RecipeCategory, RecipeIngredient, RecipeSection
from menu_costing.services import costing
from menu_costing.services.database import session_scope
from menu_costing.services.dto import LineSnapshot, RecipeSnapshot, SectionSnapshot
from menu_costing.services.exceptions import (
    DatabaseError,
    IngredientNotFound,
    LineNotFound,
    RecipeNotFound,
    SectionNotFound,
    ValidationError,
)
from menu_costing.services.logging_utils import get_service_logger, log_operation
from menu_costing.services.section_manager import (
    LineGroup,
    ensure_move_target,
    ensure_section_empty,
    group_recipe_lines,
    next_section_order,
    validate_section_name,
)
from menu_costing.utils.constants import DEFAULT_TARGET_MARGIN
from menu_costing.utils.validators import validate_line_data

logger = get_service_logger(__name__)

_RECIPE_FIELDS = (
    "name",
    "servings",
    "production_servings",
    "net_price",
    "prep_time",
    "difficulty",
    "instructions",
)

_DUPLICATE_LINE = "Ingredient is already in the recipe"


def _run(impl, session: Optional[Session], failure: str):
    """Run ``impl`` in the given session or a new scope, wrapping DB errors."""
    try:
        if session is not None:
            return impl(session)
        with session_scope() as sess:
            return impl(sess)
    except SQLAlchemyError as e:
        log_operation(logger, operation="recipe_service", outcome="database_error", error=str(e))
        raise DatabaseError(failure, e)


def _get_recipe(sess: Session, recipe_id: int) -> Recipe:
    recipe = sess.query(Recipe).filter_by(id=recipe_id).first()
    if recipe is None:
        raise RecipeNotFound(recipe_id)
    return recipe


def _get_line(sess: Session, line_id: int) -> RecipeIngredient:
    line = sess.query(RecipeIngredient).filter_by(id=line_id).first()
    if line is None:
        raise LineNotFound(line_id)
    return line


def _get_section(sess: Session, section_id: int) -> RecipeSection:
    section = sess.query(RecipeSection).filter_by(id=section_id).first()
    if section is None:
        raise SectionNotFound(section_id)
    return section


def _section_snapshots(recipe: Recipe) -> List[SectionSnapshot]:
    return [SectionSnapshot.from_record(s) for s in recipe.sections]


def _line_values(line_data: Any) -> Dict[str, Any]:
    if isinstance(line_data, LineSnapshot):
        return {
            "ingredient_id": line_data.ingredient_id,
            "quantity_per_serving": line_data.quantity_per_serving,
            "section_id": line_data.section_id,
            "notes": line_data.notes,
        }
    return dict(line_data)


# ============================================================================
# Recipes
# ============================================================================


def create_recipe(recipe_data: Dict[str, Any], session: Optional[Session] = None) -> Recipe:
    """
    Create a recipe without lines.

    Args:
        recipe_data: name, servings, production_servings, net_price (total
            selling price for all servings), prep_time, difficulty, instructions

    Raises:
        ValidationError: Including servings below production_servings
        DatabaseError: If database operation fails
    """
    costing.validate_recipe_for_save(recipe_data)

    def _impl(sess: Session) -> Recipe:
        recipe = Recipe(**{k: v for k, v in recipe_data.items() if k in _RECIPE_FIELDS})
        sess.add(recipe)
        sess.flush()
        sess.refresh(recipe)
        log_operation(logger, operation="create_recipe", outcome="success", recipe_id=recipe.id)
        return recipe

    return _run(_impl, session, "Failed to create recipe")


def get_recipe(recipe_id: int, session: Optional[Session] = None) -> Recipe:
    """
    Retrieve a recipe with sections and lines loaded.

    Raises:
        RecipeNotFound: If the recipe doesn't exist
    """
    return _run(lambda sess: _get_recipe(sess, recipe_id), session, f"Failed to retrieve recipe {recipe_id}")


def get_recipe_snapshot(recipe_id: int, session: Optional[Session] = None) -> RecipeSnapshot:
    """Recipe with sections and lines (ingredients embedded) as a snapshot."""

    def _impl(sess: Session) -> RecipeSnapshot:
        return RecipeSnapshot.from_record(_get_recipe(sess, recipe_id))

    return _run(_impl, session, f"Failed to retrieve recipe {recipe_id}")


def list_recipes(
    name_search: Optional[str] = None,
    category: Optional[str] = None,
    session: Optional[Session] = None,
) -> List[Recipe]:
    """List recipes ordered by name, optionally filtered by partial name and category name."""

    def _impl(sess: Session) -> List[Recipe]:
        query = sess.query(Recipe)
        if name_search:
            query = query.filter(Recipe.name.ilike(f"%{name_search}%"))
        if category:
            query = query.filter(Recipe.categories.any(RecipeCategory.name == category))
        return query.order_by(Recipe.name).all()

    return _run(_impl, session, "Failed to list recipes")


def update_recipe(
    recipe_id: int, recipe_data: Dict[str, Any], session: Optional[Session] = None
) -> Recipe:
    """
    Update recipe fields (lines and sections have their own calls).

    Raises:
        RecipeNotFound: If the recipe doesn't exist
        ValidationError: If the merged fields may not be saved
    """

    def _impl(sess: Session) -> Recipe:
        recipe = _get_recipe(sess, recipe_id)
        merged = {field: getattr(recipe, field) for field in _RECIPE_FIELDS}
        merged.update({k: v for k, v in recipe_data.items() if k in _RECIPE_FIELDS})
        costing.validate_recipe_for_save(merged)
        recipe.update_from_dict(merged)
        sess.flush()
        log_operation(logger, operation="update_recipe", outcome="success", recipe_id=recipe_id)
        return recipe

    return _run(_impl, session, f"Failed to update recipe {recipe_id}")


def delete_recipe(recipe_id: int, session: Optional[Session] = None) -> bool:
    """Delete a recipe with its sections, lines and event menu entries."""

    def _impl(sess: Session) -> bool:
        sess.delete(_get_recipe(sess, recipe_id))
        log_operation(logger, operation="delete_recipe", outcome="success", recipe_id=recipe_id)
        return True

    return _run(_impl, session, f"Failed to delete recipe {recipe_id}")


def get_cost_summary(
    recipe_id: int,
    target_margin: Any = DEFAULT_TARGET_MARGIN,
    session: Optional[Session] = None,
) -> costing.RecipeCostSummary:
    """Cost, margin and suggested price of a stored recipe."""
    return costing.summarize(get_recipe_snapshot(recipe_id, session=session), target_margin)


# ============================================================================
# Ingredient lines
# ============================================================================


def add_line(recipe_id: int, line_data: Any, session: Optional[Session] = None) -> LineSnapshot:
    """
    Add one ingredient line to a recipe.

    Args:
        recipe_id: Recipe ID
        line_data: dict or LineSnapshot with ingredient_id,
            quantity_per_serving (for ONE serving), section_id, notes

    Raises:
        ValidationError: Bad quantity or ingredient already in the recipe
        IngredientNotFound: If the ingredient doesn't exist
        SectionNotFound: If section_id is not a section of this recipe
    """
    values = _line_values(line_data)
    errors = validate_line_data(values)
    if errors:
        raise ValidationError(errors)

    def _impl(sess: Session) -> LineSnapshot:
        recipe = _get_recipe(sess, recipe_id)
        ingredient = sess.query(Ingredient).filter_by(id=values["ingredient_id"]).first()
        if ingredient is None:
            raise IngredientNotFound(values["ingredient_id"])
        ensure_move_target(values.get("section_id"), _section_snapshots(recipe), recipe_id)
        if any(line.ingredient_id == ingredient.id for line in recipe.lines):
            raise ValidationError({"ingredient_id": _DUPLICATE_LINE})

        line = RecipeIngredient(
            recipe_id=recipe.id,
            ingredient_id=ingredient.id,
            section_id=values.get("section_id"),
            quantity_per_serving=values["quantity_per_serving"],
            notes=values.get("notes"),
        )
        sess.add(line)
        try:
            sess.flush()
        except IntegrityError:
            raise ValidationError({"ingredient_id": _DUPLICATE_LINE})
        sess.refresh(line)

        log_operation(
            logger,
            operation="add_line",
            outcome="success",
            recipe_id=recipe_id,
            ingredient_id=ingredient.id,
            line_id=line.id,
        )
        return LineSnapshot.from_record(line)

    return _run(_impl, session, f"Failed to add ingredient to recipe {recipe_id}")


def update_line(line_id: int, changes: Dict[str, Any], session: Optional[Session] = None) -> LineSnapshot:
    """
    Change a line's quantity, notes or section.

    Raises:
        LineNotFound: If the line doesn't exist
        ValidationError: If the new quantity is not positive
        SectionNotFound: If a new section_id is not a section of the same recipe
    """

    def _impl(sess: Session) -> LineSnapshot:
        line = _get_line(sess, line_id)
        merged = {
            "ingredient_id": line.ingredient_id,
            "quantity_per_serving": changes.get("quantity_per_serving", line.quantity_per_serving),
            "notes": changes.get("notes", line.notes),
        }
        errors = validate_line_data(merged)
        if errors:
            raise ValidationError(errors)
        if "section_id" in changes:
            ensure_move_target(
                changes["section_id"], _section_snapshots(line.recipe), line.recipe_id
            )
            line.section_id = changes["section_id"]
        line.quantity_per_serving = merged["quantity_per_serving"]
        line.notes = merged["notes"]
        sess.flush()
        sess.refresh(line)
        return LineSnapshot.from_record(line)

    return _run(_impl, session, f"Failed to update recipe line {line_id}")


def remove_line(line_id: int, session: Optional[Session] = None) -> bool:
    """Delete an ingredient line."""

    def _impl(sess: Session) -> bool:
        sess.delete(_get_line(sess, line_id))
        return True

    return _run(_impl, session, f"Failed to remove recipe line {line_id}")


def move_line(
    line_id: int, target_section_id: Optional[int], session: Optional[Session] = None
) -> LineSnapshot:
    """
    Assign a line to a section of its recipe, or to None (unassigned).

    A single update of ``section_id``; moving to the current section
    writes nothing.

    Raises:
        LineNotFound: If the line doesn't exist
        SectionNotFound: If the target is not a section of the line's recipe
    """

    def _impl(sess: Session) -> LineSnapshot:
        line = _get_line(sess, line_id)
        ensure_move_target(target_section_id, _section_snapshots(line.recipe), line.recipe_id)
        if line.section_id != target_section_id:
            line.section_id = target_section_id
            sess.flush()
            log_operation(
                logger,
                operation="move_line",
                outcome="success",
                line_id=line_id,
                section_id=target_section_id,
            )
        return LineSnapshot.from_record(line)

    return _run(_impl, session, f"Failed to move recipe line {line_id}")


# ============================================================================
# Sections
# ============================================================================


def create_section(recipe_id: int, name: str, session: Optional[Session] = None) -> SectionSnapshot:
    """
    Append an empty section after the recipe's last section.

    Raises:
        RecipeNotFound: If the recipe doesn't exist
        ValidationError: If the name is blank
    """
    clean_name = validate_section_name(name)

    def _impl(sess: Session) -> SectionSnapshot:
        recipe = _get_recipe(sess, recipe_id)
        section = RecipeSection(
            recipe_id=recipe.id,
            name=clean_name,
            order=next_section_order(_section_snapshots(recipe)),
        )
        sess.add(section)
        sess.flush()
        log_operation(
            logger, operation="create_section", outcome="success", recipe_id=recipe_id, section_id=section.id
        )
        return SectionSnapshot.from_record(section)

    return _run(_impl, session, f"Failed to create section in recipe {recipe_id}")


def rename_section(section_id: int, name: str, session: Optional[Session] = None) -> SectionSnapshot:
    """Rename a section; its order and lines are unchanged."""
    clean_name = validate_section_name(name)

    def _impl(sess: Session) -> SectionSnapshot:
        section = _get_section(sess, section_id)
        section.name = clean_name
        sess.flush()
        return SectionSnapshot.from_record(section)

    return _run(_impl, session, f"Failed to rename section {section_id}")


def delete_section(section_id: int, session: Optional[Session] = None) -> bool:
    """
    Delete an empty section.

    Raises:
        SectionNotFound: If the section doesn't exist
        ValidationError: "section not empty" while lines are assigned to it
    """

    def _impl(sess: Session) -> bool:
        section = _get_section(sess, section_id)
        lines = [LineSnapshot.from_record(line) for line in section.recipe.lines]
        ensure_section_empty(section_id, lines)
        sess.delete(section)
        log_operation(logger, operation="delete_section", outcome="success", section_id=section_id)
        return True

    return _run(_impl, session, f"Failed to delete section {section_id}")


def reorder_sections(
    recipe_id: int, section_ids: Sequence[int], session: Optional[Session] = None
) -> List[SectionSnapshot]:
    """
    Rewrite the declared section order.

    Raises:
        ValidationError: If section_ids is not a permutation of the recipe's sections
    """

    def _impl(sess: Session) -> List[SectionSnapshot]:
        recipe = _get_recipe(sess, recipe_id)
        if sorted(section_ids) != sorted(s.id for s in recipe.sections):
            raise ValidationError({"section_ids": "Must list every section of the recipe exactly once"})
        position = {section_id: order for order, section_id in enumerate(section_ids)}
        for section in recipe.sections:
            section.order = position[section.id]
        sess.flush()
        return sorted(_section_snapshots(recipe), key=lambda s: s.order)

    return _run(_impl, session, f"Failed to reorder sections of recipe {recipe_id}")


def get_grouped_lines(recipe_id: int, session: Optional[Session] = None) -> List[LineGroup]:
    """Lines of a stored recipe grouped for display by section."""
    return group_recipe_lines(get_recipe_snapshot(recipe_id, session=session))
