"""
Category Service - flat categories for recipes and ingredients.

Both kinds share one set of operations, selected by ``kind`` ("recipe" or
"ingredient"). A recipe or ingredient may carry any number of categories;
assigning replaces the whole set. Deleting a category removes its
assignments and leaves the recipes and ingredients alone.

Session Management Pattern:
- All functions accept an optional `session` parameter
- If session is provided, use it directly (caller manages the transaction)
- If session is None, create a new session_scope for the operation
"""

from typing import Dict, List, Optional, Sequence, Type, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from menu_costing.models import Ingredient, IngredientCategory, Recipe, RecipeCategory
from menu_costing.services.database import session_scope
from menu_costing.services.exceptions import (
    CategoryNotFound,
    DatabaseError,
    IngredientNotFound,
    RecipeNotFound,
    ValidationError,
)
from menu_costing.services.logging_utils import get_service_logger, log_operation
from menu_costing.utils.validators import validate_required_string, validate_string_length

logger = get_service_logger(__name__)

RECIPE = "recipe"
INGREDIENT = "ingredient"

Category = Union[RecipeCategory, IngredientCategory]

_MODELS: Dict[str, Type[Category]] = {
    RECIPE: RecipeCategory,
    INGREDIENT: IngredientCategory,
}

MAX_CATEGORY_NAME_LENGTH = 100


def _model(kind: str) -> Type[Category]:
    try:
        return _MODELS[kind]
    except KeyError:
        raise ValueError(f"Unknown category kind '{kind}'; use one of: {', '.join(_MODELS)}")


def _run(impl, session: Optional[Session], failure: str):
    try:
        if session is not None:
            return impl(session)
        with session_scope() as sess:
            return impl(sess)
    except SQLAlchemyError as e:
        log_operation(logger, operation="category_service", outcome="database_error", error=str(e))
        raise DatabaseError(failure, e)


def _clean_name(name: Optional[str]) -> str:
    for is_valid, error in (
        validate_required_string(name),
        validate_string_length(name, MAX_CATEGORY_NAME_LENGTH),
    ):
        if not is_valid:
            raise ValidationError({"name": error})
    return name.strip()


def _ensure_unique(sess: Session, model, name: str, exclude_id: Optional[int] = None) -> None:
    query = sess.query(model).filter(model.name == name)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    if query.first() is not None:
        raise ValidationError({"name": f"Category with name '{name}' already exists"})


def _get_category(sess: Session, kind: str, category_id: int) -> Category:
    category = sess.query(_model(kind)).filter_by(id=category_id).first()
    if category is None:
        raise CategoryNotFound(kind, category_id)
    return category


# ============================================================================
# CRUD Operations
# ============================================================================


def list_categories(kind: str, session: Optional[Session] = None) -> List[Category]:
    """List categories of one kind ordered by sort_order, then name."""
    model = _model(kind)

    def _impl(sess: Session) -> List[Category]:
        return sess.query(model).order_by(model.sort_order, model.name).all()

    return _run(_impl, session, f"Failed to list {kind} categories")


def get_category(kind: str, category_id: int, session: Optional[Session] = None) -> Category:
    """
    Get a category by ID.

    Raises:
        CategoryNotFound: If the category doesn't exist
    """
    return _run(
        lambda sess: _get_category(sess, kind, category_id),
        session,
        f"Failed to retrieve {kind} category {category_id}",
    )


def create_category(
    kind: str,
    name: str,
    sort_order: int = 0,
    description: Optional[str] = None,
    session: Optional[Session] = None,
) -> Category:
    """
    Create a category.

    Raises:
        ValidationError: If the name is empty, too long or already taken
    """
    model = _model(kind)
    clean = _clean_name(name)

    def _impl(sess: Session) -> Category:
        _ensure_unique(sess, model, clean)
        category = model(name=clean, sort_order=sort_order, description=description)
        sess.add(category)
        sess.flush()
        sess.refresh(category)
        log_operation(
            logger,
            operation="create_category",
            outcome="success",
            kind=kind,
            category_id=category.id,
        )
        return category

    return _run(_impl, session, f"Failed to create {kind} category")


def update_category(
    kind: str,
    category_id: int,
    name: Optional[str] = None,
    sort_order: Optional[int] = None,
    description: Optional[str] = None,
    session: Optional[Session] = None,
) -> Category:
    """
    Update a category's name, sort order or description.

    Raises:
        CategoryNotFound: If the category doesn't exist
        ValidationError: If the new name is empty or already taken
    """
    model = _model(kind)
    clean = _clean_name(name) if name is not None else None

    def _impl(sess: Session) -> Category:
        category = _get_category(sess, kind, category_id)
        if clean is not None:
            _ensure_unique(sess, model, clean, exclude_id=category_id)
            category.name = clean
        if sort_order is not None:
            category.sort_order = sort_order
        if description is not None:
            category.description = description
        sess.flush()
        sess.refresh(category)
        return category

    return _run(_impl, session, f"Failed to update {kind} category {category_id}")


def delete_category(kind: str, category_id: int, session: Optional[Session] = None) -> int:
    """
    Delete a category and its assignments.

    Returns:
        Number of recipes or ingredients that lost the category

    Raises:
        CategoryNotFound: If the category doesn't exist
    """

    def _impl(sess: Session) -> int:
        category = _get_category(sess, kind, category_id)
        members = category.recipes if kind == RECIPE else category.ingredients
        unassigned = len(members)
        sess.delete(category)
        sess.flush()
        log_operation(
            logger,
            operation="delete_category",
            outcome="success",
            kind=kind,
            category_id=category_id,
            unassigned=unassigned,
        )
        return unassigned

    return _run(_impl, session, f"Failed to delete {kind} category {category_id}")


# ============================================================================
# Assignment
# ============================================================================


def _resolve(sess: Session, kind: str, category_ids: Sequence[int]) -> List[Category]:
    if isinstance(category_ids, (str, bytes)) or not isinstance(category_ids, Sequence):
        raise ValidationError({"category_ids": "Must be a list of category IDs"})
    resolved = []
    for category_id in dict.fromkeys(category_ids):
        resolved.append(_get_category(sess, kind, category_id))
    return resolved


def set_recipe_categories(
    recipe_id: int, category_ids: Sequence[int], session: Optional[Session] = None
) -> List[RecipeCategory]:
    """
    Replace the categories of a recipe.

    An empty list clears them. Nothing changes if any ID is unknown.

    Raises:
        RecipeNotFound: If the recipe doesn't exist
        CategoryNotFound: If a category ID is unknown
        ValidationError: If category_ids is not a list
    """

    def _impl(sess: Session) -> List[RecipeCategory]:
        recipe = sess.query(Recipe).filter_by(id=recipe_id).first()
        if recipe is None:
            raise RecipeNotFound(recipe_id)
        recipe.categories = _resolve(sess, RECIPE, category_ids)
        sess.flush()
        log_operation(
            logger,
            operation="set_recipe_categories",
            outcome="success",
            recipe_id=recipe_id,
            category_ids=[c.id for c in recipe.categories],
        )
        return list(recipe.categories)

    return _run(_impl, session, f"Failed to set categories of recipe {recipe_id}")


def set_ingredient_categories(
    ingredient_id: int, category_ids: Sequence[int], session: Optional[Session] = None
) -> List[IngredientCategory]:
    """
    Replace the categories of an ingredient.

    Raises:
        IngredientNotFound: If the ingredient doesn't exist
        CategoryNotFound: If a category ID is unknown
        ValidationError: If category_ids is not a list
    """

    def _impl(sess: Session) -> List[IngredientCategory]:
        ingredient = sess.query(Ingredient).filter_by(id=ingredient_id).first()
        if ingredient is None:
            raise IngredientNotFound(ingredient_id)
        ingredient.categories = _resolve(sess, INGREDIENT, category_ids)
        sess.flush()
        log_operation(
            logger,
            operation="set_ingredient_categories",
            outcome="success",
            ingredient_id=ingredient_id,
            category_ids=[c.id for c in ingredient.categories],
        )
        return list(ingredient.categories)

    return _run(_impl, session, f"Failed to set categories of ingredient {ingredient_id}")
