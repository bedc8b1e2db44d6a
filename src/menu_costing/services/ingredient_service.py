"""Ingredient Service - master data for priced ingredients.

This module provides CRUD operations for ingredients, allergen assignment,
soft deletion (deactivate/activate) and dependency checking before a hard
delete.

All functions are stateless and use session_scope() for transaction
management. The stored ``net_price`` is recalculated by the model layer on
every insert and update; values sent by the client for it are ignored.

Example Usage:
  >>> from menu_costing.services.ingredient_service import create_ingredient
  >>> tomato = create_ingredient(
  ...     {"name": "Tomato", "unit": "kg", "base_price": "2.00", "waste_percent": "0.10"}
  ... )
  >>> tomato.net_price
  Decimal('2.200000')
"""

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from menu_costing.models import Allergen, Ingredient, IngredientCategory, RecipeIngredient
from menu_costing.services.database import session_scope
from menu_costing.services.dto import IngredientSnapshot, normalize_tags
from menu_costing.services.exceptions import (
    DatabaseError,
    IngredientInUse,
    IngredientNotFound,
    ServiceError,
    ValidationError,
)
from menu_costing.services.ingredient_valuation import validate_ingredient
from menu_costing.services.logging_utils import get_service_logger, log_operation
from menu_costing.utils.validators import canonical_unit

logger = get_service_logger(__name__)

_INGREDIENT_FIELDS = (
    "name",
    "unit",
    "base_price",
    "waste_percent",
    "stock",
    "stock_minimum",
    "season",
    "expiration_date",
    "is_available",
    "comment",
    "calories",
    "protein",
    "carbs",
    "fat",
)


def _prepare(data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep writable columns and normalize unit and season spellings."""
    values = {k: v for k, v in data.items() if k in _INGREDIENT_FIELDS}
    if values.get("unit"):
        values["unit"] = canonical_unit(values["unit"]) or values["unit"]
    if "season" in values:
        tags = normalize_tags(values["season"])
        values["season"] = ",".join(tags) if tags else None
    if isinstance(values.get("name"), str):
        values["name"] = values["name"].strip()
    return values


def _get_ingredient(sess: Session, ingredient_id: int) -> Ingredient:
    ingredient = sess.query(Ingredient).filter_by(id=ingredient_id).first()
    if ingredient is None:
        raise IngredientNotFound(ingredient_id)
    return ingredient


def _resolve_allergens(sess: Session, names: Iterable[str]) -> List[Allergen]:
    """Look up allergens by name, creating missing ones."""
    allergens = []
    for name in normalize_tags(list(names)):
        allergen = sess.query(Allergen).filter_by(name=name).first()
        if allergen is None:
            allergen = Allergen(name=name)
            sess.add(allergen)
        allergens.append(allergen)
    return allergens


def create_ingredient(ingredient_data: Dict[str, Any]) -> Ingredient:
    """Create a new ingredient.

    Args:
        ingredient_data: Dictionary containing ingredient fields:
            - name (str, required)
            - unit (str, required): kg, g, L, ml or unit
            - base_price, waste_percent (fraction), stock, stock_minimum
            - season: list or comma-separated month tags
            - allergens: list of allergen names
            - calories, protein, carbs, fat: per 100 g

    Returns:
        Created Ingredient with its authoritative net_price

    Raises:
        ValidationError: If name or unit is missing, or a number is negative
        DatabaseError: If database operation fails
    """
    errors = validate_ingredient(ingredient_data)
    if errors:
        raise ValidationError(errors)

    try:
        with session_scope() as session:
            ingredient = Ingredient(**_prepare(ingredient_data))
            if ingredient_data.get("allergens"):
                ingredient.allergens = _resolve_allergens(
                    session, normalize_tags(ingredient_data["allergens"])
                )
            session.add(ingredient)
            session.flush()
            session.refresh(ingredient)

            log_operation(
                logger,
                operation="create_ingredient",
                outcome="success",
                ingredient_id=ingredient.id,
                net_price=str(ingredient.net_price),
            )
            return ingredient

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create ingredient", original_error=e)


def get_ingredient(ingredient_id: int) -> Ingredient:
    """Retrieve an ingredient by ID.

    Raises:
        IngredientNotFound: If the ingredient doesn't exist
    """
    try:
        with session_scope() as session:
            return _get_ingredient(session, ingredient_id)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to retrieve ingredient {ingredient_id}", original_error=e)


def get_ingredient_snapshot(ingredient_id: int) -> IngredientSnapshot:
    """Read-only view of an ingredient for costing."""
    return IngredientSnapshot.from_record(get_ingredient(ingredient_id))


def list_ingredients(
    name_search: Optional[str] = None,
    available_only: bool = False,
    category: Optional[str] = None,
) -> List[Ingredient]:
    """List ingredients ordered by name.

    Args:
        name_search: Optional case-insensitive partial name match
        available_only: Skip ingredients marked unavailable
        category: Only ingredients in the category with this name
    """
    try:
        with session_scope() as session:
            query = session.query(Ingredient)
            if name_search:
                query = query.filter(Ingredient.name.ilike(f"%{name_search}%"))
            if available_only:
                query = query.filter(Ingredient.is_available.is_(True))
            if category:
                query = query.filter(Ingredient.categories.any(IngredientCategory.name == category))
            return query.order_by(Ingredient.name).all()
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to list ingredients", original_error=e)


def ingredient_lookup(ingredient_ids: Optional[Iterable[int]] = None) -> Dict[int, IngredientSnapshot]:
    """Snapshots keyed by ID, for costing lines that don't embed their ingredient."""
    try:
        with session_scope() as session:
            query = session.query(Ingredient)
            if ingredient_ids is not None:
                query = query.filter(Ingredient.id.in_(list(ingredient_ids)))
            return {row.id: IngredientSnapshot.from_record(row) for row in query.all()}
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to load ingredients", original_error=e)


def update_ingredient(ingredient_id: int, ingredient_data: Dict[str, Any]) -> Ingredient:
    """Update an ingredient.

    The incoming values are merged with the stored ones before validation,
    so partial updates are allowed. ``net_price`` is recalculated on flush.

    Raises:
        IngredientNotFound: If the ingredient doesn't exist
        ValidationError: If the merged data is invalid
        DatabaseError: If database operation fails
    """
    try:
        with session_scope() as session:
            ingredient = _get_ingredient(session, ingredient_id)

            merged = {field: getattr(ingredient, field) for field in _INGREDIENT_FIELDS}
            merged.update(ingredient_data)
            errors = validate_ingredient(merged)
            if errors:
                raise ValidationError(errors)

            ingredient.update_from_dict(_prepare(ingredient_data))
            if "allergens" in ingredient_data:
                ingredient.allergens = _resolve_allergens(
                    session, normalize_tags(ingredient_data["allergens"])
                )
            session.flush()
            session.refresh(ingredient)

            log_operation(
                logger,
                operation="update_ingredient",
                outcome="success",
                ingredient_id=ingredient_id,
                net_price=str(ingredient.net_price),
            )
            return ingredient

    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update ingredient {ingredient_id}", original_error=e)


def set_allergens(ingredient_id: int, allergen_names: Iterable[str]) -> Ingredient:
    """Replace the allergen set of an ingredient."""
    try:
        with session_scope() as session:
            ingredient = _get_ingredient(session, ingredient_id)
            ingredient.allergens = _resolve_allergens(session, allergen_names)
            session.flush()
            return ingredient
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(
            f"Failed to set allergens for ingredient {ingredient_id}", original_error=e
        )


def list_allergens() -> List[Allergen]:
    """All known allergens ordered by name."""
    try:
        with session_scope() as session:
            return session.query(Allergen).order_by(Allergen.name).all()
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to list allergens", original_error=e)


def _set_availability(ingredient_id: int, available: bool, operation: str) -> Ingredient:
    try:
        with session_scope() as session:
            ingredient = _get_ingredient(session, ingredient_id)
            ingredient.is_available = available
            session.flush()
            log_operation(logger, operation=operation, outcome="success", ingredient_id=ingredient_id)
            return ingredient
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to {operation} {ingredient_id}", original_error=e)


def deactivate_ingredient(ingredient_id: int) -> Ingredient:
    """Soft delete: mark an ingredient unavailable.

    Recipe lines keep referencing it and keep costing it; it only drops out
    of ``list_ingredients(available_only=True)``.

    Raises:
        IngredientNotFound: If the ingredient doesn't exist
    """
    return _set_availability(ingredient_id, False, "deactivate_ingredient")


def activate_ingredient(ingredient_id: int) -> Ingredient:
    """Make a deactivated ingredient available again.

    Raises:
        IngredientNotFound: If the ingredient doesn't exist
    """
    return _set_availability(ingredient_id, True, "activate_ingredient")


def check_ingredient_dependencies(ingredient_id: int) -> Dict[str, int]:
    """Count the records that reference an ingredient.

    Returns:
        {"recipes": number of distinct recipes using the ingredient}
    """
    try:
        with session_scope() as session:
            _get_ingredient(session, ingredient_id)
            recipe_count = (
                session.query(RecipeIngredient.recipe_id)
                .filter(RecipeIngredient.ingredient_id == ingredient_id)
                .distinct()
                .count()
            )
            return {"recipes": recipe_count}
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(
            f"Failed to check dependencies of ingredient {ingredient_id}", original_error=e
        )


def delete_ingredient(ingredient_id: int) -> bool:
    """Delete an ingredient that no recipe uses.

    Raises:
        IngredientNotFound: If the ingredient doesn't exist
        IngredientInUse: If any recipe line references it
    """
    deps = check_ingredient_dependencies(ingredient_id)
    if deps["recipes"]:
        log_operation(
            logger,
            operation="delete_ingredient",
            outcome="rejected_in_use",
            ingredient_id=ingredient_id,
            recipe_count=deps["recipes"],
        )
        raise IngredientInUse(ingredient_id, deps["recipes"])

    try:
        with session_scope() as session:
            session.delete(_get_ingredient(session, ingredient_id))
            log_operation(
                logger, operation="delete_ingredient", outcome="success", ingredient_id=ingredient_id
            )
            return True
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete ingredient {ingredient_id}", original_error=e)
