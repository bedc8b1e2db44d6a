"""Service layer exception classes for Menu Costing.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError          - blocks a save, carries field -> message map
    ├── DatabaseError            - persistence call failed (surfaced verbatim)
    ├── IngredientNotFound
    ├── IngredientInUse
    ├── RecipeNotFound
    ├── SectionNotFound
    ├── LineNotFound
    ├── EventNotFound
    ├── MenuItemNotFound
    ├── CategoryNotFound
    ├── SaveInProgressError      - re-entrant save while a save is pending
    └── InvalidStateTransition   - illegal recipe editor transition

Division by zero and partial failures are not exceptions: they are reported
through CostPerServing.division_undefined and saga.SagaReport.
"""

from typing import Dict, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors."""

    pass


class ValidationError(ServiceError):
    """Raised when data validation blocks a save.

    Args:
        errors: Map of field name to message. A plain string is stored under
            the ``__all__`` key.

    Example:
        >>> raise ValidationError({"servings": "Servings (4) must be at least ..."})
        ValidationError: Validation failed: servings: Servings (4) must be ...
    """

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = {"__all__": errors}
        self.errors: Dict[str, str] = dict(errors)
        error_msg = "; ".join(
            message if field == "__all__" else f"{field}: {message}"
            for field, message in self.errors.items()
        )
        super().__init__(f"Validation failed: {error_msg}")


class DatabaseError(ServiceError):
    """Raised when a persistence call fails.

    The original exception is kept so callers can decide on retries; the
    engine itself never retries.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")


class IngredientNotFound(ServiceError):
    """Raised when an ingredient cannot be found by ID."""

    def __init__(self, ingredient_id: int):
        self.ingredient_id = ingredient_id
        super().__init__(f"Ingredient with ID {ingredient_id} not found")


class IngredientInUse(ServiceError):
    """Raised when deleting an ingredient that recipe lines still use."""

    def __init__(self, ingredient_id: int, recipe_count: int):
        self.ingredient_id = ingredient_id
        self.recipe_count = recipe_count
        super().__init__(
            f"Cannot delete ingredient {ingredient_id}: used in {recipe_count} recipe(s)"
        )


class RecipeNotFound(ServiceError):
    """Raised when a recipe cannot be found by ID."""

    def __init__(self, recipe_id: int):
        self.recipe_id = recipe_id
        super().__init__(f"Recipe with ID {recipe_id} not found")


class SectionNotFound(ServiceError):
    """Raised when a section does not exist on the given recipe."""

    def __init__(self, section_id: int, recipe_id: Optional[int] = None):
        self.section_id = section_id
        self.recipe_id = recipe_id
        where = f" in recipe {recipe_id}" if recipe_id is not None else ""
        super().__init__(f"Section with ID {section_id} not found{where}")


class LineNotFound(ServiceError):
    """Raised when a recipe ingredient line cannot be found."""

    def __init__(self, line_id: int):
        self.line_id = line_id
        super().__init__(f"Recipe line with ID {line_id} not found")


class EventNotFound(ServiceError):
    """Raised when an event cannot be found by ID."""

    def __init__(self, event_id: int):
        self.event_id = event_id
        super().__init__(f"Event with ID {event_id} not found")


class MenuItemNotFound(ServiceError):
    """Raised when a recipe is not on an event's menu."""

    def __init__(self, event_id: int, recipe_id: int):
        self.event_id = event_id
        self.recipe_id = recipe_id
        super().__init__(f"Recipe {recipe_id} is not on the menu of event {event_id}")


class CategoryNotFound(ServiceError):
    """Raised when a recipe or ingredient category cannot be found by ID."""

    def __init__(self, kind: str, category_id: int):
        self.kind = kind
        self.category_id = category_id
        super().__init__(f"{kind.capitalize()} category with ID {category_id} not found")


class SaveInProgressError(ServiceError):
    """Raised when save() is called while a previous save is still pending."""

    def __init__(self, recipe_name: Optional[str] = None):
        self.recipe_name = recipe_name
        super().__init__(f"A save is already in progress for recipe '{recipe_name}'")


class InvalidStateTransition(ServiceError):
    """Raised when the recipe editor is asked for a transition it does not allow."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot {requested} while {current}")
