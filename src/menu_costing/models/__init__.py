"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .ingredient import Allergen, Ingredient, ingredient_allergens
from .recipe import Recipe, RecipeIngredient, RecipeSection
from .event import Event, EventMenuItem
from .category import (
    IngredientCategory,
    RecipeCategory,
    ingredient_category_assignments,
    recipe_category_assignments,
)

__all__ = [
    "Base",
    "BaseModel",
    "Allergen",
    "Ingredient",
    "ingredient_allergens",
    "Recipe",
    "RecipeSection",
    "RecipeIngredient",
    "Event",
    "EventMenuItem",
    "RecipeCategory",
    "IngredientCategory",
    "recipe_category_assignments",
    "ingredient_category_assignments",
]
