"""
Category models for grouping recipes and ingredients.

This module contains:
- RecipeCategory: Flat recipe grouping (e.g., "Starters", "Vegan")
- IngredientCategory: Flat ingredient grouping (e.g., "Dairy", "Produce")
- recipe_category_assignments / ingredient_category_assignments: Association
  tables; a recipe or ingredient may belong to any number of categories

Categories never affect cost.
"""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from .base import Base, BaseModel


recipe_category_assignments = Table(
    "recipe_category_assignments",
    Base.metadata,
    Column("recipe_id", Integer, ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "category_id",
        Integer,
        ForeignKey("recipe_categories.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)

ingredient_category_assignments = Table(
    "ingredient_category_assignments",
    Base.metadata,
    Column(
        "ingredient_id", Integer, ForeignKey("ingredients.id", ondelete="CASCADE"), primary_key=True
    ),
    Column(
        "category_id",
        Integer,
        ForeignKey("ingredient_categories.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class RecipeCategory(BaseModel):
    """
    RecipeCategory model.

    Attributes:
        name: Display name (unique)
        description: Optional description text
        sort_order: Display ordering (default 0)
    """

    __tablename__ = "recipe_categories"

    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    recipes = relationship(
        "Recipe", secondary=recipe_category_assignments, back_populates="categories"
    )

    __table_args__ = (Index("idx_recipe_category_name", "name"),)

    def __repr__(self) -> str:
        return f"<RecipeCategory(name='{self.name}')>"


class IngredientCategory(BaseModel):
    """
    IngredientCategory model.

    Attributes:
        name: Display name (unique)
        description: Optional description text
        sort_order: Display ordering (default 0)
    """

    __tablename__ = "ingredient_categories"

    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    ingredients = relationship(
        "Ingredient", secondary=ingredient_category_assignments, back_populates="categories"
    )

    __table_args__ = (Index("idx_ingredient_category_name", "name"),)

    def __repr__(self) -> str:
        return f"<IngredientCategory(name='{self.name}')>"
