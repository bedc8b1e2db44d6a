"""
Recipe models.

This module contains:
- Recipe: Dish with planning servings, minimum batch size and selling price
- RecipeSection: Named, ordered grouping of a recipe's ingredient lines
- RecipeIngredient: One ingredient line of a recipe, quantity per ONE serving
"""

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class Recipe(BaseModel):
    """
    Recipe model.

    Attributes:
        name: Recipe name (required)
        servings: Number of diners the recipe is currently planned for
        production_servings: Minimum batch size that is viable to cook
        net_price: TOTAL selling price for ``servings`` diners (not per serving)
        prep_time: Preparation time in minutes
        difficulty: Free-form difficulty label
        instructions: Method text
    """

    __tablename__ = "recipes"

    name = Column(String(200), nullable=False, index=True)
    servings = Column(Integer, nullable=False, default=1)
    production_servings = Column(Integer, nullable=False, default=1)
    net_price = Column(Numeric(10, 2), nullable=True)

    prep_time = Column(Integer, nullable=True)
    difficulty = Column(String(50), nullable=True)
    instructions = Column(Text, nullable=True)

    sections = relationship(
        "RecipeSection",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeSection.order",
        lazy="selectin",
    )
    lines = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeIngredient.id",
        lazy="selectin",
    )
    menu_items = relationship("EventMenuItem", back_populates="recipe", cascade="all, delete")
    categories = relationship(
        "RecipeCategory",
        secondary="recipe_category_assignments",
        back_populates="recipes",
        lazy="selectin",
        order_by="RecipeCategory.name",
    )

    def __repr__(self) -> str:
        return f"Recipe(id={self.id}, name='{self.name}', servings={self.servings})"


class RecipeSection(BaseModel):
    """
    Organizational section of a recipe (e.g., "Sauce", "Garnish").

    Sections have no pricing effect.

    Attributes:
        recipe_id: Owning recipe
        name: Section name
        order: Position in the recipe's declared section order
    """

    __tablename__ = "recipe_sections"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(200), nullable=False)
    order = Column(Integer, nullable=False, default=0)

    recipe = relationship("Recipe", back_populates="sections")
    lines = relationship("RecipeIngredient", back_populates="section")

    __table_args__ = (Index("idx_recipe_section_recipe", "recipe_id"),)


class RecipeIngredient(BaseModel):
    """
    Ingredient line of a recipe.

    Attributes:
        recipe_id: Owning recipe
        ingredient_id: Ingredient used
        section_id: Section the line is shown under (None = unassigned)
        quantity_per_serving: Amount for ONE serving, in the ingredient's unit
        notes: Optional notes (e.g., "finely chopped")
    """

    __tablename__ = "recipe_ingredients"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    ingredient_id = Column(
        Integer, ForeignKey("ingredients.id", ondelete="RESTRICT"), nullable=False
    )
    section_id = Column(
        Integer, ForeignKey("recipe_sections.id", ondelete="RESTRICT"), nullable=True
    )

    quantity_per_serving = Column(Numeric(10, 4), nullable=False)
    notes = Column(String(500), nullable=True)

    recipe = relationship("Recipe", back_populates="lines")
    ingredient = relationship("Ingredient", back_populates="recipe_lines", lazy="joined")
    section = relationship("RecipeSection", back_populates="lines")

    __table_args__ = (
        UniqueConstraint("recipe_id", "ingredient_id", name="uq_recipe_ingredient"),
        Index("idx_recipe_ingredient_recipe", "recipe_id"),
        Index("idx_recipe_ingredient_ingredient", "ingredient_id"),
    )

    def __repr__(self) -> str:
        return (
            f"RecipeIngredient(recipe_id={self.recipe_id}, "
            f"ingredient_id={self.ingredient_id}, "
            f"quantity_per_serving={self.quantity_per_serving})"
        )
