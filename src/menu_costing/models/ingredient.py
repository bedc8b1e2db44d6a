"""
Ingredient models.

This module contains:
- Ingredient: Priced raw material with waste rate, stock and nutrition facts
- Allergen: Allergen master data
- ingredient_allergens: Association table linking the two

``Ingredient.net_price`` is owned by the database layer: it is recomputed
from ``base_price`` and ``waste_percent`` on every insert and update, so any
value a client writes is overwritten.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    event,
)
from sqlalchemy.orm import relationship

from menu_costing.services.ingredient_valuation import compute_net_price

from .base import Base, BaseModel


ingredient_allergens = Table(
    "ingredient_allergens",
    Base.metadata,
    Column("ingredient_id", Integer, ForeignKey("ingredients.id", ondelete="CASCADE"), primary_key=True),
    Column("allergen_id", Integer, ForeignKey("allergens.id", ondelete="CASCADE"), primary_key=True),
)


class Allergen(BaseModel):
    """
    Allergen master data (e.g., "Gluten", "Milk").

    Attributes:
        name: Allergen name (unique)
    """

    __tablename__ = "allergens"

    name = Column(String(100), nullable=False, unique=True)

    ingredients = relationship(
        "Ingredient", secondary=ingredient_allergens, back_populates="allergens"
    )


class Ingredient(BaseModel):
    """
    Ingredient model.

    Attributes:
        name: Ingredient name (required)
        unit: Pricing unit (kg, g, L, ml, unit)
        base_price: Purchase price per unit
        waste_percent: Trim/spoilage loss as a fraction (0.10 = 10%)
        net_price: base_price * (1 + waste_percent), derived on save; NULL
            until both inputs are set
        stock: Quantity on hand in ``unit``
        stock_minimum: Reorder threshold
        season: Comma-separated month tags as received from the client
        expiration_date: Optional best-before date
        is_available: Whether the ingredient can be used
        comment: Free text
        calories/protein/carbs/fat: Nutrition facts per 100 g
    """

    __tablename__ = "ingredients"

    name = Column(String(200), nullable=False, index=True)
    unit = Column(String(20), nullable=False)

    base_price = Column(Numeric(10, 4), nullable=True)
    waste_percent = Column(Numeric(6, 4), nullable=True)
    net_price = Column(Numeric(12, 6), nullable=True)

    stock = Column(Numeric(10, 3), nullable=False, default=0)
    stock_minimum = Column(Numeric(10, 3), nullable=False, default=0)

    season = Column(Text, nullable=True)
    expiration_date = Column(Date, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    comment = Column(Text, nullable=True)

    calories = Column(Float, nullable=True)
    protein = Column(Float, nullable=True)
    carbs = Column(Float, nullable=True)
    fat = Column(Float, nullable=True)

    allergens = relationship(
        "Allergen",
        secondary=ingredient_allergens,
        back_populates="ingredients",
        lazy="selectin",
        order_by="Allergen.name",
    )
    recipe_lines = relationship("RecipeIngredient", back_populates="ingredient")
    categories = relationship(
        "IngredientCategory",
        secondary="ingredient_category_assignments",
        back_populates="ingredients",
        lazy="selectin",
        order_by="IngredientCategory.name",
    )

    __table_args__ = (Index("idx_ingredient_name", "name"),)

    def __repr__(self) -> str:
        return f"Ingredient(id={self.id}, name='{self.name}', net_price={self.net_price})"


def _recalculate_net_price(mapper, connection, target: Ingredient) -> None:
    """Mapper hook: derive net_price before every INSERT/UPDATE."""
    target.net_price = compute_net_price(target.base_price, target.waste_percent)


event.listen(Ingredient, "before_insert", _recalculate_net_price)
event.listen(Ingredient, "before_update", _recalculate_net_price)
