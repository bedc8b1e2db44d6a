"""
Event models.

This module contains:
- Event: Catered event with guest count, budget and menu
- EventMenuItem: A recipe on an event's menu with its own portion count
"""

from sqlalchemy import (
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from menu_costing.utils.constants import DEFAULT_EVENT_STATUS

from .base import BaseModel


class Event(BaseModel):
    """
    Event model.

    Attributes:
        name: Event name (required)
        description: Optional description
        event_date: Date of the event
        location: Where it takes place
        guests_count: Number of guests (at least 1)
        budget: Optional food budget
        status: planned, confirmed, in_progress, completed or cancelled
        notes: Free text
    """

    __tablename__ = "events"

    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    event_date = Column(Date, nullable=True)
    location = Column(String(200), nullable=True)
    guests_count = Column(Integer, nullable=False, default=1)
    budget = Column(Numeric(12, 2), nullable=True)
    status = Column(String(20), nullable=False, default=DEFAULT_EVENT_STATUS)
    notes = Column(Text, nullable=True)

    menu_items = relationship(
        "EventMenuItem",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="EventMenuItem.id",
        lazy="selectin",
    )

    __table_args__ = (Index("idx_event_status", "status"),)

    def __repr__(self) -> str:
        return f"Event(id={self.id}, name='{self.name}', guests_count={self.guests_count})"


class EventMenuItem(BaseModel):
    """
    Recipe attached to an event menu.

    ``portions`` is independent of the recipe's own ``servings``.

    Attributes:
        event_id: Owning event
        recipe_id: Recipe served
        portions: Number of portions for this event
        course_type: starter, main, side, dessert or beverage
        notes: Free text
    """

    __tablename__ = "event_menu_items"

    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    portions = Column(Integer, nullable=False, default=1)
    course_type = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)

    event = relationship("Event", back_populates="menu_items")
    recipe = relationship("Recipe", back_populates="menu_items", lazy="joined")

    __table_args__ = (
        UniqueConstraint("event_id", "recipe_id", name="uq_event_menu_recipe"),
        Index("idx_event_menu_event", "event_id"),
    )

    def __repr__(self) -> str:
        return (
            f"EventMenuItem(event_id={self.event_id}, recipe_id={self.recipe_id}, "
            f"portions={self.portions}, course_type='{self.course_type}')"
        )
