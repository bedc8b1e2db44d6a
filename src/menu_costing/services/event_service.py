"""
Event Service - persistence of events and their menus.

Single-entity create/update/delete calls; each runs in its own session.
Bulk effects (attaching several recipes) are composed by the caller as a
saga of these calls.

Session Management Pattern:
- All functions accept an optional `session` parameter
- If session is provided, use it directly (caller manages the transaction)
- If session is None, create a new session_scope for the operation
"""

from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from menu_costing.models import Event, EventMenuItem, Recipe
from menu_costing.services.database import session_scope
from menu_costing.services.dto import EventSnapshot, MenuItemSnapshot
from menu_costing.services.exceptions import (
    DatabaseError,
    EventNotFound,
    MenuItemNotFound,
    RecipeNotFound,
    ValidationError,
)
from menu_costing.services.logging_utils import get_service_logger, log_operation
from menu_costing.utils.constants import DEFAULT_EVENT_STATUS
from menu_costing.utils.validators import validate_event_data, validate_menu_item_data

logger = get_service_logger(__name__)

_EVENT_FIELDS = (
    "name",
    "description",
    "event_date",
    "location",
    "guests_count",
    "budget",
    "status",
    "notes",
)


def _run(impl, session: Optional[Session], failure: str):
    """Run ``impl`` in the given session or a new scope, wrapping DB errors."""
    try:
        if session is not None:
            return impl(session)
        with session_scope() as sess:
            return impl(sess)
    except SQLAlchemyError as e:
        log_operation(logger, operation="event_service", outcome="database_error", error=str(e))
        raise DatabaseError(failure, e)


def _get_event(sess: Session, event_id: int) -> Event:
    event = sess.query(Event).filter_by(id=event_id).first()
    if event is None:
        raise EventNotFound(event_id)
    return event


# ============================================================================
# Event CRUD
# ============================================================================


def create_event(event_data: Dict, session: Optional[Session] = None) -> Event:
    """
    Create an event.

    Args:
        event_data: name and guests_count required; budget, status, etc. optional

    Raises:
        ValidationError: If data validation fails
        DatabaseError: If database operation fails
    """
    errors = validate_event_data(event_data)
    if errors:
        raise ValidationError(errors)

    def _impl(sess: Session) -> Event:
        event = Event(**{k: v for k, v in event_data.items() if k in _EVENT_FIELDS})
        if event.status is None:
            event.status = DEFAULT_EVENT_STATUS
        sess.add(event)
        sess.flush()
        sess.refresh(event)
        log_operation(logger, operation="create_event", outcome="success", event_id=event.id)
        return event

    return _run(_impl, session, "Failed to create event")


def get_event(event_id: int, session: Optional[Session] = None) -> Event:
    """
    Retrieve an event with its menu items loaded.

    Raises:
        EventNotFound: If the event doesn't exist
    """

    def _impl(sess: Session) -> Event:
        event = _get_event(sess, event_id)
        for item in event.menu_items:
            _ = item.recipe.lines
        return event

    return _run(_impl, session, f"Failed to retrieve event {event_id}")


def get_event_snapshot(event_id: int, session: Optional[Session] = None) -> EventSnapshot:
    """Event with its menu and each item's recipe lines, as a snapshot."""

    def _impl(sess: Session) -> EventSnapshot:
        return EventSnapshot.from_record(_get_event(sess, event_id))

    return _run(_impl, session, f"Failed to retrieve event {event_id}")


def list_events(status: Optional[str] = None, session: Optional[Session] = None) -> List[Event]:
    """List events, optionally filtered by status, ordered by date then name."""

    def _impl(sess: Session) -> List[Event]:
        query = sess.query(Event)
        if status:
            query = query.filter(Event.status == status)
        return query.order_by(Event.event_date, Event.name).all()

    return _run(_impl, session, "Failed to list events")


def update_event(event_id: int, event_data: Dict, session: Optional[Session] = None) -> Event:
    """
    Update event fields.

    Raises:
        EventNotFound: If the event doesn't exist
        ValidationError: If the merged data is invalid
    """

    def _impl(sess: Session) -> Event:
        event = _get_event(sess, event_id)
        merged = {field: getattr(event, field) for field in _EVENT_FIELDS}
        merged.update({k: v for k, v in event_data.items() if k in _EVENT_FIELDS})
        errors = validate_event_data(merged)
        if errors:
            raise ValidationError(errors)
        event.update_from_dict(merged)
        sess.flush()
        return event

    return _run(_impl, session, f"Failed to update event {event_id}")


def delete_event(event_id: int, session: Optional[Session] = None) -> bool:
    """Delete an event; its menu items go with it."""

    def _impl(sess: Session) -> bool:
        sess.delete(_get_event(sess, event_id))
        log_operation(logger, operation="delete_event", outcome="success", event_id=event_id)
        return True

    return _run(_impl, session, f"Failed to delete event {event_id}")


# ============================================================================
# Menu items
# ============================================================================


def add_menu_item(
    event_id: int, item_data: Dict, session: Optional[Session] = None
) -> MenuItemSnapshot:
    """
    Attach one recipe to an event menu.

    Portions default to the event's guests_count.

    Args:
        event_id: Event ID
        item_data: recipe_id and course_type required; portions and notes optional

    Returns:
        The created item as a snapshot, with the recipe's lines embedded

    Raises:
        EventNotFound / RecipeNotFound: If either doesn't exist
        ValidationError: Invalid portions/course type or recipe already on the menu
    """

    def _impl(sess: Session) -> MenuItemSnapshot:
        event = _get_event(sess, event_id)
        recipe_id = item_data.get("recipe_id")
        recipe = sess.query(Recipe).filter_by(id=recipe_id).first()
        if recipe is None:
            raise RecipeNotFound(recipe_id)

        portions = item_data.get("portions")
        if portions is None:
            portions = event.guests_count
        errors = validate_menu_item_data(
            {"portions": portions, "course_type": item_data.get("course_type")}
        )
        if any(item.recipe_id == recipe_id for item in event.menu_items):
            errors["recipe_id"] = "Recipe is already on the event menu"
        if errors:
            raise ValidationError(errors)

        item = EventMenuItem(
            event_id=event.id,
            recipe_id=recipe.id,
            portions=int(portions),
            course_type=item_data["course_type"],
            notes=item_data.get("notes"),
        )
        sess.add(item)
        try:
            sess.flush()
        except IntegrityError:
            raise ValidationError({"recipe_id": "Recipe is already on the event menu"})
        sess.refresh(item)

        log_operation(
            logger,
            operation="add_menu_item",
            outcome="success",
            event_id=event_id,
            recipe_id=recipe_id,
            portions=item.portions,
        )
        return MenuItemSnapshot.from_record(item)

    return _run(_impl, session, f"Failed to add recipe to event {event_id}")


def _get_menu_item(sess: Session, event_id: int, recipe_id: int) -> EventMenuItem:
    item = sess.query(EventMenuItem).filter_by(event_id=event_id, recipe_id=recipe_id).first()
    if item is None:
        raise MenuItemNotFound(event_id, recipe_id)
    return item


def update_menu_item(
    event_id: int, recipe_id: int, changes: Dict, session: Optional[Session] = None
) -> MenuItemSnapshot:
    """
    Update portions, course_type or notes of a menu item.

    Raises:
        MenuItemNotFound: If the recipe is not on the menu
        ValidationError: If the new values are invalid
    """

    def _impl(sess: Session) -> MenuItemSnapshot:
        item = _get_menu_item(sess, event_id, recipe_id)
        portions = changes.get("portions", item.portions)
        course_type = changes.get("course_type", item.course_type)
        errors = validate_menu_item_data({"portions": portions, "course_type": course_type})
        if errors:
            raise ValidationError(errors)

        item.portions = int(portions)
        item.course_type = course_type
        if "notes" in changes:
            item.notes = changes["notes"]
        sess.flush()
        return MenuItemSnapshot.from_record(item)

    return _run(_impl, session, f"Failed to update recipe {recipe_id} in event {event_id}")


def remove_menu_item(event_id: int, recipe_id: int, session: Optional[Session] = None) -> bool:
    """
    Remove a recipe from an event menu.

    Raises:
        MenuItemNotFound: If the recipe is not on the menu
    """

    def _impl(sess: Session) -> bool:
        sess.delete(_get_menu_item(sess, event_id, recipe_id))
        return True

    return _run(_impl, session, f"Failed to remove recipe {recipe_id} from event {event_id}")
