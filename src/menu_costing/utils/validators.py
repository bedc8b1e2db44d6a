"""
Input validation functions for the Menu Costing application.

Single-field validators return ``(is_valid, error_message)`` tuples. Entity
validators collect those into a field -> message map so a form can show every
problem at once; they never raise.
"""

from typing import Any, Dict, Optional, Tuple

from .constants import (
    COURSE_TYPES,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_INVALID_UNIT,
    ERROR_REQUIRED_FIELD,
    EVENT_STATUSES,
    INGREDIENT_UNITS,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    UNIT_ALIASES,
)
from .formatting import to_decimal


def validate_required_string(value: Optional[str]) -> Tuple[bool, str]:
    """Validate that a string field is not empty."""
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False, ERROR_REQUIRED_FIELD
    return True, ""


def validate_string_length(value: Optional[str], max_length: int) -> Tuple[bool, str]:
    """Validate that a string doesn't exceed maximum length."""
    if value and len(value) > max_length:
        return False, f"Must be {max_length} characters or less"
    return True, ""


def validate_positive_number(value: Any) -> Tuple[bool, str]:
    """Validate that a value is a number greater than zero."""
    number = to_decimal(value)
    if number is None:
        return False, ERROR_INVALID_NUMBER
    if number <= 0:
        return False, ERROR_INVALID_POSITIVE
    return True, ""


def validate_non_negative_number(value: Any) -> Tuple[bool, str]:
    """Validate that a value is a number greater than or equal to zero."""
    number = to_decimal(value)
    if number is None:
        return False, ERROR_INVALID_NUMBER
    if number < 0:
        return False, ERROR_INVALID_NON_NEGATIVE
    return True, ""


def validate_number_range(value: Any, min_value, max_value) -> Tuple[bool, str]:
    """Validate that a number lies within [min_value, max_value]."""
    number = to_decimal(value)
    if number is None:
        return False, ERROR_INVALID_NUMBER
    if number < to_decimal(min_value) or number > to_decimal(max_value):
        return False, f"Must be between {min_value} and {max_value}"
    return True, ""


def canonical_unit(unit: Optional[str]) -> Optional[str]:
    """
    Map a unit spelling onto its canonical form ("KG" -> "kg", "l" -> "L").

    Returns:
        Canonical unit, or None if the unit is unknown
    """
    if not unit:
        return None
    key = unit.strip().lower()
    for known in INGREDIENT_UNITS:
        if known.lower() == key:
            return known
    return UNIT_ALIASES.get(key)


def validate_unit(unit: Optional[str]) -> Tuple[bool, str]:
    """Validate that a unit is one of the known ingredient units."""
    is_valid, error = validate_required_string(unit)
    if not is_valid:
        return is_valid, error
    if canonical_unit(unit) is None:
        return False, f"{ERROR_INVALID_UNIT}. Must be one of: {', '.join(INGREDIENT_UNITS)}"
    return True, ""


def _check(errors: Dict[str, str], field: str, result: Tuple[bool, str]) -> None:
    is_valid, error = result
    if not is_valid and field not in errors:
        errors[field] = error


def validate_ingredient_data(data: dict) -> Dict[str, str]:
    """
    Validate all fields for an ingredient.

    Args:
        data: Dictionary containing ingredient fields

    Returns:
        Map of field name to error message (empty when valid)
    """
    errors: Dict[str, str] = {}

    _check(errors, "name", validate_required_string(data.get("name")))
    _check(errors, "name", validate_string_length(data.get("name"), MAX_NAME_LENGTH))
    _check(errors, "unit", validate_unit(data.get("unit")))

    for field in ("base_price", "waste_percent", "stock", "stock_minimum"):
        if data.get(field) is not None:
            _check(errors, field, validate_non_negative_number(data.get(field)))

    if "waste_percent" not in errors and data.get("waste_percent") is not None:
        _check(errors, "waste_percent", validate_number_range(data.get("waste_percent"), 0, 1))

    for field in ("calories", "protein", "carbs", "fat"):
        if data.get(field) is not None:
            _check(errors, field, validate_non_negative_number(data.get(field)))

    if data.get("comment"):
        _check(errors, "comment", validate_string_length(data.get("comment"), MAX_NOTES_LENGTH))

    return errors


def validate_recipe_data(data: dict) -> Dict[str, str]:
    """
    Validate all fields for a recipe, including the production batch rule.

    ``servings`` must be at least ``production_servings``; the message names
    both values.

    Args:
        data: Dictionary containing recipe fields

    Returns:
        Map of field name to error message (empty when valid)
    """
    errors: Dict[str, str] = {}

    _check(errors, "name", validate_required_string(data.get("name")))
    _check(errors, "name", validate_string_length(data.get("name"), MAX_NAME_LENGTH))

    for field in ("servings", "production_servings"):
        value = data.get(field)
        if value is None:
            continue
        _check(errors, field, validate_non_negative_number(value))
        if field not in errors and to_decimal(value) % 1 != 0:
            errors[field] = "Must be a whole number"

    if data.get("net_price") is not None:
        _check(errors, "net_price", validate_non_negative_number(data.get("net_price")))

    servings = data.get("servings")
    production_servings = data.get("production_servings")
    if (
        "servings" not in errors
        and "production_servings" not in errors
        and servings is not None
        and production_servings is not None
        and to_decimal(servings) < to_decimal(production_servings)
    ):
        errors["servings"] = (
            f"Servings ({servings}) must be at least the production "
            f"servings ({production_servings})"
        )

    return errors


def validate_line_data(data: dict) -> Dict[str, str]:
    """Validate a recipe ingredient line (quantity is per ONE serving)."""
    errors: Dict[str, str] = {}
    if data.get("ingredient_id") is None:
        errors["ingredient_id"] = ERROR_REQUIRED_FIELD
    _check(errors, "quantity_per_serving", validate_positive_number(data.get("quantity_per_serving")))
    if data.get("notes"):
        _check(errors, "notes", validate_string_length(data.get("notes"), MAX_NOTES_LENGTH))
    return errors


def validate_event_data(data: dict) -> Dict[str, str]:
    """Validate event fields: name required, at least one guest, budget >= 0."""
    errors: Dict[str, str] = {}
    _check(errors, "name", validate_required_string(data.get("name")))
    _check(errors, "name", validate_string_length(data.get("name"), MAX_NAME_LENGTH))

    guests = to_decimal(data.get("guests_count"))
    if guests is None:
        errors["guests_count"] = ERROR_REQUIRED_FIELD
    elif guests < 1 or guests != int(guests):
        errors["guests_count"] = "Must be a whole number of at least 1"

    if data.get("budget") is not None:
        _check(errors, "budget", validate_non_negative_number(data.get("budget")))

    status = data.get("status")
    if status is not None and status not in EVENT_STATUSES:
        errors["status"] = f"Must be one of: {', '.join(EVENT_STATUSES)}"
    return errors


def validate_menu_item_data(data: dict) -> Dict[str, str]:
    """Validate an event menu item: portions >= 1 and a known course type."""
    errors: Dict[str, str] = {}
    portions = to_decimal(data.get("portions"))
    if portions is None:
        errors["portions"] = ERROR_REQUIRED_FIELD
    elif portions < 1 or portions != int(portions):
        errors["portions"] = "Must be a whole number of at least 1"

    if data.get("course_type") not in COURSE_TYPES:
        errors["course_type"] = f"Must be one of: {', '.join(COURSE_TYPES)}"
    return errors
