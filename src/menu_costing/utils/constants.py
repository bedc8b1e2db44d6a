"""
Constants and enumerations for the Menu Costing application.

This module defines all system-wide constants including:
- Ingredient units and the unit-to-gram table used for nutrition
- Event course types and statuses
- Costing defaults (target margin, suggested budget factor)
- Validation limits and error messages
"""

from decimal import Decimal
from typing import Dict, List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Menu Costing"
DATABASE_FILENAME = "menu_costing.db"

# ============================================================================
# Units
# ============================================================================

# Units an ingredient can be priced in
INGREDIENT_UNITS: List[str] = [
    "kg",
    "g",
    "L",
    "ml",
    "unit",
]

# Fixed conversion to grams for nutrition scaling (density 1 for liquids)
UNIT_TO_GRAMS: Dict[str, float] = {
    "kg": 1000.0,
    "L": 1000.0,
    "ml": 1.0,
    "g": 1.0,
    "unit": 1.0,
}

# Spellings seen in imported data, mapped onto the canonical units
UNIT_ALIASES: Dict[str, str] = {
    "l": "L",
    "gr": "g",
    "units": "unit",
}

# ============================================================================
# Events
# ============================================================================

# Course types in menu display order
COURSE_TYPES: List[str] = [
    "starter",
    "main",
    "side",
    "dessert",
    "beverage",
]

EVENT_STATUSES: List[str] = [
    "planned",
    "confirmed",
    "in_progress",
    "completed",
    "cancelled",
]

DEFAULT_EVENT_STATUS = "planned"

# ============================================================================
# Costing Defaults
# ============================================================================

DEFAULT_TARGET_MARGIN = Decimal("0.4")
SUGGESTED_BUDGET_FACTOR = Decimal("1.4")

CURRENCY_PLACES = Decimal("0.01")
PERCENT_PLACES = Decimal("0.01")

# ============================================================================
# Sections
# ============================================================================

UNASSIGNED_BUCKET_NAME = "Unassigned"
RECOVERY_BUCKET_NAME = "Unknown section"

# ============================================================================
# Validation Limits
# ============================================================================

MAX_NAME_LENGTH = 200
MAX_NOTES_LENGTH = 2000

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Must be a valid number"
ERROR_INVALID_POSITIVE = "Must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Must be zero or greater"
ERROR_INVALID_UNIT = "Invalid unit"
ERROR_SECTION_NOT_EMPTY = "section not empty"
