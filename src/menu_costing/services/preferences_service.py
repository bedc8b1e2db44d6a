"""
Preferences Service - UI and costing preferences in a JSON file.

Preferences live in a JSON file separate from the SQLite database, so they
survive database resets. A PreferencesStore is created with an explicit
path and handed to whoever needs it; there is no module-level instance.

Usage:
    from menu_costing.services.preferences_service import PreferencesStore

    prefs = PreferencesStore(PreferencesStore.default_path())
    prefs.set_page_size(50)
    prefs.target_margin()
"""

import json
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from menu_costing.utils.constants import APP_NAME, DEFAULT_TARGET_MARGIN
from menu_costing.utils.formatting import to_decimal

logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

PREF_PAGE_SIZE = "page_size"
PREF_DASHBOARD_WIDGETS = "dashboard_widgets"
PREF_TARGET_MARGIN = "target_margin"
PREF_CURRENCY_SYMBOL = "currency_symbol"

DEFAULT_PAGE_SIZE = 25
DEFAULT_DASHBOARD_WIDGETS = ["low_stock", "upcoming_events", "recipe_margins"]
DEFAULT_CURRENCY_SYMBOL = "€"


def _get_config_dir() -> Path:
    """Get the platform-appropriate config directory for the application."""
    if os.name == "nt":  # Windows
        base = Path(os.environ.get("APPDATA", Path.home()))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / APP_NAME.replace(" ", "")


class PreferencesStore:
    """
    JSON-file backed key/value store.

    Every read goes to the file, so two stores on the same path see each
    other's writes. A missing or corrupt file reads as empty.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @staticmethod
    def default_path() -> Path:
        return _get_config_dir() / "preferences.json"

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def load(self) -> Dict[str, Any]:
        """
        Load preferences from the file.

        Returns:
            Dictionary of preferences (empty dict if the file doesn't exist)
        """
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                result = json.load(f)
                return result if isinstance(result, dict) else {}
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load preferences from {self.path}: {e}")
            return {}

    def save(self, prefs: Dict[str, Any]) -> bool:
        """
        Write all preferences.

        Returns:
            True if saved successfully, False otherwise
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(prefs, f, indent=2)
            return True
        except (IOError, OSError) as e:
            logger.error(f"Failed to save preferences to {self.path}: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        return self.load().get(key, default)

    def set(self, key: str, value: Any) -> bool:
        prefs = self.load()
        prefs[key] = value
        return self.save(prefs)

    def delete(self, key: str) -> bool:
        prefs = self.load()
        if key in prefs:
            del prefs[key]
            return self.save(prefs)
        return True

    def reset(self) -> bool:
        """Remove every stored preference so all getters return defaults."""
        return self.save({})

    # ------------------------------------------------------------------
    # Typed preferences
    # ------------------------------------------------------------------

    def page_size(self) -> int:
        """Rows per page in list views; invalid stored values fall back to the default."""
        stored = self.get(PREF_PAGE_SIZE)
        if isinstance(stored, int) and not isinstance(stored, bool) and stored > 0:
            return stored
        if stored is not None:
            logger.warning(f"Stored page size {stored!r} is not valid, falling back to default")
        return DEFAULT_PAGE_SIZE

    def set_page_size(self, size: int) -> bool:
        """
        Raises:
            ValueError: If size is not a positive integer
        """
        if not isinstance(size, int) or isinstance(size, bool) or size <= 0:
            raise ValueError(f"Page size must be a positive integer, got {size!r}")
        return self.set(PREF_PAGE_SIZE, size)

    def dashboard_widgets(self) -> List[str]:
        """Ordered widget layout of the dashboard."""
        stored = self.get(PREF_DASHBOARD_WIDGETS)
        if isinstance(stored, list) and all(isinstance(w, str) for w in stored):
            return list(stored)
        return list(DEFAULT_DASHBOARD_WIDGETS)

    def set_dashboard_widgets(self, widgets: List[str]) -> bool:
        return self.set(PREF_DASHBOARD_WIDGETS, [str(w) for w in widgets])

    def target_margin(self) -> Decimal:
        """Default target margin (fraction in [0, 1)) for suggested prices."""
        stored = to_decimal(self.get(PREF_TARGET_MARGIN))
        if stored is not None and 0 <= stored < 1:
            return stored
        return DEFAULT_TARGET_MARGIN

    def set_target_margin(self, margin: Any) -> bool:
        """
        Raises:
            ValueError: If margin is not a fraction in [0, 1)
        """
        value = to_decimal(margin)
        if value is None or value < 0 or value >= 1:
            raise ValueError(f"Target margin must be a fraction in [0, 1), got {margin!r}")
        # JSON has no decimal type
        return self.set(PREF_TARGET_MARGIN, str(value))

    def currency_symbol(self) -> str:
        return self.get(PREF_CURRENCY_SYMBOL) or DEFAULT_CURRENCY_SYMBOL

    def set_currency_symbol(self, symbol: Optional[str]) -> bool:
        if not symbol:
            return self.delete(PREF_CURRENCY_SYMBOL)
        return self.set(PREF_CURRENCY_SYMBOL, symbol)
