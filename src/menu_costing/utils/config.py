"""
Configuration management for the Menu Costing application.

This module handles:
- Database location and URL
- Environment-specific configuration (development vs. production)
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import DATABASE_FILENAME

logger = logging.getLogger(__name__)

ENV_VAR_ENVIRONMENT = "MENU_COSTING_ENV"
ENV_VAR_DATABASE_URL = "MENU_COSTING_DATABASE_URL"


class Config:
    """
    Application configuration manager.

    Resolves where the database lives for the current environment. An explicit
    database URL (argument or MENU_COSTING_DATABASE_URL) wins over the
    file-based default.
    """

    def __init__(self, environment: str = "production", database_url: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production', 'development' or 'testing'
            database_url: Optional explicit SQLAlchemy URL
        """
        self.environment = environment
        if environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = self._get_user_data_dir()

        self._database_path = self._base_dir / DATABASE_FILENAME
        self._database_url = database_url or os.environ.get(ENV_VAR_DATABASE_URL)

        if environment == "testing" and self._database_url is None:
            self._database_url = "sqlite:///:memory:"

    def _get_project_data_dir(self) -> Path:
        """Project data/ directory used in development."""
        project_root = Path(__file__).parent.parent.parent.parent
        return project_root / "data"

    def _get_user_data_dir(self) -> Path:
        """Per-user application directory used in production."""
        return Path.home() / ".menu_costing"

    def ensure_directories(self) -> None:
        """Create the data directory if a file-based database is in use."""
        if self._database_url is None:
            self._base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        Returns:
            The explicit URL when configured, otherwise a SQLite file URL
        """
        if self._database_url:
            return self._database_url
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def __repr__(self) -> str:
        return f"Config(environment='{self.environment}', database_url='{self.database_url}')"


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing a
    different environment argument.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    MENU_COSTING_ENV or defaults to production. Ignored if the
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_VAR_ENVIRONMENT, "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton."
        )

    return _config_instance


def reset_config():
    """Reset the global configuration instance (used by tests)."""
    global _config_instance
    _config_instance = None
