"""Tests for configuration and database setup."""

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError

from menu_costing.services.database import create_database_engine, init_database
from menu_costing.utils import config as config_module
from menu_costing.utils.config import Config, get_config, reset_config


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    monkeypatch.delenv("MENU_COSTING_ENV", raising=False)
    monkeypatch.delenv("MENU_COSTING_DATABASE_URL", raising=False)
    reset_config()
    yield
    reset_config()


class TestConfig:
    def test_testing_environment_uses_memory(self):
        assert Config("testing").database_url == "sqlite:///:memory:"

    def test_production_uses_file_in_home(self):
        config = Config("production")
        assert config.database_url.startswith("sqlite:///")
        assert config.database_url.endswith("menu_costing.db")
        assert config.is_production

    def test_ensure_directories_creates_user_dir(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config_module.Path, "home", lambda: tmp_path)
        config = Config("production")
        config.ensure_directories()
        assert (tmp_path / ".menu_costing").is_dir()
        assert config.database_url.endswith(".menu_costing/menu_costing.db")

    def test_environment_variable_overrides_url(self, monkeypatch):
        monkeypatch.setenv("MENU_COSTING_DATABASE_URL", "sqlite:///tmp/other.db")
        assert Config("development").database_url == "sqlite:///tmp/other.db"

    def test_singleton_keeps_first_environment(self, monkeypatch, caplog):
        monkeypatch.setenv("MENU_COSTING_ENV", "testing")
        first = get_config()
        assert first.environment == "testing"
        assert get_config("production") is first
        assert "singleton" in caplog.text

    def test_reset(self):
        first = get_config("testing")
        reset_config()
        assert config_module._config_instance is None
        assert get_config("development") is not first


class TestDatabase:
    def test_init_creates_tables(self):
        engine = create_database_engine("sqlite:///:memory:")
        init_database(engine)
        tables = set(inspect(engine).get_table_names())
        assert {"ingredients", "recipes", "recipe_sections", "recipe_ingredients", "events", "event_menu_items"} <= tables

    def test_foreign_keys_enforced(self):
        engine = create_database_engine("sqlite:///:memory:")
        init_database(engine)
        with pytest.raises(IntegrityError):
            with engine.begin() as conn:
                conn.execute(
                    text(
                        "INSERT INTO recipe_sections (uuid, created_at, updated_at, recipe_id, name, \"order\") "
                        "VALUES ('x', '2024-01-01', '2024-01-01', 999, 'Base', 0)"
                    )
                )
