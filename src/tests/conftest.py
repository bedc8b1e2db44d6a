"""Pytest configuration and fixtures for menu costing tests."""

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker

import menu_costing.models  # noqa: F401  registers every table on Base.metadata
import menu_costing.services.database as db_module
from menu_costing.models.base import Base
from menu_costing.services.dto import (
    EventSnapshot,
    IngredientSnapshot,
    LineSnapshot,
    MenuItemSnapshot,
    RecipeSnapshot,
    SectionSnapshot,
)


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session


# ============================================================================
# Snapshot fixtures (no database)
# ============================================================================


@pytest.fixture
def tomato():
    """Tomato at 2.00/kg with 10% waste (net 2.20/kg)."""
    return IngredientSnapshot.from_record(
        {
            "id": 1,
            "name": "Tomato",
            "unit": "kg",
            "base_price": "2.00",
            "waste_percent": "0.10",
            "season": "jun,jul,aug",
            "allergens": [],
            "calories": 18,
            "protein": 0.9,
            "carbs": 3.9,
            "fat": 0.2,
        }
    )


@pytest.fixture
def mozzarella():
    """Mozzarella at 9.00/kg, no waste, contains milk."""
    return IngredientSnapshot.from_record(
        {
            "id": 2,
            "name": "Mozzarella",
            "unit": "kg",
            "base_price": "9.00",
            "waste_percent": "0",
            "allergens": '["Milk"]',
            "calories": 280,
            "protein": 28,
            "carbs": 3.1,
            "fat": 17,
        }
    )


@pytest.fixture
def caprese(tomato, mozzarella):
    """Salad for 10: 0.2 kg tomato (Base section) and 0.1 kg mozzarella (unassigned)."""
    return RecipeSnapshot(
        id=10,
        name="Caprese",
        servings=10,
        production_servings=4,
        net_price=Decimal("50.00"),
        sections=(SectionSnapshot(id=100, recipe_id=10, name="Base", order=0),),
        lines=(
            LineSnapshot(
                id=1000,
                recipe_id=10,
                ingredient_id=tomato.id,
                section_id=100,
                quantity_per_serving=Decimal("0.2"),
                ingredient=tomato,
            ),
            LineSnapshot(
                id=1001,
                recipe_id=10,
                ingredient_id=mozzarella.id,
                quantity_per_serving=Decimal("0.1"),
                ingredient=mozzarella,
            ),
        ),
    )


@pytest.fixture
def gala_dinner():
    """Event for 20 guests with a 200 budget and one main costing 6.00 per serving."""
    return EventSnapshot(
        id=5,
        name="Gala Dinner",
        guests_count=20,
        budget=Decimal("200"),
        menu=(
            MenuItemSnapshot(
                id=50,
                event_id=5,
                recipe_id=10,
                recipe_name="Roast",
                portions=20,
                course_type="main",
                cost_per_serving=Decimal("6.00"),
            ),
        ),
    )


# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture
def stored_tomato(test_db):
    from menu_costing.services import ingredient_service

    return ingredient_service.create_ingredient(
        {
            "name": "Tomato",
            "unit": "kg",
            "base_price": "2.00",
            "waste_percent": "0.10",
            "season": ["jun", "jul"],
        }
    )


@pytest.fixture
def stored_basil(test_db):
    from menu_costing.services import ingredient_service

    return ingredient_service.create_ingredient(
        {"name": "Basil", "unit": "g", "base_price": "0.05", "waste_percent": "0.20"}
    )


@pytest.fixture
def stored_recipe(test_db):
    from menu_costing.services import recipe_service

    return recipe_service.create_recipe(
        {"name": "Tomato Salad", "servings": 10, "production_servings": 4, "net_price": "50.00"}
    )


@pytest.fixture
def stored_event(test_db):
    from menu_costing.services import event_service

    return event_service.create_event(
        {"name": "Summer Party", "guests_count": 20, "budget": "200"}
    )
