"""
Database connection and session management for Menu Costing.

This module provides:
- Database engine creation and configuration
- Session factory for database operations
- Database initialization (create tables)
- Foreign key enforcement for SQLite
"""

import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from menu_costing.models.base import Base
from menu_costing.utils.config import get_config

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """
    Enable foreign key constraints on every new SQLite connection.

    Other backends ignore the hook.
    """
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create and configure the database engine.

    Args:
        database_url: Optional database URL. If None, uses config default.
        echo: If True, log all SQL statements

    Returns:
        Configured SQLAlchemy Engine
    """
    if database_url is None:
        config = get_config()
        config.ensure_directories()
        database_url = config.database_url

    logger.info(f"Creating database engine: {database_url}")

    if ":memory:" in database_url or "mode=memory" in database_url:
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def init_database(engine: Optional[Engine] = None) -> None:
    """
    Create all tables that don't exist yet.

    Safe to call multiple times.

    Args:
        engine: Optional engine to use. If None, uses global engine.
    """
    if engine is None:
        engine = get_engine()

    logger.info("Initializing database tables")

    # Registers every model with Base.metadata
    from menu_costing import models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("Database tables initialized successfully")


def get_engine(force_recreate: bool = False) -> Engine:
    """
    Get the global database engine, creating it on first use.

    Args:
        force_recreate: If True, recreate the engine even if one exists
    """
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()

    return _engine


def get_session_factory() -> sessionmaker:
    """Get the global session factory."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)

    return _SessionFactory


def get_session() -> Session:
    """Create a new database session."""
    session_factory = get_session_factory()
    return session_factory()


@contextmanager
def session_scope():
    """
    Provide a transactional scope for database operations.

    - Creates a new session
    - Commits on success
    - Rolls back on exception
    - Always closes the session

    Yields:
        Database session

    Example:
        with session_scope() as session:
            session.add(Ingredient(name="Flour", unit="kg", base_price=1))
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def close_connections() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    _SessionFactory = None

    if _engine is not None:
        _engine.dispose()
        _engine = None

    logger.info("Database connections closed")
