"""
Base model class for all database models.

Provides common functionality and fields for all models:
- Integer primary key and a UUID column
- Timestamp fields (created_at, updated_at)
- Utility methods (to_dict, update_from_dict)
- SQLAlchemy declarative base
"""

import uuid as uuid_lib
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base, validates

Base = declarative_base()


def utc_now() -> datetime:
    """Current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


class BaseModel(Base):
    """
    Abstract base model with common fields and methods.

    All models inherit:
    - id: Primary key
    - uuid: Stable external identifier
    - created_at / updated_at timestamps
    - to_dict(): Convert model to dictionary
    """

    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Stored as string for SQLite compatibility
    uuid = Column(
        String(36), unique=True, nullable=False, default=lambda: str(uuid_lib.uuid4()), index=True
    )

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    # Columns the client may never write directly
    _protected_columns = ("id", "uuid", "created_at", "updated_at")

    def to_dict(self, include_relationships: bool = False) -> Dict[str, Any]:
        """
        Convert model instance to dictionary.

        Args:
            include_relationships: If True, include related objects (default: False)

        Returns:
            Dictionary representation of the model
        """
        result = {}

        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, Decimal):
                value = str(value)
            result[column.name] = value

        if include_relationships:
            for relationship in self.__mapper__.relationships:
                rel_name = relationship.key
                rel_value = getattr(self, rel_name)

                if rel_value is None:
                    result[rel_name] = None
                elif isinstance(rel_value, list):
                    result[rel_name] = [item.to_dict() for item in rel_value]
                else:
                    result[rel_name] = rel_value.to_dict()

        return result

    @validates("uuid")
    def _validate_uuid(self, _key: str, value: Any) -> str:
        """Normalize UUID values to strings for SQLite compatibility."""
        if value is None:
            return value
        return str(value)

    def update_from_dict(self, data: Dict[str, Any]) -> None:
        """
        Update model instance from dictionary.

        Only updates columns that exist on the model and are present in the
        dictionary; protected columns are skipped.
        """
        for column in self.__table__.columns:
            if column.name in data and column.name not in self._protected_columns:
                setattr(self, column.name, data[column.name])

        self.updated_at = utc_now()

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        attrs = []

        if getattr(self, "id", None) is not None:
            attrs.append(f"id={self.id}")

        if getattr(self, "name", None) is not None:
            attrs.append(f"name='{self.name}'")

        attrs_str = ", ".join(attrs)
        return f"{class_name}({attrs_str})"
