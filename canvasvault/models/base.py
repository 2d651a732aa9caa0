"""Base model classes for all database models.

The base models use SQLModel which combines SQLAlchemy and Pydantic, providing
both database ORM functionality and data validation.

Example:
    >>> from canvasvault.models.base import CanvasBase
    >>>
    >>> class Note(CanvasBase, table=True):
    >>>     __tablename__ = "notes"
    >>>
    >>>     title: str
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import ConfigDict
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to timezone-aware UTC.

    Some drivers (SQLite) return naive datetimes for ``DateTime(timezone=True)``
    columns; values written by this application are always UTC.

    Args:
        value: Datetime to normalize, or None.

    Returns:
        The datetime in UTC, or None.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CanvasBase(SQLModel, table=False):
    """Base model for all CanvasVault database models.

    Provides an integer primary key and automatic timestamp tracking.

    Attributes:
        id: Integer primary key assigned by the database.
        created_at: Timestamp when the record was created.
        updated_at: Timestamp when the record was last updated.

    Note:
        This is an abstract base class. Always inherit from it with table=True:
        >>> class MyModel(CanvasBase, table=True):
        >>>     __tablename__ = "my_table"
    """

    id: Optional[int] = Field(
        default=None,
        primary_key=True,
        description="Unique identifier for the record",
    )

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
        description="Timestamp when the record was created",
    )

    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
        sa_column_kwargs={"onupdate": utc_now},
        description="Timestamp when the record was last updated",
    )

    model_config = ConfigDict(
        from_attributes=True,  # Allow reading from ORM objects (SQLAlchemy)
        use_enum_values=True,  # Use enum values instead of names
    )
