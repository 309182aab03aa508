"""
Database Base Classes and Common Utilities

Every model inherits from BaseModel, which supplies:
- id: auto-incrementing primary key
- created_at / updated_at: timezone-aware UTC timestamps

Learning Resources:
- SQLAlchemy Declarative Base: https://docs.sqlalchemy.org/en/20/orm/declarative_config.html
"""

import enum
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, Enum as SQLEnum, MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, registry


# ================================
# Naming Convention for Constraints
# ================================
# Stable constraint names keep Alembic autogenerate diffs clean.
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

orm_registry = registry(metadata=metadata)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Normalise a datetime read back from the database to aware UTC.

    Some drivers (SQLite) hand back naive values even for timezone=True columns.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    registry = orm_registry
    metadata = metadata

    __tablename__: str


class CommonTableAttributes:
    """Mixin providing id, created_at and updated_at to every model."""

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when record was created (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp when record was last updated (UTC)"
    )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id})"

    def dict(self) -> dict[str, Any]:
        """Column values as a plain dict (used for cache payloads and logging)."""
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }


class BaseModel(Base, CommonTableAttributes):
    """Ready-to-use abstract base: Base + id/created_at/updated_at."""

    __abstract__ = True


# ================================
# Common Column Types
# ================================

String50 = String(50)  # usernames, enum values
String100 = String(100)  # names, titles of short things
String255 = String(255)  # emails, identifiers
String500 = String(500)  # titles, bios
String1000 = String(1000)  # URLs, descriptions


def str_enum(enum_cls: type[enum.Enum]) -> SQLEnum:
    """
    VARCHAR-backed enum column storing the member *values* ("book", "anime").

    Non-native so the same schema works on PostgreSQL and SQLite.
    """
    return SQLEnum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
        validate_strings=True,
    )
