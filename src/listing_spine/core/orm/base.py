"""Declarative base, mixins and type-map for listing-spine ORM models.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map``
that maps Python built-in types to portable SA column types.

Timestamps are stored as naive UTC (SQLite drops tzinfo); ``to_db`` and
``from_db`` convert at the boundary.

Mixins
------
* **TimestampMixin**: ``created_at`` / ``updated_at`` set from Python.
"""

from __future__ import annotations

import datetime

from sqlalchemy import JSON, DateTime, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class ListingSpineBase(DeclarativeBase):
    """Shared declarative base for every listing-spine table.

    * ``str``   → ``Text``
    * ``int``   → ``Integer``
    * ``bool``  → ``Integer``  (SQLite has no native BOOLEAN)
    * ``datetime.datetime`` → ``DateTime``
    * ``dict``  → ``JSON``
    * ``list``  → ``JSON``
    """

    type_annotation_map = {
        str: Text,
        int: Integer,
        bool: Integer,
        datetime.datetime: DateTime,
        dict: JSON,
        list: JSON,
    }


def to_db(value: datetime.datetime | None) -> datetime.datetime | None:
    """Aware datetime → naive UTC for storage."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(datetime.UTC).replace(tzinfo=None)
    return value


def from_db(value: datetime.datetime | None) -> datetime.datetime | None:
    """Naive UTC from storage → aware datetime."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC).replace(tzinfo=None)


class TimestampMixin:
    """Adds ``created_at`` and ``updated_at`` (naive UTC)."""

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime, nullable=False, default=_now
    )
    updated_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime, nullable=True, default=_now, onupdate=_now
    )
