"""SQLAlchemy 2.0 ORM layer: durable run journal plus draft and entity tables.

Modules
-------
base        ListingSpineBase (declarative base) + TimestampMixin
session     Engine factory, ListingSession, create_all
tables      Mapped tables (runs, journal, signals, drafts, entities)
"""

from __future__ import annotations

from listing_spine.core.orm.base import ListingSpineBase, TimestampMixin
from listing_spine.core.orm.session import (
    ListingSession,
    create_all,
    create_listing_engine,
    listing_session_factory,
)
from listing_spine.core.orm.tables import *  # noqa: F401,F403

__all__ = [
    "ListingSpineBase",
    "TimestampMixin",
    "ListingSession",
    "create_all",
    "create_listing_engine",
    "listing_session_factory",
]
