"""Draft and publishable-entity tables.

Each entity table carries a unique ``draft_id``: at most one entity exists per
draft, and a concurrent second create fails with an integrity error that the
entity store turns into ``DuplicateEntityError``.

Tags:
    listing-spine, orm, sqlalchemy, tables, drafts, entities
"""

from __future__ import annotations

from sqlalchemy import JSON, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from listing_spine.core.orm.base import ListingSpineBase, TimestampMixin


class DraftTable(TimestampMixin, ListingSpineBase):
    __tablename__ = "lst_drafts"

    draft_id: Mapped[str] = mapped_column(Text, primary_key=True)
    owner_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    draft_type: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(Text, default="DRAFT", nullable=False)


class _EntityColumns(TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    draft_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    owner_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    verification_status: Mapped[str] = mapped_column(Text, default="PENDING", nullable=False)
    publish_status: Mapped[str] = mapped_column(Text, default="PENDING_REVIEW", nullable=False)
    attributes: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)


class PropertyTable(_EntityColumns, ListingSpineBase):
    __tablename__ = "lst_properties"


class PgHostelTable(_EntityColumns, ListingSpineBase):
    __tablename__ = "lst_pg_hostels"


class ProjectTable(_EntityColumns, ListingSpineBase):
    __tablename__ = "lst_projects"


class DeveloperTable(_EntityColumns, ListingSpineBase):
    __tablename__ = "lst_developers"
