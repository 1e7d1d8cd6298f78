"""Durable run journal tables: runs, journal entries, signals.

Tags:
    listing-spine, orm, sqlalchemy, tables, workflow

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from listing_spine.core.orm.base import ListingSpineBase, TimestampMixin


class WorkflowRunTable(TimestampMixin, ListingSpineBase):
    __tablename__ = "lst_workflow_runs"
    __table_args__ = (Index("ix_lst_workflow_runs_status_wake", "status", "wake_at"),)

    run_id: Mapped[str] = mapped_column(Text, primary_key=True)
    workflow_name: Mapped[str] = mapped_column(Text, nullable=False)
    mode: Mapped[str] = mapped_column(Text, default="durable", nullable=False)
    status: Mapped[str] = mapped_column(Text, default="PENDING", nullable=False)
    input: Mapped[dict | None] = mapped_column(JSON)
    result: Mapped[dict | None] = mapped_column(JSON)
    error: Mapped[str | None] = mapped_column(Text)
    current_step: Mapped[str | None] = mapped_column(Text)
    completed_steps: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    wake_at: Mapped[datetime.datetime | None] = mapped_column(DateTime)
    lease_owner: Mapped[str | None] = mapped_column(Text)
    lease_expires_at: Mapped[datetime.datetime | None] = mapped_column(DateTime)
    resume_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    started_at: Mapped[datetime.datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[datetime.datetime | None] = mapped_column(DateTime)


class WorkflowJournalTable(ListingSpineBase):
    __tablename__ = "lst_workflow_journal"
    __table_args__ = (UniqueConstraint("run_id", "seq", name="uq_lst_journal_run_seq"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(
        Text, ForeignKey("lst_workflow_runs.run_id"), nullable=False
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    outcome: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON)
    attempts: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    recorded_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)


class WorkflowSignalTable(ListingSpineBase):
    __tablename__ = "lst_workflow_signals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(
        Text, ForeignKey("lst_workflow_runs.run_id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON)
    received_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    consumed: Mapped[bool] = mapped_column(Integer, default=0, nullable=False)
