"""Run Journal: durable persistence of runs, completed steps and signals.

Manifesto:
    A durable run must survive the process that started it. Every completed
step is appended to the journal *before* the workflow moves on, so a
restarted worker can replay the workflow function and get the recorded
outcome for every step that already happened. Exactly one worker may drive a
run at a time; ownership is a lease with a TTL so a crashed worker never
blocks a run forever.

ARCHITECTURE
────────────
::

    lst_workflow_runs ───────── one row per run (status, lease, wake_at)
    lst_workflow_journal ────── (run_id, seq) unique: kind, name, outcome, payload
    lst_workflow_signals ────── inbound signals, consumed once

    claim(run_id, owner)   compare-and-set:
        PENDING
        SUSPENDED and wake_at <= now
        RUNNING   and lease_expires_at < now     (crashed owner)
      → RUNNING, lease_owner=owner, resume_count += 1

    append(run_id, entry, owner)   only while holding the lease
    resolve_wait(...)              consume signal or record timeout, atomically
    suspend(run_id, owner, wake_at, signals) → True if a matching signal is already waiting
    add_signal(run_id, name, payload) → status the run had at delivery

BEST PRACTICES
──────────────
- Write first, then read, inside one transaction when deciding on run state
  (SQLite serialises writers, so the read sees every committed signal).
- Never hold a session across an activity call.

Tags:
    listing-spine, execution, durable, journal, lease, sqlalchemy

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from listing_spine.core.clock import Clock, SystemClock
from listing_spine.core.errors import OrchestrationError, RunNotFoundError
from listing_spine.core.logging import get_logger
from listing_spine.core.orm.base import from_db, to_db
from listing_spine.core.orm.tables import (
    WorkflowJournalTable,
    WorkflowRunTable,
    WorkflowSignalTable,
)
from listing_spine.execution.results import WorkflowResult
from listing_spine.execution.run import (
    ExecutionMode,
    JournalEntry,
    JournalKind,
    RunStatus,
    WorkflowRun,
)
from listing_spine.execution.signals import Signal

logger = get_logger(__name__)


class LeaseLostError(OrchestrationError):
    """Another worker owns the run now; this worker must stop driving it."""

    pass


class RunJournal:
    """SQLAlchemy-backed store for durable runs.

    Example:
        >>> journal = RunJournal(listing_session_factory(engine), clock=ManualClock())
        >>> run = journal.create_run("publish.property", {"draft_id": "42", "owner_id": "7"})
        >>> journal.claim(run.run_id, owner="worker-1")
        True
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        lease_seconds: float = 300.0,
    ):
        self._sessions = session_factory
        self.clock = clock or SystemClock()
        self.lease_seconds = lease_seconds

    # =========================================================================
    # Runs
    # =========================================================================

    def create_run(
        self,
        workflow_name: str,
        input: dict[str, Any],
        run_id: str | None = None,
    ) -> WorkflowRun:
        now = to_db(self.clock.now())
        row = WorkflowRunTable(
            run_id=run_id or uuid.uuid4().hex,
            workflow_name=workflow_name,
            mode=ExecutionMode.DURABLE.value,
            status=RunStatus.PENDING.value,
            input=input,
            completed_steps=0,
            resume_count=0,
            created_at=now,
            updated_at=now,
        )
        try:
            with self._sessions.begin() as session:
                session.add(row)
        except IntegrityError as exc:
            raise OrchestrationError(f"Workflow run {row.run_id} already exists", cause=exc) from exc
        logger.info("run.created", run_id=row.run_id, workflow=workflow_name)
        return self._to_run(row)

    def get_run(self, run_id: str, include_journal: bool = False) -> WorkflowRun:
        with self._sessions() as session:
            row = session.get(WorkflowRunTable, run_id)
            if row is None:
                raise RunNotFoundError(run_id)
            run = self._to_run(row)
        if include_journal:
            run.journal = self.entries(run_id)
        return run

    def has_run(self, run_id: str) -> bool:
        with self._sessions() as session:
            return session.get(WorkflowRunTable, run_id) is not None

    def list_runs(
        self,
        status: RunStatus | None = None,
        workflow: str | None = None,
        limit: int = 50,
    ) -> list[WorkflowRun]:
        query = select(WorkflowRunTable).order_by(WorkflowRunTable.created_at.desc()).limit(limit)
        if status is not None:
            query = query.where(WorkflowRunTable.status == status.value)
        if workflow is not None:
            query = query.where(WorkflowRunTable.workflow_name == workflow)
        with self._sessions() as session:
            return [self._to_run(row) for row in session.execute(query).scalars()]

    def progress(self, run_id: str) -> dict[str, Any]:
        return self.get_run(run_id).progress()

    # =========================================================================
    # Ownership
    # =========================================================================

    def _claimable(self, now: datetime) -> Any:
        return or_(
            WorkflowRunTable.status == RunStatus.PENDING.value,
            and_(
                WorkflowRunTable.status == RunStatus.SUSPENDED.value,
                WorkflowRunTable.wake_at.is_not(None),
                WorkflowRunTable.wake_at <= now,
            ),
            and_(
                WorkflowRunTable.status == RunStatus.RUNNING.value,
                WorkflowRunTable.lease_expires_at < now,
            ),
        )

    def due_runs(self, now: datetime | None = None, limit: int = 100) -> list[str]:
        """Run ids a worker could claim right now."""
        moment = to_db(now or self.clock.now())
        query = (
            select(WorkflowRunTable.run_id)
            .where(self._claimable(moment))
            .order_by(WorkflowRunTable.created_at)
            .limit(limit)
        )
        with self._sessions() as session:
            return list(session.execute(query).scalars())

    def claim(self, run_id: str, owner: str) -> bool:
        now = to_db(self.clock.now())
        with self._sessions.begin() as session:
            cursor = session.execute(
                update(WorkflowRunTable)
                .where(WorkflowRunTable.run_id == run_id, self._claimable(now))
                .values(
                    status=RunStatus.RUNNING.value,
                    lease_owner=owner,
                    lease_expires_at=now + timedelta(seconds=self.lease_seconds),
                    wake_at=None,
                    resume_count=WorkflowRunTable.resume_count + 1,
                    started_at=func.coalesce(WorkflowRunTable.started_at, now),
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            claimed = cursor.rowcount == 1
        if claimed:
            logger.debug("run.claimed", run_id=run_id, owner=owner)
        return claimed

    def _owned(self, session: Session, run_id: str, owner: str, now: datetime, **values: Any) -> None:
        """Update the run row only while *owner* holds the lease; renews the lease."""
        fields: dict[str, Any] = {
            "lease_expires_at": now + timedelta(seconds=self.lease_seconds),
            "updated_at": now,
        }
        fields.update(values)
        cursor = session.execute(
            update(WorkflowRunTable)
            .where(WorkflowRunTable.run_id == run_id, WorkflowRunTable.lease_owner == owner)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        if cursor.rowcount != 1:
            raise LeaseLostError(f"Worker {owner} no longer owns run {run_id}")

    # =========================================================================
    # Journal
    # =========================================================================

    def entries(self, run_id: str) -> list[JournalEntry]:
        query = (
            select(WorkflowJournalTable)
            .where(WorkflowJournalTable.run_id == run_id)
            .order_by(WorkflowJournalTable.seq)
        )
        with self._sessions() as session:
            return [
                JournalEntry(
                    seq=row.seq,
                    kind=row.kind,
                    name=row.name,
                    outcome=row.outcome,
                    payload=dict(row.payload or {}),
                    attempts=row.attempts,
                    recorded_at=from_db(row.recorded_at),
                )
                for row in session.execute(query).scalars()
            ]

    def _insert_entry(self, session: Session, run_id: str, entry: JournalEntry, now: datetime) -> None:
        session.add(
            WorkflowJournalTable(
                run_id=run_id,
                seq=entry.seq,
                kind=entry.kind,
                name=entry.name,
                outcome=entry.outcome,
                payload=entry.payload,
                attempts=entry.attempts,
                recorded_at=now,
            )
        )

    def append(self, run_id: str, entry: JournalEntry, owner: str) -> JournalEntry:
        now = to_db(self.clock.now())
        try:
            with self._sessions.begin() as session:
                self._owned(session, run_id, owner, now,
                            current_step=entry.name, completed_steps=entry.seq + 1)
                self._insert_entry(session, run_id, entry, now)
        except IntegrityError as exc:
            raise LeaseLostError(
                f"Step {entry.seq} of run {run_id} was already recorded by another worker",
                cause=exc,
            ) from exc
        entry.recorded_at = from_db(now)
        return entry

    def resolve_wait(
        self,
        run_id: str,
        seq: int,
        names: Iterable[str],
        deadline: datetime,
        owner: str,
    ) -> JournalEntry | None:
        """Consume the oldest matching signal, or record a timeout once *deadline* has passed.

        Returns ``None`` when neither has happened yet. The signal is checked
        first, so a signal that arrived by the deadline always wins. Signals
        received after the deadline never resolve the wait, however late the
        run is claimed.
        """
        names = list(names)
        now = self.clock.now()
        db_now = to_db(now)
        label = "|".join(names)
        with self._sessions.begin() as session:
            row = session.execute(
                select(WorkflowSignalTable)
                .where(
                    WorkflowSignalTable.run_id == run_id,
                    WorkflowSignalTable.consumed == 0,
                    WorkflowSignalTable.name.in_(names),
                    WorkflowSignalTable.received_at <= to_db(deadline),
                )
                .order_by(WorkflowSignalTable.id)
                .limit(1)
            ).scalar_one_or_none()
            if row is not None:
                row.consumed = 1
                signal = Signal(name=row.name, payload=dict(row.payload or {}),
                                received_at=from_db(row.received_at))
                entry = JournalEntry(seq, JournalKind.WAIT, label, "ok",
                                     {"signal": signal.to_dict(), "timed_out": False})
            elif now >= deadline:
                entry = JournalEntry(seq, JournalKind.WAIT, label, "ok",
                                     {"signal": None, "timed_out": True})
            else:
                return None
            self._owned(session, run_id, owner, db_now,
                        current_step=label, completed_steps=seq + 1)
            self._insert_entry(session, run_id, entry, db_now)
        entry.recorded_at = now
        return entry

    # =========================================================================
    # Transitions
    # =========================================================================

    def suspend(self, run_id: str, owner: str, wake_at: datetime | None,
                signals: Iterable[str] | None = None) -> bool:
        """Park the run until *wake_at*. Returns True if it should be redispatched now.

        Only unconsumed signals named in *signals* (any, when None) count as waiting.
        """
        now = to_db(self.clock.now())
        with self._sessions.begin() as session:
            self._owned(session, run_id, owner, now,
                        status=RunStatus.SUSPENDED.value, wake_at=to_db(wake_at),
                        lease_owner=None, lease_expires_at=None)
            pending = select(func.count(WorkflowSignalTable.id)).where(
                WorkflowSignalTable.run_id == run_id, WorkflowSignalTable.consumed == 0
            )
            if signals is not None:
                pending = pending.where(WorkflowSignalTable.name.in_(list(signals)))
            waiting = session.execute(pending).scalar_one()
            if waiting:
                session.execute(
                    update(WorkflowRunTable)
                    .where(WorkflowRunTable.run_id == run_id)
                    .values(wake_at=now)
                    .execution_options(synchronize_session=False)
                )
        logger.info("run.suspended", run_id=run_id, wake_at=wake_at, signals_waiting=waiting)
        return bool(waiting)

    def complete(self, run_id: str, owner: str, result: WorkflowResult) -> None:
        now = to_db(self.clock.now())
        with self._sessions.begin() as session:
            self._owned(session, run_id, owner, now,
                        status=RunStatus.COMPLETED.value, result=result.envelope(),
                        completed_at=now, lease_owner=None, lease_expires_at=None)

    def fail(self, run_id: str, error: str, owner: str | None = None,
             result: WorkflowResult | None = None) -> None:
        now = to_db(self.clock.now())
        values = dict(
            status=RunStatus.FAILED.value,
            error=error,
            result=result.envelope() if result else None,
            completed_at=now,
            lease_owner=None,
            lease_expires_at=None,
        )
        with self._sessions.begin() as session:
            if owner is not None:
                self._owned(session, run_id, owner, now, **values)
            else:
                session.execute(
                    update(WorkflowRunTable)
                    .where(WorkflowRunTable.run_id == run_id)
                    .values(updated_at=now, **values)
                    .execution_options(synchronize_session=False)
                )

    # =========================================================================
    # Signals
    # =========================================================================

    def add_signal(self, run_id: str, name: str, payload: dict[str, Any] | None = None) -> RunStatus:
        """Store a signal and wake the run if it is parked.

        Returns the status the run had when the signal landed.
        """
        now = to_db(self.clock.now())
        with self._sessions.begin() as session:
            if session.get(WorkflowRunTable, run_id) is None:
                raise RunNotFoundError(run_id)
            session.add(WorkflowSignalTable(
                run_id=run_id, name=name, payload=payload or {}, received_at=now, consumed=0,
            ))
            session.flush()
            status = RunStatus(session.execute(
                select(WorkflowRunTable.status).where(WorkflowRunTable.run_id == run_id)
            ).scalar_one())
            if status is RunStatus.SUSPENDED:
                session.execute(
                    update(WorkflowRunTable)
                    .where(WorkflowRunTable.run_id == run_id)
                    .values(wake_at=now, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
        return status

    def pending_signals(self, run_id: str) -> list[Signal]:
        query = (
            select(WorkflowSignalTable)
            .where(WorkflowSignalTable.run_id == run_id, WorkflowSignalTable.consumed == 0)
            .order_by(WorkflowSignalTable.id)
        )
        with self._sessions() as session:
            return [
                Signal(name=row.name, payload=dict(row.payload or {}), received_at=from_db(row.received_at))
                for row in session.execute(query).scalars()
            ]

    # =========================================================================
    # Conversion
    # =========================================================================

    @staticmethod
    def _to_run(row: WorkflowRunTable) -> WorkflowRun:
        status = RunStatus(row.status)
        result = None
        if row.result is not None:
            result = WorkflowResult.from_dict(row.result).with_run(row.run_id, row.mode, status.value)
        return WorkflowRun(
            run_id=row.run_id,
            workflow_name=row.workflow_name,
            mode=ExecutionMode(row.mode),
            status=status,
            input=dict(row.input or {}),
            result=result,
            error=row.error,
            current_step=row.current_step,
            completed_steps=row.completed_steps,
            wake_at=from_db(row.wake_at),
            resume_count=row.resume_count,
            created_at=from_db(row.created_at),
            started_at=from_db(row.started_at),
            completed_at=from_db(row.completed_at),
        )


__all__ = ["RunJournal", "LeaseLostError"]
