"""Workflow Context: the only handle a workflow has on the outside world.

Manifesto:
    Workflows are plain functions ``fn(ctx, input) -> WorkflowResult``,
written once. Everything non-deterministic goes through ``ctx``: activity
calls, timers and signal waits. That is what lets the same function run in
two very different ways:

* ``DirectContext`` executes each step immediately, in-process
* ``DurableContext`` replays: the n-th step returns the journaled outcome if
  there is one, and otherwise executes and journals it before returning

Because both backends run the same function against the same contract, the
ordered activity sequence and branching are identical in both modes.

ARCHITECTURE
────────────
::

    ctx.activity(name, payload, policy=None)   → output | raise ActivityFailed
    ctx.try_activity(name, payload)            → Ok(output) | Err(ActivityError)
    ctx.start_timer(seconds)                   → deadline (fixed on first run)
    ctx.wait_for_signal(names, until=deadline) → Signal | None (timed out)

    DurableContext step n:
        journal[n] exists?  ── kind/name match? ── replay outcome
                │ no                 │ no
                ▼                    ▼
        execute + append      NonDeterminismError

    A wait that cannot be resolved yet raises WorkflowSuspended(wake_at);
    the backend parks the run until the deadline or the next signal.

Guardrails:
    ❌ DON'T: Read the clock or random state directly inside a workflow to branch
    ✅ DO: Put it behind an activity or ``start_timer`` so replay sees the same value

    ❌ DON'T: Catch ``WorkflowSuspended`` in workflow code
    ✅ DO: Catch ``ActivityFailed`` (or use ``try_activity``) for business failures

Tags:
    listing-spine, execution, context, replay, durable

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from listing_spine.core.clock import Clock
from listing_spine.core.errors import NonDeterminismError
from listing_spine.core.logging import get_logger
from listing_spine.core.result import Err, Ok, Result
from listing_spine.execution.activity import (
    ActivityError,
    ActivityFailed,
    ActivityInvoker,
)
from listing_spine.execution.journal import RunJournal
from listing_spine.execution.policy import RetryPolicy
from listing_spine.execution.run import ExecutionMode, JournalEntry, JournalKind, WorkflowRun
from listing_spine.execution.signals import Signal, SignalMailbox


class WorkflowSuspended(Exception):
    """Internal: the durable run must park until *wake_at* (or the next signal)."""

    def __init__(self, wake_at: datetime | None, signals: Iterable[str] | None = None):
        self.wake_at = wake_at
        self.signals = list(signals) if signals is not None else None
        super().__init__(f"Workflow suspended until {wake_at}")


class WorkflowContext(ABC):
    """Shared surface of both execution contexts."""

    def __init__(self, run: WorkflowRun, invoker: ActivityInvoker, clock: Clock):
        self.run = run
        self.invoker = invoker
        self.clock = clock
        self.logger = get_logger("listing_spine.workflow").bind(
            workflow=run.workflow_name, run_id=run.run_id, mode=run.mode.value
        )

    @property
    def run_id(self) -> str:
        return self.run.run_id

    @property
    def mode(self) -> ExecutionMode:
        return self.run.mode

    @property
    def steps(self) -> list[tuple[str, str, str]]:
        """``(kind, name, outcome)`` for every step taken so far, in order."""
        return [(entry.kind, entry.name, entry.outcome) for entry in self.run.journal]

    def now(self) -> datetime:
        return self.clock.now()

    @abstractmethod
    def activity(
        self,
        name: str,
        payload: dict[str, Any] | None = None,
        *,
        policy: RetryPolicy | None = None,
    ) -> Any:
        """Run an activity; raise ``ActivityFailed`` if it fails terminally."""

    @abstractmethod
    def start_timer(self, seconds: float) -> datetime:
        """Return the deadline ``now + seconds``, fixed the first time this step runs."""

    @abstractmethod
    def wait_for_signal(self, names: Iterable[str], *, until: datetime) -> Signal | None:
        """Return the first matching signal, or ``None`` once *until* has passed."""

    def try_activity(
        self,
        name: str,
        payload: dict[str, Any] | None = None,
        *,
        policy: RetryPolicy | None = None,
    ) -> Result[Any, ActivityError]:
        """Like ``activity`` but returns ``Err`` instead of raising. For best-effort steps."""
        try:
            return Ok(self.activity(name, payload, policy=policy))
        except ActivityFailed as exc:
            return Err(exc.error)

    # -- helpers shared by both contexts -------------------------------------

    @staticmethod
    def _activity_entry(seq: int, name: str, result: Result[Any, ActivityError], attempts: int) -> JournalEntry:
        match result:
            case Ok(output):
                return JournalEntry(seq, JournalKind.ACTIVITY, name, "ok", {"output": output}, attempts)
            case Err(error):
                return JournalEntry(seq, JournalKind.ACTIVITY, name, "error",
                                    {"error": error.to_dict()}, error.attempts)

    @staticmethod
    def _outcome(name: str, entry: JournalEntry) -> Any:
        if entry.outcome == "ok":
            return entry.payload.get("output")
        raise ActivityFailed(name, ActivityError.from_dict(entry.payload["error"]))


class DirectContext(WorkflowContext):
    """Synchronous, in-process execution. The run log lives in memory only."""

    def __init__(self, run: WorkflowRun, invoker: ActivityInvoker, clock: Clock,
                 mailbox: SignalMailbox | None = None):
        super().__init__(run, invoker, clock)
        self.mailbox = mailbox or SignalMailbox()

    def activity(self, name, payload=None, *, policy=None):
        before = len(self.run.attempts)
        result = self.invoker.invoke(name, payload, policy, observer=self.run.attempts.append)
        entry = self._activity_entry(len(self.run.journal), name, result,
                                     max(len(self.run.attempts) - before, 1))
        entry.recorded_at = self.clock.now()
        self.run.record(entry)
        return self._outcome(name, entry)

    def start_timer(self, seconds):
        deadline = self.clock.now() + timedelta(seconds=seconds)
        entry = JournalEntry(len(self.run.journal), JournalKind.TIMER, "timer", "ok",
                             {"deadline": deadline.isoformat()}, recorded_at=self.clock.now())
        self.run.record(entry)
        return deadline

    def wait_for_signal(self, names, *, until):
        names = list(names)
        self.logger.info("workflow.waiting", signals=names, until=until.isoformat())
        signal = self.mailbox.wait(names, until, self.clock)
        entry = JournalEntry(
            len(self.run.journal), JournalKind.WAIT, "|".join(names), "ok",
            {"signal": signal.to_dict() if signal else None, "timed_out": signal is None},
            recorded_at=self.clock.now(),
        )
        self.run.record(entry)
        return signal


class DurableContext(WorkflowContext):
    """Replaying context backed by a ``RunJournal``."""

    def __init__(self, run: WorkflowRun, invoker: ActivityInvoker, clock: Clock,
                 journal: RunJournal, owner: str, recorded: list[JournalEntry]):
        super().__init__(run, invoker, clock)
        self.journal = journal
        self.owner = owner
        self._recorded = list(recorded)
        self._cursor = 0

    @property
    def replaying(self) -> bool:
        return self._cursor < len(self._recorded)

    def _replay(self, kind: str, name: str) -> JournalEntry | None:
        if not self.replaying:
            return None
        entry = self._recorded[self._cursor]
        if entry.kind != kind or entry.name != name:
            raise NonDeterminismError(
                f"Run {self.run_id} step {self._cursor}: journal has {entry.kind} '{entry.name}', "
                f"workflow asked for {kind} '{name}'"
            )
        self._cursor += 1
        self.run.record(entry)
        return entry

    def _append(self, entry: JournalEntry) -> JournalEntry:
        self.journal.append(self.run_id, entry, self.owner)
        self._cursor += 1
        self.run.record(entry)
        return entry

    def activity(self, name, payload=None, *, policy=None):
        entry = self._replay(JournalKind.ACTIVITY, name)
        if entry is not None:
            self.logger.debug("activity.replayed", activity=name, seq=entry.seq, outcome=entry.outcome)
            return self._outcome(name, entry)

        before = len(self.run.attempts)
        result = self.invoker.invoke(name, payload, policy, observer=self.run.attempts.append)
        entry = self._append(self._activity_entry(self._cursor, name, result,
                                                  max(len(self.run.attempts) - before, 1)))
        return self._outcome(name, entry)

    def start_timer(self, seconds):
        entry = self._replay(JournalKind.TIMER, "timer")
        if entry is None:
            deadline = self.clock.now() + timedelta(seconds=seconds)
            entry = self._append(JournalEntry(self._cursor, JournalKind.TIMER, "timer", "ok",
                                              {"deadline": deadline.isoformat()}))
        return datetime.fromisoformat(entry.payload["deadline"])

    def wait_for_signal(self, names, *, until):
        names = list(names)
        entry = self._replay(JournalKind.WAIT, "|".join(names))
        if entry is None:
            entry = self.journal.resolve_wait(self.run_id, self._cursor, names, until, self.owner)
            if entry is None:
                self.logger.info("workflow.waiting", signals=names, until=until.isoformat())
                raise WorkflowSuspended(until, names)
            self._cursor += 1
            self.run.record(entry)
        recorded = entry.payload.get("signal")
        return Signal.from_dict(recorded) if recorded else None


__all__ = ["WorkflowContext", "DirectContext", "DurableContext", "WorkflowSuspended"]
