"""Durable backend: journaled, resumable execution.

Manifesto:
    A durable run is persisted before any of its work starts, and every step
it completes is journaled before the next one begins. ``start`` returns a
handle immediately; the work happens wherever the dispatcher sends it, and
the caller learns the outcome by polling ``result``. If the process dies
mid-run the lease expires, ``recover`` (or the worker loop) redispatches the
run, and the workflow function replays its journal up to the first step
that never completed.

ARCHITECTURE
────────────
::

    start(name, input) ── journal.create_run ── dispatcher.dispatch(run_id, execute)
                                                           │
    execute(run_id) ◄──────────────────────────────────────┘
      ├── journal.claim(run_id, owner)            (no-op if someone else has it)
      ├── overdue? ── fail("timed out")
      ├── fn(DurableContext(journal entries), input)
      │     ├── returns WorkflowResult ─► journal.complete
      │     ├── WorkflowSuspended       ─► journal.suspend (redispatch if a signal is waiting)
      │     ├── LeaseLostError          ─► stop; the new owner carries on
      │     └── Exception               ─► journal.fail
      └── BaseException (process death) propagates; the lease expires later

    signal(run_id, name) ── journal.add_signal ── SUSPENDED? redispatch now
    recover(now)         ── dispatch every claimable run (pending, due, lease expired)

Tags:
    listing-spine, execution, durable, backend, resume

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

import os
import platform
import threading
import time
import uuid
from datetime import datetime, timedelta
from typing import Any

from listing_spine.core.clock import Clock, SystemClock
from listing_spine.core.errors import WorkflowNotFoundError
from listing_spine.core.logging import LogContext, get_logger
from listing_spine.execution.activity import ActivityInvoker
from listing_spine.execution.context import DurableContext, WorkflowSuspended
from listing_spine.execution.dispatch import Dispatcher
from listing_spine.execution.journal import LeaseLostError, RunJournal
from listing_spine.execution.registry import WorkflowRegistry
from listing_spine.execution.results import WorkflowResult
from listing_spine.execution.run import ExecutionMode, RunHandle, RunStatus, WorkflowRun

logger = get_logger(__name__)


def _default_owner() -> str:
    return f"{platform.node()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class DurableBackend:
    mode = ExecutionMode.DURABLE

    def __init__(
        self,
        workflows: WorkflowRegistry,
        journal: RunJournal,
        invoker: ActivityInvoker,
        dispatcher: Dispatcher,
        clock: Clock | None = None,
        workflow_timeout_seconds: float = 30 * 24 * 3600.0,
        owner: str | None = None,
    ):
        self.workflows = workflows
        self.journal = journal
        self.invoker = invoker
        self.dispatcher = dispatcher
        self.clock = clock or SystemClock()
        self.workflow_timeout = timedelta(seconds=workflow_timeout_seconds)
        self.owner = owner or _default_owner()

    # =========================================================================
    # Starting and executing
    # =========================================================================

    def start(self, workflow_name: str, input: dict[str, Any], run_id: str | None = None) -> RunHandle:
        self.workflows.get(workflow_name)
        run = self.journal.create_run(workflow_name, dict(input), run_id=run_id)
        self.dispatcher.dispatch(run.run_id, self.execute)
        return RunHandle(run_id=run.run_id, mode=self.mode)

    def _overdue(self, run: WorkflowRun) -> bool:
        return run.created_at is not None and self.clock.now() - run.created_at > self.workflow_timeout

    def execute(self, run_id: str) -> RunStatus | None:
        """Drive one run as far as it can go. Returns the status it was left in.

        ``None`` means this worker did not (or no longer) own the run.
        """
        if not self.journal.claim(run_id, self.owner):
            logger.debug("run.not_claimed", run_id=run_id, owner=self.owner)
            return None

        run = self.journal.get_run(run_id)
        with LogContext(workflow=run.workflow_name, run_id=run_id, mode=self.mode.value):
            if self._overdue(run):
                hours = self.workflow_timeout.total_seconds() / 3600
                logger.error("workflow.timed_out", timeout_hours=hours)
                message = f"Workflow timed out after {hours:g} hours"
                self.journal.fail(run_id, message, self.owner, WorkflowResult.fail(message))
                return RunStatus.FAILED

            try:
                definition = self.workflows.get(run.workflow_name)
            except WorkflowNotFoundError as exc:
                logger.error("workflow.not_registered", error=str(exc))
                self.journal.fail(run_id, str(exc), self.owner, WorkflowResult.fail(str(exc)))
                return RunStatus.FAILED

            recorded = self.journal.entries(run_id)
            ctx = DurableContext(run, self.invoker, self.clock, self.journal, self.owner, recorded)
            logger.info("workflow.resume" if run.resume_count > 1 else "workflow.start",
                        resume_count=run.resume_count, journaled_steps=len(recorded))

            try:
                result = definition.fn(ctx, run.input)
            except WorkflowSuspended as suspended:
                if self.journal.suspend(run_id, self.owner, suspended.wake_at, suspended.signals):
                    self.dispatcher.dispatch(run_id, self.execute)
                return RunStatus.SUSPENDED
            except LeaseLostError as exc:
                logger.warning("run.lease_lost", error=str(exc))
                return None
            except Exception as exc:
                logger.exception("workflow.failed", error=str(exc))
                self.journal.fail(run_id, str(exc), self.owner, WorkflowResult.fail(f"Workflow failed: {exc}"))
                return RunStatus.FAILED

            self.journal.complete(run_id, self.owner, result)
            logger.info("workflow.completed", success=result.success, steps=run.completed_steps)
            return RunStatus.COMPLETED

    def resume(self, run_id: str) -> None:
        """Redispatch a run (no-op if it is not claimable)."""
        self.dispatcher.dispatch(run_id, self.execute)

    def recover(self, now: datetime | None = None) -> list[str]:
        """Dispatch every run that is pending, due to wake, or whose owner died."""
        run_ids = self.journal.due_runs(now)
        for run_id in run_ids:
            self.dispatcher.dispatch(run_id, self.execute)
        if run_ids:
            logger.info("runs.recovered", count=len(run_ids))
        return run_ids

    # =========================================================================
    # Queries and signals
    # =========================================================================

    def signal(self, run_id: str, name: str, payload: dict[str, Any] | None = None) -> bool:
        status = self.journal.add_signal(run_id, name, payload)
        if status.is_terminal:
            logger.info("signal.ignored", run_id=run_id, signal=name, status=status.value)
            return False
        logger.info("signal.delivered", run_id=run_id, signal=name, mode=self.mode.value)
        if status is RunStatus.SUSPENDED:
            self.dispatcher.dispatch(run_id, self.execute)
        return True

    def status(self, run_id: str) -> dict[str, Any]:
        return self.journal.progress(run_id)

    def get_run(self, run_id: str) -> WorkflowRun:
        return self.journal.get_run(run_id, include_journal=True)

    def result(self, run_id: str) -> WorkflowResult:
        run = self.journal.get_run(run_id)
        if run.result is not None:
            return run.result
        if run.status is RunStatus.FAILED:
            return WorkflowResult.fail(run.error or "Workflow failed").with_run(
                run_id, self.mode.value, run.status.value
            )
        return WorkflowResult.pending(run_id, run.status.value).with_run(run_id, self.mode.value)

    def wait_for_result(self, run_id: str, timeout: float, poll_interval: float = 0.05) -> WorkflowResult:
        """Poll until the run terminates or *timeout* real seconds pass."""
        deadline = time.monotonic() + timeout
        waiter = threading.Event()
        while True:
            result = self.result(run_id)
            if not result.is_pending or time.monotonic() >= deadline:
                return result
            waiter.wait(poll_interval)

    def owns(self, run_id: str) -> bool:
        return self.journal.has_run(run_id)


__all__ = ["DurableBackend"]
