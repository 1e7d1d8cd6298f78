"""Direct backend: synchronous, in-process execution.

The fallback path when durable execution is disabled. ``start`` runs the
workflow to completion on the caller's thread and returns the final result
in the handle. Nothing is persisted, so a crash mid-run loses the run; the
activities' own deduplication is what makes re-submitting it safe.

While a run is active its ``SignalMailbox`` is reachable by run id, so
another thread can deliver ``approve`` / ``reject`` to a waiting approval.
"""

from __future__ import annotations

import threading
import uuid
from collections import OrderedDict
from typing import Any

from listing_spine.core.clock import Clock, SystemClock
from listing_spine.core.errors import RunNotFoundError
from listing_spine.core.logging import LogContext, get_logger
from listing_spine.execution.activity import ActivityInvoker
from listing_spine.execution.context import DirectContext
from listing_spine.execution.registry import WorkflowRegistry
from listing_spine.execution.results import WorkflowResult
from listing_spine.execution.run import ExecutionMode, RunHandle, RunStatus, WorkflowRun
from listing_spine.execution.signals import Signal, SignalMailbox

logger = get_logger(__name__)

# Finished direct runs kept for status/result queries.
_HISTORY_SIZE = 256


class DirectBackend:
    mode = ExecutionMode.DIRECT

    def __init__(self, workflows: WorkflowRegistry, invoker: ActivityInvoker, clock: Clock | None = None):
        self.workflows = workflows
        self.invoker = invoker
        self.clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._active: dict[str, tuple[WorkflowRun, SignalMailbox]] = {}
        self._finished: OrderedDict[str, WorkflowRun] = OrderedDict()

    def start(self, workflow_name: str, input: dict[str, Any], run_id: str | None = None) -> RunHandle:
        definition = self.workflows.get(workflow_name)
        now = self.clock.now()
        run = WorkflowRun(
            run_id=run_id or uuid.uuid4().hex,
            workflow_name=workflow_name,
            mode=self.mode,
            status=RunStatus.RUNNING,
            input=dict(input),
            created_at=now,
            started_at=now,
            resume_count=1,
        )
        mailbox = SignalMailbox()
        with self._lock:
            self._active[run.run_id] = (run, mailbox)

        ctx = DirectContext(run, self.invoker, self.clock, mailbox)
        try:
            with LogContext(workflow=workflow_name, run_id=run.run_id, mode=self.mode.value):
                logger.info("workflow.start")
                try:
                    result = definition.fn(ctx, run.input)
                except Exception as exc:
                    logger.exception("workflow.failed", error=str(exc))
                    run.status = RunStatus.FAILED
                    run.error = str(exc)
                    result = WorkflowResult.fail(f"Workflow failed: {exc}")
                else:
                    run.status = RunStatus.COMPLETED
                    logger.info("workflow.completed", success=result.success, steps=run.completed_steps)
        finally:
            run.completed_at = self.clock.now()
            with self._lock:
                self._active.pop(run.run_id, None)
                self._finished[run.run_id] = run
                while len(self._finished) > _HISTORY_SIZE:
                    self._finished.popitem(last=False)

        run.result = result.with_run(run.run_id, self.mode.value, run.status.value)
        return RunHandle(run_id=run.run_id, mode=self.mode, result=run.result)

    def _lookup(self, run_id: str) -> tuple[WorkflowRun, SignalMailbox | None]:
        with self._lock:
            if run_id in self._active:
                return self._active[run_id]
            if run_id in self._finished:
                return self._finished[run_id], None
        raise RunNotFoundError(run_id)

    def signal(self, run_id: str, name: str, payload: dict[str, Any] | None = None) -> bool:
        run, mailbox = self._lookup(run_id)
        if mailbox is None:
            logger.info("signal.ignored", run_id=run_id, signal=name, status=run.status.value)
            return False
        mailbox.deliver(Signal(name=name, payload=dict(payload or {}), received_at=self.clock.now()))
        logger.info("signal.delivered", run_id=run_id, signal=name, mode=self.mode.value)
        return True

    def mailbox(self, run_id: str) -> SignalMailbox | None:
        """The mailbox of an active run (None once it finished)."""
        return self._lookup(run_id)[1]

    def status(self, run_id: str) -> dict[str, Any]:
        return self._lookup(run_id)[0].progress()

    def result(self, run_id: str) -> WorkflowResult:
        run, _ = self._lookup(run_id)
        if run.result is None:
            return WorkflowResult.pending(run_id, run.status.value).with_run(run_id, self.mode.value)
        return run.result

    def get_run(self, run_id: str) -> WorkflowRun:
        return self._lookup(run_id)[0]

    def owns(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._active or run_id in self._finished


__all__ = ["DirectBackend"]
