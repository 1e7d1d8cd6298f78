"""Dispatchers: where a durable run's next slice of work executes.

The durable backend never runs a workflow on the caller's thread unless told
to. It hands ``(run_id, execute)`` to a dispatcher:

* ``InlineDispatcher`` runs it synchronously (tests, CLI one-shots). A
  dispatch issued while a run is already executing is queued and drained
  afterwards rather than recursing.
* ``ThreadDispatcher`` submits it to a ``ThreadPoolExecutor``.
* ``CeleryDispatcher`` sends the ``listing_spine.workflows.resume`` task; a
  celery worker process calls ``execute`` on its own runtime.

Every dispatcher is safe to call for a run that cannot be claimed: the
backend's claim is a no-op in that case.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Protocol, runtime_checkable

from listing_spine.core.logging import get_logger

logger = get_logger(__name__)

Execute = Callable[[str], Any]

RESUME_TASK = "listing_spine.workflows.resume"


@runtime_checkable
class Dispatcher(Protocol):
    name: str

    def dispatch(self, run_id: str, execute: Execute) -> None: ...

    def shutdown(self, wait: bool = True) -> None: ...


class InlineDispatcher:
    name = "inline"

    def __init__(self) -> None:
        self._local = threading.local()

    def dispatch(self, run_id: str, execute: Execute) -> None:
        queue: deque[str] | None = getattr(self._local, "queue", None)
        if queue is not None:
            queue.append(run_id)
            return
        self._local.queue = queue = deque([run_id])
        try:
            while queue:
                execute(queue.popleft())
        finally:
            self._local.queue = None

    def shutdown(self, wait: bool = True) -> None:
        return None


class ThreadDispatcher:
    name = "thread"

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="listing-run")

    def dispatch(self, run_id: str, execute: Execute) -> None:
        future = self._executor.submit(execute, run_id)
        future.add_done_callback(lambda done: self._report(run_id, done))

    @staticmethod
    def _report(run_id: str, future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.error("dispatch.failed", run_id=run_id, error=str(error),
                         error_type=type(error).__name__)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class CeleryDispatcher:
    """Send resumptions to celery workers.

    The worker side is ``listing_spine.execution.tasks.resume_workflow``.
    """

    name = "celery"

    def __init__(self, celery_app: Any, queue: str = "default") -> None:
        self.celery_app = celery_app
        self.queue = queue

    def dispatch(self, run_id: str, execute: Execute) -> None:
        signature = self.celery_app.signature(RESUME_TASK, args=[run_id], queue=self.queue)
        async_result = signature.apply_async()
        logger.debug("dispatch.sent", run_id=run_id, task_id=async_result.id)

    def shutdown(self, wait: bool = True) -> None:
        return None


__all__ = [
    "Dispatcher",
    "InlineDispatcher",
    "ThreadDispatcher",
    "CeleryDispatcher",
    "RESUME_TASK",
]
