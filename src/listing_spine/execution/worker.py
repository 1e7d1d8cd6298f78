"""Background worker loop: finds claimable durable runs and drives them.

The worker is the recovery half of durable execution. Every poll it asks the
journal for runs that are pending, suspended past their ``wake_at`` (the
approval deadline), or held by a lease that expired (the owner crashed), and
dispatches each one to ``DurableBackend.execute``. Claiming is a
compare-and-set, so running several workers against one database is safe.

Usage (programmatic)::

    from listing_spine.runtime import get_runtime

    worker = WorkerLoop(get_runtime().durable, poll_interval=2.0)
    worker.start()  # blocking: runs until SIGINT/SIGTERM

Usage (CLI)::

    listing-spine worker start --poll-interval 2
"""

from __future__ import annotations

import os
import platform
import signal
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from listing_spine.core.clock import utcnow
from listing_spine.core.logging import get_logger
from listing_spine.execution.backends.durable import DurableBackend

logger = get_logger(__name__)


@dataclass
class WorkerInfo:
    """Metadata about a running worker."""

    worker_id: str
    pid: int
    started_at: datetime
    poll_interval: float
    hostname: str = ""
    status: str = "running"
    polls: int = 0
    runs_dispatched: int = 0
    last_poll_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "worker_id": self.worker_id,
            "pid": self.pid,
            "started_at": self.started_at.isoformat(),
            "poll_interval": self.poll_interval,
            "hostname": self.hostname,
            "status": self.status,
            "polls": self.polls,
            "runs_dispatched": self.runs_dispatched,
            "last_poll_at": self.last_poll_at.isoformat() if self.last_poll_at else None,
        }


class WorkerLoop:
    """Polls the run journal and dispatches claimable runs."""

    def __init__(
        self,
        backend: DurableBackend,
        poll_interval: float = 2.0,
        batch_size: int = 100,
        worker_id: str | None = None,
    ):
        self.backend = backend
        self._poll_interval = poll_interval
        self._batch_size = batch_size
        self._worker_id = worker_id or f"worker-{uuid.uuid4().hex[:8]}"
        self._shutdown = threading.Event()
        self.info = WorkerInfo(
            worker_id=self._worker_id,
            pid=os.getpid(),
            started_at=utcnow(),
            poll_interval=poll_interval,
            hostname=platform.node(),
        )

    @property
    def worker_id(self) -> str:
        return self._worker_id

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """Run the poll loop (blocking). Handles SIGINT / SIGTERM gracefully."""
        logger.info("worker.starting", worker_id=self._worker_id,
                    poll_interval=self._poll_interval, dispatcher=self.backend.dispatcher.name)
        try:
            signal.signal(signal.SIGINT, self._handle_signal)
            signal.signal(signal.SIGTERM, self._handle_signal)
        except (ValueError, OSError):
            pass  # not the main thread

        try:
            while not self._shutdown.is_set():
                self.poll_once()
                self._shutdown.wait(self._poll_interval)
        finally:
            self.info.status = "stopped"
            self.backend.dispatcher.shutdown(wait=True)
            logger.info("worker.stopped", worker_id=self._worker_id,
                        runs_dispatched=self.info.runs_dispatched)

    def start_background(self) -> threading.Thread:
        """Start the worker in a daemon thread. Returns the thread."""
        thread = threading.Thread(target=self.start, name=f"{self._worker_id}-loop", daemon=True)
        thread.start()
        return thread

    def stop(self) -> None:
        """Request graceful shutdown."""
        logger.info("worker.stopping", worker_id=self._worker_id)
        self.info.status = "stopping"
        self._shutdown.set()

    def _handle_signal(self, signum: int, frame: Any) -> None:
        self.stop()

    # ------------------------------------------------------------------ #
    # Poll
    # ------------------------------------------------------------------ #

    def poll_once(self) -> int:
        """One poll cycle. Returns the number of runs dispatched."""
        try:
            run_ids = self.backend.journal.due_runs(limit=self._batch_size)
        except Exception:
            logger.exception("worker.poll_failed", worker_id=self._worker_id)
            return 0

        for run_id in run_ids:
            self.backend.resume(run_id)
        self.info.polls += 1
        self.info.runs_dispatched += len(run_ids)
        self.info.last_poll_at = utcnow()
        if run_ids:
            logger.debug("worker.dispatched", worker_id=self._worker_id, count=len(run_ids))
        return len(run_ids)


__all__ = ["WorkerLoop", "WorkerInfo"]
