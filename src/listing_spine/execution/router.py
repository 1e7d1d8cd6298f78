"""Execution Router: one entry point, two interchangeable backends.

Manifesto:
    Callers never choose how a workflow runs. The router reads the
``durable_enabled`` flag **once per call** and hands the whole run to the
chosen backend, which owns it until it terminates. A run started in one mode
is never resumed or retried in the other: ``signal``, ``status`` and
``result`` look up the backend that owns the run id.

ARCHITECTURE
────────────
::

    router.start("publish.property", {"draft_id": "42", "owner_id": "7"})
        │
        ├── flag() is True  → DurableBackend.start → RunHandle(mode=durable)   (poll for result)
        └── flag() is False → DirectBackend.start  → RunHandle(mode=direct, result=...)

    router.run(...)            start + result (durable: optionally wait)
    router.signal(run_id, ...) → owning backend
    router.status(run_id)      → owning backend
    router.result(run_id)      → owning backend

Guardrails:
    ❌ DON'T: Cache the flag on the router
    ✅ DO: Let the default flag read ``get_settings().durable_enabled`` per call

Tags:
    listing-spine, execution, router, durable, fallback

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from listing_spine.core.errors import ConfigError, RunNotFoundError
from listing_spine.core.logging import get_logger
from listing_spine.core.settings import get_settings
from listing_spine.execution.backends.direct import DirectBackend
from listing_spine.execution.backends.durable import DurableBackend
from listing_spine.execution.backends.protocol import ExecutionBackend
from listing_spine.execution.results import WorkflowResult
from listing_spine.execution.run import RunHandle

logger = get_logger(__name__)


def _settings_flag() -> bool:
    return get_settings().durable_enabled


class ExecutionRouter:
    def __init__(
        self,
        direct: DirectBackend,
        durable: DurableBackend | None = None,
        flag: Callable[[], bool] | None = None,
    ):
        self.direct = direct
        self.durable = durable
        self._flag = flag or _settings_flag

    def choose(self) -> ExecutionBackend:
        if self._flag():
            if self.durable is None:
                raise ConfigError("Durable execution is enabled but no durable backend is configured")
            return self.durable
        return self.direct

    def start(self, workflow_name: str, input: dict[str, Any], *, run_id: str | None = None) -> RunHandle:
        backend = self.choose()
        logger.info("router.start", workflow=workflow_name, mode=backend.mode.value)
        return backend.start(workflow_name, input, run_id=run_id)

    def run(
        self,
        workflow_name: str,
        input: dict[str, Any],
        *,
        run_id: str | None = None,
        wait: float | None = None,
    ) -> WorkflowResult:
        """Start a run and return its result.

        Durable runs return whatever is known after *wait* seconds of polling
        (``WorkflowResult.pending`` if the run has not finished).
        """
        handle = self.start(workflow_name, input, run_id=run_id)
        if handle.result is not None:
            return handle.result
        if self.durable is None:
            raise ConfigError(
                f"Run {handle.run_id} returned no result and no durable backend is configured"
            )
        if wait:
            return self.durable.wait_for_result(handle.run_id, wait)
        return self.durable.result(handle.run_id)

    def backend_for(self, run_id: str) -> ExecutionBackend:
        if self.direct.owns(run_id):
            return self.direct
        if self.durable is not None and self.durable.owns(run_id):
            return self.durable
        raise RunNotFoundError(run_id)

    def signal(self, run_id: str, name: str, payload: dict[str, Any] | None = None) -> bool:
        return self.backend_for(run_id).signal(run_id, name, payload)

    def status(self, run_id: str) -> dict[str, Any]:
        return self.backend_for(run_id).status(run_id)

    def result(self, run_id: str) -> WorkflowResult:
        return self.backend_for(run_id).result(run_id)


__all__ = ["ExecutionRouter"]
