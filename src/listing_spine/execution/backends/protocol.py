"""Execution backend protocol.

A backend owns a run from ``start`` until it terminates. The router picks a
backend once per call; after that every ``signal`` / ``status`` / ``result``
for the run id goes to the backend that ``owns`` it.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from listing_spine.execution.results import WorkflowResult
from listing_spine.execution.run import ExecutionMode, RunHandle


@runtime_checkable
class ExecutionBackend(Protocol):
    mode: ExecutionMode

    def start(self, workflow_name: str, input: dict[str, Any], run_id: str | None = None) -> RunHandle:
        """Begin a run. Raises ``WorkflowNotFoundError`` before creating anything."""
        ...

    def signal(self, run_id: str, name: str, payload: dict[str, Any] | None = None) -> bool:
        """Deliver a signal. False if the run already terminated (signal ignored)."""
        ...

    def status(self, run_id: str) -> dict[str, Any]: ...

    def result(self, run_id: str) -> WorkflowResult: ...

    def owns(self, run_id: str) -> bool: ...
