"""Workflow Registry: name → workflow function lookup.

Manifesto:
The router, the durable backend, the celery task and the CLI all resolve a
workflow by name (``"publish.property"``, ``"payment.process"``). The
registry decouples registration (import time) from resolution (dispatch
time), and supports both a process-wide instance and injectable instances
for testing.

ARCHITECTURE
────────────
::

    WorkflowRegistry
      ├── .register(name, fn)   ─ store workflow
      ├── .get(name)            ─ lookup, WorkflowNotFoundError if absent
      ├── .has(name) / .names() ─ discovery
      └── .workflow(name)       ─ decorator form

    @workflow("payment.process")      → registers into the default registry
    get_workflow_registry()           → module-level singleton

Tags:
    listing-spine, execution, registry, workflow, lookup

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from listing_spine.core.errors import ConfigError, WorkflowNotFoundError
from listing_spine.core.logging import get_logger

if TYPE_CHECKING:
    from listing_spine.execution.context import WorkflowContext
    from listing_spine.execution.results import WorkflowResult

logger = get_logger(__name__)

WorkflowFn = Callable[["WorkflowContext", dict[str, Any]], "WorkflowResult"]


@dataclass(frozen=True)
class WorkflowDefinition:
    name: str
    fn: WorkflowFn
    description: str | None = None


class WorkflowRegistry:
    """Injectable workflow registry."""

    def __init__(self) -> None:
        self._workflows: dict[str, WorkflowDefinition] = {}

    def register(self, name: str, fn: WorkflowFn, description: str | None = None) -> WorkflowDefinition:
        if name in self._workflows:
            raise ConfigError(f"Workflow '{name}' is already registered")
        doc = (fn.__doc__ or "").strip().splitlines()
        definition = WorkflowDefinition(name=name, fn=fn, description=description or (doc[0] if doc else None))
        self._workflows[name] = definition
        logger.debug("workflow.registered", name=name)
        return definition

    def workflow(self, name: str) -> Callable[[WorkflowFn], WorkflowFn]:
        def decorator(fn: WorkflowFn) -> WorkflowFn:
            self.register(name, fn)
            return fn

        return decorator

    def get(self, name: str) -> WorkflowDefinition:
        try:
            return self._workflows[name]
        except KeyError:
            raise WorkflowNotFoundError(name) from None

    def has(self, name: str) -> bool:
        return name in self._workflows

    def names(self) -> list[str]:
        return sorted(self._workflows)


_default_registry = WorkflowRegistry()


def get_workflow_registry() -> WorkflowRegistry:
    return _default_registry


def workflow(name: str, registry: WorkflowRegistry | None = None) -> Callable[[WorkflowFn], WorkflowFn]:
    """Register a function as a workflow in the default (or given) registry."""
    return (registry or _default_registry).workflow(name)


__all__ = [
    "WorkflowDefinition",
    "WorkflowRegistry",
    "get_workflow_registry",
    "workflow",
]
