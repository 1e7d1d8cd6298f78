"""Listing Spine Execution: activities, retries, and the two workflow backends.

WHY
───
Every publish, payment and approval run needs the same lifecycle: run
activities under a retry policy, record what happened, and either finish
in-process or survive a crash and resume. ``listing_spine.execution``
provides that contract once; the workflows in ``orchestration`` only
describe their steps.

ARCHITECTURE
────────────
::

    ExecutionRouter (durable_enabled flag, read per call)
      ├── DirectBackend   ─ DirectContext, in-process, SignalMailbox
      └── DurableBackend  ─ DurableContext, RunJournal (SQLAlchemy)
            └── Dispatcher ─ inline | thread | celery
      │
      ▼
    ActivityInvoker
      ├── ActivityRegistry ─ name → fn + RetryPolicy
      ├── RetryPolicy      ─ STANDARD / AGGRESSIVE / MINIMAL / EXTENDED
      └── run_with_timeout ─ per-attempt timeout
"""

from listing_spine.execution.activity import (
    ActivityError,
    ActivityFailed,
    ActivityInvoker,
    ActivityRegistry,
    activity,
    get_activity_registry,
)
from listing_spine.execution.backends import DirectBackend, DurableBackend, ExecutionBackend
from listing_spine.execution.context import DirectContext, DurableContext, WorkflowContext
from listing_spine.execution.journal import RunJournal
from listing_spine.execution.policy import AGGRESSIVE, EXTENDED, MINIMAL, STANDARD, RetryPolicy
from listing_spine.execution.registry import WorkflowRegistry, get_workflow_registry, workflow
from listing_spine.execution.results import WorkflowResult
from listing_spine.execution.router import ExecutionRouter
from listing_spine.execution.run import ExecutionMode, RunHandle, RunStatus, WorkflowRun
from listing_spine.execution.signals import Signal

__all__ = [
    "ActivityError",
    "ActivityFailed",
    "ActivityInvoker",
    "ActivityRegistry",
    "activity",
    "get_activity_registry",
    "DirectBackend",
    "DurableBackend",
    "ExecutionBackend",
    "DirectContext",
    "DurableContext",
    "WorkflowContext",
    "RunJournal",
    "RetryPolicy",
    "STANDARD",
    "AGGRESSIVE",
    "MINIMAL",
    "EXTENDED",
    "WorkflowRegistry",
    "get_workflow_registry",
    "workflow",
    "WorkflowResult",
    "ExecutionRouter",
    "ExecutionMode",
    "RunHandle",
    "RunStatus",
    "WorkflowRun",
    "Signal",
]
