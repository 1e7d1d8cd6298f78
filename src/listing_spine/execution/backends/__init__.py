"""Execution backends: durable (journaled) and direct (in-process)."""

from listing_spine.execution.backends.direct import DirectBackend
from listing_spine.execution.backends.durable import DurableBackend
from listing_spine.execution.backends.protocol import ExecutionBackend

__all__ = ["ExecutionBackend", "DirectBackend", "DurableBackend"]
