"""Per-attempt timeout enforcement for activities.

``run_with_timeout`` runs a callable on a helper thread and stops waiting for
it after the timeout. Python cannot kill a thread, so a timed-out call keeps
running in the background; the caller moves on and the attempt counts as
failed. Activities are idempotent, which is what makes abandoning a slow
attempt and starting another one safe.

Tags:
    timeout, deadline, resilience, execution, listing-spine
"""

from __future__ import annotations

import concurrent.futures
import time
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")


class TimeoutExpired(TimeoutError):
    """Raised when an operation exceeds its deadline.

    Attributes:
        timeout: The timeout value that was exceeded
        elapsed: How long the caller waited
        operation: Name/description of the operation
    """

    def __init__(
        self,
        timeout: float,
        elapsed: float | None = None,
        operation: str = "operation",
    ):
        self.timeout = timeout
        self.elapsed = elapsed
        self.operation = operation
        msg = f"Operation '{operation}' timed out after {timeout}s"
        if elapsed is not None:
            msg += f" (waited {elapsed:.2f}s)"
        super().__init__(msg)


def run_with_timeout(
    func: Callable[..., T],
    timeout_seconds: float,
    operation: str | None = None,
    args: tuple[Any, ...] | None = None,
    kwargs: dict[str, Any] | None = None,
) -> T:
    """Run ``func(*args, **kwargs)`` and wait at most *timeout_seconds*.

    Raises:
        TimeoutExpired: If execution exceeds timeout
        BaseException: Whatever func raised
    """
    if timeout_seconds <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout_seconds}")

    start = time.monotonic()
    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=1, thread_name_prefix=f"attempt-{operation or 'op'}"
    )
    future = executor.submit(func, *(args or ()), **(kwargs or {}))
    try:
        return future.result(timeout=timeout_seconds)
    except concurrent.futures.TimeoutError:
        raise TimeoutExpired(
            timeout=timeout_seconds,
            elapsed=time.monotonic() - start,
            operation=operation or getattr(func, "__name__", "unknown"),
        ) from None
    finally:
        # Never block on a hung attempt.
        executor.shutdown(wait=False)


__all__ = ["TimeoutExpired", "run_with_timeout"]
