"""Clock abstraction used for backoff sleeps, deadlines and signal waits.

``SystemClock`` waits on real time. ``ManualClock`` never blocks: tests move
time explicitly with ``advance()`` and every sleep or wait jumps straight to
its deadline, which keeps retry backoff and 48-hour review deadlines
instantaneous under test.

Both clocks implement ``wait_for(condition, predicate, deadline)`` with the
semantics of ``threading.Condition.wait_for``: the caller holds the
condition, and the return value is the final value of ``predicate()``. The
predicate is always evaluated after the deadline is reached, so a signal
that lands at the same instant still wins.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from typing import Callable, Protocol, runtime_checkable


def utcnow() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(UTC)


@runtime_checkable
class Clock(Protocol):
    """Time source for the engine."""

    def now(self) -> datetime: ...

    def sleep(self, seconds: float) -> None: ...

    def wait_for(
        self,
        condition: threading.Condition,
        predicate: Callable[[], bool],
        deadline: datetime,
    ) -> bool: ...


class SystemClock:
    """Wall-clock time with real blocking waits."""

    def now(self) -> datetime:
        return utcnow()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            threading.Event().wait(seconds)

    def wait_for(
        self,
        condition: threading.Condition,
        predicate: Callable[[], bool],
        deadline: datetime,
    ) -> bool:
        while not predicate():
            remaining = (deadline - self.now()).total_seconds()
            if remaining <= 0:
                break
            condition.wait(remaining)
        return predicate()


class ManualClock:
    """Deterministic clock for tests.

    Example:
        >>> clock = ManualClock(datetime(2026, 1, 1, tzinfo=UTC))
        >>> clock.sleep(30)
        >>> clock.now().isoformat()
        '2026-01-01T00:00:30+00:00'
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2026, 1, 1, tzinfo=UTC)
        self._lock = threading.Lock()
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> datetime:
        with self._lock:
            self._now = self._now + timedelta(seconds=seconds)
            return self._now

    def set(self, moment: datetime) -> None:
        with self._lock:
            self._now = moment

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds > 0:
            self.advance(seconds)

    def wait_for(
        self,
        condition: threading.Condition,
        predicate: Callable[[], bool],
        deadline: datetime,
    ) -> bool:
        if predicate():
            return True
        remaining = (deadline - self.now()).total_seconds()
        if remaining > 0:
            self.advance(remaining)
        return predicate()


__all__ = ["Clock", "SystemClock", "ManualClock", "utcnow"]
