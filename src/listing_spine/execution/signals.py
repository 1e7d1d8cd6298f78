"""Signals: asynchronous external input to a running workflow.

``SignalMailbox`` is the direct-mode mailbox. ``deliver`` runs on the
caller's thread and stores the signal under the mailbox condition before
notifying, and ``wait`` checks the mailbox again after the deadline is
reached. A signal that arrives at the same instant as the deadline is
therefore always seen: the signal wins the tie.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from listing_spine.core.clock import Clock, utcnow


@dataclass(frozen=True)
class Signal:
    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    received_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "payload": dict(self.payload),
            "received_at": self.received_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Signal:
        return cls(
            name=data["name"],
            payload=dict(data.get("payload") or {}),
            received_at=datetime.fromisoformat(data["received_at"]),
        )


class SignalMailbox:
    """Per-run inbox for direct mode."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._signals: list[Signal] = []
        # Set while the workflow is blocked in ``wait``.
        self.waiting = threading.Event()

    def deliver(self, signal: Signal) -> None:
        with self._condition:
            self._signals.append(signal)
            self._condition.notify_all()

    def pending(self) -> list[Signal]:
        with self._condition:
            return list(self._signals)

    def _find(self, names: frozenset[str], deadline: datetime | None = None) -> Signal | None:
        for signal in self._signals:
            if signal.name in names and (deadline is None or signal.received_at <= deadline):
                return signal
        return None

    def take(self, names: Iterable[str]) -> Signal | None:
        """Remove and return the oldest signal with one of *names*, if any."""
        wanted = frozenset(names)
        with self._condition:
            signal = self._find(wanted)
            if signal is not None:
                self._signals.remove(signal)
            return signal

    def wait(self, names: Iterable[str], deadline: datetime, clock: Clock) -> Signal | None:
        """Block until a matching signal arrives or *deadline* passes.

        Only signals received by *deadline* count.
        """
        wanted = frozenset(names)
        with self._condition:
            self.waiting.set()
            try:
                clock.wait_for(self._condition, lambda: self._find(wanted, deadline) is not None, deadline)
                signal = self._find(wanted, deadline)
                if signal is not None:
                    self._signals.remove(signal)
                return signal
            finally:
                self.waiting.clear()


__all__ = ["Signal", "SignalMailbox"]
