"""Workflow run model: status, journal entries, handles.

A ``WorkflowRun`` is the unit of orchestration. In direct mode it lives only
for the duration of the call; in durable mode it is persisted by
``RunJournal`` and rebuilt from the database on every resumption.

Status lifecycle::

    PENDING ──claim──► RUNNING ──► COMPLETED
                         │  ▲  └──► FAILED
                 suspend │  │ claim (wake_at reached / signal / lease expired)
                         ▼  │
                       SUSPENDED
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from listing_spine.execution.activity import ActivityAttempt
from listing_spine.execution.results import WorkflowResult


class RunStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUSPENDED = "SUSPENDED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class ExecutionMode(str, Enum):
    DURABLE = "durable"
    DIRECT = "direct"


class JournalKind:
    ACTIVITY = "activity"
    TIMER = "timer"
    WAIT = "wait"


@dataclass
class JournalEntry:
    """One completed step. The n-th entry answers the n-th step on replay.

    Payload by kind:
        activity  {"output": ...} or {"error": ActivityError.to_dict()}
        timer     {"deadline": iso-8601}
        wait      {"signal": Signal.to_dict() | None, "timed_out": bool}
    """

    seq: int
    kind: str
    name: str
    outcome: str  # ok | error
    payload: dict[str, Any] = field(default_factory=dict)
    attempts: int = 1
    recorded_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "seq": self.seq,
            "kind": self.kind,
            "name": self.name,
            "outcome": self.outcome,
            "payload": self.payload,
            "attempts": self.attempts,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }


@dataclass
class WorkflowRun:
    run_id: str
    workflow_name: str
    mode: ExecutionMode
    status: RunStatus = RunStatus.PENDING
    input: dict[str, Any] = field(default_factory=dict)
    result: WorkflowResult | None = None
    error: str | None = None
    current_step: str | None = None
    completed_steps: int = 0
    wake_at: datetime | None = None
    resume_count: int = 0
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    attempts: list[ActivityAttempt] = field(default_factory=list)
    journal: list[JournalEntry] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def record(self, entry: JournalEntry) -> None:
        self.journal.append(entry)
        self.current_step = entry.name
        self.completed_steps = len(self.journal)

    def progress(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "workflow": self.workflow_name,
            "mode": self.mode.value,
            "status": self.status.value,
            "current_step": self.current_step,
            "completed_steps": self.completed_steps,
            "resume_count": self.resume_count,
            "wake_at": self.wake_at.isoformat() if self.wake_at else None,
        }

    def to_dict(self) -> dict[str, Any]:
        data = self.progress()
        data.update({
            "input": self.input,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        })
        return data


@dataclass(frozen=True)
class RunHandle:
    """What ``ExecutionRouter.start`` returns.

    Direct runs carry their final ``result``; durable runs are polled.
    """

    run_id: str
    mode: ExecutionMode
    result: WorkflowResult | None = None


__all__ = [
    "RunStatus",
    "ExecutionMode",
    "JournalKind",
    "JournalEntry",
    "WorkflowRun",
    "RunHandle",
]
