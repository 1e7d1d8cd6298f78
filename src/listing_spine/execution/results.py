"""Workflow Result: the envelope every workflow returns.

Manifesto:
    Callers of the publishing core see exactly three shapes, whichever
backend ran the workflow:

* ``{success: true, message, data}``      -- the work happened
* ``{success: false, message, errors}``   -- the input was invalid
* ``{success: false, message}``           -- something outside the input failed

``WorkflowResult`` is that envelope. The router stamps ``run_id`` and
``mode`` onto it; ``envelope()`` drops them again so results from the two
backends can be compared directly.

ARCHITECTURE
────────────
::

    WorkflowResult
      ├── .ok(message, data)            → success
      ├── .fail(message, data)          → infrastructure/business failure
      ├── .invalid(message, errors)     → validation failure
      ├── .pending(run_id)              → durable run still in flight
      ├── .with_run(run_id, mode)       → routing metadata
      └── .envelope() / .to_dict()      → user-visible dict / full dict

Tags:
    listing-spine, orchestration, result, envelope

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class WorkflowResult:
    """
    Final (or interim) outcome of one workflow run.

    Attributes:
        success: Whether the workflow achieved its goal
        message: Human-readable summary
        data: Payload for the caller (snake_case keys)
        errors: Field-level validation errors
        status: Run status when the result was read (``COMPLETED``, ``PENDING``...)
        run_id: Run identifier, stamped by the router
        mode: ``durable`` or ``direct``, stamped by the router
    """

    success: bool
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    status: str = "COMPLETED"
    run_id: str | None = None
    mode: str | None = None

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def ok(cls, message: str = "", data: dict[str, Any] | None = None) -> WorkflowResult:
        return cls(success=True, message=message, data=data or {})

    @classmethod
    def fail(cls, message: str, data: dict[str, Any] | None = None) -> WorkflowResult:
        return cls(success=False, message=message, data=data or {})

    @classmethod
    def invalid(cls, message: str, errors: list[str]) -> WorkflowResult:
        return cls(success=False, message=message, errors=list(errors))

    @classmethod
    def pending(cls, run_id: str, status: str = "PENDING") -> WorkflowResult:
        """A durable run that has not finished yet."""
        return cls(success=False, message="Workflow run is still in progress",
                   status=status, run_id=run_id)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def is_pending(self) -> bool:
        return self.status not in ("COMPLETED", "FAILED")

    def with_run(self, run_id: str, mode: str, status: str | None = None) -> WorkflowResult:
        return replace(self, run_id=run_id, mode=mode, status=status or self.status)

    def envelope(self) -> dict[str, Any]:
        """The user-visible dict: no routing metadata."""
        result: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.data:
            result["data"] = dict(self.data)
        if self.errors:
            result["errors"] = list(self.errors)
        return result

    def to_dict(self) -> dict[str, Any]:
        result = self.envelope()
        result["status"] = self.status
        if self.run_id is not None:
            result["run_id"] = self.run_id
        if self.mode is not None:
            result["mode"] = self.mode
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowResult:
        return cls(
            success=bool(data.get("success", False)),
            message=data.get("message", ""),
            data=dict(data.get("data") or {}),
            errors=list(data.get("errors") or []),
            status=data.get("status", "COMPLETED"),
            run_id=data.get("run_id"),
            mode=data.get("mode"),
        )


__all__ = ["WorkflowResult"]
