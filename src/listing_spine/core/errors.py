"""
Structured error types for the listing publishing core.

Every failure that crosses a workflow boundary is a ``ListingSpineError``
carrying a category, an explicit retry flag and an ``ErrorContext``. The
Activity Invoker reads ``retryable`` to decide whether another attempt is
worth making; workflows read the concrete class to decide whether a failure
is terminal, compensatable or merely logged.

Manifesto:
    - **Typed taxonomy:** validation, not-found, transient, compensatable and
      non-fatal failures are distinct classes, not string codes
    - **Explicit retry semantics:** each class knows its default retryability
    - **Rich context:** errors carry workflow, run and entity identifiers
    - **Error chaining:** the original exception is kept as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                    ListingSpineError                          │
        │      (category, retryable, context, cause)                    │
        ├──────────────────────────────────────────────────────────────┤
        │  ValidationError        NotFoundError      TransientActivityError
        │  (errors=[...])         (terminal)         (retryable)        │
        │                                                 │             │
        │                                          ActivityTimeoutError │
        │                                                               │
        │  CompensatableError     NonFatalError      ConfigError        │
        │   ├ PaymentDeclinedError                                      │
        │   └ InventoryUnavailableError                                 │
        │                                                               │
        │  InsufficientBalanceError   DuplicateEntityError              │
        │                                                               │
        │  OrchestrationError                                           │
        │   ├ WorkflowNotFoundError   RunNotFoundError                  │
        │   ├ InvalidTransitionError  NonDeterminismError               │
        │   └ ActivityFailed                                            │
        └──────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Raise bare ``Exception`` from an activity for a known condition
    ✅ DO: Raise the taxonomy class so the invoker can classify it

    ❌ DON'T: Mark validation or not-found errors retryable
    ✅ DO: Let ``default_retryable`` decide

Tags:
    error-handling, exception-hierarchy, retry-logic, listing-spine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for routing, logging and retry decisions."""

    VALIDATION = "VALIDATION"      # Payload failed field-level rules
    NOT_FOUND = "NOT_FOUND"        # Draft/entity/run missing or unauthorized
    TRANSIENT = "TRANSIENT"        # Temporary infrastructure failure
    TIMEOUT = "TIMEOUT"            # Attempt exceeded its per-attempt timeout
    PAYMENT = "PAYMENT"            # Gateway decline, inventory shortage
    NOTIFICATION = "NOTIFICATION"  # Notifier / search index side effects
    LEDGER = "LEDGER"              # Credit ledger rejected a debit
    DATABASE = "DATABASE"          # Constraint violations
    CONFIG = "CONFIG"              # Missing registration, bad settings
    ORCHESTRATION = "ORCHESTRATION"  # Engine-level failures
    INTERNAL = "INTERNAL"          # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Only non-``None`` fields are emitted by ``to_dict()`` so log lines stay
    compact.
    """

    workflow: str | None = None
    run_id: str | None = None
    activity: str | None = None
    step: str | None = None
    draft_id: str | None = None
    order_id: str | None = None
    listing_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["workflow", "run_id", "activity", "step",
                    "draft_id", "order_id", "listing_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ListingSpineError(Exception):
    """
    Base exception for every error raised by the publishing core.

    Subclasses set ``default_category`` and ``default_retryable``; callers may
    override either per instance.

    Examples:
        >>> error = ListingSpineError("Something went wrong")
        >>> error.retryable
        False
        >>> error.with_context(run_id="run-1").context.run_id
        'run-1'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ListingSpineError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TERMINAL ERRORS
# =============================================================================


class ValidationError(ListingSpineError):
    """
    Field-level validation failure.

    Never retryable. Carries the full list of error strings so the caller
    receives ``{success: false, errors: [...]}`` rather than one message.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(self, message: str, *, errors: list[str] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.errors = list(errors) if errors else [message]

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errors"] = list(self.errors)
        return result


class NotFoundError(ListingSpineError):
    """Draft or entity is missing, unauthorized or of the wrong kind."""

    default_category = ErrorCategory.NOT_FOUND
    default_retryable = False


# =============================================================================
# RETRYABLE ERRORS
# =============================================================================


class TransientActivityError(ListingSpineError):
    """Temporary failure; retried by the invoker until the policy is exhausted."""

    default_category = ErrorCategory.TRANSIENT
    default_retryable = True


class ActivityTimeoutError(TransientActivityError):
    """An attempt ran past ``per_attempt_timeout``."""

    default_category = ErrorCategory.TIMEOUT


# =============================================================================
# SAGA / SIDE-EFFECT ERRORS
# =============================================================================


class CompensatableError(ListingSpineError):
    """Payment or inventory failure that obliges the saga to roll back."""

    default_category = ErrorCategory.PAYMENT
    default_retryable = False


class PaymentDeclinedError(CompensatableError):
    """The payment gateway answered ``success: false``."""

    pass


class InventoryUnavailableError(CompensatableError):
    """Inventory could not be reserved for the order."""

    pass


class NonFatalError(ListingSpineError):
    """Notification or search-index failure. Logged; the run still succeeds."""

    default_category = ErrorCategory.NOTIFICATION
    default_retryable = True


class InsufficientBalanceError(ListingSpineError):
    """The credit ledger refused a debit."""

    default_category = ErrorCategory.LEDGER
    default_retryable = False

    def __init__(self, message: str, *, required: float = 0, available: float = 0, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.required = required
        self.available = available


class DuplicateEntityError(ListingSpineError):
    """An entity already exists for this draft (unique ``draft_id`` violated)."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False

    def __init__(self, message: str, *, draft_id: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.draft_id = draft_id


class ConfigError(ListingSpineError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


# =============================================================================
# ORCHESTRATION ERRORS
# =============================================================================


class OrchestrationError(ListingSpineError):
    """Engine-level failure."""

    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False


class WorkflowNotFoundError(OrchestrationError):
    """No workflow is registered under the requested name."""

    def __init__(self, workflow_name: str):
        self.workflow_name = workflow_name
        super().__init__(f"Workflow not found: {workflow_name}")


class RunNotFoundError(OrchestrationError):
    """No run with this identifier is known to the backend."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Workflow run not found: {run_id}")


class InvalidTransitionError(OrchestrationError):
    """A state machine was asked for a transition its table forbids."""

    def __init__(self, source: str, target: str, machine: str = "state machine"):
        self.source = source
        self.target = target
        super().__init__(f"Invalid {machine} transition: {source} -> {target}")


class NonDeterminismError(OrchestrationError):
    """Replay diverged from the journal (different activity at the same step)."""

    pass


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable.

    Taxonomy errors answer for themselves. Anything else raised by an
    activity is treated as transient.
    """
    if isinstance(error, ListingSpineError):
        return error.retryable
    return isinstance(error, Exception)


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, ListingSpineError):
        return error.category
    if isinstance(error, TimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.TRANSIENT
    return ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ListingSpineError",
    "ValidationError",
    "NotFoundError",
    "TransientActivityError",
    "ActivityTimeoutError",
    "CompensatableError",
    "PaymentDeclinedError",
    "InventoryUnavailableError",
    "NonFatalError",
    "InsufficientBalanceError",
    "DuplicateEntityError",
    "ConfigError",
    "OrchestrationError",
    "WorkflowNotFoundError",
    "RunNotFoundError",
    "InvalidTransitionError",
    "NonDeterminismError",
    "is_retryable",
    "categorize_error",
]
