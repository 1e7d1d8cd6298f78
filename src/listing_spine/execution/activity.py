"""Activities and the Activity Invoker.

Manifesto:
    An *activity* is one side-effecting call against a collaborator (fetch a
draft, create an entity, charge a card). Activities are the only place a
workflow touches the outside world, and the only thing that is retried.
The invoker runs one activity under its ``RetryPolicy``:

* each attempt is bounded by ``per_attempt_timeout`` (a timed-out attempt is
  a failed, retryable attempt)
* non-retryable errors end the loop at once
* between attempts it sleeps ``delay_after(n)`` on the injected ``Clock``
* it never raises for an activity failure: it returns ``Ok(output)`` or
  ``Err(ActivityError)`` and the calling workflow decides what that means

Activities must deduplicate their own side effects (look before you
create); the invoker only retries.

ARCHITECTURE
────────────
::

    @activity("publishing.create_entity", policy=STANDARD)
    def create_entity(services, payload): ...
            │
            ▼
    ActivityRegistry ── name → ActivityDefinition(fn, policy)
            │
            ▼
    ActivityInvoker.invoke(name, payload, policy=None)
      ├── attempt 1 ── run_with_timeout(fn, per_attempt_timeout)
      │     └── fails, retryable → clock.sleep(delay_after(1))
      ├── attempt 2 ...
      └── Ok(output) | Err(ActivityError{kind, message, attempts, ...})

    Every attempt is reported to an observer as an ``ActivityAttempt``.

Guardrails:
    ❌ DON'T: Share a mutable payload between attempts
    ✅ DO: Each attempt gets its own deep copy (a timed-out attempt may still
       be running)

    ❌ DON'T: Retry a ValidationError
    ✅ DO: Let ``RetryPolicy.should_retry`` consult ``is_retryable``

Tags:
    listing-spine, execution, activity, retry, invoker

Doc-Types:
    api-reference
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from listing_spine.core.clock import Clock, SystemClock
from listing_spine.core.errors import (
    ActivityTimeoutError,
    ConfigError,
    ErrorCategory,
    OrchestrationError,
    ValidationError,
    categorize_error,
    is_retryable,
)
from listing_spine.core.logging import get_logger
from listing_spine.core.result import Err, Ok, Result
from listing_spine.execution.policy import STANDARD, RetryPolicy
from listing_spine.execution.timeout import TimeoutExpired, run_with_timeout

logger = get_logger(__name__)

ActivityFn = Callable[[Any, dict[str, Any]], Any]


# =============================================================================
# Registry
# =============================================================================


@dataclass(frozen=True)
class ActivityDefinition:
    name: str
    fn: ActivityFn
    policy: RetryPolicy = STANDARD
    description: str | None = None


class ActivityRegistry:
    """Injectable name → activity lookup.

    Example:
        >>> registry = ActivityRegistry()
        >>> @registry.activity("echo", policy=RetryPolicy(maximum_attempts=2))
        ... def echo(services, payload):
        ...     return payload
        >>> registry.get("echo").policy.maximum_attempts
        2
    """

    def __init__(self) -> None:
        self._activities: dict[str, ActivityDefinition] = {}

    def register(
        self,
        name: str,
        fn: ActivityFn,
        policy: RetryPolicy = STANDARD,
        description: str | None = None,
    ) -> ActivityDefinition:
        if name in self._activities:
            raise ConfigError(f"Activity '{name}' is already registered")
        definition = ActivityDefinition(
            name=name, fn=fn, policy=policy, description=description or (fn.__doc__ or "").strip() or None
        )
        self._activities[name] = definition
        return definition

    def activity(self, name: str, policy: RetryPolicy = STANDARD) -> Callable[[ActivityFn], ActivityFn]:
        """Decorator form of ``register``."""

        def decorator(fn: ActivityFn) -> ActivityFn:
            self.register(name, fn, policy)
            return fn

        return decorator

    def get(self, name: str) -> ActivityDefinition:
        try:
            return self._activities[name]
        except KeyError:
            available = ", ".join(sorted(self._activities)) or "(none)"
            raise ConfigError(f"Activity '{name}' not registered. Available: {available}") from None

    def has(self, name: str) -> bool:
        return name in self._activities

    def names(self) -> list[str]:
        return sorted(self._activities)

    def __len__(self) -> int:
        return len(self._activities)


_default_registry = ActivityRegistry()


def get_activity_registry() -> ActivityRegistry:
    """The process-wide registry the built-in activities register into."""
    return _default_registry


def activity(
    name: str,
    policy: RetryPolicy = STANDARD,
    registry: ActivityRegistry | None = None,
) -> Callable[[ActivityFn], ActivityFn]:
    """Register a function as an activity.

    Example:
        @activity("publishing.fetch_draft", policy=MINIMAL)
        def fetch_draft(services, payload):
            ...
    """
    return (registry or _default_registry).activity(name, policy)


# =============================================================================
# Attempt log and error record
# =============================================================================


@dataclass
class ActivityAttempt:
    """One attempt of one activity, as seen by the run log."""

    activity: str
    attempt: int
    outcome: str  # ok | error | timeout
    started_at: datetime
    finished_at: datetime
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "activity": self.activity,
            "attempt": self.attempt,
            "outcome": self.outcome,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
        }


@dataclass
class ActivityError:
    """Terminal failure of an activity after the policy gave up.

    ``kind`` is the class name of the last exception, so workflows can
    branch on it even after a durable replay (where only this record
    survives, not the exception object).
    """

    kind: str
    message: str
    attempts: int
    retryable: bool
    errors: list[str] = field(default_factory=list)
    category: str = ErrorCategory.INTERNAL.value

    @classmethod
    def from_exception(cls, exc: BaseException, attempts: int) -> ActivityError:
        return cls(
            kind=type(exc).__name__,
            message=str(exc),
            attempts=attempts,
            retryable=is_retryable(exc),
            errors=list(exc.errors) if isinstance(exc, ValidationError) else [],
            category=categorize_error(exc).value,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "attempts": self.attempts,
            "retryable": self.retryable,
            "errors": list(self.errors),
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActivityError:
        return cls(
            kind=data["kind"],
            message=data.get("message", ""),
            attempts=int(data.get("attempts", 1)),
            retryable=bool(data.get("retryable", False)),
            errors=list(data.get("errors") or []),
            category=data.get("category", ErrorCategory.INTERNAL.value),
        )


class ActivityFailed(OrchestrationError):
    """Raised inside a workflow when an activity failed terminally."""

    def __init__(self, activity: str, error: ActivityError):
        self.activity = activity
        self.error = error
        super().__init__(error.message or f"Activity '{activity}' failed")

    @property
    def kind(self) -> str:
        return self.error.kind


# =============================================================================
# Invoker
# =============================================================================


class ActivityInvoker:
    """Run registered activities with retries and per-attempt timeouts."""

    def __init__(
        self,
        registry: ActivityRegistry,
        services: Any,
        clock: Clock | None = None,
        observer: Callable[[ActivityAttempt], None] | None = None,
    ):
        self.registry = registry
        self.services = services
        self.clock = clock or SystemClock()
        self.observer = observer

    def invoke(
        self,
        name: str,
        payload: dict[str, Any] | None = None,
        policy: RetryPolicy | None = None,
        observer: Callable[[ActivityAttempt], None] | None = None,
    ) -> Result[Any, ActivityError]:
        definition = self.registry.get(name)
        policy = policy or definition.policy
        report = observer or self.observer
        attempt = 0

        while True:
            attempt += 1
            started = self.clock.now()
            try:
                output = run_with_timeout(
                    definition.fn,
                    policy.per_attempt_timeout,
                    operation=name,
                    args=(self.services, copy.deepcopy(payload or {})),
                )
            except TimeoutExpired as exc:
                error: Exception = ActivityTimeoutError(str(exc), cause=exc)
                outcome = "timeout"
            except Exception as exc:
                error = exc
                outcome = "error"
            else:
                if report is not None:
                    report(ActivityAttempt(name, attempt, "ok", started, self.clock.now()))
                if attempt > 1:
                    logger.info("activity.recovered", activity=name, attempts=attempt)
                return Ok(output)

            if report is not None:
                report(ActivityAttempt(name, attempt, outcome, started, self.clock.now(), error=str(error)))

            if not policy.should_retry(attempt, error):
                failure = ActivityError.from_exception(error, attempt)
                logger.warning(
                    "activity.failed",
                    activity=name,
                    attempts=attempt,
                    kind=failure.kind,
                    retryable=failure.retryable,
                    error=failure.message,
                )
                return Err(failure)

            delay = policy.delay_after(attempt)
            logger.warning(
                "activity.retry",
                activity=name,
                attempt=attempt,
                max_attempts=policy.maximum_attempts,
                delay=delay,
                error=str(error),
            )
            self.clock.sleep(delay)


__all__ = [
    "ActivityDefinition",
    "ActivityRegistry",
    "get_activity_registry",
    "activity",
    "ActivityAttempt",
    "ActivityError",
    "ActivityFailed",
    "ActivityInvoker",
]
