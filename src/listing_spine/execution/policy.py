"""Retry/timeout policies for activities.

A ``RetryPolicy`` is a frozen value attached to an activity (as the registry
default, or per call). It answers two questions for the Activity Invoker:
*should attempt n+1 happen?* and *how long to wait before it?*

Backoff (n is the 1-indexed number of the attempt that just failed)::

    delay_after(n) = min(initial_interval × backoff_coefficient^(n-1), maximum_interval)

Presets::

    ┌────────────┬──────────┬────────────┬─────────────┬──────────────┐
    │ preset     │ attempts │ interval   │ coefficient │ per attempt  │
    ├────────────┼──────────┼────────────┼─────────────┼──────────────┤
    │ STANDARD   │ 3        │ 1s → 30s   │ 2.0         │ 60s          │
    │ AGGRESSIVE │ 5        │ 0.5s → 10s │ 2.0         │ 60s          │
    │ MINIMAL    │ 2        │ 1s → 5s    │ 1.5         │ 60s          │
    │ EXTENDED   │ 10       │ 2s → 120s  │ 2.0         │ 900s         │
    └────────────┴──────────┴────────────┴─────────────┴──────────────┘

MINIMAL is for non-idempotent or latency-sensitive calls (fail fast);
EXTENDED for bulk/background work.

Examples:
    >>> STANDARD.delay_after(1), STANDARD.delay_after(2), STANDARD.delay_after(6)
    (1.0, 2.0, 30.0)
    >>> STANDARD.should_retry(3, ConnectionError())
    False
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any

from listing_spine.core.errors import ConfigError, is_retryable


class ActivityTimeout:
    """Per-attempt timeout tiers, in seconds."""

    SHORT = 30.0
    MEDIUM = 60.0
    LONG = 300.0
    VERY_LONG = 900.0


@dataclass(frozen=True)
class RetryPolicy:
    initial_interval: float = 1.0
    maximum_interval: float = 30.0
    backoff_coefficient: float = 2.0
    maximum_attempts: int = 3
    per_attempt_timeout: float = ActivityTimeout.MEDIUM

    def __post_init__(self) -> None:
        if self.maximum_attempts < 1:
            raise ConfigError(f"maximum_attempts must be >= 1, got {self.maximum_attempts}")
        if self.initial_interval < 0 or self.maximum_interval < 0:
            raise ConfigError("Retry intervals must be non-negative")
        if self.backoff_coefficient < 1:
            raise ConfigError(f"backoff_coefficient must be >= 1, got {self.backoff_coefficient}")
        if self.per_attempt_timeout <= 0:
            raise ConfigError(f"per_attempt_timeout must be positive, got {self.per_attempt_timeout}")

    def delay_after(self, attempt: int) -> float:
        """Wait before attempt ``attempt + 1``."""
        if attempt < 1:
            raise ValueError(f"attempt is 1-indexed, got {attempt}")
        return min(
            self.initial_interval * (self.backoff_coefficient ** (attempt - 1)),
            self.maximum_interval,
        )

    def should_retry(self, attempt: int, error: BaseException | None = None) -> bool:
        if attempt >= self.maximum_attempts:
            return False
        if error is not None and not is_retryable(error):
            return False
        return True

    def with_overrides(self, **changes: Any) -> RetryPolicy:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetryPolicy:
        return cls(**{key: data[key] for key in cls.__dataclass_fields__ if key in data})

    @classmethod
    def named(cls, name: str) -> RetryPolicy:
        try:
            return PRESETS[name.upper()]
        except KeyError:
            raise ConfigError(
                f"Unknown retry preset {name!r}; expected one of {', '.join(PRESETS)}"
            ) from None


STANDARD = RetryPolicy(
    initial_interval=1.0,
    maximum_interval=30.0,
    backoff_coefficient=2.0,
    maximum_attempts=3,
    per_attempt_timeout=ActivityTimeout.MEDIUM,
)
AGGRESSIVE = RetryPolicy(
    initial_interval=0.5,
    maximum_interval=10.0,
    backoff_coefficient=2.0,
    maximum_attempts=5,
    per_attempt_timeout=ActivityTimeout.MEDIUM,
)
MINIMAL = RetryPolicy(
    initial_interval=1.0,
    maximum_interval=5.0,
    backoff_coefficient=1.5,
    maximum_attempts=2,
    per_attempt_timeout=ActivityTimeout.MEDIUM,
)
EXTENDED = RetryPolicy(
    initial_interval=2.0,
    maximum_interval=120.0,
    backoff_coefficient=2.0,
    maximum_attempts=10,
    per_attempt_timeout=ActivityTimeout.VERY_LONG,
)

PRESETS: dict[str, RetryPolicy] = {
    "STANDARD": STANDARD,
    "AGGRESSIVE": AGGRESSIVE,
    "MINIMAL": MINIMAL,
    "EXTENDED": EXTENDED,
}


__all__ = [
    "RetryPolicy",
    "ActivityTimeout",
    "STANDARD",
    "AGGRESSIVE",
    "MINIMAL",
    "EXTENDED",
    "PRESETS",
]
