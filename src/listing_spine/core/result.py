"""
Result envelope for activity invocations.

``ActivityInvoker.invoke`` never raises for an activity failure: it returns
``Ok(output)`` or ``Err(ActivityError)``. The calling workflow decides whether
an ``Err`` aborts the run or is only logged, so the decision is visible at the
call site instead of hidden in an ``except`` clause far away.

Examples:
    >>> result = Ok({"entity_id": "7"})
    >>> result.is_ok()
    True
    >>> Err(ValueError("boom")).unwrap_or(None) is None
    True
    >>> match result:
    ...     case Ok(value):
    ...         print(value["entity_id"])
    ...     case Err(error):
    ...         print(error)
    7

Tags:
    result-pattern, error-handling, listing-spine
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result containing a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Ok[U]:
        return Ok(f(self.value))

    def to_dict(self) -> dict[str, Any]:
        return {"ok": True, "value": self.value}


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failed result containing an error value."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> Any:
        """Raise: there is no value. Exceptions are re-raised as-is."""
        if isinstance(self.error, BaseException):
            raise self.error
        raise RuntimeError(f"unwrap() called on Err({self.error!r})")

    def unwrap_or(self, default: Any) -> Any:
        return default

    def map(self, f: Callable[[Any], Any]) -> Err[E]:
        return self

    def to_dict(self) -> dict[str, Any]:
        error = self.error.to_dict() if hasattr(self.error, "to_dict") else str(self.error)
        return {"ok": False, "error": error}


Result = Union[Ok[T], Err[E]]


__all__ = ["Ok", "Err", "Result"]
