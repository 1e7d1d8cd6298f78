"""Tests for the activity registry and the Activity Invoker."""

import threading

import pytest

from listing_spine.core.clock import ManualClock
from listing_spine.core.errors import (
    ConfigError,
    ErrorCategory,
    NotFoundError,
    TransientActivityError,
    ValidationError,
)
from listing_spine.core.result import Err, Ok
from listing_spine.execution.activity import (
    ActivityError,
    ActivityFailed,
    ActivityInvoker,
    ActivityRegistry,
    get_activity_registry,
)
from listing_spine.execution.policy import MINIMAL, STANDARD, RetryPolicy


class Flaky:
    """Fails the first *failures* calls with *error*, then returns *value*."""

    def __init__(self, failures, error=None, value="done"):
        self.failures = failures
        self.error = error or ConnectionError("connection reset")
        self.value = value
        self.calls = 0

    def __call__(self, services, payload):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.value


@pytest.fixture
def registry():
    return ActivityRegistry()


@pytest.fixture
def invoker(registry, clock):
    return ActivityInvoker(registry, services=object(), clock=clock)


class TestActivityRegistry:
    """Registration and lookup."""

    def test_register_and_get(self, registry):
        registry.register("echo", lambda services, payload: payload, policy=MINIMAL)
        definition = registry.get("echo")
        assert definition.name == "echo"
        assert definition.policy is MINIMAL

    def test_decorator_keeps_function(self, registry):
        @registry.activity("double")
        def double(services, payload):
            """Double a number."""
            return payload["n"] * 2

        assert double(None, {"n": 2}) == 4
        assert registry.get("double").description == "Double a number."
        assert registry.get("double").policy is STANDARD

    def test_duplicate_registration_rejected(self, registry):
        registry.register("echo", lambda s, p: p)
        with pytest.raises(ConfigError, match="already registered"):
            registry.register("echo", lambda s, p: p)

    def test_unknown_activity_lists_available(self, registry):
        registry.register("echo", lambda s, p: p)
        with pytest.raises(ConfigError, match="Available: echo"):
            registry.get("missing")

    def test_has_names_and_len(self, registry):
        registry.register("b", lambda s, p: p)
        registry.register("a", lambda s, p: p)
        assert registry.has("a")
        assert not registry.has("c")
        assert registry.names() == ["a", "b"]
        assert len(registry) == 2

    def test_builtin_activities_registered(self):
        import listing_spine.activities  # noqa: F401

        names = get_activity_registry().names()
        for name in (
            "publishing.fetch_draft",
            "publishing.create_entity",
            "payment.charge",
            "payment.release_inventory",
            "listing.quality_checks",
            "listing.notify_submitter",
        ):
            assert name in names


class TestInvokerSuccess:
    """Happy paths and retries that eventually succeed."""

    def test_first_attempt_ok(self, registry, invoker, clock):
        registry.register("echo", lambda services, payload: payload["value"])
        result = invoker.invoke("echo", {"value": 42})
        assert result == Ok(42)
        assert clock.sleeps == []

    def test_recovers_after_transient_failures(self, registry, invoker, clock):
        flaky = Flaky(failures=2)
        registry.register("flaky", flaky, policy=STANDARD)
        result = invoker.invoke("flaky")
        assert result.is_ok()
        assert result.unwrap() == "done"
        assert flaky.calls == 3
        assert clock.sleeps == [1.0, 2.0]

    def test_services_are_passed_through(self, registry, clock):
        services = {"name": "svc"}
        registry.register("peek", lambda svc, payload: svc["name"])
        assert ActivityInvoker(registry, services, clock=clock).invoke("peek").unwrap() == "svc"

    def test_each_attempt_gets_its_own_payload_copy(self, registry, invoker):
        seen = []

        def mutate(services, payload):
            payload["items"].append("x")
            seen.append(list(payload["items"]))
            if len(seen) < 2:
                raise TransientActivityError("again")
            return payload["items"]

        registry.register("mutate", mutate)
        original = {"items": []}
        invoker.invoke("mutate", original)
        assert original == {"items": []}
        assert seen == [["x"], ["x"]]


class TestInvokerFailure:
    """Terminal failures come back as Err(ActivityError), never raised."""

    def test_exhausted_retries(self, registry, invoker, clock):
        registry.register("down", Flaky(failures=10, error=TransientActivityError("store offline")))
        result = invoker.invoke("down")
        assert isinstance(result, Err)
        error = result.error
        assert error.kind == "TransientActivityError"
        assert error.message == "store offline"
        assert error.attempts == 3
        assert error.retryable is True
        assert error.category == ErrorCategory.TRANSIENT.value
        assert clock.sleeps == [1.0, 2.0]

    def test_validation_error_fails_fast(self, registry, invoker, clock):
        flaky = Flaky(failures=10, error=ValidationError("invalid", errors=["City is required"]))
        registry.register("validate", flaky)
        result = invoker.invoke("validate")
        assert result.is_err()
        assert result.error.attempts == 1
        assert result.error.errors == ["City is required"]
        assert result.error.retryable is False
        assert flaky.calls == 1
        assert clock.sleeps == []

    def test_not_found_fails_fast(self, registry, invoker):
        registry.register("fetch", Flaky(failures=10, error=NotFoundError("draft not found")))
        result = invoker.invoke("fetch")
        assert result.error.kind == "NotFoundError"
        assert result.error.attempts == 1

    def test_per_call_policy_overrides_default(self, registry, invoker, clock):
        flaky = Flaky(failures=10)
        registry.register("down", flaky, policy=STANDARD)
        result = invoker.invoke("down", policy=MINIMAL)
        assert result.error.attempts == 2
        assert flaky.calls == 2
        assert clock.sleeps == [1.0]

    def test_attempt_timeout_is_retryable_failure(self, registry, invoker):
        release = threading.Event()

        def hang(services, payload):
            release.wait(2.0)

        registry.register("hang", hang)
        policy = RetryPolicy(maximum_attempts=2, initial_interval=0, per_attempt_timeout=0.05)
        try:
            result = invoker.invoke("hang", policy=policy)
        finally:
            release.set()
        assert result.error.kind == "ActivityTimeoutError"
        assert result.error.category == ErrorCategory.TIMEOUT.value
        assert result.error.attempts == 2

    def test_unknown_activity_is_a_config_error(self, invoker):
        with pytest.raises(ConfigError):
            invoker.invoke("missing")


class TestAttemptObserver:
    """Every attempt is reported."""

    def test_observer_sees_each_attempt(self, registry, clock):
        attempts = []
        registry.register("flaky", Flaky(failures=1))
        invoker = ActivityInvoker(registry, None, clock=clock, observer=attempts.append)
        invoker.invoke("flaky")
        assert [(a.attempt, a.outcome) for a in attempts] == [(1, "error"), (2, "ok")]
        assert attempts[0].error == "connection reset"
        assert attempts[1].finished_at >= attempts[1].started_at

    def test_call_observer_takes_precedence(self, registry, clock):
        default, per_call = [], []
        registry.register("echo", lambda s, p: None)
        invoker = ActivityInvoker(registry, None, clock=clock, observer=default.append)
        invoker.invoke("echo", observer=per_call.append)
        assert default == []
        assert len(per_call) == 1
        assert per_call[0].to_dict()["outcome"] == "ok"


class TestActivityError:
    """The error record survives journaling."""

    def test_dict_round_trip(self):
        error = ActivityError.from_exception(ValidationError("bad", errors=["a", "b"]), attempts=1)
        assert ActivityError.from_dict(error.to_dict()) == error

    def test_from_exception_for_plain_exception(self):
        error = ActivityError.from_exception(RuntimeError("boom"), attempts=3)
        assert error.kind == "RuntimeError"
        assert error.retryable is True
        assert error.category == ErrorCategory.INTERNAL.value

    def test_activity_failed_exposes_kind(self):
        failed = ActivityFailed("payment.charge", ActivityError("PaymentDeclinedError", "Card declined", 1, False))
        assert failed.kind == "PaymentDeclinedError"
        assert failed.activity == "payment.charge"
        assert str(failed) == "Card declined"
