"""Tests for per-attempt timeout enforcement."""

import threading

import pytest

from listing_spine.execution.timeout import TimeoutExpired, run_with_timeout


class TestTimeoutExpired:
    """Tests for the TimeoutExpired exception."""

    def test_message_includes_operation_and_timeout(self):
        error = TimeoutExpired(timeout=2.0, operation="publishing.create_entity")
        assert "publishing.create_entity" in str(error)
        assert "2.0s" in str(error)

    def test_message_includes_elapsed(self):
        error = TimeoutExpired(timeout=1.0, elapsed=1.25, operation="op")
        assert "waited 1.25s" in str(error)

    def test_is_a_timeout_error(self):
        assert isinstance(TimeoutExpired(timeout=1.0), TimeoutError)


class TestRunWithTimeout:
    """Tests for run_with_timeout."""

    def test_returns_value(self):
        assert run_with_timeout(lambda a, b: a + b, 1.0, args=(2, 3)) == 5

    def test_passes_kwargs(self):
        def greet(name, punctuation="."):
            return f"hello {name}{punctuation}"

        assert run_with_timeout(greet, 1.0, args=("pune",), kwargs={"punctuation": "!"}) == "hello pune!"

    def test_slow_call_times_out(self):
        release = threading.Event()

        def slow():
            release.wait(2.0)
            return "late"

        try:
            with pytest.raises(TimeoutExpired) as exc_info:
                run_with_timeout(slow, 0.05, operation="slow_op")
        finally:
            release.set()
        assert exc_info.value.operation == "slow_op"
        assert exc_info.value.timeout == 0.05

    def test_exception_propagates(self):
        def boom():
            raise KeyError("missing")

        with pytest.raises(KeyError, match="missing"):
            run_with_timeout(boom, 1.0)

    def test_operation_defaults_to_function_name(self):
        release = threading.Event()

        def fetch_draft():
            release.wait(2.0)

        try:
            with pytest.raises(TimeoutExpired) as exc_info:
                run_with_timeout(fetch_draft, 0.05)
        finally:
            release.set()
        assert exc_info.value.operation == "fetch_draft"

    @pytest.mark.parametrize("timeout", [0, -1])
    def test_non_positive_timeout_rejected(self, timeout):
        with pytest.raises(ValueError, match="positive"):
            run_with_timeout(lambda: None, timeout)
