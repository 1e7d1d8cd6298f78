"""Tests for the direct (in-process) backend and its signal mailbox."""

from datetime import timedelta

import pytest

from listing_spine.core.clock import ManualClock
from listing_spine.core.errors import RunNotFoundError, WorkflowNotFoundError
from listing_spine.execution.activity import ActivityInvoker, ActivityRegistry
from listing_spine.execution.backends.direct import DirectBackend
from listing_spine.execution.policy import RetryPolicy
from listing_spine.execution.registry import WorkflowRegistry
from listing_spine.execution.results import WorkflowResult
from listing_spine.execution.run import ExecutionMode, RunStatus
from listing_spine.execution.signals import Signal, SignalMailbox


@pytest.fixture
def backend(clock):
    activities = ActivityRegistry()
    workflows = WorkflowRegistry()

    @activities.activity("test.greet", policy=RetryPolicy(maximum_attempts=1))
    def greet(services, payload):
        return f"hello {payload['name']}"

    @workflows.workflow("test.greeting")
    def greeting(ctx, input):
        text = ctx.activity("test.greet", {"name": input["name"]})
        return WorkflowResult.ok("greeted", {"text": text})

    @workflows.workflow("test.waiting")
    def waiting(ctx, input):
        deadline = ctx.start_timer(60)
        signal = ctx.wait_for_signal(["go"], until=deadline)
        return WorkflowResult.ok("waited", {"signal": signal.name if signal else None})

    @workflows.workflow("test.broken")
    def broken(ctx, input):
        raise KeyError("name")

    return DirectBackend(workflows, ActivityInvoker(activities, None, clock=clock), clock=clock)


class TestDirectExecution:
    """Runs complete synchronously on the caller's thread."""

    def test_start_returns_final_result(self, backend):
        handle = backend.start("test.greeting", {"name": "pune"}, run_id="run-1")
        assert handle.run_id == "run-1"
        assert handle.mode is ExecutionMode.DIRECT
        assert handle.result.success
        assert handle.result.data == {"text": "hello pune"}
        assert handle.result.mode == "direct"
        assert handle.result.run_id == "run-1"

    def test_unknown_workflow(self, backend):
        with pytest.raises(WorkflowNotFoundError):
            backend.start("test.missing", {})

    def test_workflow_exception_becomes_failed_result(self, backend):
        handle = backend.start("test.broken", {})
        assert not handle.result.success
        assert handle.result.message.startswith("Workflow failed:")
        assert handle.result.status == "FAILED"
        assert backend.get_run(handle.run_id).status is RunStatus.FAILED

    def test_status_and_steps(self, backend):
        handle = backend.start("test.greeting", {"name": "pune"})
        status = backend.status(handle.run_id)
        assert status["status"] == "COMPLETED"
        assert status["mode"] == "direct"
        assert status["completed_steps"] == 1
        run = backend.get_run(handle.run_id)
        assert [entry.name for entry in run.journal] == ["test.greet"]
        assert run.attempts[0].outcome == "ok"

    def test_result_lookup(self, backend):
        handle = backend.start("test.greeting", {"name": "pune"})
        assert backend.result(handle.run_id) == handle.result
        assert backend.owns(handle.run_id)

    def test_unknown_run(self, backend):
        with pytest.raises(RunNotFoundError):
            backend.status("nope")
        assert not backend.owns("nope")


class TestDirectSignals:
    """Signals reach active runs only."""

    def test_wait_times_out_on_manual_clock(self, backend, clock):
        started = clock.now()
        handle = backend.start("test.waiting", {})
        assert handle.result.data == {"signal": None}
        assert clock.now() == started + timedelta(seconds=60)

    def test_signal_to_finished_run_is_ignored(self, backend):
        handle = backend.start("test.greeting", {"name": "pune"})
        assert backend.signal(handle.run_id, "go") is False
        assert backend.mailbox(handle.run_id) is None


class TestSignalMailbox:
    """The direct-mode mailbox."""

    def test_take_returns_oldest_matching(self):
        mailbox = SignalMailbox()
        mailbox.deliver(Signal("escalate"))
        mailbox.deliver(Signal("approve", {"reviewer": "a"}))
        mailbox.deliver(Signal("approve", {"reviewer": "b"}))
        assert mailbox.take(["approve"]).payload == {"reviewer": "a"}
        assert [s.name for s in mailbox.pending()] == ["escalate", "approve"]

    def test_take_without_match(self):
        assert SignalMailbox().take(["approve"]) is None

    def test_wait_returns_queued_signal_immediately(self):
        clock = ManualClock()
        mailbox = SignalMailbox()
        mailbox.deliver(Signal("reject", received_at=clock.now()))
        signal = mailbox.wait(["approve", "reject"], clock.now() + timedelta(hours=48), clock)
        assert signal.name == "reject"
        assert clock.sleeps == []
        assert not mailbox.waiting.is_set()

    def test_wait_times_out(self):
        clock = ManualClock()
        deadline = clock.now() + timedelta(hours=48)
        assert SignalMailbox().wait(["approve"], deadline, clock) is None
        assert clock.now() == deadline

    def test_wait_skips_signal_received_after_deadline(self):
        clock = ManualClock()
        deadline = clock.now() + timedelta(hours=48)
        mailbox = SignalMailbox()
        mailbox.deliver(Signal("approve", received_at=deadline + timedelta(seconds=1)))
        assert mailbox.wait(["approve"], deadline, clock) is None
        assert [s.name for s in mailbox.pending()] == ["approve"]

    def test_signal_at_deadline_counts(self):
        clock = ManualClock()
        deadline = clock.now() + timedelta(hours=48)
        mailbox = SignalMailbox()
        mailbox.deliver(Signal("approve", received_at=deadline))
        assert mailbox.wait(["approve"], deadline, clock).name == "approve"

    def test_signal_dict_round_trip(self):
        signal = Signal("approve", {"comment": "Looks good"})
        assert Signal.from_dict(signal.to_dict()) == signal
