"""Tests for the durable backend: journaled execution, suspension and replay."""

import pytest

from listing_spine.core.errors import WorkflowNotFoundError
from listing_spine.execution.activity import ActivityRegistry
from listing_spine.execution.backends.durable import DurableBackend
from listing_spine.execution.dispatch import InlineDispatcher
from listing_spine.execution.policy import RetryPolicy
from listing_spine.execution.registry import WorkflowRegistry
from listing_spine.execution.results import WorkflowResult
from listing_spine.execution.run import ExecutionMode, JournalKind, RunStatus

ONCE = RetryPolicy(maximum_attempts=1)


@pytest.fixture
def calls():
    return []


@pytest.fixture
def branch():
    """Which activity the ``test.branching`` workflow calls first."""
    return {"first": "test.record"}


@pytest.fixture
def registries(calls, branch):
    activities = ActivityRegistry()
    workflows = WorkflowRegistry()

    @activities.activity("test.record", policy=ONCE)
    def record(services, payload):
        calls.append(payload["step"])
        return {"step": payload["step"]}

    @activities.activity("test.other", policy=ONCE)
    def other(services, payload):
        calls.append("other")
        return None

    @activities.activity("test.explode", policy=ONCE)
    def explode(services, payload):
        raise RuntimeError("disk full")

    @workflows.workflow("test.two_step")
    def two_step(ctx, input):
        first = ctx.activity("test.record", {"step": "first"})
        deadline = ctx.start_timer(3600)
        signal = ctx.wait_for_signal(["go"], until=deadline)
        second = ctx.activity("test.record", {"step": "second"})
        return WorkflowResult.ok("done", {
            "first": first["step"],
            "second": second["step"],
            "signal": signal.name if signal else None,
            "deadline": deadline.isoformat(),
        })

    @workflows.workflow("test.branching")
    def branching(ctx, input):
        ctx.activity(branch["first"], {"step": "branch"})
        deadline = ctx.start_timer(3600)
        ctx.wait_for_signal(["go"], until=deadline)
        return WorkflowResult.ok("done")

    @workflows.workflow("test.crashing")
    def crashing(ctx, input):
        raise ValueError("workflow bug")

    @workflows.workflow("test.best_effort")
    def best_effort(ctx, input):
        outcome = ctx.try_activity("test.explode", {})
        return WorkflowResult.ok("finished", {"explode_ok": outcome.is_ok()})

    return activities, workflows


@pytest.fixture
def durable(make_runtime, registries):
    activities, workflows = registries
    return make_runtime(durable=True, activities_registry=activities, workflows=workflows)


class TestStartAndComplete:
    """A run is persisted first, then executed by the dispatcher."""

    def test_start_returns_handle_without_result(self, durable):
        handle = durable.durable.start("test.best_effort", {})
        assert handle.mode is ExecutionMode.DURABLE
        assert handle.result is None

    def test_inline_dispatch_completes_run(self, durable):
        handle = durable.durable.start("test.best_effort", {})
        result = durable.durable.result(handle.run_id)
        assert result.success
        assert result.data == {"explode_ok": False}
        assert result.status == "COMPLETED"
        assert result.mode == "durable"

    def test_unknown_workflow_rejected_before_persisting(self, durable):
        with pytest.raises(WorkflowNotFoundError):
            durable.durable.start("test.missing", {}, run_id="ghost")
        assert not durable.durable.owns("ghost")

    def test_workflow_exception_fails_run(self, durable):
        handle = durable.durable.start("test.crashing", {})
        run = durable.durable.get_run(handle.run_id)
        assert run.status is RunStatus.FAILED
        assert run.error == "workflow bug"
        result = durable.durable.result(handle.run_id)
        assert not result.success
        assert result.message == "Workflow failed: workflow bug"

    def test_run_for_unregistered_workflow_fails_on_execute(self, durable):
        run = durable.journal.create_run("test.retired", {})
        assert durable.durable.execute(run.run_id) is RunStatus.FAILED
        assert "Workflow not found" in durable.durable.result(run.run_id).message

    def test_overdue_run_times_out(self, durable, clock):
        run = durable.journal.create_run("test.best_effort", {})
        clock.advance(durable.settings.workflow_timeout_seconds + 1)
        assert durable.durable.execute(run.run_id) is RunStatus.FAILED
        assert durable.durable.result(run.run_id).message == "Workflow timed out after 720 hours"

    def test_execute_is_noop_when_not_claimable(self, durable):
        handle = durable.durable.start("test.best_effort", {})
        assert durable.durable.execute(handle.run_id) is None

    def test_wait_for_result_returns_finished_result(self, durable):
        handle = durable.durable.start("test.best_effort", {})
        assert durable.durable.wait_for_result(handle.run_id, timeout=1.0).success


class TestSuspendAndSignal:
    """Waits park the run; signals wake it; replay never re-runs completed steps."""

    def test_wait_suspends_run(self, durable, calls):
        handle = durable.durable.start("test.two_step", {})
        status = durable.durable.status(handle.run_id)
        assert status["status"] == "SUSPENDED"
        assert status["wake_at"] is not None
        assert calls == ["first"]
        result = durable.durable.result(handle.run_id)
        assert result.is_pending
        assert result.status == "SUSPENDED"

    def test_signal_resumes_and_completes(self, durable, calls):
        handle = durable.durable.start("test.two_step", {})
        assert durable.durable.signal(handle.run_id, "go", {"by": "test"})
        result = durable.durable.result(handle.run_id)
        assert result.success
        assert result.data["signal"] == "go"
        assert calls == ["first", "second"]

    def test_replay_keeps_timer_deadline(self, durable, clock):
        handle = durable.durable.start("test.two_step", {})
        first_deadline = durable.journal.entries(handle.run_id)[1].payload["deadline"]
        clock.advance(600)
        durable.durable.signal(handle.run_id, "go")
        assert durable.durable.result(handle.run_id).data["deadline"] == first_deadline

    def test_journal_records_every_step(self, durable):
        handle = durable.durable.start("test.two_step", {})
        durable.durable.signal(handle.run_id, "go")
        run = durable.durable.get_run(handle.run_id)
        assert [entry.kind for entry in run.journal] == [
            JournalKind.ACTIVITY,
            JournalKind.TIMER,
            JournalKind.WAIT,
            JournalKind.ACTIVITY,
        ]
        assert run.resume_count == 2

    def test_deadline_resumes_via_recover(self, durable, clock, calls):
        handle = durable.durable.start("test.two_step", {})
        clock.advance(3600)
        assert durable.durable.recover() == [handle.run_id]
        result = durable.durable.result(handle.run_id)
        assert result.success
        assert result.data["signal"] is None
        assert calls == ["first", "second"]

    def test_signal_to_finished_run_is_ignored(self, durable):
        handle = durable.durable.start("test.best_effort", {})
        assert durable.durable.signal(handle.run_id, "go") is False

    def test_signal_to_running_run_is_kept_for_its_wait(self, durable):
        run = durable.journal.create_run("test.two_step", {})
        assert durable.durable.signal(run.run_id, "go") is True
        durable.durable.execute(run.run_id)
        assert durable.durable.result(run.run_id).data["signal"] == "go"


class TestReplayDeterminism:
    """A workflow that changes shape between executions fails loudly."""

    def test_diverging_replay_fails_run(self, durable, branch):
        handle = durable.durable.start("test.branching", {})
        branch["first"] = "test.other"
        durable.durable.signal(handle.run_id, "go")
        run = durable.durable.get_run(handle.run_id)
        assert run.status is RunStatus.FAILED
        assert "journal has activity 'test.record'" in run.error


class TestOwnership:
    """Several backends may share one journal; the lease decides who drives."""

    def test_other_owner_cannot_execute_held_run(self, durable, clock):
        run = durable.journal.create_run("test.two_step", {})
        assert durable.journal.claim(run.run_id, "someone-else")
        rival = DurableBackend(
            durable.durable.workflows,
            durable.journal,
            durable.invoker,
            InlineDispatcher(),
            clock=clock,
            owner="rival",
        )
        assert rival.execute(run.run_id) is None
        clock.advance(durable.settings.lease_seconds + 1)
        assert rival.execute(run.run_id) is RunStatus.SUSPENDED
