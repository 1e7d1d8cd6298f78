"""Tests for the celery app factory and the resume task."""

from listing_spine.execution.dispatch import RESUME_TASK, CeleryDispatcher
from listing_spine.execution.run import RunStatus
from listing_spine.execution.tasks import app, create_celery_app, resume_workflow
from listing_spine.runtime import set_runtime


class TestCeleryApp:
    """App configuration."""

    def test_configuration(self, settings):
        celery_app = create_celery_app(settings.model_copy(update={"celery_broker_url": "memory://"}))
        conf = celery_app.conf
        assert conf.task_serializer == "json"
        assert conf.accept_content == ["json"]
        assert conf.task_acks_late is True
        assert conf.worker_prefetch_multiplier == 1
        assert conf.task_default_queue == "default"
        assert conf.enable_utc is True

    def test_resume_task_registered(self):
        assert RESUME_TASK in app.tasks
        assert resume_workflow.name == RESUME_TASK


class TestResumeTask:
    """The task drives one durable run on the worker's runtime."""

    def test_resume_completes_pending_run(self, durable_runtime, add_draft):
        set_runtime(durable_runtime)
        add_draft(durable_runtime.services)
        run = durable_runtime.journal.create_run("publish.property", {"draft_id": "42", "owner_id": "7"})

        assert resume_workflow(run.run_id) == RunStatus.COMPLETED.value
        assert durable_runtime.durable.result(run.run_id).success

    def test_resume_of_finished_run_returns_none(self, durable_runtime, add_draft):
        set_runtime(durable_runtime)
        add_draft(durable_runtime.services)
        handle = durable_runtime.router.start("publish.property", {"draft_id": "42", "owner_id": "7"})

        assert resume_workflow(handle.run_id) is None

    def test_eager_dispatch_through_celery(self, durable_runtime, add_draft):
        set_runtime(durable_runtime)
        add_draft(durable_runtime.services)
        run = durable_runtime.journal.create_run("publish.property", {"draft_id": "42", "owner_id": "7"})
        app.conf.task_always_eager = True
        try:
            CeleryDispatcher(app).dispatch(run.run_id, durable_runtime.durable.execute)
        finally:
            app.conf.task_always_eager = False
        assert durable_runtime.journal.get_run(run.run_id).status is RunStatus.COMPLETED
