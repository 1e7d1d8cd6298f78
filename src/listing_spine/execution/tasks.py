"""Celery task definitions for durable execution.

The ``CeleryDispatcher`` sends run ids to ``listing_spine.workflows.resume``;
a worker process running ``celery -A listing_spine.execution.tasks worker``
picks them up and replays the run against the journal.

Setup::

    celery -A listing_spine.execution.tasks worker --loglevel=info -Q default

Configuration::

    LISTING_SPINE_CELERY_BROKER_URL   (default: redis://localhost:6379/0)
    LISTING_SPINE_CELERY_BACKEND_URL  (default: none, results are read from the journal)
"""

from __future__ import annotations

from celery import Celery

from listing_spine.core.logging import get_logger
from listing_spine.core.settings import ListingSpineSettings, get_settings
from listing_spine.execution.dispatch import RESUME_TASK

logger = get_logger(__name__)


def create_celery_app(settings: ListingSpineSettings | None = None) -> Celery:
    settings = settings or get_settings()
    celery_app = Celery(
        "listing_spine",
        broker=settings.celery_broker_url,
        backend=settings.celery_backend_url,
    )
    celery_app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        task_default_queue="default",
    )
    return celery_app


app = create_celery_app()


@app.task(name=RESUME_TASK)
def resume_workflow(run_id: str) -> str | None:
    """Advance one durable run as far as it can go.

    Returns the run status after this pass, or ``None`` if another worker
    holds the lease.
    """
    from listing_spine.runtime import get_runtime

    status = get_runtime().durable.execute(run_id)
    logger.debug("task.resumed", run_id=run_id, status=status.value if status else None)
    return status.value if status is not None else None


__all__ = ["app", "create_celery_app", "resume_workflow"]
