"""Process runtime: one place that wires settings, storage, collaborators and backends.

``build_runtime`` assembles the object graph; ``get_runtime`` keeps one per
process for the CLI and the celery task. Tests build their own runtime with
in-memory services and a manual clock.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from listing_spine import activities, orchestration  # noqa: F401  (registers built-ins)
from listing_spine.collaborators.memory import LoggingNotifier, build_memory_services
from listing_spine.collaborators.protocols import Services
from listing_spine.collaborators.sql import SqlDraftStore, build_sql_entity_stores
from listing_spine.core.clock import Clock, SystemClock
from listing_spine.core.logging import get_logger
from listing_spine.core.orm.session import create_all, create_listing_engine, listing_session_factory
from listing_spine.core.settings import ListingSpineSettings, get_settings
from listing_spine.execution.activity import ActivityInvoker, ActivityRegistry, get_activity_registry
from listing_spine.execution.backends.direct import DirectBackend
from listing_spine.execution.backends.durable import DurableBackend
from listing_spine.execution.dispatch import CeleryDispatcher, Dispatcher, InlineDispatcher, ThreadDispatcher
from listing_spine.execution.journal import RunJournal
from listing_spine.execution.registry import WorkflowRegistry, get_workflow_registry
from listing_spine.execution.router import ExecutionRouter

logger = get_logger(__name__)


@dataclass
class Runtime:
    settings: ListingSpineSettings
    services: Services
    engine: Engine
    session_factory: sessionmaker[Any]
    journal: RunJournal
    invoker: ActivityInvoker
    direct: DirectBackend
    durable: DurableBackend
    router: ExecutionRouter
    dispatcher: Dispatcher

    def close(self) -> None:
        self.dispatcher.shutdown(wait=True)
        self.engine.dispose()


def build_dispatcher(settings: ListingSpineSettings) -> Dispatcher:
    if settings.dispatcher == "inline":
        return InlineDispatcher()
    if settings.dispatcher == "celery":
        from listing_spine.execution.tasks import create_celery_app

        return CeleryDispatcher(create_celery_app(settings))
    return ThreadDispatcher(max_workers=settings.max_workers)


def build_default_services(
    session_factory: sessionmaker[Any],
    settings: ListingSpineSettings,
) -> Services:
    """SQL-backed drafts and entities; every other collaborator in-process."""
    return build_memory_services(
        drafts=SqlDraftStore(session_factory),
        entities=build_sql_entity_stores(session_factory),
        notifier=LoggingNotifier(),
        publish_credit_cost=settings.publish_credit_cost,
    )


def build_runtime(
    settings: ListingSpineSettings | None = None,
    *,
    services: Services | None = None,
    clock: Clock | None = None,
    dispatcher: Dispatcher | None = None,
    engine: Engine | None = None,
    flag: Callable[[], bool] | None = None,
    activities_registry: ActivityRegistry | None = None,
    workflows: WorkflowRegistry | None = None,
) -> Runtime:
    settings = settings or get_settings()
    clock = clock or SystemClock()
    engine = engine or create_listing_engine(settings.database_url)
    create_all(engine)
    session_factory = listing_session_factory(engine)

    services = services or build_default_services(session_factory, settings)
    workflows = workflows or get_workflow_registry()
    invoker = ActivityInvoker(activities_registry or get_activity_registry(), services, clock=clock)
    journal = RunJournal(session_factory, clock=clock, lease_seconds=settings.lease_seconds)
    dispatcher = dispatcher or build_dispatcher(settings)

    direct = DirectBackend(workflows, invoker, clock=clock)
    durable = DurableBackend(
        workflows,
        journal,
        invoker,
        dispatcher,
        clock=clock,
        workflow_timeout_seconds=settings.workflow_timeout_seconds,
    )
    router = ExecutionRouter(direct, durable, flag=flag)
    logger.debug("runtime.built", dispatcher=dispatcher.name, database=engine.url.render_as_string())
    return Runtime(
        settings=settings,
        services=services,
        engine=engine,
        session_factory=session_factory,
        journal=journal,
        invoker=invoker,
        direct=direct,
        durable=durable,
        router=router,
        dispatcher=dispatcher,
    )


_runtime: Runtime | None = None


def get_runtime() -> Runtime:
    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime


def set_runtime(runtime: Runtime | None) -> None:
    global _runtime
    _runtime = runtime


def reset_runtime() -> None:
    global _runtime
    if _runtime is not None:
        _runtime.close()
    _runtime = None


__all__ = [
    "Runtime",
    "build_runtime",
    "build_default_services",
    "build_dispatcher",
    "get_runtime",
    "set_runtime",
    "reset_runtime",
]
