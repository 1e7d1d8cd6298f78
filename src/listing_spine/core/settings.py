"""Process-wide settings for the publishing core.

Configuration is explicit, validated and environment-driven. Every field can
be set through a ``LISTING_SPINE_``-prefixed environment variable or a
``.env`` file; unknown variables are ignored.

The single most important field is ``durable_enabled``: the Execution Router
reads it once per call to choose between the durable and the direct backend.

Examples:
    >>> import os
    >>> os.environ["LISTING_SPINE_DURABLE_ENABLED"] = "true"
    >>> reset_settings()
    >>> get_settings().durable_enabled
    True

Tags:
    settings, configuration, pydantic, environment, listing-spine
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ListingSpineSettings(BaseSettings):
    """Settings for the router, the durable engine and the worker.

    Fields
    ──────
    durable_enabled        : Route new runs to the durable backend
    database_url           : SQLAlchemy URL of the run journal and entity stores
    dispatcher             : How durable runs are executed (inline | thread | celery)
    celery_broker_url      : Broker for the celery dispatcher
    celery_backend_url     : Result backend for the celery dispatcher
    max_workers            : Thread pool size for the thread dispatcher / worker
    poll_interval          : Seconds between worker poll cycles
    lease_seconds          : How long a claimed run is owned before it is reclaimable
    workflow_timeout_hours : Whole-run timeout for durable runs
    publish_credit_cost    : Credits debited on first publish (0 disables)
    log_level / log_json   : structlog configuration
    """

    model_config = SettingsConfigDict(
        env_prefix="LISTING_SPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Routing ──────────────────────────────────────────────────
    durable_enabled: bool = False

    # ── Durable engine ───────────────────────────────────────────
    database_url: str = "sqlite:///listing_spine.db"
    dispatcher: Literal["inline", "thread", "celery"] = "thread"
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_backend_url: str | None = None
    max_workers: int = Field(default=4, ge=1)
    poll_interval: float = Field(default=2.0, gt=0)
    lease_seconds: float = Field(default=300.0, gt=0)
    # Must outlast the longest approval review deadline.
    workflow_timeout_hours: float = Field(default=720.0, gt=0)

    # ── Publishing ───────────────────────────────────────────────
    publish_credit_cost: float = Field(default=0.0, ge=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    @property
    def workflow_timeout_seconds(self) -> float:
        return self.workflow_timeout_hours * 3600.0


@lru_cache(maxsize=1)
def get_settings() -> ListingSpineSettings:
    """Return the cached process-wide settings."""
    return ListingSpineSettings()


def reset_settings() -> None:
    """Drop the cached settings so the next ``get_settings()`` re-reads the environment."""
    get_settings.cache_clear()


__all__ = ["ListingSpineSettings", "get_settings", "reset_settings"]
