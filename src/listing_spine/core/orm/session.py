"""SQLAlchemy engine factory and pre-configured session.

* ``create_listing_engine`` -- engine from a URL with SQLite pragmas applied.
* ``ListingSession``        -- ``Session`` with ``expire_on_commit=False``.
* ``listing_session_factory`` -- ``sessionmaker`` producing ``ListingSession``.
* ``create_all``            -- create every mapped table.

Tags:
    listing-spine, orm, sqlalchemy, session, engine
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from listing_spine.core.orm.base import ListingSpineBase


def create_listing_engine(
    url: str = "sqlite:///listing_spine.db",
    *,
    echo: bool = False,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    SQLite gets ``check_same_thread=False`` (the worker and dispatcher threads
    share the engine), WAL journaling and foreign keys.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            if ":memory:" not in url and url != "sqlite://":
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

        return engine

    pool_kwargs: dict[str, Any] = {}
    if pool_size is not None:
        pool_kwargs["pool_size"] = pool_size
    if max_overflow is not None:
        pool_kwargs["max_overflow"] = max_overflow
    return _sa_create_engine(url, echo=echo, **pool_kwargs, **kwargs)


class ListingSession(Session):
    """Pre-configured session with ``expire_on_commit=False``.

    Prevents lazy-load surprises when rows are converted to dataclasses after
    the commit.
    """

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def listing_session_factory(engine: Engine) -> sessionmaker[ListingSession]:
    """Return a ``sessionmaker`` bound to *engine*.

    ``sessionmaker`` passes its own ``expire_on_commit`` to the session class,
    so it has to be set here as well.
    """
    return sessionmaker(bind=engine, class_=ListingSession, expire_on_commit=False)


def create_all(engine: Engine) -> None:
    """Create every listing-spine table that does not exist yet."""
    import listing_spine.core.orm.tables  # noqa: F401  (registers mappers)

    ListingSpineBase.metadata.create_all(engine)
