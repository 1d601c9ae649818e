"""
devpulse.database.engine — Engine, Sessions & Async Bridge
===========================================================

Aggregation services are plain synchronous functions taking an
``Engine``.  Each unit of work opens one short session with
:func:`get_session`, so every full-replace write commits (or rolls back)
on its own and overlapping runs never share a transaction.

The API and the sweep worker are ``asyncio`` programs; they reach those
services through :func:`run_db`, which hands the call to a worker thread.

Usage::

    from devpulse.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # DATABASE_URL from the environment
    init_db(engine)

    report = await run_db(aggregate, engine, config, "full")
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from devpulse.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Sized for the API plus one sweep running ``max_workers`` units at once.
_POOL_OPTIONS = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 10,
    "pool_recycle": 3600,
    "pool_pre_ping": True,
}


def create_db_engine(url: str | None = None) -> Engine:
    """Build the engine from *url*, falling back to ``DATABASE_URL``.

    PostgreSQL (psycopg2) gets the pooled configuration above.  A
    ``sqlite`` URL is accepted for local runs and skips pool tuning.

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(url, **_POOL_OPTIONS)
    logger.info("Database engine ready (%s → %s)", engine.dialect.name, engine.url.host or engine.url.database)
    return engine


def init_db(engine: Engine) -> None:
    """``CREATE TABLE IF NOT EXISTS`` for members, commits and derived tables.

    Production schemas come from ``alembic upgrade head``; this covers
    local runs and tests.
    """
    Base.metadata.create_all(engine)
    logger.info("Schema verified: %s", ", ".join(sorted(Base.metadata.tables)))


@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """One transaction: commit when the block exits cleanly, else roll back."""
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await a synchronous service call without blocking the event loop."""
    return await asyncio.to_thread(func, *args, **kwargs)
