"""
gravitas.database.engine — Database Connection & Session Helper
================================================================

One :class:`~sqlalchemy.Engine` is built per process (see
:func:`gravitas.api.deps.get_engine`) and shared by reference with every
request; it is never re-created.  Most route handlers are plain ``def``
functions, which FastAPI runs on its worker thread pool; the few ``async``
handlers (those that also await SMTP delivery) go through :func:`run_db`.

Usage::

    from gravitas.database.engine import create_db_engine, init_db, get_session

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    with get_session(engine) as session:
        session.add(Notification(user_id=uid, title="Hello"))
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from gravitas.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from ``DATABASE_URL``.

    The connection pool is sized for a small web deployment:
    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is not set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`gravitas.database.models`.

    Safe to call on every startup.  In production the schema is managed by
    Alembic (``alembic upgrade head``); ``create_all`` covers dev and test
    environments where migrations have not run.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that commits on success and rolls back on
    exception.

    Objects stay usable after the block (``expire_on_commit=False``) so
    services can hand them back to the response shapers.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Used by the ``async`` handlers that also await SMTP delivery, so the
    event loop is never blocked by a query::

        user = await run_db(register_user, engine, name, email, password)

    Under the hood it calls :func:`asyncio.to_thread`, which schedules
    *func* on the default ``ThreadPoolExecutor``.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
