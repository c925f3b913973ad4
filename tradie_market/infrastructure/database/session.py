"""Async SQLAlchemy engine, session factory and unit-of-work helpers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tradie_market.core.config import DatabaseSettings
from tradie_market.infrastructure.database.base import Base
from tradie_market.modules.common.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_engine(settings: DatabaseSettings, *, debug: bool = False) -> AsyncEngine:
    engine_kwargs: dict[str, Any] = {
        "echo": settings.echo or debug,
        "future": True,
    }
    if settings.pool_size is not None:
        engine_kwargs["pool_size"] = settings.pool_size
    if settings.max_overflow is not None:
        engine_kwargs["max_overflow"] = settings.max_overflow

    engine = create_async_engine(settings.url, **engine_kwargs)
    if engine.dialect.name == "sqlite":
        _use_immediate_transactions(engine)
    return engine


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """Make SQLite take the write lock when a transaction begins.

    pysqlite defers BEGIN until the first write, so two transactions can both
    read a balance before either writes. BEGIN IMMEDIATE serializes writers
    the way SELECT ... FOR UPDATE does on server databases.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create database tables in development mode (migrations preferred)."""
    from tradie_market.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# serialization_failure, deadlock_detected, lock_not_available
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
TRANSIENT_MESSAGES = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "could not serialize",
    "lock timeout",
    "could not connect",
    "connection refused",
    "server closed the connection",
    "connection was closed",
)


def is_transient(exc: BaseException) -> bool:
    """Lock contention and lost connections are worth retrying; schema and SQL errors are not."""
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return True
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in TRANSIENT_SQLSTATES:
        return True
    if not isinstance(exc, OperationalError):
        return False
    message = str(orig).lower()
    return any(marker in message for marker in TRANSIENT_MESSAGES)


async def run_in_transaction(
    factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    attempts: int = 3,
    backoff_seconds: float = 0.05,
    label: str = "transaction",
) -> T:
    """Run ``work`` inside a single database transaction.

    The transaction commits only when ``work`` returns; any exception
    (including task cancellation) rolls every write back. Lock timeouts and
    dropped connections are retried up to ``attempts`` times with exponential
    backoff, then surface as :class:`TransientStoreError`. Business errors are
    never retried.
    """
    attempts = max(int(attempts), 1)
    delay = max(float(backoff_seconds), 0.0)
    last_error: BaseException | None = None
    for attempt in range(1, attempts + 1):
        try:
            async with factory() as session:
                async with session.begin():
                    return await work(session)
        except (OperationalError, DBAPIError) as exc:
            if not is_transient(exc):
                raise
            last_error = exc
            if attempt == attempts:
                break
            logger.warning(
                "Transient store failure in %s (attempt %s/%s): %s",
                label,
                attempt,
                attempts,
                exc,
            )
            await asyncio.sleep(delay)
            delay *= 2
    logger.error("Giving up on %s after %s attempts", label, attempts)
    raise TransientStoreError(f"{label} failed after {attempts} attempts") from last_error
