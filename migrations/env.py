"""Alembic environment for the marketplace credit schema.

The database URL always comes from ``DATABASE__URL`` (see
``tradie_market.core.config``), never from ``alembic.ini``.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection

from tradie_market.core.config import DatabaseSettings, get_settings
from tradie_market.db import models  # noqa: F401
from tradie_market.infrastructure.database.base import Base
from tradie_market.infrastructure.database.session import build_engine

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database() -> DatabaseSettings:
    return get_settings().database


def _configure(**kwargs) -> None:
    # SQLite cannot ALTER most constraints in place; batch mode rebuilds tables.
    url = _database().url
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_offline() -> None:
    _configure(
        url=_database().url.replace("+aiosqlite", "").replace("+asyncpg", ""),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _apply(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_online() -> None:
    engine = build_engine(_database())
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_apply)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
