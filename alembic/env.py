#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Alembic environment for the wikistore schema.

The database URL always comes from wikistore settings (DATABASE_URL or
.env), never from alembic.ini:

    alembic upgrade head
    alembic downgrade base
    alembic revision --autogenerate -m "description"

SQLite cannot ALTER constraints, so migrations run in batch mode there.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection

import wikistore.models  # noqa: F401
from wikistore.backend import select_strategy
from wikistore.core.config import get_settings
from wikistore.core.database import Base, build_engine

# -----------------------------------------------------------------------------

settings = get_settings()
config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata
dialect = select_strategy(settings.database_url, settings.db_dialect)


# -----------------------------------------------------------------------------

def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=dialect.name == "sqlite",
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL for the configured backend instead of running it."""
    _configure(
        url=settings.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = build_engine(settings=settings)
    logger.info("Migrating %s database", dialect.name)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(do_run_migrations)
            await connection.commit()
    finally:
        await engine.dispose()


# -----------------------------------------------------------------------------

if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())


# -----------------------------------------------------------------------------
