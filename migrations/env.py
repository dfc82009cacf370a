"""Alembic environment for the CreatorTent schema.

The database URL comes from ``DATABASE_CONFIG__DATABASE_URL`` rather than
``alembic.ini`` so migrations and the API always target the same database.
"""

import asyncio

from alembic import context
from loguru import logger
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

import src.domain.models  # noqa: F401 - registers every table on Base.metadata
from src.core.config import get_settings
from src.infrastructure.database.base import Base

target_metadata = Base.metadata
COMPARE_OPTIONS = {"compare_type": True, "compare_server_default": True}


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting."""
    context.configure(
        url=get_settings().database_config.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection, target_metadata=target_metadata, **COMPARE_OPTIONS
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    db_config = get_settings().database_config
    # Migrations run once per deploy; no pool
    engine = create_async_engine(
        db_config.database_url, echo=db_config.echo, poolclass=pool.NullPool
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    logger.info("Running migrations offline")
    run_migrations_offline()
else:
    logger.info("Running migrations against the configured database")
    asyncio.run(run_async_migrations())
