"""Alembic migration environment (async, asyncpg).

The database URL always comes from DATABASE_URL via model_pipeline.config;
the ``sqlalchemy.url`` entry in alembic.ini is ignored.

PgQueuer installs its own tables in the same database. They are managed by
``initialize_pgqueuer`` and excluded from autogenerate here.

Usage:
    alembic upgrade head
    alembic revision --autogenerate -m "add column"
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from model_pipeline.config import get_database_url
from model_pipeline.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

PGQUEUER_TABLE_PREFIX = "pgqueuer"


def include_object(obj, name, type_, reflected, compare_to) -> bool:
    """Skip PgQueuer-owned tables during autogenerate."""
    if type_ == "table" and name and name.startswith(PGQUEUER_TABLE_PREFIX):
        return False
    return True


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        compare_server_default=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit migration SQL to stdout without connecting."""
    _configure(
        url=get_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Apply migrations over a throwaway async engine (NullPool)."""
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = get_database_url()

    engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
