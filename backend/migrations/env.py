"""Alembic environment for the notes database (SQLAlchemy 2.x async engine)."""

import asyncio
import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# `alembic` runs from backend/, where the flat modules live
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from database import DATABASE_URL, Base  # noqa: E402
import models_async  # noqa: F401, E402

target_metadata = Base.metadata

_db_url = os.getenv("ALEMBIC_DATABASE_URL") or DATABASE_URL


def _configure(**kwargs) -> None:
    # batch mode so ALTER TABLE works on SQLite
    context.configure(target_metadata=target_metadata, render_as_batch=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Emit SQL for the migrations without a live connection."""
    _configure(url=_db_url, literal_binds=True, dialect_opts={"paramstyle": "named"})


def do_run_migrations(connection: Connection) -> None:
    _configure(connection=connection)


async def run_async_migrations() -> None:
    connectable = create_async_engine(_db_url, poolclass=pool.NullPool)
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
