"""Alembic environment for the commerce mirror tables.

The database URL and asyncpg connect args come from app Settings, so
migrations hit the same database the API does. Override the URL for a single
run with `alembic -x database_url=postgresql://... upgrade head`.
"""

import asyncio
import os
import sys
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Settings only looks for .env in the cwd; load_dotenv also searches parent dirs
load_dotenv()

from app.models import Customer, Order, Product  # noqa: F401,E402
from app.settings import Settings  # noqa: E402
from app.stores.postgres import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def mirror_settings() -> Settings:
    """Settings for this run, honouring an `-x database_url=` override."""
    override = context.get_x_argument(as_dictionary=True).get("database_url")
    if override:
        return Settings(database_url=override)
    return Settings()


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout instead of connecting."""
    context.configure(
        url=mirror_settings().async_database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    settings = mirror_settings()
    connectable = create_async_engine(
        settings.async_database_url,
        poolclass=pool.NullPool,
        connect_args=settings.asyncpg_connect_args,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
