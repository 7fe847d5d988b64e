"""Alembic environment configuration"""

import asyncio

from alembic import context
from sqlalchemy.ext.asyncio import create_async_engine

from tablebook.config import get_settings
from tablebook.database import Base
import tablebook.models  # noqa: F401  registers every table on Base.metadata

# this is the Alembic Config object
config = context.config

target_metadata = Base.metadata


def get_url() -> str:
    """Database URL from the process settings"""
    return get_settings().database_url


def run_migrations_offline():
    """Run migrations in 'offline' mode"""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations against the async engine"""
    connectable = create_async_engine(get_url())

    async def run():
        async with connectable.connect() as connection:
            await connection.run_sync(do_run_migrations)
        await connectable.dispose()

    asyncio.run(run())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
