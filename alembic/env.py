# alembic/env.py
import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection, make_url

from stratosafe.core.config import get_settings
from stratosafe.core.db import Base, make_engine
import stratosafe.models  # noqa: F401  populates Base.metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

settings = get_settings()
target_metadata = Base.metadata


def _configure(**kwargs) -> None:
    url = make_url(settings.async_database_url)
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        # sqlite can't ALTER most constraints in place
        render_as_batch=url.get_backend_name() == "sqlite",
        **kwargs,
    )


def run_migrations_offline() -> None:
    # plain dialect: rendering SQL needs no async driver
    url = make_url(settings.async_database_url)
    _configure(
        url=url.set(drivername=url.get_backend_name()),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_migrations(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = make_engine(settings)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
