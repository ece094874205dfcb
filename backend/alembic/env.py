"""Migration runner for the TubeFlow schema.

The URL comes from application settings rather than alembic.ini, so the
same DATABASE_URL drives the app and its migrations.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from tubeflow.core.config import get_settings
from tubeflow.core.database import Base, asyncpg_connect_args, to_async_url
from tubeflow.core.logging import db_logger
from tubeflow.models import Idea, QuestionKeyword, Topic  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def database_url() -> str:
    return to_async_url(str(get_settings().database_url))


def run_migrations_offline() -> None:
    """Emit SQL for the pending revisions instead of executing it."""
    context.configure(
        url=database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def apply_revisions(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def migrate() -> None:
    target = str(context.get_head_revision() or "initial")
    db_logger.migration_start(version=target, description=f"Upgrading schema to {target}")

    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = database_url()
    engine = async_engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        connect_args=asyncpg_connect_args(get_settings()),
    )

    try:
        async with engine.connect() as connection:
            await connection.run_sync(apply_revisions)
    except Exception:
        db_logger.migration_end(version=target, success=False)
        raise
    finally:
        await engine.dispose()
    db_logger.migration_end(version=target, success=True)


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(migrate())
