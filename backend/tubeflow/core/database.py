"""Async engine, sessions and the request transaction for TubeFlow.

Sessions that run past `db_slow_query_threshold_ms` are reported through
db_logger, as are rollbacks and connection problems.
"""

import re
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from tubeflow.core.config import Settings, get_settings
from tubeflow.core.logging import db_logger, get_logger

logger = get_logger(__name__)

_ASYNC_SCHEMES = ("postgres://", "postgresql://")

_TABLE_PATTERNS = [
    r'relation "([^"]+)"',
    r"table '([^']+)'",
    r'INSERT INTO "?([^\s"]+)"?',
    r'UPDATE "?([^\s"]+)"?',
    r'DELETE FROM "?([^\s"]+)"?',
]


class Base(DeclarativeBase):
    pass


def to_async_url(db_url: str) -> str:
    """Point a plain Postgres URL at the asyncpg driver."""
    for scheme in _ASYNC_SCHEMES:
        if db_url.startswith(scheme):
            return "postgresql+asyncpg://" + db_url[len(scheme):]
    return db_url


def asyncpg_connect_args(settings: Settings) -> dict[str, Any]:
    """Timeouts for every asyncpg connection; TLS is required in production."""
    args: dict[str, Any] = {
        "timeout": settings.db_connect_timeout,
        "command_timeout": settings.db_command_timeout,
    }
    if settings.environment == "production":
        args["ssl"] = "require"
    return args


def table_from_error(error: Exception) -> str | None:
    message = str(error)
    for pattern in _TABLE_PATTERNS:
        match = re.search(pattern, message, re.IGNORECASE)
        if match:
            return match.group(1)
    return None


def _report_if_slow(label: str, start_time: float, table: str | None = None) -> None:
    duration_ms = (time.monotonic() - start_time) * 1000
    if duration_ms > get_settings().db_slow_query_threshold_ms:
        db_logger.slow_query(query=label, duration_ms=duration_ms, table=table)


class DatabaseManager:
    """Owns the process-wide engine and session factory.

    Both are created by init_db() at startup and dropped by close().
    """

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("init_db() has not been called")
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("init_db() has not been called")
        return self._session_factory

    def init_db(self) -> None:
        """Create the engine from settings; errors propagate to startup."""
        settings = get_settings()
        db_url = to_async_url(str(settings.database_url))

        try:
            self._engine = create_async_engine(
                db_url,
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_timeout=settings.db_pool_timeout,
                pool_pre_ping=True,
                echo=settings.debug,
                connect_args=asyncpg_connect_args(settings),
            )
            self._session_factory = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        except Exception as e:
            db_logger.connection_error(e, db_url)
            raise
        logger.info("Database engine ready", extra={"pool_size": settings.db_pool_size})

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database engine disposed")

    async def check_connection(self) -> bool:
        """True when a trivial query round-trips."""
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            db_logger.connection_error(e, str(get_settings().database_url))
            return False
        return True


db_manager = DatabaseManager()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one transaction per request.

    Commits after the handler returns; any exception rolls back.
    """
    async with db_manager.session_factory() as session:
        start_time = time.monotonic()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            db_logger.transaction_failure(
                e, table=table_from_error(e), context="Request transaction rolled back"
            )
            raise
        except Exception:
            await session.rollback()
            raise
        finally:
            _report_if_slow("request transaction", start_time)


@asynccontextmanager
async def transaction(
    session: AsyncSession, table: str | None = None
) -> AsyncGenerator[AsyncSession, None]:
    """Unit of work outside a request, e.g. the import script."""
    start_time = time.monotonic()
    try:
        yield session
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        db_logger.transaction_failure(e, table=table, context="Unit of work rolled back")
        raise
    finally:
        _report_if_slow(f"unit of work on {table or 'unknown'}", start_time, table)
