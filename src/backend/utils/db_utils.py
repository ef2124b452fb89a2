"""PostgreSQL pool helpers for the user, session and message stores.

The pool is created once in the application lifespan from ``Settings``.
Store calls are single-shot; a failed query surfaces as one of
``DATABASE_ERRORS`` and is never retried here.
"""

from __future__ import annotations

import asyncio

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import asyncpg

from api.middleware.exception_handlers import PersistenceError
from core.constants import Settings
from models.error_models import ErrorCode
from models.schemas.health import DatabaseHealth
from utils.logger import logger
from utils.metrics import db_pool_connections, db_pool_size

HEALTH_CHECK_TIMEOUT = 5.0


class ConnectionPoolExhausted(PersistenceError):
    """The pool could not be opened, or no connection was free in time."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message=message, code=ErrorCode.DATABASE_CONNECTION_FAILED, cause=cause)


#: Failures of a store call, for callers that must degrade instead of raising
DATABASE_ERRORS: tuple[type[Exception], ...] = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    PersistenceError,
    OSError,
)


def _server_settings(settings: Settings) -> dict[str, str]:
    timeout_ms = str(int(settings.db_command_timeout * 1000))
    return {
        "application_name": "secondme-chat",
        "statement_timeout": timeout_ms,
        "lock_timeout": timeout_ms,
        "timezone": "UTC",
    }


async def create_database_pool(settings: Settings) -> asyncpg.Pool:
    """Open the connection pool described by the ``DB_*`` settings.

    Raises:
        ConnectionPoolExhausted: The initial connections could not be opened
            within ``db_connection_timeout``
    """
    try:
        pool = await asyncio.wait_for(
            asyncpg.create_pool(
                dsn=settings.database_url,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
                command_timeout=settings.db_command_timeout,
                statement_cache_size=settings.db_statement_cache_size,
                max_inactive_connection_lifetime=settings.db_max_inactive_connection_lifetime,
                server_settings=_server_settings(settings),
            ),
            timeout=settings.db_connection_timeout,
        )
    except asyncio.TimeoutError as e:
        raise ConnectionPoolExhausted(
            f"Opening the database pool timed out after {settings.db_connection_timeout}s", e
        ) from e
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        raise ConnectionPoolExhausted(f"Could not open the database pool: {e}", e) from e

    if pool is None:
        raise ConnectionPoolExhausted("Could not open the database pool")

    return pool


@asynccontextmanager
async def acquire_connection(
    pool: asyncpg.Pool,
    *,
    timeout: float | None = None,
) -> AsyncGenerator[asyncpg.Connection, None]:
    """Borrow a connection, turning an acquire timeout into ``ConnectionPoolExhausted``."""
    try:
        async with pool.acquire(timeout=timeout) as conn:
            yield conn
    except asyncio.TimeoutError as e:
        raise ConnectionPoolExhausted(f"No database connection became free within {timeout}s", e) from e


@asynccontextmanager
async def transaction(pool: asyncpg.Pool, *, timeout: float | None = None) -> AsyncGenerator[asyncpg.Connection, None]:
    """Borrow a connection with an open read-committed transaction.

    Used where a message write and its session bookkeeping must land together.
    """
    async with acquire_connection(pool, timeout=timeout) as conn, conn.transaction(isolation="read_committed"):
        yield conn


async def check_pool_health(pool: asyncpg.Pool) -> DatabaseHealth:
    """Run ``SELECT 1`` and report pool occupancy; also refreshes the pool gauges."""
    try:
        async with acquire_connection(pool, timeout=HEALTH_CHECK_TIMEOUT) as conn:
            healthy = await conn.fetchval("SELECT 1") == 1
    except DATABASE_ERRORS as e:
        logger.warning(f"Database health check failed: {e}")
        healthy = False

    size = pool.get_size()
    free = pool.get_idle_size()
    db_pool_size.set(size)
    db_pool_connections.labels(state="free").set(free)
    db_pool_connections.labels(state="used").set(size - free)

    return DatabaseHealth(healthy=healthy, pool_size=size, pool_free=free, pool_used=size - free)


async def graceful_pool_close(pool: asyncpg.Pool, timeout: float = 10.0) -> None:
    """Close the pool, terminating it if borrowed connections are not returned in time.

    ``Pool.close`` waits for every borrowed connection to be released. Callers
    that still hold work needing a connection (pending chat turn writes) must
    finish it before calling this.
    """
    try:
        await asyncio.wait_for(pool.close(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Database pool did not close within {timeout}s; terminating open connections")
        pool.terminate()
