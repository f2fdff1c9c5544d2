"""Database connection pool management.

The pool is opened once during application startup. A failure to reach
PostgreSQL there is fatal (``DatabaseConnectionError``); later failures are
reported per request by the callers.
"""

from __future__ import annotations

import psycopg
from psycopg_pool import AsyncConnectionPool

from indexer_spine.core.errors import DatabaseConnectionError
from indexer_spine.core.logging import get_logger
from indexer_spine.core.settings import IndexerSettings

log = get_logger(__name__)


def create_pool(settings: IndexerSettings) -> AsyncConnectionPool:
    """Build (but do not open) the async connection pool."""
    return AsyncConnectionPool(
        conninfo=settings.database_conninfo,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        open=False,
    )


async def open_pool(pool: AsyncConnectionPool, *, timeout: float = 10.0) -> None:
    """Open the pool and prove connectivity with ``SELECT 1``."""
    try:
        await pool.open(wait=True, timeout=timeout)
        async with pool.connection() as conn:
            await conn.execute("SELECT 1")
    except (psycopg.Error, TimeoutError) as e:
        log.error("database_connection_failed", error=str(e))
        await pool.close()
        raise DatabaseConnectionError(f"Database connection failed: {e}", cause=e) from e
    log.info("database_connected")


async def close_pool(pool: AsyncConnectionPool | None) -> None:
    if pool is not None:
        await pool.close()


async def check_database(pool: AsyncConnectionPool) -> bool:
    """Health check: ``SELECT 1`` through the pool. Raises on failure."""
    async with pool.connection() as conn:
        await conn.execute("SELECT 1")
    return True
