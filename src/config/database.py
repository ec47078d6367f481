"""
Database connection pool singleton.

The pool is created lazily on first use and shared by every request of the
process. The search executor receives it by injection, so tests can pass any
object with a compatible connection() context manager instead.
"""

from functools import lru_cache
from typing import Optional

from psycopg_pool import ConnectionPool

from config.settings import Settings, get_settings
from core.logging import get_logger

logger = get_logger(__name__)


class DatabasePoolError(Exception):
    """Raised when the connection pool cannot be created."""
    pass


def build_pool(settings: Settings, open: bool = True) -> ConnectionPool:
    """
    Create a connection pool from settings.

    Each connection gets the configured statement_timeout as a session
    option, so a runaway query is cancelled by the server.
    """
    kwargs = {}
    if settings.db_statement_timeout_ms:
        kwargs["options"] = f"-c statement_timeout={settings.db_statement_timeout_ms}"

    return ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        kwargs=kwargs,
        name="searchbox",
        open=open,
    )


@lru_cache(maxsize=1)
def get_pool() -> ConnectionPool:
    """
    Get the singleton connection pool.

    Returns:
        ConnectionPool: The shared psycopg pool (opened)

    Raises:
        DatabasePoolError: If the pool cannot be created
    """
    settings = get_settings()
    try:
        pool = build_pool(settings)
    except Exception as e:
        raise DatabasePoolError(f"Failed to create connection pool: {e}") from e
    logger.info(
        "Connection pool opened",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    return pool


def get_pool_optional() -> Optional[ConnectionPool]:
    """
    Get the pool, returning None if it cannot be created.

    Used by health checks to report degraded status instead of failing.
    """
    try:
        return get_pool()
    except DatabasePoolError:
        return None


def close_pool() -> None:
    """Close the singleton pool if it was created."""
    if get_pool.cache_info().currsize:
        get_pool().close()
        get_pool.cache_clear()
        logger.info("Connection pool closed")


def check_pool(pool: ConnectionPool) -> bool:
    """Run a trivial query to confirm the database is reachable."""
    with pool.connection() as conn:
        conn.execute("SELECT 1")
    return True
