"""
db/connection.py
----------------
PostgreSQL connection pool shared by the repositories.

Every repository method borrows one connection with `get_connection()`,
commits or rolls back itself, and returns it with `release_connection()`.
Pool bounds come from DB_POOL_MIN / DB_POOL_MAX.
"""

import psycopg2
from psycopg2 import pool

from config import DATABASE_URL, DB_POOL_MAX, DB_POOL_MIN
from utils.logger import get_logger

logger = get_logger(__name__)

_pool: pool.SimpleConnectionPool | None = None


def init_pool(min_conn: int = DB_POOL_MIN, max_conn: int = DB_POOL_MAX, dsn: str = DATABASE_URL) -> None:
    """
    Open the pool; later calls are no-ops while it is open.

    Raises:
        ValueError: If the bounds are inconsistent.
        psycopg2.OperationalError: If the database is unreachable.
    """
    global _pool
    if _pool is not None:
        return
    if min_conn < 0 or max_conn < max(min_conn, 1):
        raise ValueError(f"Invalid pool bounds: min={min_conn}, max={max_conn}")
    try:
        _pool = pool.SimpleConnectionPool(min_conn, max_conn, dsn)
        logger.info(f"Database pool ready ({min_conn}-{max_conn} connections)")
    except psycopg2.OperationalError as e:
        logger.error(f"Failed to initialize database pool: {e}")
        raise


def get_connection():
    """Borrow a connection; RuntimeError until `init_pool()` ran."""
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")
    return _pool.getconn()


def release_connection(conn) -> None:
    """Hand a borrowed connection back, rolling back anything left open."""
    if _pool is None:
        return
    if conn.closed:
        _pool.putconn(conn, close=True)
        return
    if conn.get_transaction_status() != psycopg2.extensions.TRANSACTION_STATUS_IDLE:
        conn.rollback()
    _pool.putconn(conn)


def close_pool() -> None:
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None
        logger.info("Database connection pool closed.")
