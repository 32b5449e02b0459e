from __future__ import annotations

import math
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Optional

import psycopg2
from psycopg2 import extras
from psycopg2.pool import PoolError, ThreadedConnectionPool

from .logger import get_logger
from .settings import Settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "todos"
    id: str = "id"
    title: str = "title"
    completed: str = "completed"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


COLS = _Cols()

RETURNING_COLUMNS = ", ".join(
    (COLS.id, COLS.title, COLS.completed, COLS.created_at, COLS.updated_at)
)


class DatabaseConnectionError(RuntimeError):
    """Raised when the pool cannot be created or the database is unreachable."""


class PoolTimeoutError(PoolError):
    """No connection became free before the call deadline."""


class BlockingConnectionPool(ThreadedConnectionPool):
    """
    A ThreadedConnectionPool whose ``getconn`` waits for a connection to be
    handed back instead of failing once all ``maxconn`` connections are out.
    """

    def __init__(self, minconn: int, maxconn: int, *args, **kwargs) -> None:
        self._slots = threading.BoundedSemaphore(maxconn)
        super().__init__(minconn, maxconn, *args, **kwargs)

    def getconn(self, key=None, timeout: Optional[float] = None):
        if not self._slots.acquire(timeout=timeout):
            raise PoolTimeoutError(f"No connection available within {timeout:.3f}s")
        try:
            return super().getconn(key)
        except BaseException:
            self._slots.release()
            raise

    def putconn(self, conn=None, key=None, close: bool = False) -> None:
        try:
            super().putconn(conn, key, close)
        finally:
            self._slots.release()


def _connect_timeout(timeout: float) -> int:
    # libpq only accepts whole seconds
    return max(1, int(math.ceil(timeout)))


def _statement_timeout_ms(remaining: float) -> int:
    # 0 would disable the server-side timeout altogether
    return max(1, int(math.ceil(remaining * 1000)))


# PUBLIC_INTERFACE
def create_pool(settings: Settings) -> BlockingConnectionPool:
    """
    Create the process-wide connection pool and verify the database answers.

    Connections are opened with a ``connect_timeout`` and TCP keepalives sized
    from the call timeout, so neither a slow connect nor a dead peer can hang a
    request indefinitely.

    Raises:
        DatabaseConnectionError: if DATABASE_URL is missing, the pool cannot be
        opened, or the initial ping fails.
    """
    if not settings.database_url:
        raise DatabaseConnectionError("DATABASE_URL is not set")

    connect_timeout = _connect_timeout(settings.db_timeout_seconds)
    try:
        pool = BlockingConnectionPool(
            settings.db_pool_min_size,
            settings.db_pool_max_size,
            dsn=settings.database_url,
            connect_timeout=connect_timeout,
            keepalives=1,
            keepalives_idle=connect_timeout,
            keepalives_interval=1,
            keepalives_count=3,
        )
    except psycopg2.Error as e:
        logger.error(f"Unable to open database pool: {e}")
        raise DatabaseConnectionError("Unable to connect to database") from e

    try:
        ping(pool, settings.db_timeout_seconds)
    except psycopg2.Error as e:
        logger.error(f"Unable to ping database: {e}")
        pool.closeall()
        raise DatabaseConnectionError("Unable to ping database") from e

    logger.info(
        f"Connected to database (pool size {settings.db_pool_min_size}..{settings.db_pool_max_size})"
    )
    return pool


# PUBLIC_INTERFACE
def close_pool(pool: BlockingConnectionPool) -> None:
    """Close every connection held by the pool."""
    if pool.closed:
        return
    pool.closeall()
    logger.info("Database connection pool closed")


@contextmanager
def transaction(pool: BlockingConnectionPool, timeout: float) -> Generator[extras.RealDictCursor, None, None]:
    """
    Borrow a connection for the duration of one transaction.

    ``timeout`` is a single deadline for the whole call: waiting for a free
    connection uses part of it, and whatever is left becomes the transaction's
    ``SET LOCAL statement_timeout``. Commits on success, rolls back on any
    error, and always hands the connection back.

    Raises:
        PoolTimeoutError: no connection was free before the deadline.
    """
    if timeout <= 0:
        raise ValueError(f"timeout must be positive, got {timeout}")
    deadline = time.monotonic() + timeout
    conn = pool.getconn(timeout=timeout)
    try:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise PoolTimeoutError("Call deadline passed while waiting for a connection")
        with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
            cur.execute("SET LOCAL statement_timeout = %s", (_statement_timeout_ms(remaining),))
            yield cur
        conn.commit()
    except BaseException:
        if not conn.closed:
            conn.rollback()
        raise
    finally:
        pool.putconn(conn, close=bool(conn.closed))


def ping(pool: BlockingConnectionPool, timeout: float) -> None:
    with transaction(pool, timeout) as cur:
        cur.execute("SELECT 1")
        cur.fetchone()


# PUBLIC_INTERFACE
def init_schema(pool: BlockingConnectionPool, timeout: float) -> None:
    """Create the todos table and its ordering index when they do not exist yet."""
    with transaction(pool, timeout) as cur:
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {COLS.table} (
                {COLS.id} SERIAL PRIMARY KEY,
                {COLS.title} TEXT NOT NULL,
                {COLS.completed} BOOLEAN NOT NULL DEFAULT FALSE,
                {COLS.created_at} TIMESTAMP NOT NULL DEFAULT NOW(),
                {COLS.updated_at} TIMESTAMP NOT NULL DEFAULT NOW()
            )
            """
        )
        cur.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{COLS.table}_created_at ON {COLS.table}({COLS.created_at})"
        )
    logger.info(f"Schema for table '{COLS.table}' is ready")
