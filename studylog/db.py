import logging
import os
import queue
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from fastapi import Request

logger = logging.getLogger(__name__)


class PoolTimeout(RuntimeError):
    """No pooled connection became free within the configured timeout."""


def create_connection(db_path: str | Path) -> sqlite3.Connection:
    """Creates a database connection with foreign keys enabled."""
    db_file = Path(db_path)
    # This line ensures the parent directory exists.
    db_file.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_file, check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON")
    # Commits go straight to the main DB file, no shutdown checkpoint needed.
    conn.execute("PRAGMA journal_mode = DELETE")
    return conn


class ConnectionPool:
    """
    Caps how many sqlite connections are checked out at the same time.

    With the default size of 1 every request touching the database is
    serialized process-wide. Callers block until a connection is free, or get
    a `PoolTimeout` once `timeout` seconds have passed.
    """

    def __init__(self, db_path: str | Path, size: int = 1, timeout: float | None = None):
        if size < 1:
            raise ValueError(f"Pool size must be at least 1, got {size}")
        self.db_path = db_path
        self.size = size
        self.timeout = timeout
        self._slots = threading.BoundedSemaphore(size)
        self._idle: queue.LifoQueue[sqlite3.Connection] = queue.LifoQueue(maxsize=size)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        if not self._slots.acquire(timeout=self.timeout):
            raise PoolTimeout(f"No database connection free after {self.timeout}s")
        try:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                conn = create_connection(self.db_path)
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            finally:
                self._idle.put_nowait(conn)
        finally:
            self._slots.release()

    def close(self) -> None:
        while True:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                break
            conn.close()


def pool_from_env() -> ConnectionPool:
    """Builds the connection pool from DB_PATH, DB_POOL_SIZE and DB_POOL_TIMEOUT."""
    db_path = os.environ.get("DB_PATH")
    if not db_path:
        raise ValueError("FATAL: DB_PATH environment variable is not set. Application cannot start.")

    size = int(os.environ.get("DB_POOL_SIZE", "1"))
    timeout_str = os.environ.get("DB_POOL_TIMEOUT")
    timeout = float(timeout_str) if timeout_str else None

    logger.info(f"Using database {db_path} (pool size {size}, timeout {timeout})")
    return ConnectionPool(db_path, size=size, timeout=timeout)


def get_db(request: Request) -> Iterator[sqlite3.Connection]:
    """
    FastAPI dependency that yields a pooled db connection.
    """
    with request.app.state.pool.connection() as conn:
        yield conn
