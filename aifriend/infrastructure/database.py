"""Centralized database access

AI Friend keeps its only server-side state (web-push subscriptions) in ONE
SQLite database, aifriend/data/aifriend.db, overridable with
AIFRIEND_DB_PATH. The schema is created lazily on first connection.

Provides:
- ``get_db_connection`` / ``db_transaction`` context managers
- ``retry_on_db_lock`` for transient SQLITE_BUSY errors
- ``KeyValueStore``: keys holding JSON text plus named sets of keys
"""

from __future__ import annotations

import json
import random
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import wraps
from pathlib import Path
from threading import Lock
from typing import Any, TypeVar

from aifriend.config import (
    DB_CONNECT_TIMEOUT,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
)
from aifriend.infrastructure.database_schema import init_database as _init_schema
from aifriend.infrastructure.settings import get_db_path
from aifriend.observability.logging import get_logger
from aifriend.observability.telemetry import counter

F = TypeVar("F", bound=Callable[..., Any])

logger = get_logger(__name__)

_init_lock = Lock()
_initialized_paths: set[Path] = set()


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Decorator to retry database operations on SQLITE_BUSY errors

    Only "database is locked" / "busy" errors are retried, with exponential
    backoff and jitter; any other OperationalError propagates at once.

    Side Effects:
        - Sleeps between retries
        - Logs a warning for each retry and an error when retries run out
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except sqlite3.OperationalError as e:
                    message = str(e).lower()
                    if "locked" not in message and "busy" not in message:
                        raise
                    if attempt >= max_retries:
                        logger.error(
                            "Database lock retry exhausted after %d attempts: %s", max_retries, e
                        )
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    sleep_time = delay + random.uniform(0, delay * DB_RETRY_JITTER)
                    counter("database.lock_retry")
                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.2fs: %s",
                        attempt + 1,
                        max_retries,
                        sleep_time,
                        e,
                    )
                    time.sleep(sleep_time)
            raise RuntimeError("unreachable")  # pragma: no cover

        return wrapper  # type: ignore[return-value]

    return decorator


def init_database(db_path: Path | None = None) -> Path:
    """Create the schema at ``db_path`` (default: configured path) once per process."""
    path = db_path or get_db_path()
    with _init_lock:
        if path not in _initialized_paths:
            _init_schema(path)
            _initialized_paths.add(path)
    return path


def _create_connection(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), timeout=DB_CONNECT_TIMEOUT, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Open a connection to the configured database (context manager)

    Usage:
        with get_db_connection() as conn:
            rows = conn.execute("SELECT key FROM kv_entries").fetchall()

    Yields:
        sqlite3.Connection with Row factory enabled
    """
    conn = _create_connection(init_database())
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def db_transaction() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database transactions

    Automatically commits on success, rolls back on error.
    """
    with get_db_connection() as conn:
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise


class KeyValueStore:
    """
    Key-value store with named sets, on SQLite.

    Values are stored as JSON text; ``get`` returns the decoded value.
    """

    @retry_on_db_lock()
    def set(self, key: str, value: Any) -> None:
        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO kv_entries (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = CURRENT_TIMESTAMP
                """,
                (key, json.dumps(value)),
            )

    def get(self, key: str) -> Any | None:
        with get_db_connection() as conn:
            row = conn.execute("SELECT value FROM kv_entries WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning("Undecodable value for key %s, treating as missing", key)
            return None

    @retry_on_db_lock()
    def delete(self, key: str) -> bool:
        with db_transaction() as conn:
            cursor = conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
            return cursor.rowcount > 0

    @retry_on_db_lock()
    def sadd(self, set_name: str, member: str) -> bool:
        """Add ``member``; False when it was already present."""
        with db_transaction() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO kv_set_members (set_name, member) VALUES (?, ?)",
                (set_name, member),
            )
            return cursor.rowcount > 0

    def smembers(self, set_name: str) -> list[str]:
        """Members in insertion order."""
        with get_db_connection() as conn:
            rows = conn.execute(
                "SELECT member FROM kv_set_members WHERE set_name = ? ORDER BY rowid",
                (set_name,),
            ).fetchall()
        return [row["member"] for row in rows]

    @retry_on_db_lock()
    def srem(self, set_name: str, member: str) -> bool:
        with db_transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM kv_set_members WHERE set_name = ? AND member = ?",
                (set_name, member),
            )
            return cursor.rowcount > 0
