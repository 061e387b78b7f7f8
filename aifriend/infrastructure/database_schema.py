"""
Database schema initialization for AI Friend.

Two tables emulate a minimal Redis-style key-value store: plain keys holding
JSON text, and named sets of members.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from aifriend.observability.logging import get_logger

logger = get_logger(__name__)


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Safe to run multiple times - uses CREATE TABLE IF NOT EXISTS.

    Args:
        db_path: Path to the database file

    Side Effects:
    - Creates tables in aifriend.db if they don't exist
    - Creates the data/ directory if needed
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv_entries (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS kv_set_members (
                set_name TEXT NOT NULL,
                member TEXT NOT NULL,
                added_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (set_name, member)
            );

            CREATE INDEX IF NOT EXISTS idx_kv_set_members_set
                ON kv_set_members(set_name);
        """)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database schema ready at %s", db_path)
