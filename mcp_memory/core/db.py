"""
SQLite foundation for the canonical memory store.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from .config import DB_PATH, ensure_db_directory


@contextmanager
def get_db(db_path: str = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    conn = sqlite3.connect(db_path or DB_PATH)
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: str = None):
    """Initialize the database with required tables."""
    ensure_db_directory(db_path)

    with get_db(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS memories (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                tier TEXT NOT NULL CHECK (tier IN ('short', 'long')),
                content TEXT NOT NULL CHECK (length(content) > 0),
                importance REAL NOT NULL DEFAULT 0,
                source TEXT,
                created_at INTEGER NOT NULL,
                updated_at INTEGER
            )
        ''')

        # (user_id, tier) is the primary listing path
        cursor.execute(
            'CREATE INDEX IF NOT EXISTS idx_memories_user_tier '
            'ON memories(user_id, tier, created_at DESC)'
        )

        conn.commit()


def health_check(db_path: str = None):
    """Check database health."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            table_names = [table[0] for table in cursor.fetchall()]
            return 'memories' in table_names
    except sqlite3.Error:
        return False
