"""
SQLite persistence for the memory store.
One append-only `memories` table plus a small `store_meta` table.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from .config import DB_PATH, ensure_db_directory


@contextmanager
def get_db(db_path: str = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    conn = sqlite3.connect(db_path or DB_PATH, timeout=30)
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: str = None):
    """Initialize the database with required tables."""
    db_path = db_path or DB_PATH
    ensure_db_directory(db_path)

    with get_db(db_path) as conn:
        cursor = conn.cursor()

        # WAL lets readers scan while a writer commits
        cursor.execute('PRAGMA journal_mode=WAL')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS memories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                namespace TEXT NOT NULL,
                text TEXT NOT NULL,
                embedding BLOB NOT NULL,  -- little-endian float32[D]
                created_at INTEGER NOT NULL  -- epoch milliseconds
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS store_meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_memories_created_at ON memories(created_at DESC)')

        conn.commit()


def health_check(db_path: str = None):
    """Check database health."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            table_names = [table[0] for table in cursor.fetchall()]

            required_tables = ['memories', 'store_meta']
            return all(table in table_names for table in required_tables)
    except sqlite3.Error:
        return False
