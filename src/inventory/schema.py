"""
Database schema for tracked folders and their files.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


def create_inventory_db(db_path: Path) -> None:
    """Create the inventory database and its tables."""
    conn = connect(db_path)
    try:
        create_tables(conn)
    finally:
        conn.close()


def create_tables(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS folders (
            folder_id INTEGER PRIMARY KEY,
            path TEXT UNIQUE NOT NULL,
            active INTEGER NOT NULL DEFAULT 0
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS files (
            file_id INTEGER PRIMARY KEY,
            folder_id INTEGER NOT NULL,
            path TEXT NOT NULL,
            hash TEXT,
            mime_type TEXT,
            modified INTEGER,
            width INTEGER,
            height INTEGER,
            original_size INTEGER,
            optimized_size INTEGER,
            percent INTEGER,
            optimization_level INTEGER,
            status TEXT,
            FOREIGN KEY (folder_id) REFERENCES folders (folder_id),
            UNIQUE (folder_id, path)
        )
        """
    )
    # Added after the first release; older inventories lack it.
    _ensure_column(conn, "files", "error", "TEXT")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_folders_active ON folders(active)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_files_folder_id ON files(folder_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_files_path ON files(path)")
    conn.commit()


def connect(db_path: Path) -> sqlite3.Connection:
    """Create a SQLite connection with WAL enabled."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL;")
    return conn


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, column_type: str) -> None:
    """Ensure a column exists on a SQLite table."""
    cursor = conn.execute(f"PRAGMA table_info({table})")
    existing = {row[1] for row in cursor.fetchall()}
    if column in existing:
        return
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
