"""
Database module for SmartNote.

SQLite storage for keyed JSON blobs: the note collection lives under one key,
the calendar token under another. Each blob is rewritten whole on every
mutation.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from smartnote.config import get_db_path

# Schema version for migrations
SCHEMA_VERSION = 1

NOTES_KEY = "notes"
CALENDAR_TOKEN_KEY = "calendar_token"

SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Keyed blobs
CREATE TABLE IF NOT EXISTS blobs (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,                    -- JSON
    updated_at TEXT NOT NULL                -- ISO 8601
);
"""


class Database:
    """SQLite keyed-blob store for SmartNote."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()
        self._ensure_db()

    def _ensure_db(self) -> None:
        """Ensure database exists and schema is current."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)
            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,)
            )

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_blob(self, key: str) -> str | None:
        """Return the blob stored under key, or None."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM blobs WHERE key = ?", (key,)
            ).fetchone()
            if row:
                return row["value"]
        return None

    def set_blob(self, key: str, value: str) -> None:
        """Write (or overwrite) the blob under key."""
        now = datetime.now(timezone.utc).isoformat()

        with self._connect() as conn:
            conn.execute("""
                INSERT INTO blobs (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
            """, (key, value, now))

    def delete_blob(self, key: str) -> bool:
        """Remove the blob under key. Returns True if one existed."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM blobs WHERE key = ?", (key,))
            return cursor.rowcount > 0
