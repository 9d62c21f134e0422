"""SQLite cache index storage implementation."""

import sqlite3
from datetime import datetime
from pathlib import Path

from .models import CacheEntry


class CacheStorage:
    """SQLite-based index of cached audio artifacts.

    Stores the key -> path mapping for several named caches in one database
    while the audio files themselves live on the filesystem. Lets a cache
    survive process restarts.
    """

    def __init__(self, cache_dir: Path):
        """Initialize cache storage with database in given directory.

        Args:
            cache_dir: Directory containing cache database
        """
        self.cache_dir = cache_dir

        # Create cache directory if it doesn't exist
        cache_dir.mkdir(parents=True, exist_ok=True)

        self.db_path = cache_dir / "artifacts.db"
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection with WAL mode for concurrency."""
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=30.0,  # 30 second timeout if locked
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _init_db(self) -> None:
        """Initialize database schema with tables and indexes."""
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS artifacts (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    path TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_created_at
                ON artifacts(namespace, created_at)
            """)
            conn.commit()
        finally:
            conn.close()

    def save(self, namespace: str, entry: CacheEntry) -> None:
        """Save cache entry, replacing any existing entry for the same key.

        Args:
            namespace: Name of the cache the entry belongs to
            entry: Cache entry to save
        """
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO artifacts (namespace, key, path, created_at)
                VALUES (?, ?, ?, ?)
            """,
                (namespace, entry.key, str(entry.path), entry.created_at.isoformat()),
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, namespace: str, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key.

        Returns:
            Cache entry if found, None otherwise
        """
        conn = self._get_connection()
        try:
            row = conn.execute(
                """
                SELECT key, path, created_at FROM artifacts
                WHERE namespace = ? AND key = ?
            """,
                (namespace, key),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return self._row_to_entry(row)

    def delete(self, namespace: str, key: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                "DELETE FROM artifacts WHERE namespace = ? AND key = ?",
                (namespace, key),
            )
            conn.commit()
        finally:
            conn.close()

    def entries(self, namespace: str) -> list[CacheEntry]:
        """Return all entries of a namespace, oldest first."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT key, path, created_at FROM artifacts
                WHERE namespace = ?
                ORDER BY created_at
            """,
                (namespace,),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_entry(row) for row in rows]

    def count(self, namespace: str) -> int:
        conn = self._get_connection()
        try:
            (total,) = conn.execute(
                "SELECT COUNT(*) FROM artifacts WHERE namespace = ?", (namespace,)
            ).fetchone()
        finally:
            conn.close()
        return total

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> CacheEntry:
        # Convert stored strings back to proper types
        return CacheEntry(
            key=row["key"],
            path=Path(row["path"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
