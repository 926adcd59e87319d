# =============================================================================
# shop_core/offline/local_cache.py
# Local SQLite Cache for Offline Operations
# =============================================================================
"""
LocalCache - whole-collection JSON blobs persisted across sessions.

Each key holds one JSON document (a collection, the pending-action queue,
the failed-action list or the cached session user). A save overwrites the
previous document entirely; there is no merge and no schema version tag.

An entry that cannot be parsed is logged, reported through `corrupt_keys`
and read as empty rather than raised to the caller.
"""

from __future__ import annotations
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Set, Union

from shop_core.errors import CacheError
from shop_core.logging import get_logger

logger = get_logger(__name__)

MEMORY = ":memory:"


class LocalCache:
    """
    Key/value cache on a single SQLite file.

    Usage:
        cache = LocalCache("local_data/boutique.db")
        cache.save("products", [{"id": "1", "name": "Coca"}])
        cache.load("products")
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS cache_entries (
            key TEXT PRIMARY KEY,
            value TEXT,
            updated_at TEXT
        )
    """

    def __init__(self, db_path: Union[str, Path] = MEMORY):
        self.db_path = str(db_path)
        self.corrupt_keys: Set[str] = set()
        self._lock = threading.RLock()
        self._connection: Optional[sqlite3.Connection] = None
        self._ensure_directory()
        self.initialize()

    def _ensure_directory(self) -> None:
        if self.db_path != MEMORY:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            try:
                self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
            except sqlite3.Error as e:
                raise CacheError(f"Cannot open local cache at {self.db_path}: {e}") from e
            self._connection.row_factory = sqlite3.Row
        return self._connection

    @contextmanager
    def transaction(self):
        """Context manager for cache transactions."""
        with self._lock:
            conn = self._get_connection()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def initialize(self) -> None:
        with self.transaction() as conn:
            conn.execute(self.SCHEMA)
        logger.debug(f"Local cache initialized at: {self.db_path}")

    # =========================================================================
    # RAW VALUES
    # =========================================================================

    def load_value(self, key: str, default: Any = None) -> Any:
        """Return the decoded value stored under key, or default."""
        with self._lock:
            row = self._get_connection().execute(
                "SELECT value FROM cache_entries WHERE key = ?", [key]
            ).fetchone()

        if row is None or row["value"] is None:
            return default

        try:
            value = json.loads(row["value"])
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Corrupt cache entry '{key}' ignored: {e}")
            self.corrupt_keys.add(key)
            return default

        self.corrupt_keys.discard(key)
        return value

    def save_value(self, key: str, value: Any) -> None:
        """Overwrite the entry for key with the JSON encoding of value."""
        try:
            payload = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Value for '{key}' is not serializable: {e}", key=key) from e

        try:
            with self.transaction() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO cache_entries (key, value, updated_at)
                    VALUES (?, ?, ?)
                    """,
                    [key, payload, datetime.now().isoformat()],
                )
        except sqlite3.Error as e:
            raise CacheError(f"Cannot write cache entry '{key}': {e}", key=key) from e
        self.corrupt_keys.discard(key)

    def delete(self, key: str) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM cache_entries WHERE key = ?", [key])

    def keys(self) -> List[str]:
        with self._lock:
            rows = self._get_connection().execute("SELECT key FROM cache_entries ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    def load(self, key: str) -> List[Any]:
        """Return the list stored under key; empty when absent or unusable."""
        value = self.load_value(key, default=[])
        if not isinstance(value, list):
            logger.warning(f"Cache entry '{key}' is not a list, ignoring it")
            self.corrupt_keys.add(key)
            return []
        return value

    def save(self, key: str, records: List[Any]) -> None:
        self.save_value(key, list(records))

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
