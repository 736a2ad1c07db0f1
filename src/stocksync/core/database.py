"""Durable key-value storage for stocksync.

This module persists the four record collections, the mutation queue and a
few metadata values in a single SQLite table. Each key holds one JSON
document, and every write is committed before the method returns, so a
mutation is never reported complete before its durable write has landed.

All methods return JSON-serializable types (dicts, lists, primitives).
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import QUEUE_KEY, QueueEntry
from .timestamp_utils import now_iso

logger = logging.getLogger(__name__)

__all__ = ["DurableStore", "DurableStoreError"]

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class DurableStoreError(Exception):
    """Raised when reading or writing durable state fails."""


class DurableStore:
    """SQLite-backed key-value store for collections and the sync queue."""

    def __init__(self, db_path: Union[Path, str]) -> None:
        """Open (and create if needed) the store.

        Args:
            db_path: Path to the SQLite database file, or ':memory:' for in-memory

        Raises:
            DurableStoreError: If the database cannot be opened
        """
        self.db_path = str(db_path) if isinstance(db_path, Path) else db_path
        self._lock = threading.Lock()
        try:
            self._conn: Optional[sqlite3.Connection] = sqlite3.connect(
                self.db_path, check_same_thread=False
            )
            self._conn.execute(SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise DurableStoreError(f"Cannot open store at {self.db_path}: {e}") from e
        logger.info(f"Opened durable store at {self.db_path}")

    def _get(self, key: str) -> Optional[Any]:
        if self._conn is None:
            raise DurableStoreError("Store is closed")
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
            except sqlite3.Error as e:
                raise DurableStoreError(f"Failed to read '{key}': {e}") from e
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError as e:
            raise DurableStoreError(f"Corrupt value stored under '{key}': {e}") from e

    def _set(self, key: str, value: Any) -> None:
        if self._conn is None:
            raise DurableStoreError("Store is closed")
        try:
            encoded = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise DurableStoreError(f"Value for '{key}' is not serializable: {e}") from e
        with self._lock:
            try:
                with self._conn:
                    self._conn.execute(
                        "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                        (key, encoded, now_iso()),
                    )
            except sqlite3.Error as e:
                raise DurableStoreError(f"Failed to write '{key}': {e}") from e

    def load_collection(self, key: str) -> List[Dict[str, Any]]:
        """Load a collection; a missing key is an empty collection."""
        value = self._get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise DurableStoreError(f"Collection '{key}' is not a list")
        return value

    def save_collection(self, key: str, records: List[Dict[str, Any]]) -> None:
        """Replace a stored collection."""
        self._set(key, list(records))
        logger.debug(f"Saved {len(records)} records under '{key}'")

    def load_queue(self) -> List[QueueEntry]:
        """Load the mutation queue.

        Raises:
            DurableStoreError: If the stored queue cannot be decoded
        """
        value = self._get(QUEUE_KEY) or []
        try:
            return [QueueEntry.from_dict(item) for item in value]
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise DurableStoreError(f"Corrupt sync queue: {e}") from e

    def save_queue(self, entries: List[QueueEntry]) -> None:
        """Replace the stored mutation queue."""
        self._set(QUEUE_KEY, [entry.to_dict() for entry in entries])

    def get_meta(self, key: str, default: Any = None) -> Any:
        """Get a metadata value (e.g. the last sync time)."""
        value = self._get(f"meta:{key}")
        return default if value is None else value

    def set_meta(self, key: str, value: Any) -> None:
        """Set a metadata value."""
        self._set(f"meta:{key}", value)

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug(f"Closed durable store at {self.db_path}")
