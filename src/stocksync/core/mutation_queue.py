"""Durable mutation queue for stocksync.

The queue is an ordered log of pending remote effects, at most one per
(collection, record id). Enqueuing for a key that is already pending
replaces that entry's action and payload in place, so the remote only ever
receives the latest state of a record.

Every change is written to the durable store before the in-memory list is
touched; if the write fails, DurableStoreError propagates and the queue is
unchanged.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from uuid6 import uuid7

from .database import DurableStore
from .models import Action, Collection, QueueEntry
from .timestamp_utils import current_timestamp_ms

logger = logging.getLogger(__name__)


class MutationQueue:
    """Ordered, durable, merge-on-enqueue queue of QueueEntry objects."""

    def __init__(self, durable: DurableStore) -> None:
        self.durable = durable
        self._entries: List[QueueEntry] = []
        self._lock = threading.RLock()

    def load(self) -> int:
        """Reload the queue from durable state (startup recovery).

        Returns:
            Number of pending entries
        """
        with self._lock:
            self._entries = self.durable.load_queue()
            logger.info(f"Loaded sync queue with {len(self._entries)} pending entries")
            return len(self._entries)

    def _find(self, collection: Collection, record_id: str) -> Optional[int]:
        for index, entry in enumerate(self._entries):
            if entry.collection == collection and entry.record_id == record_id:
                return index
        return None

    def enqueue(self, entry: QueueEntry) -> QueueEntry:
        """Add an entry, replacing any pending entry for the same record.

        Args:
            entry: Entry to add; token and queued_at are filled if missing

        Returns:
            The stored entry
        """
        if not entry.token:
            entry.token = uuid7().hex
        if not entry.queued_at:
            entry.queued_at = current_timestamp_ms()

        with self._lock:
            updated = list(self._entries)
            index = self._find(entry.collection, entry.record_id)
            if index is None:
                updated.append(entry)
            else:
                previous = updated[index]
                logger.debug(
                    f"Merging {entry.action.value} into pending {previous.action.value} "
                    f"for {entry.collection.value}/{entry.record_id}"
                )
                updated[index] = entry
            self.durable.save_queue(updated)
            self._entries = updated
        return entry

    def push(
        self,
        collection: Collection,
        action: Action,
        record_id: str,
        payload: dict,
    ) -> QueueEntry:
        """Build and enqueue an entry for one record."""
        return self.enqueue(QueueEntry(
            record_id=record_id,
            action=action,
            collection=collection,
            payload=payload,
            queued_at=current_timestamp_ms(),
        ))

    def drain(self) -> List[QueueEntry]:
        """Snapshot of pending entries, oldest surviving insertion first.

        Nothing is removed; callers remove entries once delivered.
        """
        with self._lock:
            return list(self._entries)

    def remove(
        self, collection: Collection, record_id: str, token: Optional[str] = None
    ) -> bool:
        """Remove the pending entry for a record.

        Args:
            collection: Collection of the record
            record_id: Record ID
            token: If given, only remove when the pending entry is still this
                enqueue (a newer entry queued meanwhile must survive)

        Returns:
            True if an entry was removed
        """
        with self._lock:
            index = self._find(collection, record_id)
            if index is None:
                return False
            if token is not None and self._entries[index].token != token:
                logger.debug(
                    f"Keeping newer entry for {collection.value}/{record_id} "
                    f"queued during delivery"
                )
                return False
            updated = self._entries[:index] + self._entries[index + 1:]
            self.durable.save_queue(updated)
            self._entries = updated
            return True

    def pending_for(self, collection: Collection) -> List[QueueEntry]:
        """Pending entries of one collection, in queue order."""
        with self._lock:
            return [e for e in self._entries if e.collection == collection]

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()
