"""Local state for stocksync.

LocalStore is the single owner of the in-memory collections and the
mutation queue. It is constructed at startup, loaded from the durable store,
mutated only through MutationApplier and SyncOrchestrator, and closed at
shutdown. Components receive it explicitly; nothing reaches it globally.

Every collection write goes to the durable store first; memory is updated
only after the write succeeds.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from .database import DurableStore
from .models import COLLECTION_ORDER, LAST_SYNC_KEY, Collection
from .mutation_queue import MutationQueue

logger = logging.getLogger(__name__)

ChangeListener = Callable[[Collection, List[Dict[str, Any]]], None]


class LocalStore:
    """In-memory collections backed by a DurableStore.

    Attributes:
        durable: The durable store
        queue: The mutation queue (shares the durable store)
        lock: Re-entrant lock scoping one logical operation
    """

    def __init__(self, durable: DurableStore) -> None:
        self.durable = durable
        self.queue = MutationQueue(durable)
        self.lock = threading.RLock()
        self._collections: Dict[Collection, List[Dict[str, Any]]] = {
            c: [] for c in Collection
        }
        self._listeners: List[ChangeListener] = []

    def load(self) -> None:
        """Load all collections and the queue from durable state."""
        with self.lock:
            for collection in COLLECTION_ORDER:
                self._collections[collection] = self.durable.load_collection(
                    collection.storage_key
                )
            self.queue.load()
        for collection in COLLECTION_ORDER:
            self._emit(collection)
        logger.info(
            "Loaded local store: "
            + ", ".join(f"{c.value}={len(self._collections[c])}" for c in COLLECTION_ORDER)
        )

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a callback run after every change of a collection.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, collection: Collection) -> None:
        records = self.get_all(collection)
        for listener in list(self._listeners):
            try:
                listener(collection, records)
            except Exception as e:
                logger.error(f"Change listener failed for {collection.value}: {e}")

    def get_all(self, collection: Collection) -> List[Dict[str, Any]]:
        """Copy of a collection, newest first."""
        with self.lock:
            return copy.deepcopy(self._collections[collection])

    def get(self, collection: Collection, record_id: str) -> Optional[Dict[str, Any]]:
        """Copy of one record, or None."""
        with self.lock:
            for record in self._collections[collection]:
                if record.get("id") == record_id:
                    return copy.deepcopy(record)
        return None

    def find(
        self, collection: Collection, predicate: Callable[[Dict[str, Any]], bool]
    ) -> Optional[Dict[str, Any]]:
        """Copy of the first record matching predicate, or None."""
        with self.lock:
            for record in self._collections[collection]:
                if predicate(record):
                    return copy.deepcopy(record)
        return None

    def replace_collection(
        self, collection: Collection, records: List[Dict[str, Any]]
    ) -> None:
        """Persist and install a whole collection, then notify listeners.

        Raises:
            DurableStoreError: If persisting fails (memory is left unchanged)
        """
        records = copy.deepcopy(records)
        with self.lock:
            self.durable.save_collection(collection.storage_key, records)
            self._collections[collection] = records
        self._emit(collection)

    def count(self, collection: Collection) -> int:
        with self.lock:
            return len(self._collections[collection])

    def get_last_sync(self) -> Optional[str]:
        """ISO time of the last pass that refreshed every targeted collection."""
        return self.durable.get_meta(LAST_SYNC_KEY)

    def set_last_sync(self, value: str) -> None:
        self.durable.set_meta(LAST_SYNC_KEY, value)

    def close(self) -> None:
        """Release the durable store."""
        self._listeners.clear()
        self.durable.close()
