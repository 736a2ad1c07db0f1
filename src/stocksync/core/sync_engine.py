"""Sync orchestrator for stocksync.

A sync pass has two phases:
1. Drain: deliver every pending queue entry to the remote, in queue order.
   Delivered entries are removed; failed ones stay queued for the next pass.
2. Pull: fetch each targeted collection in fixed order (Products, Sales,
   Expenses, Customers) and overwrite the local copy with it wholesale. The
   remote is authoritative once the queue has been drained.

Failures are isolated: one failed delivery or one failed fetch never stops
the rest of the pass. Requests are paced with fixed delays because the
remote is rate limited.

The orchestrator moves between OFFLINE, ONLINE and SYNCING. Passes never
overlap; deferred passes run on timer threads and are debounced.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from .config import DEFAULT_SYNC_CONFIG
from .database import DurableStoreError
from .gateway import GatewayError, RemoteGateway
from .models import (
    COLLECTION_ORDER,
    Collection,
    NetworkStatus,
    NotificationKind,
)
from .notifications import NotificationCenter, TimerFactory, start_daemon_timer
from .records import rows_from_wire
from .store import LocalStore
from .timestamp_utils import now_iso
from .validation import validate_collections

logger = logging.getLogger(__name__)

SYNC_SUCCESS_ID = "sync-success"
FETCH_ERROR_ID = "sync-fetch-error"
QUEUE_ERROR_ID = "sync-queue-error"


def delivery_error_id(collection: Collection, record_id: str) -> str:
    """Notification id for the delivery error of one queued record."""
    return f"sync-error-{collection.value}-{record_id}"


@dataclass
class SyncResult:
    """Result of a sync pass."""

    success: bool
    pushed: int = 0  # Queue entries delivered
    pulled: int = 0  # Collections refreshed from the remote
    failed_entries: int = 0
    fetch_errors: List[str] = None  # Collections that could not be fetched
    errors: List[str] = None
    skipped: Optional[str] = None  # Why the pass did not run

    def __post_init__(self):
        if self.fetch_errors is None:
            self.fetch_errors = []
        if self.errors is None:
            self.errors = []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "pushed": self.pushed,
            "pulled": self.pulled,
            "failed_entries": self.failed_entries,
            "fetch_errors": list(self.fetch_errors),
            "errors": list(self.errors),
            "skipped": self.skipped,
        }


class SyncOrchestrator:
    """Runs sync passes between a LocalStore and a RemoteGateway."""

    def __init__(
        self,
        store: LocalStore,
        gateway: RemoteGateway,
        notifications: NotificationCenter,
        sync_config: Optional[Dict[str, float]] = None,
        sleep: Callable[[float], None] = time.sleep,
        timer_factory: Optional[TimerFactory] = None,
        online: bool = True,
    ) -> None:
        """Initialize orchestrator.

        Args:
            store: Local state (collections and queue)
            gateway: Remote backing store
            notifications: Sink for user-visible messages
            sync_config: Pacing and deferral delays (see DEFAULT_SYNC_CONFIG)
            sleep: Function used for pacing between requests
            timer_factory: function(delay, callback) starting a deferred call
            online: Initial connectivity
        """
        self.store = store
        self.gateway = gateway
        self.notifications = notifications
        self.sync_config = dict(DEFAULT_SYNC_CONFIG)
        self.sync_config.update(sync_config or {})
        self._sleep = sleep
        self._timer_factory = timer_factory or start_daemon_timer

        self._status = NetworkStatus.ONLINE if online else NetworkStatus.OFFLINE
        self._state_lock = threading.Lock()
        self._pass_lock = threading.Lock()

        # Deferred sync; None targets means all collections
        self._timer: Any = None
        self._pending_force = False
        self._pending_targets: Optional[Set[Collection]] = set()

    @property
    def status(self) -> NetworkStatus:
        with self._state_lock:
            return self._status

    def is_online(self) -> bool:
        return self.status != NetworkStatus.OFFLINE

    # ===== Connectivity =====

    def set_offline(self) -> None:
        """Connectivity lost: go OFFLINE and drop any deferred sync.

        A pass already running finishes, but leaves the state OFFLINE.
        """
        with self._state_lock:
            if self._status == NetworkStatus.OFFLINE:
                return
            self._status = NetworkStatus.OFFLINE
            self._cancel_timer_locked()
        logger.info("Network offline")

    def set_online(self) -> None:
        """Connectivity restored: go ONLINE and schedule a sync."""
        with self._state_lock:
            if self._status != NetworkStatus.OFFLINE:
                return
            self._status = NetworkStatus.ONLINE
        logger.info("Network online detected")
        self.trigger_sync(delay=self.sync_config["reconnect_delay"])

    # ===== Scheduling =====

    def start(self) -> None:
        """Schedule the startup sync if online."""
        if self.is_online():
            logger.info("Scheduling initial sync")
            self.trigger_sync(delay=self.sync_config["startup_delay"])

    def trigger_sync(
        self,
        force: bool = False,
        collections: Optional[Iterable[Union[str, Collection]]] = None,
        delay: Optional[float] = None,
    ) -> bool:
        """Request a deferred sync pass.

        A request arriving while another is pending merges into it: the
        targeted collections are combined and force is kept if either asked
        for it. The pending timer keeps its original deadline.

        Args:
            force: Run even if a pass is in progress (after it finishes)
            collections: Collections to pull; None for all
            delay: Seconds to wait (default: mutation_delay)

        Returns:
            True if a sync is pending after the call
        """
        targets = validate_collections(collections)
        if delay is None:
            delay = self.sync_config["mutation_delay"]

        with self._state_lock:
            if self._status == NetworkStatus.OFFLINE:
                logger.debug("Offline, sync request ignored")
                return False

            if targets is None or self._pending_targets is None:
                self._pending_targets = None
            else:
                self._pending_targets.update(targets)
            self._pending_force = self._pending_force or force

            if self._timer is None:
                self._timer = self._timer_factory(delay, self._run_deferred)
                logger.debug(f"Sync scheduled in {delay}s")
        return True

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending_force = False
        self._pending_targets = set()

    def _run_deferred(self) -> None:
        with self._state_lock:
            force = self._pending_force
            targets = self._pending_targets
            self._timer = None
            self._pending_force = False
            self._pending_targets = set()

        collections = None if targets is None else [c for c in COLLECTION_ORDER if c in targets]
        try:
            result = self.sync_now(force=force, collections=collections)
            if result.skipped:
                logger.info(f"Deferred sync skipped: {result.skipped}")
        except DurableStoreError as e:
            logger.error(f"Sync pass aborted: {e}")
            self.notifications.notify(NotificationKind.ERROR, f"Sync failed: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error during sync: {e}")

    def has_pending_sync(self) -> bool:
        with self._state_lock:
            return self._timer is not None

    def shutdown(self) -> None:
        """Cancel any deferred sync."""
        with self._state_lock:
            self._cancel_timer_locked()

    # ===== Sync pass =====

    def sync_now(
        self,
        force: bool = False,
        collections: Optional[Iterable[Union[str, Collection]]] = None,
    ) -> SyncResult:
        """Run one sync pass in the calling thread.

        Args:
            force: If a pass is already running, wait for it and then run
                instead of skipping
            collections: Collections to pull; None for all. The whole queue
                is always drained.

        Returns:
            SyncResult; skipped is set when the pass did not run

        Raises:
            DurableStoreError: If local state cannot be persisted
        """
        targets = validate_collections(collections)
        ordered = [c for c in COLLECTION_ORDER if targets is None or c in targets]

        with self._state_lock:
            if self._status == NetworkStatus.OFFLINE:
                return SyncResult(success=False, skipped="offline")
            if self._status == NetworkStatus.SYNCING and not force:
                return SyncResult(success=False, skipped="sync already in progress")

        if not self._pass_lock.acquire(blocking=force):
            return SyncResult(success=False, skipped="sync already in progress")
        try:
            with self._state_lock:
                if self._status == NetworkStatus.OFFLINE:
                    return SyncResult(success=False, skipped="offline")
                self._status = NetworkStatus.SYNCING
            try:
                return self._run_pass(ordered)
            finally:
                with self._state_lock:
                    if self._status == NetworkStatus.SYNCING:
                        self._status = NetworkStatus.ONLINE
        finally:
            self._pass_lock.release()

    def _run_pass(self, collections: List[Collection]) -> SyncResult:
        logger.info(
            "Starting sync pass, targeting: "
            + ", ".join(c.value for c in collections)
        )
        self.notifications.dismiss(SYNC_SUCCESS_ID)
        result = SyncResult(success=True)

        self._drain(result)
        self._pull(collections, result)

        if result.fetch_errors:
            result.success = False
            self.notifications.notify(
                NotificationKind.WARNING,
                "Could not fetch some data from the server "
                f"({', '.join(result.fetch_errors)}). Check the connection.",
                notification_id=FETCH_ERROR_ID,
            )
        else:
            self.notifications.dismiss(FETCH_ERROR_ID)
            self.store.set_last_sync(now_iso())
            self.notifications.notify(
                NotificationKind.SUCCESS,
                "Sync complete",
                notification_id=SYNC_SUCCESS_ID,
                timeout=self.sync_config["success_notification_timeout"],
            )

        logger.info(
            f"Sync pass finished: pushed={result.pushed}, failed={result.failed_entries}, "
            f"pulled={result.pulled}, fetch_errors={len(result.fetch_errors)}"
        )
        return result

    def _drain(self, result: SyncResult) -> None:
        """Deliver a snapshot of the queue; entries queued meanwhile wait for the next pass."""
        entries = self.store.queue.drain()
        if not entries:
            self.notifications.dismiss(QUEUE_ERROR_ID)
            return
        logger.info(f"Draining {len(entries)} queued mutations")

        for position, entry in enumerate(entries):
            if position > 0:
                self._sleep(self.sync_config["drain_delay"])
            error_id = delivery_error_id(entry.collection, entry.record_id)
            try:
                self.gateway.apply_mutation(entry.collection, entry.action, entry.payload)
            except GatewayError as e:
                result.failed_entries += 1
                result.errors.append(
                    f"{entry.action.value} {entry.collection.value}/{entry.record_id}: {e}"
                )
                logger.error(
                    f"Failed to sync {entry.action.value} for "
                    f"{entry.collection.value}/{entry.record_id}: {e}"
                )
                self.notifications.notify(
                    NotificationKind.ERROR,
                    f"Failed to sync an item ({entry.action.value}) in "
                    f"{entry.collection.value}. Will retry later.",
                    notification_id=error_id,
                )
                continue

            self.notifications.dismiss(error_id)
            try:
                self.store.queue.remove(entry.collection, entry.record_id, token=entry.token)
            except DurableStoreError as e:
                # Delivered but still queued; redelivery is idempotent
                result.errors.append(f"Failed to update sync queue: {e}")
                logger.error(f"Failed to update sync queue: {e}")
                self.notifications.notify(
                    NotificationKind.ERROR,
                    "Error while processing the sync queue.",
                    notification_id=QUEUE_ERROR_ID,
                )
                return
            result.pushed += 1
        self.notifications.dismiss(QUEUE_ERROR_ID)

    def _pull(self, collections: List[Collection], result: SyncResult) -> None:
        for collection in collections:
            self._sleep(self.sync_config["fetch_delay"])
            try:
                logger.info(f"Fetching {collection.value}...")
                rows = self.gateway.fetch_collection(collection)
            except GatewayError as e:
                logger.warning(
                    f"Skipping {collection.value} due to fetch error, "
                    f"will retry next pass: {e}"
                )
                result.fetch_errors.append(collection.value)
                result.errors.append(f"Fetch {collection.value}: {e}")
            else:
                records = rows_from_wire(collection, rows)
                self.store.replace_collection(collection, records)
                result.pulled += 1
                logger.info(f"{collection.value} synced ({len(records)} records)")

            if len(collections) > 1:
                self._sleep(self.sync_config["collection_delay"])
