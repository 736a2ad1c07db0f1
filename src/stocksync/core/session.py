"""Wires the stocksync components together.

SyncSession owns one LocalStore, one NotificationCenter, one
SyncOrchestrator and the stock alerts. Interfaces (the CLI, an embedding
application) use it instead of building the components themselves.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from .applier import MutationApplier, SaleReceipt
from .config import Config
from .connectivity import ConnectivityMonitor
from .database import DurableStore
from .gateway import HttpGateway, RemoteGateway
from .models import Collection
from .notifications import NotificationCenter, TimerFactory
from .reports import sales_summary
from .stock_alerts import StockAlertNotifier
from .store import LocalStore
from .sync_engine import SyncOrchestrator, SyncResult
from .validation import validate_collection

logger = logging.getLogger(__name__)

# Collections touched by recording a sale
SALE_COLLECTIONS = [Collection.SALES, Collection.PRODUCTS, Collection.CUSTOMERS]


class SyncSession:
    """A running stocksync client.

    Attributes:
        config: Configuration
        store: Local collections and queue
        notifications: User-visible messages
        orchestrator: Sync state machine
        applier: Local mutations
    """

    def __init__(
        self,
        config: Config,
        gateway: Optional[RemoteGateway] = None,
        auto_sync: bool = True,
        monitor_connectivity: bool = False,
        timer_factory: Optional[TimerFactory] = None,
        sleep: Optional[Any] = None,
        online: bool = True,
    ) -> None:
        """Build the components.

        Args:
            config: Configuration
            gateway: Remote gateway (default: HttpGateway for the configured URL)
            auto_sync: Schedule a sync after start and after each mutation
            monitor_connectivity: Run a ConnectivityMonitor thread
            timer_factory: Timer used for deferred work (tests pass a manual one)
            sleep: Pacing function (default: time.sleep)
            online: Initial connectivity
        """
        self.config = config
        self.auto_sync = auto_sync
        self.gateway = gateway or HttpGateway(
            config.get_remote_url(), timeout=config.get_request_timeout()
        )
        self.store = LocalStore(DurableStore(config.get_database_file()))
        self.notifications = NotificationCenter(
            timeout=config.get_notification_timeout(), timer_factory=timer_factory
        )
        orchestrator_kwargs: Dict[str, Any] = {}
        if sleep is not None:
            orchestrator_kwargs["sleep"] = sleep
        self.orchestrator = SyncOrchestrator(
            self.store,
            self.gateway,
            self.notifications,
            sync_config=config.get_sync_config(),
            timer_factory=timer_factory,
            online=online,
            **orchestrator_kwargs,
        )
        self.applier = MutationApplier(self.store)
        self.stock_alerts = StockAlertNotifier(
            self.notifications,
            threshold=config.get_low_stock_threshold(),
            name_limit=config.get_alert_name_limit(),
        )
        self.stock_alerts.attach(self.store)
        self.monitor: Optional[ConnectivityMonitor] = None
        if monitor_connectivity:
            self.monitor = ConnectivityMonitor(
                self.gateway, self.orchestrator, config.get_connectivity_interval()
            )

    def start(self) -> None:
        """Load local state and schedule the startup sync."""
        self.store.load()
        if self.auto_sync:
            self.orchestrator.start()
        if self.monitor is not None:
            self.monitor.start()

    def close(self) -> None:
        """Stop background work and release the durable store."""
        if self.monitor is not None:
            self.monitor.stop()
        self.orchestrator.shutdown()
        self.notifications.shutdown()
        self.store.close()

    def __enter__(self) -> "SyncSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _after_mutation(self, collections: List[Collection]) -> None:
        if self.auto_sync:
            self.orchestrator.trigger_sync(force=True, collections=collections)

    # ===== Mutations =====

    def add(self, collection: Union[str, Collection], data: Dict[str, Any]) -> Dict[str, Any]:
        collection = validate_collection(collection)
        record = self.applier.apply_add(collection, data)
        self._after_mutation([collection])
        return record

    def update(
        self, collection: Union[str, Collection], record_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        collection = validate_collection(collection)
        record = self.applier.apply_update(collection, record_id, changes)
        self._after_mutation([collection])
        return record

    def delete(self, collection: Union[str, Collection], record_id: str) -> Dict[str, Any]:
        collection = validate_collection(collection)
        record = self.applier.apply_delete(collection, record_id)
        self._after_mutation([collection])
        return record

    def record_sale(
        self, sale: Dict[str, Any], customer: Optional[Dict[str, Any]] = None
    ) -> SaleReceipt:
        receipt = self.applier.record_sale(sale, customer)
        self._after_mutation(SALE_COLLECTIONS)
        return receipt

    # ===== Queries =====

    def list(self, collection: Union[str, Collection]) -> List[Dict[str, Any]]:
        return self.store.get_all(validate_collection(collection))

    def get(self, collection: Union[str, Collection], record_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(validate_collection(collection), record_id)

    def pending_count(self) -> int:
        return self.store.queue.size()

    def sales_summary(self) -> Dict[str, float]:
        return sales_summary(self.store.get_all(Collection.SALES))

    def sync_now(
        self,
        force: bool = False,
        collections: Optional[Iterable[Union[str, Collection]]] = None,
    ) -> SyncResult:
        return self.orchestrator.sync_now(force=force, collections=collections)

    def status(self) -> Dict[str, Any]:
        """Sync status summary."""
        return {
            "network": self.orchestrator.status.value,
            "pending": self.pending_count(),
            "last_sync": self.store.get_last_sync(),
            "remote_url": getattr(self.gateway, "base_url", None),
        }
