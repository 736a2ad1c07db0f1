"""Connectivity monitor for stocksync.

Periodically checks the remote and feeds the result to the orchestrator's
set_online()/set_offline(). Callers that have their own connectivity signal
can skip the monitor and call those methods directly.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from .gateway import RemoteGateway
from .sync_engine import SyncOrchestrator

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Background thread probing the remote at a fixed interval."""

    def __init__(
        self,
        gateway: RemoteGateway,
        orchestrator: SyncOrchestrator,
        interval: float = 15.0,
    ) -> None:
        self.gateway = gateway
        self.orchestrator = orchestrator
        self.interval = interval
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def check_once(self) -> bool:
        """Check the remote and update the orchestrator.

        Returns:
            True if the remote is reachable
        """
        status = self.gateway.check_status()
        reachable = bool(status.get("reachable"))
        if reachable:
            self.orchestrator.set_online()
        else:
            if self.orchestrator.is_online():
                logger.warning(f"Remote unreachable: {status.get('error')}")
            self.orchestrator.set_offline()
        return reachable

    def start(self) -> None:
        """Start the monitor thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="stocksync-connectivity", daemon=True
        )
        self._thread.start()
        logger.info(f"Connectivity monitor started (every {self.interval}s)")

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.check_once()
            except Exception as e:
                logger.error(f"Connectivity check failed: {e}")
            self._stop.wait(self.interval)

    def stop(self) -> None:
        """Stop the monitor thread."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
