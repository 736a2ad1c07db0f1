"""User-visible notifications for stocksync.

NotificationCenter is the sink the sync engine and the stock alerts report
into. Each notification has a stable id: notifying again with the same id
replaces the earlier message instead of adding a duplicate. info and
success notifications dismiss themselves after a timeout; errors and
warnings stay until dismissed or superseded.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Union

from uuid6 import uuid7

from .models import Notification, NotificationKind
from .timestamp_utils import current_timestamp_ms

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], Any]
NotificationListener = Callable[[List[Notification]], None]


def start_daemon_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """Start a daemon threading.Timer and return it."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class NotificationCenter:
    """Holds the current notifications and informs subscribers of changes."""

    def __init__(
        self,
        timeout: float = 4.0,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        """Initialize notification center.

        Args:
            timeout: Seconds before info/success notifications dismiss themselves
            timer_factory: function(delay, callback) that starts a timer and
                returns an object with cancel(); defaults to a daemon threading.Timer
        """
        self.timeout = timeout
        self._timer_factory = timer_factory or start_daemon_timer
        self._items: List[Notification] = []
        self._timers: Dict[str, Any] = {}
        self._listeners: List[NotificationListener] = []
        self._lock = threading.RLock()

    def notify(
        self,
        kind: Union[NotificationKind, str],
        message: str,
        notification_id: Optional[str] = None,
        timeout: Optional[float] = None,
        prepend: bool = False,
    ) -> str:
        """Show a notification.

        Args:
            kind: error, warning, info or success
            message: Text shown to the user
            notification_id: Stable id; an existing notification with this id is replaced
            timeout: Auto-dismiss delay for info/success (default: self.timeout)
            prepend: Put the notification first instead of last

        Returns:
            The notification id
        """
        kind = NotificationKind(kind)
        notification_id = notification_id or uuid7().hex
        notification = Notification(
            id=notification_id,
            kind=kind,
            message=message,
            created_at=current_timestamp_ms(),
        )

        with self._lock:
            self._remove_locked(notification_id)
            if prepend:
                self._items.insert(0, notification)
            else:
                self._items.append(notification)
            if kind.is_transient:
                delay = self.timeout if timeout is None else timeout
                self._timers[notification_id] = self._timer_factory(
                    delay, lambda: self._expire(notification)
                )

        log = logger.error if kind == NotificationKind.ERROR else (
            logger.warning if kind == NotificationKind.WARNING else logger.info
        )
        log(f"[{kind.value}] {message}")
        self._publish()
        return notification_id

    def _expire(self, notification: Notification) -> None:
        with self._lock:
            # A replacement with the same id has its own timer
            if notification not in self._items:
                return
            self._remove_locked(notification.id)
        self._publish()

    def _remove_locked(self, notification_id: str) -> bool:
        timer = self._timers.pop(notification_id, None)
        if timer is not None:
            timer.cancel()
        before = len(self._items)
        self._items = [n for n in self._items if n.id != notification_id]
        return len(self._items) != before

    def dismiss(self, notification_id: str) -> bool:
        """Remove a notification.

        Returns:
            True if it was present
        """
        with self._lock:
            removed = self._remove_locked(notification_id)
        if removed:
            self._publish()
        return removed

    def get(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            for notification in self._items:
                if notification.id == notification_id:
                    return notification
        return None

    def list(self) -> List[Notification]:
        """Current notifications, in display order."""
        with self._lock:
            return list(self._items)

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """Register a callback receiving the full list after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        items = self.list()
        for listener in list(self._listeners):
            try:
                listener(items)
            except Exception as e:
                logger.error(f"Notification listener failed: {e}")

    def shutdown(self) -> None:
        """Cancel pending auto-dismiss timers."""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
