"""Stock level alerts derived from the Products collection."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

from .models import Collection, NotificationKind
from .notifications import NotificationCenter
from .store import LocalStore

logger = logging.getLogger(__name__)

OUT_OF_STOCK_ID = "stock-out"
LOW_STOCK_ID = "stock-low"


def _stock_of(product: Dict[str, Any]) -> float:
    try:
        return float(product.get("stock") or 0)
    except (TypeError, ValueError):
        return 0.0


def _describe(products: List[Dict[str, Any]], limit: int) -> str:
    names = ", ".join(str(p.get("name") or p.get("id")) for p in products[:limit])
    remaining = len(products) - limit
    if remaining > 0:
        names = f"{names} and {remaining} more"
    return names


class StockAlertNotifier:
    """Keeps the out-of-stock / low-stock notifications in line with Products.

    At most one of the two alerts is shown: out of stock takes precedence.
    """

    def __init__(
        self,
        notifications: NotificationCenter,
        threshold: int = 10,
        name_limit: int = 3,
    ) -> None:
        self.notifications = notifications
        self.threshold = threshold
        self.name_limit = name_limit

    def recompute(self, products: List[Dict[str, Any]]) -> None:
        """Replace the stock alerts for the given product list."""
        self.notifications.dismiss(OUT_OF_STOCK_ID)
        self.notifications.dismiss(LOW_STOCK_ID)

        out_of_stock = [p for p in products if _stock_of(p) <= 0]
        low_stock = [p for p in products if 0 < _stock_of(p) < self.threshold]

        if out_of_stock:
            self.notifications.notify(
                NotificationKind.ERROR,
                f"Alert: {len(out_of_stock)} products are out of stock: "
                f"{_describe(out_of_stock, self.name_limit)}",
                notification_id=OUT_OF_STOCK_ID,
                prepend=True,
            )
        elif low_stock:
            self.notifications.notify(
                NotificationKind.WARNING,
                f"Alert: {len(low_stock)} products are running low: "
                f"{_describe(low_stock, self.name_limit)}",
                notification_id=LOW_STOCK_ID,
                prepend=True,
            )

    def attach(self, store: LocalStore) -> Callable[[], None]:
        """Recompute whenever the Products collection changes.

        Returns:
            Function that detaches the notifier
        """

        def on_change(collection: Collection, records: List[Dict[str, Any]]) -> None:
            if collection == Collection.PRODUCTS:
                self.recompute(records)

        return store.subscribe(on_change)
