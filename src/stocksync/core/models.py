"""Data models for stocksync.

This module defines the enums and dataclasses shared by the sync engine:
Collection, Action, NetworkStatus, NotificationKind, QueueEntry and
Notification.

Records themselves are plain JSON-serializable dicts; see records.py for
the per-collection field layout.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class Collection(Enum):
    """The four record collections, valued by their remote sheet name."""

    PRODUCTS = "Products"
    SALES = "Sales"
    EXPENSES = "Expenses"
    CUSTOMERS = "Customers"

    @property
    def storage_key(self) -> str:
        """Key of this collection in the durable store."""
        return STORAGE_KEYS[self]


class Action(Enum):
    """Remote effect carried by a queue entry."""

    ADD = "ADD"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class NetworkStatus(Enum):
    """States of the sync orchestrator."""

    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    SYNCING = "SYNCING"


class NotificationKind(Enum):
    """Severity of a user-visible notification."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"

    @property
    def is_transient(self) -> bool:
        """info/success notifications dismiss themselves."""
        return self in (NotificationKind.INFO, NotificationKind.SUCCESS)


# Pull order is fixed: products first so stock alerts refresh early
COLLECTION_ORDER = (
    Collection.PRODUCTS,
    Collection.SALES,
    Collection.EXPENSES,
    Collection.CUSTOMERS,
)

STORAGE_KEYS: Dict[Collection, str] = {
    Collection.PRODUCTS: "products",
    Collection.SALES: "sales",
    Collection.EXPENSES: "expenses",
    Collection.CUSTOMERS: "customers",
}
QUEUE_KEY = "sync_queue"
LAST_SYNC_KEY = "last_sync"

SALE_STATUSES = ("Paid", "Pending", "Cancelled")


@dataclass
class QueueEntry:
    """A durable record of one pending remote effect for one record.

    Attributes:
        record_id: ID of the affected record
        action: ADD, UPDATE or DELETE
        collection: Collection the record belongs to
        payload: Full record in wire shape (post-mapping)
        queued_at: Enqueue time, epoch milliseconds
        token: Identifies this particular enqueue (uuid7 hex)
    """

    record_id: str
    action: Action
    collection: Collection
    payload: Dict[str, Any]
    queued_at: int
    token: str = ""

    @property
    def key(self) -> tuple:
        return (self.collection, self.record_id)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the durable store."""
        return {
            "id": self.record_id,
            "action": self.action.value,
            "sheet": self.collection.value,
            "payload": self.payload,
            "timestamp": self.queued_at,
            "token": self.token,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueueEntry":
        """Deserialize an entry written by to_dict().

        Raises:
            KeyError, ValueError: If the stored entry is malformed
        """
        return cls(
            record_id=str(data["id"]),
            action=Action(data["action"]),
            collection=Collection(data["sheet"]),
            payload=dict(data.get("payload") or {}),
            queued_at=int(data.get("timestamp") or 0),
            token=data.get("token") or "",
        )


@dataclass
class Notification:
    """A user-visible message.

    Attributes:
        id: Stable identity; notifying with an existing id replaces it
        kind: Severity
        message: Text shown to the user
    """

    id: str
    kind: NotificationKind
    message: str
    created_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "message": self.message,
            "created_at": self.created_at,
        }
