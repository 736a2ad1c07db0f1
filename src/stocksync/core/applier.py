"""Local mutations for stocksync.

MutationApplier is the only way records are created, changed or removed.
Each operation:
1. validates the input for the collection's RecordKind
2. writes the new collection to memory and the durable store
3. enqueues the matching remote effect with the full wire payload

Recording a sale spans three collections. There is no cross-collection
transaction: the sale, the stock decrement and the customer upsert are
separate mutations applied in order. If a later step fails, earlier steps
stay applied and queued. Each step carries the full state of one record
keyed by its id, so delivering any of them twice is harmless.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from uuid6 import uuid7

from .models import Action, Collection
from .records import get_record_kind
from .store import LocalStore
from .timestamp_utils import current_timestamp_ms, format_datetime, now_iso
from .validation import ValidationError, validate_collection, validate_record_id

logger = logging.getLogger(__name__)


def new_record_id() -> str:
    """Generate a record ID (UUID7 hex: time-ordered, collision-resistant)."""
    return uuid7().hex


@dataclass
class SaleReceipt:
    """Records touched by recording one sale."""

    sale: Dict[str, Any]
    product: Optional[Dict[str, Any]] = None
    customer: Optional[Dict[str, Any]] = None


class MutationApplier:
    """Applies user actions to local state and queues them for the remote."""

    def __init__(self, store: LocalStore) -> None:
        self.store = store

    def apply_add(
        self, collection: Union[str, Collection], data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Create a record.

        Args:
            collection: Target collection
            data: Field values keyed by local field name

        Returns:
            The created record

        Raises:
            ValidationError: If the input is invalid
            DurableStoreError: If persisting fails
        """
        collection = validate_collection(collection)
        kind = get_record_kind(collection)
        cleaned = kind.clean(data, for_add=True)

        record_id = new_record_id()
        record: Dict[str, Any] = {
            "id": record_id,
            "external_id": record_id,
            "created_at": current_timestamp_ms(),
        }
        record.update(cleaned)
        kind.derive_on_add(record)

        with self.store.lock:
            records = self.store.get_all(collection)
            records.insert(0, record)
            self.store.replace_collection(collection, records)
            self.store.queue.push(collection, Action.ADD, record_id, kind.to_wire(record))

        logger.info(f"Added {collection.value} record {record_id}")
        return dict(record)

    def apply_update(
        self,
        collection: Union[str, Collection],
        record_id: str,
        changes: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Merge partial changes into an existing record.

        The record keeps its id and position. The queued UPDATE carries the
        whole merged record, not a diff.

        Raises:
            ValidationError: If the input is invalid or the record does not exist
            DurableStoreError: If persisting fails
        """
        collection = validate_collection(collection)
        record_id = validate_record_id(record_id)
        kind = get_record_kind(collection)
        cleaned = kind.clean(changes, for_add=False)

        with self.store.lock:
            records = self.store.get_all(collection)
            index = _index_of(records, record_id)
            if index is None:
                raise ValidationError("id", f"{collection.value} record {record_id} not found")

            existing = records[index]
            merged = dict(existing)
            merged.update(cleaned)
            merged["external_id"] = existing.get("external_id") or existing["id"]
            merged["modified_at"] = now_iso()
            records[index] = merged

            self.store.replace_collection(collection, records)
            self.store.queue.push(collection, Action.UPDATE, record_id, kind.to_wire(merged))

        logger.info(f"Updated {collection.value} record {record_id}")
        return dict(merged)

    def apply_delete(
        self, collection: Union[str, Collection], record_id: str
    ) -> Dict[str, Any]:
        """Remove a record locally and queue its deletion.

        The queued DELETE carries the pre-deletion record so the remote can
        locate its row.

        Returns:
            The deleted record

        Raises:
            ValidationError: If the record does not exist
            DurableStoreError: If persisting fails
        """
        collection = validate_collection(collection)
        record_id = validate_record_id(record_id)
        kind = get_record_kind(collection)

        with self.store.lock:
            records = self.store.get_all(collection)
            index = _index_of(records, record_id)
            if index is None:
                raise ValidationError("id", f"{collection.value} record {record_id} not found")

            existing = records.pop(index)
            self.store.replace_collection(collection, records)
            self.store.queue.push(collection, Action.DELETE, record_id, kind.to_wire(existing))

        logger.info(f"Deleted {collection.value} record {record_id}")
        return existing

    def decrement_stock(self, product_name: str, quantity: int) -> Optional[Dict[str, Any]]:
        """Reduce a product's stock by quantity, never below zero.

        Returns:
            The updated product, or None if no product has that name
        """
        with self.store.lock:
            product = self.store.find(
                Collection.PRODUCTS, lambda p: p.get("name") == product_name
            )
            if product is None:
                logger.info(f"No product named '{product_name}', stock left unchanged")
                return None
            current = int(product.get("stock") or 0)
            new_stock = max(0, current - int(quantity))
            return self.apply_update(Collection.PRODUCTS, product["id"], {"stock": new_stock})

    def record_customer_purchase(
        self, customer: Dict[str, Any], total: float
    ) -> Optional[Dict[str, Any]]:
        """Upsert a customer by phone number and add a purchase total.

        An existing customer with the same (non-empty) phone gets the total
        added to total_purchases and last_purchase refreshed. Otherwise a new
        customer is created. Without a name or a phone nothing is recorded.

        Returns:
            The updated or created customer, or None
        """
        name = str(customer.get("name") or "").strip()
        phone = str(customer.get("phone") or "").strip()
        address = str(customer.get("address") or "").strip()
        purchased_at = format_datetime()

        if not name and not phone:
            logger.info("Sale has no customer name or phone, skipping customer record")
            return None

        with self.store.lock:
            existing = None
            if phone:
                existing = self.store.find(
                    Collection.CUSTOMERS, lambda c: str(c.get("phone") or "").strip() == phone
                )
            if existing is not None:
                changes: Dict[str, Any] = {
                    "total_purchases": float(existing.get("total_purchases") or 0) + float(total),
                    "last_purchase": purchased_at,
                }
                if address:
                    changes["address"] = address
                return self.apply_update(Collection.CUSTOMERS, existing["id"], changes)

            return self.apply_add(Collection.CUSTOMERS, {
                "name": name or phone,
                "phone": phone,
                "address": address,
                "total_purchases": float(total),
                "last_purchase": purchased_at,
            })

    def record_sale(
        self, sale: Dict[str, Any], customer: Optional[Dict[str, Any]] = None
    ) -> SaleReceipt:
        """Record a sale: add the sale, decrement stock, upsert the customer.

        The three steps run in this order as independent mutations; see the
        module docstring for the partial-failure behavior.

        Args:
            sale: Sale fields (product_name, quantity, price, optional total/status)
            customer: Optional customer fields (name, phone, address)

        Returns:
            SaleReceipt with the records that were written
        """
        customer = customer or {}
        sale_data = dict(sale)
        if customer.get("name") and not sale_data.get("customer"):
            sale_data["customer"] = customer["name"]
        if customer.get("phone"):
            sale_data.setdefault("customer_phone", customer["phone"])
        if customer.get("address"):
            sale_data.setdefault("customer_address", customer["address"])
        sale_data["date"] = format_datetime()

        new_sale = self.apply_add(Collection.SALES, sale_data)
        product = self.decrement_stock(new_sale["product_name"], new_sale["quantity"])
        buyer = self.record_customer_purchase(customer, new_sale["total"])

        logger.info(
            f"Recorded sale {new_sale['id']}: {new_sale['quantity']} x "
            f"'{new_sale['product_name']}' = {new_sale['total']}"
        )
        return SaleReceipt(sale=new_sale, product=product, customer=buyer)


def _index_of(records: list, record_id: str) -> Optional[int]:
    for index, record in enumerate(records):
        if record.get("id") == record_id:
            return index
    return None
