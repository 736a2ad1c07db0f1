"""Per-collection record kinds for stocksync.

Each collection has one RecordKind that knows:
- which fields a record has and how user input is validated
- what is derived when a record is created
- how the local (snake_case) shape maps to the remote sheet's columns and back

All kinds are registered in RECORD_KINDS, keyed by Collection, so the
applier and the sync engine never switch on the collection name themselves.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from .models import Collection
from .timestamp_utils import DISPLAY_DATE_FORMAT, format_datetime
from .validation import (
    ValidationError,
    validate_non_negative,
    validate_quantity,
    validate_sale_status,
    validate_stock,
    validate_text,
)

logger = logging.getLogger(__name__)


def _lenient_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _lenient_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


class RecordKind:
    """Field layout and transformations for one collection.

    Subclasses set:
        collection: The Collection handled
        fields: (local name, remote column) pairs
        validators: local name -> function(value, field_name) returning the clean value
        required: local names that must be non-empty on add
        numeric: local name -> coercion applied to values coming from the remote
    """

    collection: Collection
    fields: Tuple[Tuple[str, str], ...] = ()
    validators: Dict[str, Callable[[Any, str], Any]] = {}
    required: Tuple[str, ...] = ()
    numeric: Dict[str, Callable[[Any], Any]] = {}

    @property
    def field_names(self) -> List[str]:
        return [local for local, _ in self.fields]

    def clean(self, data: Dict[str, Any], for_add: bool = True) -> Dict[str, Any]:
        """Validate user input for this kind.

        Args:
            data: Field values keyed by local name
            for_add: Check required fields (partial updates skip this)

        Returns:
            New dict with validated, coerced values

        Raises:
            ValidationError: If a field is unknown or invalid
        """
        cleaned: Dict[str, Any] = {}
        known = set(self.field_names)
        for name, value in data.items():
            if name not in known:
                raise ValidationError(
                    name, f"unknown field for {self.collection.value}"
                )
            validator = self.validators.get(name, validate_text)
            cleaned[name] = validator(value, name)

        if for_add:
            for name in self.required:
                value = cleaned.get(name)
                if value is None or (isinstance(value, str) and not value.strip()):
                    raise ValidationError(name, "is required")
        return cleaned

    def derive_on_add(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Fill derived fields of a freshly created record."""
        return record

    def to_wire(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Map a local record to the remote column layout."""
        row: Dict[str, Any] = {"id": record["id"]}
        row["ID"] = record.get("external_id") or record["id"]
        row["timestamp"] = record.get("created_at")
        if record.get("modified_at"):
            row["ModifiedAt"] = record["modified_at"]
        for local, remote in self.fields:
            if local in record:
                row[remote] = record[local]
        return row

    def from_wire(self, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Map a remote row to a local record.

        Returns:
            The local record, or None if the row has no usable id
        """
        raw_id = row.get("id") or row.get("ID")
        if raw_id is None or str(raw_id).strip() == "":
            return None
        record_id = str(raw_id).strip()

        record: Dict[str, Any] = {"id": record_id, "external_id": record_id}
        created_at = row.get("timestamp")
        record["created_at"] = _lenient_int(created_at) if created_at not in (None, "") else None
        if row.get("ModifiedAt"):
            record["modified_at"] = str(row["ModifiedAt"])

        for local, remote in self.fields:
            if remote not in row:
                continue
            value = row[remote]
            coerce = self.numeric.get(local)
            if coerce is not None:
                value = coerce(value)
            elif value is None:
                value = ""
            else:
                value = str(value) if not isinstance(value, str) else value
            record[local] = value
        return record


class ProductKind(RecordKind):
    collection = Collection.PRODUCTS
    fields = (
        ("name", "Name"),
        ("category", "Category"),
        ("price", "Price"),
        ("cost", "Cost"),
        ("stock", "Stock"),
        ("description", "Description"),
        ("image", "Image"),
    )
    validators = {
        "price": validate_non_negative,
        "cost": validate_non_negative,
        "stock": validate_stock,
    }
    required = ("name",)
    numeric = {"price": _lenient_float, "cost": _lenient_float, "stock": _lenient_int}

    def derive_on_add(self, record: Dict[str, Any]) -> Dict[str, Any]:
        record.setdefault("stock", 0)
        record.setdefault("price", 0.0)
        record.setdefault("cost", 0.0)
        return record


class SaleKind(RecordKind):
    collection = Collection.SALES
    fields = (
        ("product_name", "ProductName"),
        ("quantity", "Quantity"),
        ("price", "Price"),
        ("total", "Total"),
        ("customer", "Customer"),
        ("status", "Status"),
        ("invoice_number", "InvoiceNumber"),
        ("date", "Date"),
        ("customer_phone", "CustomerPhone"),
        ("customer_address", "CustomerAddress"),
    )
    validators = {
        "quantity": validate_quantity,
        "price": validate_non_negative,
        "total": validate_non_negative,
        "status": validate_sale_status,
    }
    required = ("product_name", "quantity")
    numeric = {"quantity": _lenient_int, "price": _lenient_float, "total": _lenient_float}

    def derive_on_add(self, record: Dict[str, Any]) -> Dict[str, Any]:
        record.setdefault("status", "Paid")
        record.setdefault("price", 0.0)
        if "total" not in record:
            record["total"] = round(record["quantity"] * record["price"], 2)
        if not record.get("date"):
            record["date"] = format_datetime()
        if not record.get("invoice_number"):
            record["invoice_number"] = f"INV-{record['id'][-8:].upper()}"
        return record


class ExpenseKind(RecordKind):
    collection = Collection.EXPENSES
    fields = (
        ("type", "Type"),
        ("amount", "Amount"),
        ("description", "Description"),
        ("category", "Category"),
        ("date", "Date"),
        ("receipt_image", "ReceiptImage"),
    )
    validators = {"amount": validate_non_negative}
    required = ("type", "amount")
    numeric = {"amount": _lenient_float}

    def derive_on_add(self, record: Dict[str, Any]) -> Dict[str, Any]:
        if not record.get("date"):
            record["date"] = datetime.now().strftime(DISPLAY_DATE_FORMAT)
        return record


class CustomerKind(RecordKind):
    """Customers keep their address in the remote "Email" column as well.

    The remote sheet historically stores the address under "Email"; every
    write duplicates it there, and reads prefer "Address" but fall back to
    "Email" for rows written by older clients.
    """

    collection = Collection.CUSTOMERS
    fields = (
        ("name", "Name"),
        ("address", "Address"),
        ("phone", "Phone"),
        ("total_purchases", "TotalPurchases"),
        ("last_purchase", "LastPurchase"),
    )
    validators = {"total_purchases": validate_non_negative}
    required = ("name",)
    numeric = {"total_purchases": _lenient_float}

    def derive_on_add(self, record: Dict[str, Any]) -> Dict[str, Any]:
        record.setdefault("total_purchases", 0.0)
        if not record.get("last_purchase"):
            record["last_purchase"] = format_datetime()
        return record

    def to_wire(self, record: Dict[str, Any]) -> Dict[str, Any]:
        row = super().to_wire(record)
        row["Email"] = record.get("address", "")
        return row

    def from_wire(self, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        record = super().from_wire(row)
        if record is not None and not record.get("address") and row.get("Email"):
            record["address"] = str(row["Email"])
        return record


RECORD_KINDS: Dict[Collection, RecordKind] = {
    kind.collection: kind
    for kind in (ProductKind(), SaleKind(), ExpenseKind(), CustomerKind())
}


def get_record_kind(collection: Collection) -> RecordKind:
    """Get the RecordKind for a collection."""
    return RECORD_KINDS[collection]


def rows_from_wire(collection: Collection, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert a fetched remote collection to local records.

    Rows without an id cannot be joined to local state and are dropped.
    Duplicate ids keep the first occurrence.
    """
    kind = get_record_kind(collection)
    records: List[Dict[str, Any]] = []
    seen = set()
    for row in rows:
        if not isinstance(row, dict):
            logger.warning(f"Skipping non-object row in {collection.value}: {row!r}")
            continue
        record = kind.from_wire(row)
        if record is None:
            logger.warning(f"Skipping {collection.value} row without id")
            continue
        if record["id"] in seen:
            logger.warning(f"Skipping duplicate {collection.value} row {record['id']}")
            continue
        seen.add(record["id"])
        records.append(record)
    return records
