"""Input validation for stocksync.

This module provides validation functions for all user inputs.
All validators raise ValidationError with descriptive messages.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional, Union

from .models import Action, Collection, SALE_STATUSES

__all__ = [
    "ValidationError",
    "validate_collection",
    "validate_collections",
    "validate_action",
    "validate_record_id",
    "validate_quantity",
    "validate_non_negative",
    "validate_stock",
    "validate_sale_status",
    "validate_text",
    "validate_delay",
]

MAX_TEXT_LENGTH = 10_000
RECORD_ID_PATTERN = re.compile(r"^[0-9A-Za-z_-]{1,64}$")


class ValidationError(ValueError):
    """Validation error with field and message attributes."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"

    def __repr__(self) -> str:
        return f"ValidationError(field='{self.field}', message='{self.message}')"


def validate_collection(value: Union[str, Collection], field_name: str = "collection") -> Collection:
    """Resolve a collection name (case-insensitive) to a Collection."""
    if isinstance(value, Collection):
        return value
    if not isinstance(value, str):
        raise ValidationError(field_name, f"must be a string, got {type(value).__name__}")
    for collection in Collection:
        if value.strip().lower() == collection.value.lower():
            return collection
    valid = ", ".join(c.value for c in Collection)
    raise ValidationError(field_name, f"unknown collection '{value}' (expected one of: {valid})")


def validate_collections(
    values: Optional[Iterable[Union[str, Collection]]],
) -> Optional[List[Collection]]:
    """Resolve an optional list of collection names, dropping duplicates.

    None means "all collections" and is passed through.
    """
    if values is None:
        return None
    result: List[Collection] = []
    for value in values:
        collection = validate_collection(value)
        if collection not in result:
            result.append(collection)
    if not result:
        raise ValidationError("collections", "must not be empty")
    return result


def validate_action(value: Union[str, Action], field_name: str = "action") -> Action:
    """Resolve an action name to an Action."""
    if isinstance(value, Action):
        return value
    try:
        return Action(str(value).upper())
    except ValueError:
        raise ValidationError(field_name, f"unknown action '{value}'") from None


def validate_record_id(value: Any, field_name: str = "id") -> str:
    """Validate a record ID (uuid7 hex or a legacy numeric id from the remote)."""
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise ValidationError(field_name, f"must be a string, got {type(value).__name__}")
    value = value.strip()
    if not RECORD_ID_PATTERN.match(value):
        raise ValidationError(field_name, f"invalid record id '{value}'")
    return value


def _to_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(field_name, "must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(field_name, f"must be a number, got '{value}'") from None


def validate_quantity(value: Any, field_name: str = "quantity") -> int:
    """Validate a sale quantity (positive integer)."""
    number = _to_number(value, field_name)
    if number != int(number):
        raise ValidationError(field_name, "must be a whole number")
    if number <= 0:
        raise ValidationError(field_name, "must be greater than zero")
    return int(number)


def validate_non_negative(value: Any, field_name: str) -> float:
    """Validate a price, cost or amount."""
    number = _to_number(value, field_name)
    if number < 0:
        raise ValidationError(field_name, "must not be negative")
    return number


def validate_stock(value: Any, field_name: str = "stock") -> int:
    """Validate a stock level (integer >= 0)."""
    number = _to_number(value, field_name)
    if number != int(number):
        raise ValidationError(field_name, "must be a whole number")
    if number < 0:
        raise ValidationError(field_name, "must not be negative")
    return int(number)


def validate_sale_status(value: Any, field_name: str = "status") -> str:
    """Validate a sale status (Paid, Pending or Cancelled)."""
    for status in SALE_STATUSES:
        if isinstance(value, str) and value.strip().lower() == status.lower():
            return status
    raise ValidationError(
        field_name, f"must be one of {', '.join(SALE_STATUSES)}, got '{value}'"
    )


def validate_text(value: Any, field_name: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    """Validate a free-text field."""
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    if len(value) > max_length:
        raise ValidationError(field_name, f"must be at most {max_length} characters")
    return value


def validate_delay(value: Any, field_name: str) -> float:
    """Validate a pacing delay in seconds."""
    number = _to_number(value, field_name)
    if number < 0 or number > 3600:
        raise ValidationError(field_name, "must be between 0 and 3600 seconds")
    return number
