"""Unit tests for input validation.

Tests the validation functions in core/validation.py.
"""

from __future__ import annotations

import pytest

from stocksync.core.models import Action, Collection
from stocksync.core.validation import (
    ValidationError,
    validate_action,
    validate_collection,
    validate_collections,
    validate_delay,
    validate_non_negative,
    validate_quantity,
    validate_record_id,
    validate_sale_status,
    validate_stock,
    validate_text,
)


@pytest.mark.unit
class TestValidationError:
    """Tests for ValidationError."""

    def test_is_value_error(self) -> None:
        """ValidationError is a ValueError carrying field and message."""
        error = ValidationError("stock", "must not be negative")
        assert isinstance(error, ValueError)
        assert error.field == "stock"
        assert error.message == "must not be negative"
        assert str(error) == "stock: must not be negative"


@pytest.mark.unit
class TestValidateCollection:
    """Tests for validate_collection and validate_collections."""

    def test_case_insensitive(self) -> None:
        """Collection names match regardless of case."""
        assert validate_collection("products") == Collection.PRODUCTS
        assert validate_collection("SALES") == Collection.SALES
        assert validate_collection(Collection.CUSTOMERS) == Collection.CUSTOMERS

    def test_unknown_raises(self) -> None:
        """Unknown names raise with the valid choices listed."""
        with pytest.raises(ValidationError) as exc:
            validate_collection("Invoices")
        assert exc.value.field == "collection"
        assert "Products" in exc.value.message

    def test_non_string_raises(self) -> None:
        """Non-string values are rejected."""
        with pytest.raises(ValidationError):
            validate_collection(3)

    def test_collections_none_means_all(self) -> None:
        """None passes through."""
        assert validate_collections(None) is None

    def test_collections_dedupes(self) -> None:
        """Duplicates are dropped, order kept."""
        assert validate_collections(["Sales", "products", "sales"]) == [
            Collection.SALES, Collection.PRODUCTS
        ]

    def test_collections_empty_raises(self) -> None:
        """An empty list is an error."""
        with pytest.raises(ValidationError):
            validate_collections([])


@pytest.mark.unit
class TestValidateAction:
    """Tests for validate_action."""

    def test_valid(self) -> None:
        assert validate_action("add") == Action.ADD
        assert validate_action(Action.DELETE) == Action.DELETE

    def test_invalid(self) -> None:
        with pytest.raises(ValidationError):
            validate_action("UPSERT")


@pytest.mark.unit
class TestValidateRecordId:
    """Tests for validate_record_id."""

    def test_uuid_hex(self) -> None:
        """uuid7 hex ids pass."""
        assert validate_record_id("0190a1b2c3d47e8f9a0b1c2d3e4f5a6b") == "0190a1b2c3d47e8f9a0b1c2d3e4f5a6b"

    def test_int_id(self) -> None:
        """Numeric ids from the remote are accepted as strings."""
        assert validate_record_id(42) == "42"

    @pytest.mark.parametrize("value", ["", "has space", "a/b", None, True])
    def test_invalid(self, value: object) -> None:
        with pytest.raises(ValidationError):
            validate_record_id(value)


@pytest.mark.unit
class TestNumbers:
    """Tests for numeric validators."""

    def test_quantity(self) -> None:
        assert validate_quantity("3") == 3
        assert validate_quantity(2.0) == 2

    @pytest.mark.parametrize("value", [0, -1, 1.5, "abc", True])
    def test_quantity_invalid(self, value: object) -> None:
        with pytest.raises(ValidationError):
            validate_quantity(value)

    def test_non_negative(self) -> None:
        assert validate_non_negative("2.5", "price") == 2.5
        assert validate_non_negative(0, "price") == 0
        with pytest.raises(ValidationError):
            validate_non_negative(-0.01, "price")

    def test_stock(self) -> None:
        assert validate_stock("10") == 10
        assert validate_stock(0) == 0
        with pytest.raises(ValidationError):
            validate_stock(-1)
        with pytest.raises(ValidationError):
            validate_stock(1.5)

    def test_delay(self) -> None:
        assert validate_delay("0", "sync.drain_delay") == 0
        with pytest.raises(ValidationError):
            validate_delay(4000, "sync.drain_delay")


@pytest.mark.unit
class TestText:
    """Tests for validate_sale_status and validate_text."""

    def test_sale_status_normalized(self) -> None:
        assert validate_sale_status("pending") == "Pending"
        with pytest.raises(ValidationError):
            validate_sale_status("Refunded")

    def test_text(self) -> None:
        assert validate_text(None, "name") == ""
        assert validate_text(12, "name") == "12"
        with pytest.raises(ValidationError):
            validate_text("x" * 11, "name", max_length=10)
