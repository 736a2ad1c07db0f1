"""Unit tests for the durable key-value store."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from stocksync.core.database import DurableStore, DurableStoreError
from stocksync.core.models import QUEUE_KEY, Action, Collection, QueueEntry


@pytest.mark.unit
class TestCollections:
    """Tests for collection persistence."""

    def test_missing_collection_is_empty(self, durable_store: DurableStore) -> None:
        assert durable_store.load_collection("products") == []

    def test_save_and_load(self, durable_store: DurableStore) -> None:
        records = [{"id": "p1", "name": "Pain complet", "stock": 10}]
        durable_store.save_collection("products", records)
        assert durable_store.load_collection("products") == records

    def test_survives_reopen(self, test_config_dir: Path) -> None:
        """Data written before close is there after reopening."""
        path = test_config_dir / "reopen.db"
        store = DurableStore(path)
        store.save_collection("sales", [{"id": "s1"}])
        store.close()

        reopened = DurableStore(path)
        assert reopened.load_collection("sales") == [{"id": "s1"}]
        reopened.close()

    def test_in_memory(self) -> None:
        store = DurableStore(":memory:")
        store.save_collection("expenses", [{"id": "e1"}])
        assert store.load_collection("expenses") == [{"id": "e1"}]
        store.close()


@pytest.mark.unit
class TestQueue:
    """Tests for queue persistence."""

    def test_round_trip(self, durable_store: DurableStore) -> None:
        entry = QueueEntry(
            record_id="p1",
            action=Action.UPDATE,
            collection=Collection.PRODUCTS,
            payload={"ID": "p1", "Stock": 7},
            queued_at=123,
            token="t1",
        )
        durable_store.save_queue([entry])
        assert durable_store.load_queue() == [entry]

    def test_empty_queue(self, durable_store: DurableStore) -> None:
        assert durable_store.load_queue() == []

    def test_corrupt_queue_raises(self, durable_store: DurableStore) -> None:
        """A queue entry with an unknown action cannot be loaded."""
        durable_store._set(QUEUE_KEY, [{"id": "p1", "action": "MERGE", "sheet": "Products"}])
        with pytest.raises(DurableStoreError):
            durable_store.load_queue()


@pytest.mark.unit
class TestErrors:
    """Tests for failure reporting."""

    def test_unserializable_value(self, durable_store: DurableStore) -> None:
        with pytest.raises(DurableStoreError):
            durable_store.save_collection("products", [{"id": "p1", "bad": object()}])

    def test_closed_store(self, test_config_dir: Path) -> None:
        store = DurableStore(test_config_dir / "closed.db")
        store.close()
        with pytest.raises(DurableStoreError):
            store.load_collection("products")

    def test_corrupt_json(self, test_config_dir: Path) -> None:
        """Rows that are not JSON raise DurableStoreError."""
        path = test_config_dir / "corrupt.db"
        store = DurableStore(path)
        store.close()
        conn = sqlite3.connect(str(path))
        conn.execute(
            "INSERT INTO kv_store (key, value, updated_at) VALUES ('products', '{oops', 'now')"
        )
        conn.commit()
        conn.close()

        store = DurableStore(path)
        with pytest.raises(DurableStoreError):
            store.load_collection("products")
        store.close()

    def test_unopenable_path(self, tmp_path: Path) -> None:
        with pytest.raises(DurableStoreError):
            DurableStore(tmp_path / "missing-dir" / "x.db")


@pytest.mark.unit
class TestMeta:
    """Tests for metadata values."""

    def test_get_set(self, durable_store: DurableStore) -> None:
        assert durable_store.get_meta("last_sync") is None
        assert durable_store.get_meta("last_sync", "never") == "never"
        durable_store.set_meta("last_sync", "2024-01-01T00:00:00+00:00")
        assert durable_store.get_meta("last_sync") == "2024-01-01T00:00:00+00:00"

    def test_meta_does_not_clash_with_collections(self, durable_store: DurableStore) -> None:
        durable_store.set_meta("products", "x")
        assert durable_store.load_collection("products") == []
