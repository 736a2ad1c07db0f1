"""Pytest fixtures for stocksync tests.

This module provides fixtures for configuration, durable and local stores,
the in-memory remote and a fully wired orchestrator.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Generator

import pytest

# Add src and the repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from stocksync.core.config import Config
from stocksync.core.database import DurableStore
from stocksync.core.notifications import NotificationCenter
from stocksync.core.store import LocalStore
from stocksync.core.sync_engine import SyncOrchestrator
from tests.helpers import FakeGateway, ManualTimers, SleepRecorder


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create temporary config directory for tests.

    Args:
        tmp_path: pytest temporary directory fixture

    Returns:
        Path to temporary config directory.
    """
    config_dir = tmp_path / "stocksync_test"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


@pytest.fixture
def test_config(test_config_dir: Path) -> Config:
    """Create test configuration with zero pacing delays."""
    config = Config(config_dir=test_config_dir)
    for key in ("drain_delay", "fetch_delay", "collection_delay"):
        config.set(f"sync.{key}", 0)
    return config


@pytest.fixture
def durable_store(test_config_dir: Path) -> Generator[DurableStore, None, None]:
    """Create a SQLite durable store in the temporary directory."""
    store = DurableStore(test_config_dir / "test.db")
    yield store
    store.close()


@pytest.fixture
def local_store(durable_store: DurableStore) -> LocalStore:
    """Create a loaded, empty local store."""
    store = LocalStore(durable_store)
    store.load()
    return store


@pytest.fixture
def gateway() -> FakeGateway:
    """Create an in-memory remote."""
    return FakeGateway()


@pytest.fixture
def timers() -> ManualTimers:
    """Create a manual timer factory."""
    return ManualTimers()


@pytest.fixture
def sleeper() -> SleepRecorder:
    """Create a sleep recorder."""
    return SleepRecorder()


@pytest.fixture
def notifications(timers: ManualTimers) -> NotificationCenter:
    """Create a notification center with manual auto-dismiss timers."""
    return NotificationCenter(timeout=4.0, timer_factory=timers)


@pytest.fixture
def orchestrator(
    local_store: LocalStore,
    gateway: FakeGateway,
    notifications: NotificationCenter,
    timers: ManualTimers,
    sleeper: SleepRecorder,
) -> Generator[SyncOrchestrator, None, None]:
    """Create an online orchestrator wired to the fake remote."""
    orch = SyncOrchestrator(
        local_store,
        gateway,
        notifications,
        sleep=sleeper,
        timer_factory=timers,
    )
    yield orch
    orch.shutdown()
