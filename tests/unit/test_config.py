"""Unit tests for configuration management.

Tests src/stocksync/core/config.py including:
- Config initialization and file creation
- Loading existing and broken config files
- Get/set with validation
- Typed getters and defaults
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from stocksync.core.config import DEFAULT_SYNC_CONFIG, Config
from stocksync.core.validation import ValidationError


class TestConfigInit:
    """Test configuration initialization."""

    def test_creates_custom_config_dir(self, tmp_path: Path) -> None:
        """Config directory is created when missing."""
        config_dir = tmp_path / "nested" / "stocksync"
        config = Config(config_dir=config_dir)
        assert config.config_dir == config_dir
        assert config_dir.is_dir()

    def test_creates_config_file(self, test_config_dir: Path) -> None:
        """config.json is written with defaults if it doesn't exist."""
        config = Config(config_dir=test_config_dir)
        assert config.config_file.exists()
        assert config.config_file.name == "config.json"
        data = json.loads(config.config_file.read_text())
        assert data["low_stock_threshold"] == 10
        assert data["sync"]["drain_delay"] == 1.0


class TestLoadConfig:
    """Test configuration loading."""

    def test_loads_existing_config(self, test_config_dir: Path) -> None:
        """Stored values override defaults; missing keys keep defaults."""
        (test_config_dir / "config.json").write_text(json.dumps({
            "remote_url": "http://example.test/exec",
            "sync": {"fetch_delay": 2.0},
        }))
        config = Config(config_dir=test_config_dir)
        assert config.get_remote_url() == "http://example.test/exec"
        assert config.get_sync_config()["fetch_delay"] == 2.0
        assert config.get_sync_config()["drain_delay"] == 1.0
        assert config.get_low_stock_threshold() == 10

    def test_invalid_json_falls_back_to_defaults(self, test_config_dir: Path) -> None:
        """A broken file is ignored rather than crashing."""
        (test_config_dir / "config.json").write_text("{not json")
        config = Config(config_dir=test_config_dir)
        assert config.get_sync_config() == DEFAULT_SYNC_CONFIG
        assert (test_config_dir / "config.json").read_text() == "{not json"

    def test_non_object_json_falls_back_to_defaults(self, test_config_dir: Path) -> None:
        """A JSON list is not a config."""
        (test_config_dir / "config.json").write_text("[1, 2]")
        config = Config(config_dir=test_config_dir)
        assert config.get_alert_name_limit() == 3


class TestGetSet:
    """Test get/set operations."""

    def test_set_persists(self, test_config_dir: Path) -> None:
        """set() saves immediately."""
        config = Config(config_dir=test_config_dir)
        config.set("remote_url", "http://other.test/exec")
        reloaded = Config(config_dir=test_config_dir)
        assert reloaded.get("remote_url") == "http://other.test/exec"

    def test_set_sync_key(self, test_config_dir: Path) -> None:
        """Dotted keys address the sync section."""
        config = Config(config_dir=test_config_dir)
        config.set("sync.drain_delay", "0.25")
        assert config.get("sync.drain_delay") == 0.25
        assert config.get_sync_config()["drain_delay"] == 0.25

    def test_set_threshold_coerces_int(self, test_config_dir: Path) -> None:
        """Integer settings accept numeric strings."""
        config = Config(config_dir=test_config_dir)
        config.set("low_stock_threshold", "5")
        assert config.get_low_stock_threshold() == 5

    def test_get_default_for_missing_key(self, test_config_dir: Path) -> None:
        """get() returns the default for unknown keys."""
        config = Config(config_dir=test_config_dir)
        assert config.get("nonexistent", "fallback") == "fallback"

    @pytest.mark.parametrize("key,value", [
        ("unknown_setting", "1"),
        ("sync.unknown", "1"),
        ("sync.drain_delay", "-1"),
        ("low_stock_threshold", "zero"),
        ("low_stock_threshold", "0"),
        ("remote_url", "   "),
        ("request_timeout", "0"),
    ])
    def test_set_rejects_invalid(self, test_config_dir: Path, key: str, value: str) -> None:
        """Invalid keys and values raise ValidationError."""
        config = Config(config_dir=test_config_dir)
        with pytest.raises(ValidationError):
            config.set(key, value)


class TestTypedGetters:
    """Test typed getters."""

    def test_database_file_relative_to_config_dir(self, test_config_dir: Path) -> None:
        """Relative database paths resolve inside the config dir."""
        config = Config(config_dir=test_config_dir)
        assert config.get_database_file() == test_config_dir / "stocksync.db"

    def test_database_file_absolute(self, test_config_dir: Path, tmp_path: Path) -> None:
        """Absolute database paths are used as given."""
        config = Config(config_dir=test_config_dir)
        target = tmp_path / "elsewhere.db"
        config.set("database_file", str(target))
        assert config.get_database_file() == target

    def test_defaults(self, test_config_dir: Path) -> None:
        """Defaults match the documented values."""
        config = Config(config_dir=test_config_dir)
        sync = config.get_sync_config()
        assert sync["fetch_delay"] == 0.5
        assert sync["collection_delay"] == 1.0
        assert sync["startup_delay"] == 1.5
        assert sync["reconnect_delay"] == 3.0
        assert sync["mutation_delay"] == 1.0
        assert config.get_notification_timeout() == 4.0
        assert config.get_connectivity_interval() == 15.0
        assert config.get_request_timeout() == 30.0
