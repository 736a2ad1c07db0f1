"""Configuration management for stocksync.

This module handles loading and saving application configuration to/from
a JSON file. The config directory can be customized via CLI argument.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .validation import ValidationError, validate_delay

logger = logging.getLogger(__name__)

__all__ = ["Config", "DEFAULT_SYNC_CONFIG"]

# Pacing and deferral delays, in seconds
DEFAULT_SYNC_CONFIG: Dict[str, float] = {
    "drain_delay": 1.0,
    "fetch_delay": 0.5,
    "collection_delay": 1.0,
    "startup_delay": 1.5,
    "reconnect_delay": 3.0,
    "mutation_delay": 1.0,
    "success_notification_timeout": 3.0,
}

DEFAULT_CONFIG: Dict[str, Any] = {
    "database_file": "stocksync.db",
    "remote_url": "http://127.0.0.1:8765/exec",
    "request_timeout": 30.0,
    "low_stock_threshold": 10,
    "alert_name_limit": 3,
    "notification_timeout": 4.0,
    "connectivity_interval": 15.0,
    "sync": DEFAULT_SYNC_CONFIG,
}


class Config:
    """Manages application configuration stored in JSON format.

    Attributes:
        config_dir: Path to the configuration directory
        config_file: Path to config.json
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_dir: Custom config directory path. If None, uses ~/.config/stocksync/
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "stocksync"
        self.config_dir = Path(config_dir)
        self.config_file = self.config_dir / "config.json"
        self.config_data = self.load_config()

    def load_config(self) -> Dict[str, Any]:
        """Load configuration, creating the file with defaults if missing.

        Invalid JSON is logged and replaced by defaults in memory; the broken
        file is left untouched.
        """
        data = copy.deepcopy(DEFAULT_CONFIG)
        if not self.config_file.exists():
            self.config_dir.mkdir(parents=True, exist_ok=True)
            self.save_config(data)
            return data

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                stored = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {self.config_file}, using defaults: {e}")
            return data

        if not isinstance(stored, dict):
            logger.warning(f"Ignoring {self.config_file}: expected a JSON object")
            return data

        for key, value in stored.items():
            if key == "sync" and isinstance(value, dict):
                data["sync"].update(value)
            else:
                data[key] = value
        return data

    def save_config(self, config: Dict[str, Any]) -> None:
        """Write configuration to config.json."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Dotted keys reach into the sync section (e.g. "sync.drain_delay").
        """
        if key.startswith("sync."):
            return self.config_data.get("sync", {}).get(key[5:], default)
        return self.config_data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Validate and set a configuration value, then save to file.

        Raises:
            ValidationError: If the key is unknown or the value invalid
        """
        value = self._validate(key, value)
        if key.startswith("sync."):
            self.config_data.setdefault("sync", {})[key[5:]] = value
        else:
            self.config_data[key] = value
        self.save_config(self.config_data)
        logger.info(f"Config {key} set to {value!r}")

    def _validate(self, key: str, value: Any) -> Any:
        if key.startswith("sync."):
            if key[5:] not in DEFAULT_SYNC_CONFIG:
                raise ValidationError(key, "unknown sync setting")
            return validate_delay(value, key)
        if key not in DEFAULT_CONFIG or key == "sync":
            raise ValidationError(key, "unknown setting")

        if key in ("database_file", "remote_url"):
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(key, "must be a non-empty string")
            return value.strip()
        if key in ("low_stock_threshold", "alert_name_limit"):
            try:
                number = int(value)
            except (TypeError, ValueError):
                raise ValidationError(key, f"must be an integer, got '{value}'") from None
            if number < 1:
                raise ValidationError(key, "must be at least 1")
            return number
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError(key, f"must be a number, got '{value}'") from None
        if number <= 0:
            raise ValidationError(key, "must be greater than zero")
        return number

    def get_config_dir(self) -> Path:
        """Get the configuration directory path."""
        return self.config_dir

    def get_database_file(self) -> Path:
        """Get the SQLite file path; relative paths live in the config dir."""
        path = Path(self.config_data.get("database_file") or DEFAULT_CONFIG["database_file"])
        if not path.is_absolute():
            path = self.config_dir / path
        return path

    def get_remote_url(self) -> str:
        return str(self.config_data.get("remote_url") or DEFAULT_CONFIG["remote_url"])

    def get_request_timeout(self) -> float:
        return float(self.config_data.get("request_timeout", DEFAULT_CONFIG["request_timeout"]))

    def get_sync_config(self) -> Dict[str, float]:
        """Get sync pacing configuration, with defaults for missing keys."""
        sync = dict(DEFAULT_SYNC_CONFIG)
        stored = self.config_data.get("sync")
        if isinstance(stored, dict):
            for key, value in stored.items():
                if key in sync:
                    try:
                        sync[key] = float(value)
                    except (TypeError, ValueError):
                        logger.warning(f"Ignoring invalid sync.{key} value {value!r}")
        return sync

    def get_low_stock_threshold(self) -> int:
        return int(self.config_data.get("low_stock_threshold", DEFAULT_CONFIG["low_stock_threshold"]))

    def get_alert_name_limit(self) -> int:
        return int(self.config_data.get("alert_name_limit", DEFAULT_CONFIG["alert_name_limit"]))

    def get_notification_timeout(self) -> float:
        return float(
            self.config_data.get("notification_timeout", DEFAULT_CONFIG["notification_timeout"])
        )

    def get_connectivity_interval(self) -> float:
        return float(
            self.config_data.get("connectivity_interval", DEFAULT_CONFIG["connectivity_interval"])
        )
