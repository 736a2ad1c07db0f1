"""Pytest fixtures for end-to-end sync tests.

This module provides fixtures for:
- Spawning the reference remote in a separate process
- A client config pointed at that remote with pacing turned off
"""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest

from stocksync.core.config import Config
from tests.helpers import RemoteServer, find_free_port, make_client_config


@pytest.fixture
def remote_server(tmp_path: Path) -> Generator[RemoteServer, None, None]:
    """Start a reference remote on a free port."""
    server = RemoteServer(port=find_free_port(), data_file=tmp_path / "sheets.json")
    server.start()
    yield server
    server.stop()


@pytest.fixture
def client_config(tmp_path: Path, remote_server: RemoteServer) -> Config:
    return make_client_config(tmp_path / "client", remote_server.url)
