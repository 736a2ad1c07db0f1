"""Pytest fixtures for reference remote tests.

Provides a Flask test client over an in-memory sheet backend.
"""

from __future__ import annotations

import pytest
from typing import Generator

from flask import Flask
from flask.testing import FlaskClient

from stocksync.remote_server import SheetBackend, create_remote_app


@pytest.fixture
def sheet_backend() -> SheetBackend:
    """Create an in-memory backend with one product."""
    backend = SheetBackend()
    backend.seed("Products", [{"ID": "p1", "Name": "Bread", "Stock": 10, "Price": 2.5}])
    return backend


@pytest.fixture
def web_app(sheet_backend: SheetBackend) -> Generator[Flask, None, None]:
    """Create Flask app for testing.

    Args:
        sheet_backend: Backend fixture

    Yields:
        Flask application instance
    """
    app = create_remote_app(sheet_backend)
    app.config["TESTING"] = True
    yield app


@pytest.fixture
def client(web_app: Flask) -> FlaskClient:
    """Create Flask test client.

    Args:
        web_app: Flask application

    Returns:
        Flask test client for making requests
    """
    return web_app.test_client()
