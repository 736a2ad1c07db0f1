#!/usr/bin/env python3
"""Reference remote for stocksync.

A small Flask app that speaks the same protocol as the spreadsheet web app
the client syncs with, for local development and tests.

Endpoints:
    GET  /exec?sheet=<Name>   Return all rows of a sheet
    POST /exec                Apply {"sheet", "action", "data"} to a sheet
    GET  /api/health          Health check

Responses use the sheet envelope: {"status": "success", "data": [...]} or
{"status": "error", "message": "..."}.

Mutations are idempotent by row ID: ADD of an existing ID replaces the row,
UPDATE of a missing ID inserts it and DELETE of a missing ID does nothing.
A client may therefore resend a mutation whose acknowledgement was lost.
"""

from __future__ import annotations

import argparse
import functools
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from flask import Flask, jsonify, request, Response
from flask_cors import CORS

from stocksync.core.models import COLLECTION_ORDER, Action
from stocksync.core.validation import ValidationError, validate_action, validate_collection

logger = logging.getLogger(__name__)


def _row_id(row: Dict[str, Any]) -> Optional[str]:
    raw = row.get("ID") or row.get("id")
    if raw is None or str(raw).strip() == "":
        return None
    return str(raw).strip()


class SheetBackend:
    """In-memory sheets, optionally persisted to a JSON file."""

    def __init__(self, data_file: Optional[Path] = None) -> None:
        """Initialize backend.

        Args:
            data_file: JSON file to load from and save to (None keeps data in memory)
        """
        self.data_file = Path(data_file) if data_file else None
        self._lock = threading.Lock()
        self._sheets: Dict[str, List[Dict[str, Any]]] = {
            c.value: [] for c in COLLECTION_ORDER
        }
        if self.data_file is not None and self.data_file.exists():
            self._load()

    def _load(self) -> None:
        with open(self.data_file, "r", encoding="utf-8") as f:
            stored = json.load(f)
        for name, rows in stored.items():
            if name in self._sheets and isinstance(rows, list):
                self._sheets[name] = rows
        logger.info(f"Loaded sheets from {self.data_file}")

    def _save(self) -> None:
        if self.data_file is None:
            return
        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.data_file, "w", encoding="utf-8") as f:
            json.dump(self._sheets, f, indent=2, ensure_ascii=False)

    def get_rows(self, sheet: str) -> List[Dict[str, Any]]:
        """Get all rows of a sheet.

        Raises:
            ValidationError: If the sheet does not exist
        """
        name = validate_collection(sheet, "sheet").value
        with self._lock:
            return [dict(row) for row in self._sheets[name]]

    def apply(self, sheet: str, action: str, data: Dict[str, Any]) -> None:
        """Apply one mutation to a sheet.

        Raises:
            ValidationError: If the sheet, action or row is invalid
        """
        name = validate_collection(sheet, "sheet").value
        action = validate_action(action)
        if not isinstance(data, dict):
            raise ValidationError("data", "must be an object")
        row_id = _row_id(data)
        if row_id is None:
            raise ValidationError("data", "row has no ID")

        with self._lock:
            rows = self._sheets[name]
            index = next((i for i, r in enumerate(rows) if _row_id(r) == row_id), None)
            if action == Action.DELETE:
                if index is not None:
                    rows.pop(index)
            elif index is None:
                rows.append(dict(data))
            else:
                rows[index] = dict(data)
            self._save()
        logger.info(f"{action.value} {name}/{row_id}")

    def seed(self, sheet: str, rows: List[Dict[str, Any]]) -> None:
        """Replace a sheet's rows wholesale."""
        name = validate_collection(sheet, "sheet").value
        with self._lock:
            self._sheets[name] = [dict(row) for row in rows]
            self._save()


def sheet_endpoint(func: Callable) -> Callable:
    """Decorator for consistent error handling in the sheet envelope.

    Catches ValidationError (400) and Exception (500).
    """
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            return jsonify({"status": "error", "message": f"Invalid {e.field}: {e.message}"}), 400
        except Exception as e:
            logger.error(f"Error in {func.__name__}: {e}")
            return jsonify({"status": "error", "message": str(e)}), 500
    return wrapper


def create_remote_app(backend: Optional[SheetBackend] = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        backend: Sheet storage (default: a fresh in-memory backend)

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    CORS(app)  # Enable CORS for all routes

    sheets = backend or SheetBackend()
    app.config["SHEET_BACKEND"] = sheets

    @app.errorhandler(404)
    def not_found(error: Any) -> tuple[Response, int]:
        """Handle 404 errors."""
        return jsonify({"status": "error", "message": "Not found"}), 404

    @app.route("/exec", methods=["GET"])
    @sheet_endpoint
    def get_sheet() -> tuple[Response, int]:
        """Return all rows of the sheet named by ?sheet=."""
        sheet = request.args.get("sheet")
        if not sheet:
            raise ValidationError("sheet", "query parameter is required")
        return jsonify({"status": "success", "data": sheets.get_rows(sheet)}), 200

    @app.route("/exec", methods=["POST"])
    @sheet_endpoint
    def post_sheet() -> tuple[Response, int]:
        """Apply a mutation.

        The body is JSON, possibly sent as text/plain by browser clients.
        """
        payload = request.get_json(force=True, silent=True)
        if not isinstance(payload, dict):
            raise ValidationError("body", "must be a JSON object")
        sheets.apply(payload.get("sheet") or "", payload.get("action") or "", payload.get("data"))
        return jsonify({"status": "success", "message": "OK"}), 200

    @app.route("/api/health", methods=["GET"])
    def health_check() -> tuple[Response, int]:
        """Health check endpoint."""
        return jsonify({"status": "ok"}), 200

    return app


def add_remote_subparser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Add remote subparser and its arguments.

    Args:
        subparsers: Parent subparsers object to add the remote parser to
    """
    remote_parser = subparsers.add_parser(
        "remote",
        help="Start the reference sheet server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    remote_parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )

    remote_parser.add_argument(
        "--port",
        type=int,
        default=8765,
        help="Port to bind to (default: 8765)"
    )

    remote_parser.add_argument(
        "--data-file",
        type=Path,
        default=None,
        help="JSON file holding the sheets (default: in memory only)"
    )

    remote_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )


def run(config_dir: Optional[Path], args: argparse.Namespace) -> int:
    """Run the reference remote with given arguments.

    Args:
        config_dir: Unused; accepted for a uniform interface signature
        args: Parsed command-line arguments (host, port, data_file, debug)

    Returns:
        Exit code (0 for success)
    """
    logger.info("Starting stocksync reference remote")
    backend = SheetBackend(getattr(args, "data_file", None))
    app = create_remote_app(backend)

    app.run(
        host=args.host,
        port=args.port,
        debug=args.debug,
    )

    return 0
