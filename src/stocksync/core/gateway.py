"""Remote gateway for stocksync.

The remote backing store is a spreadsheet-style web app with one endpoint:

    GET  <url>?sheet=<Collection>     -> {"status": "success", "data": [rows]}
    POST <url>  {"sheet", "action", "data"}
                                      -> {"status": "success"|"error", "message": ...}

RemoteGateway is the narrow interface the sync engine depends on;
HttpGateway implements it over HTTP(S). Both operations raise:
- TransportError: the request did not get a usable answer (unreachable,
  timeout, HTTP 5xx, rate limited). Retried on the next sync pass.
- RemoteError: the backend answered and refused (status "error", HTTP 4xx,
  malformed body). The mutation stays queued.
"""

from __future__ import annotations

import json
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import Action, Collection

logger = logging.getLogger(__name__)

# HTTP statuses that mean "try again later" rather than "rejected"
RETRYABLE_STATUS = {408, 425, 429}


class GatewayError(Exception):
    """Base class for remote gateway failures."""


class TransportError(GatewayError):
    """The remote could not be reached or did not answer in time."""


class RemoteError(GatewayError):
    """The remote answered but rejected the request."""


class RemoteGateway(ABC):
    """Interface to the remote backing store."""

    @abstractmethod
    def fetch_collection(self, collection: Collection) -> List[Dict[str, Any]]:
        """Fetch the full remote collection as wire rows."""

    @abstractmethod
    def apply_mutation(
        self, collection: Collection, action: Action, payload: Dict[str, Any]
    ) -> None:
        """Apply one ADD/UPDATE/DELETE to the remote collection."""

    def check_status(self) -> Dict[str, Any]:
        """Check whether the remote is reachable.

        Returns:
            Dict with "reachable" and, when unreachable, "error"
        """
        try:
            self.fetch_collection(Collection.PRODUCTS)
            return {"reachable": True}
        except GatewayError as e:
            return {"reachable": False, "error": str(e)}


class HttpGateway(RemoteGateway):
    """RemoteGateway speaking the sheet web-app protocol over urllib."""

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        """Initialize gateway.

        Args:
            base_url: Web app URL (e.g. http://127.0.0.1:8765/exec)
            timeout: Request timeout in seconds
        """
        self.base_url = base_url
        self.timeout = timeout

    def fetch_collection(self, collection: Collection) -> List[Dict[str, Any]]:
        query = urllib.parse.urlencode({"sheet": collection.value})
        separator = "&" if "?" in self.base_url else "?"
        response = self._make_request(f"{self.base_url}{separator}{query}", method="GET")

        data = response.get("data")
        if data is None:
            return []
        if not isinstance(data, list):
            raise RemoteError(
                f"Unexpected data for {collection.value}: expected a list, "
                f"got {type(data).__name__}"
            )
        logger.debug(f"Fetched {len(data)} rows from {collection.value}")
        return data

    def apply_mutation(
        self, collection: Collection, action: Action, payload: Dict[str, Any]
    ) -> None:
        self._make_request(
            self.base_url,
            method="POST",
            data={"sheet": collection.value, "action": action.value, "data": payload},
        )
        logger.debug(f"Applied {action.value} {collection.value}/{payload.get('ID')}")

    def check_status(self) -> Dict[str, Any]:
        """Request the configured URL itself.

        Any HTTP answer, including an error status for the missing sheet
        parameter, means the endpoint is reachable.
        """
        try:
            request = urllib.request.Request(self.base_url, method="GET")
            with urllib.request.urlopen(request, timeout=min(self.timeout, 5)) as response:
                response.read()
            return {"reachable": True}
        except urllib.error.HTTPError:
            return {"reachable": True}
        except (urllib.error.URLError, socket.timeout, OSError) as e:
            return {"reachable": False, "error": str(e)}

    def _make_request(
        self,
        url: str,
        method: str = "GET",
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make an HTTP(S) request and decode the JSON envelope.

        Args:
            url: Full URL to request
            method: HTTP method
            data: JSON data to send (for POST)

        Returns:
            Decoded response body (status is "success")

        Raises:
            TransportError: On connection failure, timeout, 5xx or rate limiting
            RemoteError: On rejection or an unreadable response
        """
        if data is not None:
            request = urllib.request.Request(
                url,
                data=json.dumps(data).encode("utf-8"),
                method=method,
                headers={"Content-Type": "application/json"},
            )
        else:
            request = urllib.request.Request(url, method=method)

        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                body = response.read().decode("utf-8")

        except urllib.error.HTTPError as e:
            error_msg = f"HTTP {e.code}: {e.reason}"
            try:
                error_data = json.loads(e.read().decode("utf-8"))
                if isinstance(error_data, dict) and error_data.get("message"):
                    error_msg = f"{error_msg} - {error_data['message']}"
            except (ValueError, OSError):
                pass
            logger.error(f"Request to {url} failed: {error_msg}")
            if e.code >= 500 or e.code in RETRYABLE_STATUS:
                raise TransportError(error_msg) from e
            raise RemoteError(error_msg) from e

        except urllib.error.URLError as e:
            error_msg = f"Connection failed to {url}: {e.reason}"
            logger.error(error_msg)
            raise TransportError(error_msg) from e

        except (socket.timeout, TimeoutError) as e:
            error_msg = f"Request to {url} timed out after {self.timeout}s"
            logger.error(error_msg)
            raise TransportError(error_msg) from e

        except OSError as e:
            error_msg = f"Request to {url} failed: {e}"
            logger.error(error_msg)
            raise TransportError(error_msg) from e

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise RemoteError(f"Invalid JSON from {url}: {e}") from e
        if not isinstance(payload, dict):
            raise RemoteError(f"Unexpected response from {url}: {payload!r}")

        if payload.get("status") != "success":
            message = payload.get("message") or "Remote rejected the request"
            raise RemoteError(message)
        return payload
