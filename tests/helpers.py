"""Test doubles shared by the stocksync test suite.

- FakeGateway: in-memory remote with per-collection / per-record failure injection
- ManualTimers: timer factory whose timers only fire when the test says so
- SleepRecorder: records pacing delays instead of sleeping
- RemoteServer: the reference remote running in a subprocess
"""

from __future__ import annotations

import os
import socket
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import requests

from stocksync.core.config import Config
from stocksync.core.gateway import RemoteError, RemoteGateway, TransportError
from stocksync.core.models import Action, Collection


class FakeGateway(RemoteGateway):
    """RemoteGateway keeping wire rows in memory.

    Mutations are applied idempotently by ID, like the reference remote.

    Attributes:
        rows: Collection -> list of wire rows
        applied: (collection, action, record id) for every accepted mutation
        fetched: Collections fetched, in order
        fail_fetch: Collections whose fetch raises TransportError
        reject_ids: Record ids whose mutations raise RemoteError
        unreachable: When True, every call raises TransportError
        on_apply: Optional hook run before each mutation is applied
    """

    def __init__(self) -> None:
        self.rows: Dict[Collection, List[Dict[str, Any]]] = {c: [] for c in Collection}
        self.applied: List[Tuple[Collection, Action, str]] = []
        self.fetched: List[Collection] = []
        self.fail_fetch: Set[Collection] = set()
        self.reject_ids: Set[str] = set()
        self.unreachable = False
        self.on_apply: Optional[Callable[[Collection, Action, Dict[str, Any]], None]] = None

    def seed(self, collection: Collection, rows: List[Dict[str, Any]]) -> None:
        self.rows[collection] = [dict(r) for r in rows]

    def fetch_collection(self, collection: Collection) -> List[Dict[str, Any]]:
        if self.unreachable or collection in self.fail_fetch:
            raise TransportError(f"cannot fetch {collection.value}")
        self.fetched.append(collection)
        return [dict(r) for r in self.rows[collection]]

    def apply_mutation(
        self, collection: Collection, action: Action, payload: Dict[str, Any]
    ) -> None:
        if self.unreachable:
            raise TransportError("remote unreachable")
        row_id = str(payload.get("ID") or payload.get("id"))
        if row_id in self.reject_ids:
            raise RemoteError(f"rejected {row_id}")
        if self.on_apply is not None:
            self.on_apply(collection, action, payload)

        rows = self.rows[collection]
        index = next(
            (i for i, r in enumerate(rows) if str(r.get("ID") or r.get("id")) == row_id), None
        )
        if action == Action.DELETE:
            if index is not None:
                rows.pop(index)
        elif index is None:
            rows.append(dict(payload))
        else:
            rows[index] = dict(payload)
        self.applied.append((collection, action, row_id))

    def check_status(self) -> Dict[str, Any]:
        if self.unreachable:
            return {"reachable": False, "error": "remote unreachable"}
        return {"reachable": True}


class ManualTimer:
    """A timer that runs only when fired by the test."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled and not self.fired:
            self.fired = True
            self.callback()


class ManualTimers:
    """Timer factory collecting ManualTimer objects."""

    def __init__(self) -> None:
        self.timers: List[ManualTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_all(self) -> int:
        """Fire pending timers (including ones scheduled while firing).

        Returns:
            Number of timers fired
        """
        count = 0
        while self.pending:
            self.pending[0].fire()
            count += 1
        return count


class SleepRecorder:
    """Stand-in for time.sleep that records the requested delays."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


SRC_DIR = Path(__file__).parent.parent / "src"


@dataclass
class RemoteServer:
    """A reference remote running in a subprocess."""

    port: int
    data_file: Path
    process: Optional[subprocess.Popen] = None

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}/exec"

    def is_running(self) -> bool:
        """Check if the remote is responding."""
        try:
            resp = requests.get(f"http://127.0.0.1:{self.port}/api/health", timeout=1)
            return resp.status_code == 200
        except requests.exceptions.RequestException:
            return False

    def wait_for_server(self, timeout: float = 10.0) -> bool:
        """Wait for the remote to become available."""
        start = time.time()
        while time.time() - start < timeout:
            if self.is_running():
                return True
            time.sleep(0.1)
        return False

    def start(self) -> None:
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))
        self.process = subprocess.Popen(
            [
                sys.executable, "-m", "stocksync.main", "remote",
                "--port", str(self.port),
                "--data-file", str(self.data_file),
            ],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            env=env,
        )
        if not self.wait_for_server():
            self.stop()
            raise RuntimeError(f"Remote did not start on port {self.port}")

    def stop(self) -> None:
        """Stop the remote process."""
        if self.process:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()
            self.process = None


def find_free_port() -> int:
    """Find a free TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        s.listen(1)
        return s.getsockname()[1]


def make_client_config(config_dir: Path, remote_url: str) -> Config:
    """Create a client config pointed at remote_url with pacing off."""
    config = Config(config_dir=config_dir)
    config.set("remote_url", remote_url)
    config.set("request_timeout", 5)
    for key in ("drain_delay", "fetch_delay", "collection_delay"):
        config.set(f"sync.{key}", 0)
    return config
