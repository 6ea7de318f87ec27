"""Pytest fixtures: server subprocess on a free port, in-process socketpair sessions."""

import os
import socket
import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from client import RespClient
from kv_store import KVStore
from protocol import ProtocolError
from server import serve_connection


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def wait_for_port(port: int, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while True:
        try:
            with socket.create_connection(("127.0.0.1", port), timeout=0.5):
                return
        except OSError:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.05)


@pytest.fixture
def port():
    return find_free_port()


@pytest.fixture
def server_process(port):
    """Start server as subprocess; yield; then terminate gracefully."""
    env = os.environ.copy()
    env["PYTHONPATH"] = str(ROOT)
    proc = subprocess.Popen(
        [sys.executable, "-m", "server", "--host", "127.0.0.1", "--port", str(port)],
        cwd=str(ROOT),
        env=env,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
    )
    wait_for_port(port)
    yield proc
    proc.terminate()
    try:
        proc.wait(timeout=2)
    except subprocess.TimeoutExpired:
        proc.kill()
    proc.wait()


@pytest.fixture
def client(server_process, port):
    c = RespClient.connect("127.0.0.1", port, timeout=5.0)
    yield c
    c.close()


@pytest.fixture
def store():
    return KVStore()


class ServedPair:
    """Client socket whose peer is served by serve_connection in a thread."""

    def __init__(self, store: KVStore):
        self.sock, server_sock = socket.socketpair()
        self.sock.settimeout(5.0)
        self.error: ProtocolError | None = None
        self._thread = threading.Thread(target=self._serve, args=(server_sock, store), daemon=True)
        self._thread.start()

    def _serve(self, server_sock: socket.socket, store: KVStore) -> None:
        try:
            serve_connection(server_sock, store)
        except ProtocolError as e:
            self.error = e

    def join(self, timeout: float = 5.0) -> bool:
        """Wait for the server loop to exit; True if it did."""
        self._thread.join(timeout)
        return not self._thread.is_alive()


@pytest.fixture
def served(store):
    """Factory for socketpair connections sharing one store."""
    pairs = []

    def make() -> ServedPair:
        pair = ServedPair(store)
        pairs.append(pair)
        return pair

    yield make
    for pair in pairs:
        pair.sock.close()
        pair.join()


@pytest.fixture
def session(served):
    c = RespClient(served().sock)
    yield c
    c.close()
