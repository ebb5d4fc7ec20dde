"""
pytest configuration and fixtures.
"""

import logging
import socket
import threading
from typing import Generator

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ipecho import ServerConfig, SocketServer
from ipecho.events import EVENT_LOGGER_NAME, EventSink


class RecordingSink(EventSink):
    """Event sink that keeps every record in memory."""

    def __init__(self):
        self.records = []
        self._lock = threading.Lock()

    def emit(self, record):
        with self._lock:
            self.records.append(dict(record))

    def snapshot(self) -> list:
        with self._lock:
            return list(self.records)


def recv_all(sock: socket.socket) -> bytes:
    """Read from ``sock`` until the server closes its side."""
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def recv_exact(sock: socket.socket, size: int) -> bytes:
    """Read exactly ``size`` bytes (or fewer if the peer closes)."""
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


def exchange(port: int, payload: bytes, timeout: float = 5.0) -> bytes:
    """Connect, send ``payload``, return the full response."""
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as client:
        client.sendall(payload)
        return recv_all(client)


@pytest.fixture
def sample_request() -> bytes:
    """The request curl sends for `curl http://127.0.0.1:3000/`."""
    return (
        b"GET / HTTP/1.1\r\n"
        b"Host: 127.0.0.1:3000\r\n"
        b"User-Agent: curl/8.4.0\r\n"
        b"Accept: */*\r\n"
        b"\r\n"
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def restore_event_logger():
    """Undo what setup_logging() does to the ipecho loggers."""
    events = logging.getLogger(EVENT_LOGGER_NAME)
    package = logging.getLogger("ipecho")
    handlers = list(events.handlers)
    level, propagate = events.level, events.propagate
    package_level = package.level

    yield events

    for handler in list(events.handlers):
        events.removeHandler(handler)
    for handler in handlers:
        events.addHandler(handler)
    events.setLevel(level)
    events.propagate = propagate
    package.setLevel(package_level)


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def tcp_pair() -> Generator[tuple, None, None]:
    """A connected (server_side, client_side) pair of loopback TCP sockets."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind(("127.0.0.1", 0))
        listener.listen(1)
        client = socket.create_connection(listener.getsockname(), timeout=5.0)
        server_side, _ = listener.accept()

    yield server_side, client

    client.close()
    server_side.close()


class TestServer:
    """Runs a SocketServer in a background thread."""

    __test__ = False  # Not a test class, despite the name

    def __init__(self, server: SocketServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address.port

    def start(self):
        self._thread = threading.Thread(target=self.server.start, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def test_server(sink: RecordingSink) -> Generator[TestServer, None, None]:
    """A running server on 127.0.0.1 with an OS-assigned port."""
    server = SocketServer(ServerConfig(host="127.0.0.1", port=0), sink)

    test_srv = TestServer(server)
    test_srv.start()

    yield test_srv

    test_srv.stop()
