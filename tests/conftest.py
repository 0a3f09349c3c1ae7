"""
pytest configuration and fixtures.
"""

import json
import socket
import threading
from typing import Callable, Dict, Generator, List, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from blogapi import HTTPServer, ServerConfig
from blogapi.http import Request, Response
from blogapi.middleware import MiddlewarePipeline


# =============================================================================
# IN-MEMORY TRANSPORT
# =============================================================================

class RecordingTransport:
    """Stands in for a client socket: records every send."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.writes: List[bytes] = []

    def send(self, data: bytes) -> bool:
        if not self.connected:
            return False
        self.writes.append(data)
        return True

    @property
    def raw(self) -> bytes:
        return b"".join(self.writes)


class BodySource:
    """Stands in for the socket body read; counts reads."""

    def __init__(self, data: bytes):
        self._data = data
        self.reads = 0

    def __call__(self, length: int) -> bytes:
        self.reads += 1
        chunk, self._data = self._data[:length], self._data[length:]
        return chunk


def parse_raw_response(raw: bytes) -> Tuple[int, Dict[str, str], bytes]:
    """Split raw response bytes into (status, lowercase headers, body)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status = int(lines[0].split(" ")[1])

    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()

    return status, headers, body


def build_request(
    method: str,
    target: str,
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
) -> Request:
    """HEADERS-state request whose body comes from a BodySource."""
    all_headers = {k.lower(): v for k, v in (headers or {}).items()}
    if body:
        all_headers.setdefault("content-length", str(len(body)))
    return Request(
        method=method,
        target=target,
        headers=all_headers,
        body_reader=BodySource(body),
        client_address=("127.0.0.1", 50000),
    )


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def response(transport: RecordingTransport) -> Response:
    return Response(transport.send)


@pytest.fixture
def make_request() -> Callable[..., Request]:
    return build_request


@pytest.fixture
def parse_response() -> Callable[[bytes], Tuple[int, Dict[str, str], bytes]]:
    return parse_raw_response


# =============================================================================
# SAMPLE REQUESTS
# =============================================================================

@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/posts?limit=5&skip=2 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_body() -> dict:
    return {
        "title": "Hello",
        "content": "First post",
        "date": 1700000000,
        "author_id": 7,
        "url_fragment": "hello",
    }


@pytest.fixture
def sample_post_request(sample_post_body: dict) -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = json.dumps(sample_post_body).encode()
    return (
        b"POST /api/posts HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


# =============================================================================
# LIVE SERVER
# =============================================================================

@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        timeout=5.0,
        shutdown_timeout=2.0,
        log_level="WARNING",
    )


class LiveServer:
    """Runs an HTTPServer in a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(self, raw: bytes) -> bytes:
        """Send raw request bytes and read until the server closes."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=5.0) as sock:
            sock.sendall(raw)
            sock.shutdown(socket.SHUT_WR)
            chunks = []
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def fetch(self, raw: bytes) -> Tuple[int, Dict[str, str], bytes]:
        """Send a request and parse the response."""
        return parse_raw_response(self.request(raw))


@pytest.fixture
def live_server(config: ServerConfig) -> Generator[Callable[..., LiveServer], None, None]:
    """
    Factory: live_server(pipeline, context_factory=None) starts a server.

    Every server started through it is stopped after the test.
    """
    started: List[LiveServer] = []

    def start(pipeline: MiddlewarePipeline, context_factory=None) -> LiveServer:
        live = LiveServer(HTTPServer(config, context_factory, pipeline))
        live.start()
        started.append(live)
        return live

    yield start

    for live in started:
        live.stop()
