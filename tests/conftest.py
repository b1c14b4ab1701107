"""
pytest configuration and fixtures.
"""

import socket
import sys
from pathlib import Path
from typing import Callable, Dict, Generator, List

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from locserver import HTTPServer, ServerConfig
from locserver.conf import parse_string
from locserver.handlers import InMemoryFileSystem
from locserver.http import HTTPRequest, RequestParser
from locserver.routing import build_routing_table, default_factory_table


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/books?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"title": "Dune", "author": "Herbert"}'
    return (
        b"POST /api/books HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def memory_fs() -> InMemoryFileSystem:
    return InMemoryFileSystem()


def build_request(
    method: str,
    target: str,
    headers: Dict[str, str] = None,
    body: bytes = b"",
    version: str = "HTTP/1.1",
) -> HTTPRequest:
    """Serialize a request and run it through the real parser."""
    headers = dict(headers or {})
    if body and "Content-Length" not in headers:
        headers["Content-Length"] = str(len(body))
    head = f"{method} {target} {version}\r\n"
    head += "".join(f"{name}: {value}\r\n" for name, value in headers.items())
    raw = head.encode("latin-1") + b"\r\n" + body
    return RequestParser().parse(raw, ("127.0.0.1", 50000))


@pytest.fixture
def make_request() -> Callable[..., HTTPRequest]:
    return build_request


# =============================================================================
# LIVE SERVER
# =============================================================================

class RawResponse:
    """A response read off the wire."""

    def __init__(self, status: int, headers: Dict[str, str], body: bytes):
        self.status = status
        self.headers = headers
        self.body = body

    def header(self, name: str, default: str = None) -> str:
        return self.headers.get(name.lower(), default)


def read_response(sock: socket.socket) -> RawResponse:
    """Read exactly one response (head + Content-Length body) from sock."""
    data = b""
    while b"\r\n\r\n" not in data:
        chunk = sock.recv(4096)
        if not chunk:
            raise ConnectionError(f"Connection closed before response head: {data!r}")
        data += chunk

    head, _, rest = data.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status = int(lines[0].split(" ")[1])
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()

    length = int(headers.get("content-length", 0))
    while len(rest) < length:
        chunk = sock.recv(4096)
        if not chunk:
            break
        rest += chunk
    return RawResponse(status, headers, rest[:length])


class RunningServer:
    """An HTTPServer serving in background threads on an ephemeral port."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self.host, self.port = server.start()

    def connect(self, timeout: float = 5.0) -> socket.socket:
        sock = socket.create_connection(("127.0.0.1", self.port), timeout=timeout)
        return sock

    def send(self, raw: bytes) -> RawResponse:
        """Send one raw request on a fresh connection and read the reply."""
        with self.connect() as sock:
            sock.sendall(raw)
            return read_response(sock)

    def get(self, path: str, headers: Dict[str, str] = None) -> RawResponse:
        lines = [f"GET {path} HTTP/1.1", "Host: localhost", "Connection: close"]
        lines += [f"{name}: {value}" for name, value in (headers or {}).items()]
        return self.send(("\r\n".join(lines) + "\r\n\r\n").encode())

    read = staticmethod(read_response)

    def stop(self):
        self.server.shutdown()


@pytest.fixture
def serve() -> Generator[Callable[..., RunningServer], None, None]:
    """
    Factory: serve(config_text, filesystem=None, **config_overrides).

    Every server started through it is shut down at teardown.
    """
    started: List[RunningServer] = []

    def _serve(config_text: str, filesystem=None, **overrides) -> RunningServer:
        table = build_routing_table(parse_string(config_text), default_factory_table(), filesystem)
        settings = {"host": "127.0.0.1", "port": 0, "workers": 4, "log_level": "WARNING"}
        settings.update(overrides)
        running = RunningServer(HTTPServer(table, ServerConfig(**settings)))
        started.append(running)
        return running

    yield _serve

    for running in started:
        running.stop()
