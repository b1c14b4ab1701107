"""
=============================================================================
HTTP RESPONSE
=============================================================================

What every handler hands back, and how it becomes bytes on the wire.

    handler.handle(request)       middleware            Session
    ───────────────────────  ──►  (gzip)         ──►   response.to_bytes()
    HTTPResponse(                                       │
      status=200,                                       ▼
      headers={...},                    b"HTTP/1.1 200 OK\r\n"
      body=b"OK"                        b"Content-Type: text/plain\r\n"
    )                                   b"Content-Length: 2\r\n"
                                        b"Date: ...\r\n"
                                        b"Server: locserver\r\n"
                                        b"\r\n"
                                        b"OK"

The status is a plain int: handlers may answer with codes that have no
HTTPStatus member, and the session never interprets them.

=============================================================================
HEADER NAMES
=============================================================================

Header names keep the case the handler wrote, but every lookup here is
case-insensitive, so "content-length" set by a handler is never duplicated
by the automatic "Content-Length".

=============================================================================
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional, Union

from .status_codes import HTTPStatus, reason_phrase


DEFAULT_SERVER_NAME = "locserver"

# Statuses that never carry a body (RFC 7230 section 3.3.3)
_BODYLESS_STATUSES = (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED)


@dataclass
class HTTPResponse:
    """
    An HTTP response to be sent to the client.

    Attributes:
        status:  Status code
        headers: Header name → value
        body:    Body bytes
        version: Protocol version for the status line
    """

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 404 Not Found"."""
        return f"{self.version} {int(self.status)} {reason_phrase(self.status)}"

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default

    def has_header(self, name: str) -> bool:
        return self.get_header(name) is not None

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """
        Set a header, replacing any existing one regardless of case.

        Returns self for chaining.
        """
        wanted = name.lower()
        for key in [k for k in self.headers if k.lower() == wanted]:
            del self.headers[key]
        self.headers[name] = value
        return self

    def remove_header(self, name: str) -> None:
        wanted = name.lower()
        for key in [k for k in self.headers if k.lower() == wanted]:
            del self.headers[key]

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body; strings are encoded as UTF-8."""
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    @property
    def keep_alive(self) -> Optional[bool]:
        """
        What the response's own Connection header says.

        Returns:
            True for "keep-alive", False for "close", None when the
            response has no Connection header and the request decides.
        """
        connection = self.get_header("Connection")
        if connection is None:
            return None
        return connection.strip().lower() != "close"

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize the response for the socket.

        Content-Length, Date and Server are added when the handler did
        not set them. 204 and 304 responses get no Content-Length and
        their body is dropped.

        Args:
            server_name: Value for the Server header.

        Returns:
            Status line, headers, blank line and body as one bytes object.

        Raises:
            ValueError: A header contains CR or LF, or is not latin-1.
        """
        response_headers = dict(self.headers)
        body = self.body

        if self.status in _BODYLESS_STATUSES:
            body = b""
        elif not self.has_header("Content-Length"):
            response_headers["Content-Length"] = str(len(body))

        if not self.has_header("Date"):
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if not self.has_header("Server"):
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            line = f"{name}: {value}"
            if "\r" in line or "\n" in line:
                raise ValueError(f"Line break in header {name!r}")
            lines.append(line)
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        return header_bytes + body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .header("Location", "/api/users/3")
            .json({"id": 3})
            .build())

    Every method except build() returns self.
    """

    def __init__(self):
        self._status: int = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: int) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = "text/plain") -> "ResponseBuilder":
        """Plain text body with Content-Type."""
        return self.content_type(content_type).body(text)

    def html(self, html: str) -> "ResponseBuilder":
        return self.text(html, "text/html")

    def json(self, data: Any) -> "ResponseBuilder":
        """Serialize data to compact JSON."""
        return self.content_type("application/json").body(
            json.dumps(data, separators=(",", ":"))
        )

    def last_modified(self, timestamp: float) -> "ResponseBuilder":
        """Last-Modified from a POSIX timestamp (an st_mtime)."""
        dt = datetime.fromtimestamp(timestamp, tz=timezone.utc)
        return self.header("Last-Modified", format_http_date(dt))

    def close_connection(self) -> "ResponseBuilder":
        """Ask the session to close the connection after this response."""
        return self.header("Connection", "close")

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


# =============================================================================
# HTTP DATES
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are always GMT; naive datetimes are taken as UTC.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)

    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def parse_http_date(value: str) -> Optional[float]:
    """
    Parse an HTTP-date into a POSIX timestamp.

    Returns None for anything unparseable; If-Modified-Since with a bad
    date is simply ignored.
    """
    if not value:
        return None
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return text_response(HTTPStatus.OK, "Slept")
#     return json_error(HTTPStatus.NOT_FOUND, "Entity not found")
#     return redirect("/docs/", permanent=True)
#
# =============================================================================

def text_response(
    status: int,
    text: Union[str, bytes],
    content_type: str = "text/plain"
) -> HTTPResponse:
    """A response with a text body and the given Content-Type."""
    return ResponseBuilder().status(status).content_type(content_type).body(text).build()


def json_response(status: int, data: Any) -> HTTPResponse:
    return ResponseBuilder().status(status).json(data).build()


def json_error(status: int, message: str) -> HTTPResponse:
    """
    A JSON error body: {"error": "<message>"}.

    The shape every built-in handler uses for its error responses.
    """
    return json_response(status, {"error": message})


def created(body: Any = None, location: Optional[str] = None) -> HTTPResponse:
    """201 Created, JSON body if given, Location if given."""
    builder = ResponseBuilder().status(HTTPStatus.CREATED)
    if body is not None:
        builder.json(body)
    if location:
        builder.header("Location", location)
    return builder.build()


def no_content() -> HTTPResponse:
    return ResponseBuilder().status(HTTPStatus.NO_CONTENT).build()


def not_modified(headers: Optional[Dict[str, str]] = None) -> HTTPResponse:
    """304 Not Modified carrying the validators (ETag, Last-Modified)."""
    return HTTPResponse(status=HTTPStatus.NOT_MODIFIED, headers=dict(headers or {}))


def redirect(location: str, permanent: bool = False) -> HTTPResponse:
    """
    Create a redirect response.

    Args:
        location: URL to redirect to
        permanent: True for 301, False for 302

    Returns:
        HTTPResponse with redirect status and Location header
    """
    status = HTTPStatus.MOVED_PERMANENTLY if permanent else HTTPStatus.FOUND
    return ResponseBuilder().status(status).header("Location", location).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    """
    400 Bad Request with a JSON error body.

    The session sends this, with Connection: close, for any request it
    cannot frame or parse.
    """
    return json_error(HTTPStatus.BAD_REQUEST, message)


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """
    500 Internal Server Error.

    Used when a handler raises; the message stays generic, the traceback
    goes to the log only.
    """
    return json_error(HTTPStatus.INTERNAL_SERVER_ERROR, message)
