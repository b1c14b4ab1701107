"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes of ONE framed request into an HTTPRequest.

Framing (finding where a request ends in the byte stream) is the
Connection's job; this module only ever sees a complete message:

    Connection.extract_request()          RequestParser.parse()
    ─────────────────────────────         ─────────────────────
    b"GET /echo HTTP/1.1\r\n"     ──►     HTTPRequest(
    b"Host: localhost\r\n"                    method="GET",
    b"\r\n"                                   path="/echo",
                                              target="/echo",
                                              headers={"host": ...},
                                              raw=b"GET /echo ...")

=============================================================================
REQUEST MESSAGE FORMAT (RFC 7230)
=============================================================================

    request-line   = method SP request-target SP HTTP-version CRLF
    header-field   = field-name ":" OWS field-value OWS CRLF
    message        = request-line *( header-field ) CRLF [ body ]

Anything that does not fit raises HTTPParseError. The session answers
every HTTPParseError the same way: a fixed 400 with Connection: close.

=============================================================================
TARGET VS PATH
=============================================================================

    target = "/docs/guide%20one.md?raw=1"     (exactly as sent)
    path   = "/docs/guide one.md"             (decoded, no query)

Routing and handlers match on `path`. `target` is kept for the access log
and for handlers that care about the query string.

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import parse_qs, unquote, urlparse


class HTTPParseError(Exception):
    """
    Raised when a request cannot be framed or parsed.

    The message is for the server log, never echoed to the client.
    status_code is carried for callers that want it; the session always
    answers 400.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         Request method, uppercase ("GET", "POST", ...)
        path:           URL-decoded path without the query string
        target:         Request-target exactly as it appeared on the wire
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header name → value, names lowercased
        query_params:   Parsed query string, "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Body bytes (exactly Content-Length of them)
        client_address: (ip, port) of the peer
        raw:            The complete request bytes as received
    """

    method: str
    path: str
    target: str = ""
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple = ("", 0)
    raw: bytes = b""

    def __post_init__(self):
        if not self.target:
            self.target = self.path

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """
        Content-Type without parameters, lowercased.

        "application/json; charset=utf-8" → "application/json"
        """
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client asked to keep the connection open.

            HTTP/1.1: keep-alive unless "Connection: close"
            HTTP/1.0: close unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    @property
    def client_ip(self) -> str:
        return self.client_address[0] if self.client_address else ""

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def has_header(self, name: str) -> bool:
        return name.lower() in self.headers

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter, or default."""
        values = self.query_params.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Parses one framed HTTP request into an HTTPRequest.

    REQUEST_LINE_PATTERN: ^([A-Z]+) ([^ ]+) (HTTP/\\d\\.\\d)$
        ([A-Z]+)      - method; any uppercase token, handlers decide
                        what they support (CrudHandler answers 405)
        ([^ ]+)       - request-target
        (HTTP/\\d\\.\\d) - version, then checked against 1.0 / 1.1

    HEADER_PATTERN: ^([^:]+):\\s*(.*)$
    """

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def parse(
        self,
        data: bytes,
        client_address: tuple = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw request bytes.

        Args:
            data: One complete request (head + body) as framed by Connection.
            client_address: Peer (ip, port), carried for logging.

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        try:
            header_section = data[:header_end].decode("iso-8859-1")
        except UnicodeDecodeError as e:
            raise HTTPParseError(f"Failed to decode request head: {e}")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        content_length = self._content_length(headers)
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )
        body = body[:content_length]

        return HTTPRequest(
            method=method,
            path=path,
            target=target,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
            raw=data[:header_end + 4 + content_length],
        )

    def _parse_request_line(self, line: str):
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(f"Unsupported HTTP version: {version}")

        if not (target.startswith("/") or target == "*"):
            raise HTTPParseError(f"Invalid request target: {target!r}")

        parsed = urlparse(target)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, target, path, query_params, version

    def _parse_headers(self, lines: list) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        Repeated headers are joined with ", " (RFC 7230 section 3.2.2).
        Content-Length is the exception: equal repeats collapse to one
        value, differing ones are an error.
        A line without a colon, or an obsolete folded continuation line,
        is a hard error.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            if not line:
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match or line[0] in (" ", "\t"):
                raise HTTPParseError(f"Malformed header line: {line!r}")

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()

            if name == "content-length" and name in headers:
                if value != headers[name]:
                    raise HTTPParseError("Conflicting Content-Length headers")
                continue

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    @staticmethod
    def _content_length(headers: Dict[str, str]) -> int:
        raw = headers.get("content-length")
        if raw is None:
            return 0
        try:
            length = int(raw)
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        if length < 0:
            raise HTTPParseError(f"Negative Content-Length: {raw!r}")
        return length
