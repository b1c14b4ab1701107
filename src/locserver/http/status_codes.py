"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes the built-in handlers and the session engine actually emit,
with their reason phrases.

=============================================================================
WHO SENDS WHAT
=============================================================================

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ 200 OK            - every handler's happy path           │
    │        │ 201 Created       - CrudHandler POST / PUT on a new id   │
    │        │ 204 No Content    - CrudHandler PUT replace, DELETE      │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  3xx   │ 301 Moved         - MarkdownHandler directory w/o "/"    │
    │        │ 304 Not Modified  - conditional GET (Static, Markdown)   │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ 400 Bad Request   - malformed request (session), CRUD    │
    │        │ 404 Not Found     - fallback route, missing files        │
    │        │ 405 Not Allowed   - CrudHandler unknown method           │
    │        │ 413 Too Large     - MarkdownHandler file over 1 MiB      │
    │        │ 415 Unsupported   - CrudHandler non-JSON Content-Type    │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ 500 Internal      - handler crashed, unreadable file     │
    └────────┴───────────────────────────────────────────────────────────┘

A response built with a code outside this enum is still valid: the session
never interprets status codes, it only writes them.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx Success
    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    # 3xx Redirection
    MOVED_PERMANENTLY = 301
    FOUND = 302
    NOT_MODIFIED = 304

    # 4xx Client errors
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    PAYLOAD_TOO_LARGE = 413
    UNSUPPORTED_MEDIA_TYPE = 415

    # 5xx Server errors
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line (``HTTP/1.1 404 Not Found``)."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        """4xx or 5xx."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.UNSUPPORTED_MEDIA_TYPE: "Unsupported Media Type",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}


def reason_phrase(status: int) -> str:
    """
    Reason phrase for any integer status, known to the enum or not.

    Handlers may hand back statuses we have no member for; the status line
    still needs some text after the code.
    """
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"
