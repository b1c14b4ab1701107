"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Request parsing, response serialization and the small tables both need.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py      │ RequestParser: framed bytes → HTTPRequest         │
    │ response.py     │ HTTPResponse.to_bytes(), ResponseBuilder, helpers │
    │ status_codes.py │ HTTPStatus enum + reason phrases                  │
    │ mime_types.py   │ file extension → Content-Type                     │
    └─────────────────────────────────────────────────────────────────────┘

Nothing in here touches a socket. Framing (where one request ends) lives
in core.connection; this layer only sees complete messages.

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    format_http_date,
    parse_http_date,
    # Convenience functions for common responses
    text_response,
    json_response,
    json_error,
    created,        # 201 Created
    no_content,     # 204 No Content
    not_modified,   # 304 Not Modified
    redirect,       # 301/302 Redirect
    bad_request,    # 400 Bad Request
    internal_error,  # 500 Internal Server Error
)
from .status_codes import HTTPStatus, reason_phrase
from .mime_types import get_mime_type

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "format_http_date",
    "parse_http_date",
    "text_response",
    "json_response",
    "json_error",
    "created",
    "no_content",
    "not_modified",
    "redirect",
    "bad_request",
    "internal_error",

    # Status codes
    "HTTPStatus",
    "reason_phrase",

    # MIME types
    "get_mime_type",
]
