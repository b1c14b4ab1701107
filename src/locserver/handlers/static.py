"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves files from a directory on disk.

    location /static StaticHandler {
        root ./www;
    }

    GET /static/css/site.css   →   ./www/css/site.css   (text/css)

=============================================================================
PATH TRAVERSAL
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /static/../../../etc/passwd HTTP/1.1                           │
    │                                                                     │
    │  Two independent checks, either one answers 404:                    │
    │  1. ".." anywhere in the relative path                              │
    │  2. (root / relative).resolve() not inside root.resolve()           │
    │     (catches symlinks pointing out of root)                         │
    └─────────────────────────────────────────────────────────────────────┘

404 rather than 403: a client probing for files outside root learns
nothing about what exists there.

=============================================================================
CACHING
=============================================================================

    ETag: "<mtime>-<size>"           fingerprint of this version of the file
    Last-Modified: <HTTP-date>       the file's mtime

    Request:  If-None-Match: "1718445600-5120"
    Response: 304 Not Modified (no body)

=============================================================================
"""

import logging
from datetime import datetime, timezone
from pathlib import Path

from ..http.mime_types import get_mime_type
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, format_http_date, text_response
from ..http.status_codes import HTTPStatus
from .base import RequestHandler, strip_prefix


logger = logging.getLogger(__name__)


def _not_found() -> HTTPResponse:
    return text_response(HTTPStatus.NOT_FOUND, "404 Not Found")


class StaticHandler(RequestHandler):
    """
    Serves files under root for requests beneath prefix.

    Directories are not listed and have no index file: a request that
    lands on a directory is a 404.
    """

    required_directives = ("root",)
    accepts_prefix = True

    def __init__(self, root: str, prefix: str = "/"):
        """
        Args:
            root: Directory to serve from. Relative paths are resolved
                  against the working directory at request time.
            prefix: The location prefix, stripped from request paths.
        """
        self.root = root
        self.prefix = prefix

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        # ─────────────────────────────────────────────────────────────────
        # MAP URL TO FILE
        # ─────────────────────────────────────────────────────────────────
        relative = strip_prefix(request.path, self.prefix).lstrip("/")

        if ".." in relative:
            logger.warning(f"Directory traversal attempt: {request.path}")
            return _not_found()

        root = Path(self.root).resolve()
        full_path = (root / relative).resolve()

        try:
            full_path.relative_to(root)
        except ValueError:
            logger.warning(f"Path escapes root {root}: {request.path}")
            return _not_found()

        if not full_path.is_file():
            logger.info(f"File not found: {full_path}")
            return _not_found()

        # ─────────────────────────────────────────────────────────────────
        # SERVE
        # ─────────────────────────────────────────────────────────────────
        try:
            stat = full_path.stat()
            etag = f'"{int(stat.st_mtime)}-{stat.st_size}"'

            if request.get_header("if-none-match") == etag:
                return (ResponseBuilder()
                    .status(HTTPStatus.NOT_MODIFIED)
                    .header("ETag", etag)
                    .build())

            content = full_path.read_bytes()
        except OSError as e:
            logger.error(f"Cannot open file {full_path}: {e}")
            return text_response(HTTPStatus.INTERNAL_SERVER_ERROR, "500 Internal Server Error")

        mtime = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type(get_mime_type(full_path))
            .header("ETag", etag)
            .header("Last-Modified", format_http_date(mtime))
            .body(content)
            .build())

    def __repr__(self) -> str:
        return f"StaticHandler(root={self.root!r}, prefix={self.prefix!r})"
