"""
=============================================================================
COMPRESSION MIDDLEWARE
=============================================================================

Gzip-compresses response bodies when the client accepts it.

    Request:   Accept-Encoding: gzip, deflate, br
    Response:  Content-Encoding: gzip
               Vary: Accept-Encoding

    ┌──────────────────────────────────────────────────────────────────┐
    │ compressed only if ALL of:                                       │
    │   • request Accept-Encoding mentions gzip                        │
    │   • body is at least min_size bytes (default 1024)               │
    │   • Content-Type is text-like (COMPRESSIBLE_TYPES)               │
    │   • response has no Content-Encoding yet                         │
    │   • the gzip output is actually smaller                          │
    └──────────────────────────────────────────────────────────────────┘

Compression is best effort: if gzip fails for any reason the response is
sent uncompressed and a warning is logged. A request never fails because
of this middleware.

=============================================================================
"""

import gzip
import logging
import zlib
from typing import Optional, Set

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus
from .base import Middleware, NextHandler


logger = logging.getLogger(__name__)


def accepts_gzip(accept_encoding: str) -> bool:
    """
    Whether an Accept-Encoding value allows gzip.

        "gzip, deflate"     → True
        "gzip;q=0"          → False
        "*;q=0.5"           → True   (wildcard covers gzip)
        "br, *;q=0"         → False

    An explicit gzip (or x-gzip) entry wins over the wildcard. A q-value
    that does not parse counts as 0.
    """
    gzip_q: Optional[float] = None
    wildcard_q: Optional[float] = None

    for item in accept_encoding.split(","):
        coding, _, params = item.partition(";")
        coding = coding.strip().lower()
        if not coding:
            continue

        q = 1.0
        for param in params.split(";"):
            key, _, value = param.partition("=")
            if key.strip().lower() == "q":
                try:
                    q = float(value.strip())
                except ValueError:
                    q = 0.0

        if coding in ("gzip", "x-gzip"):
            gzip_q = q if gzip_q is None else max(gzip_q, q)
        elif coding == "*":
            wildcard_q = q

    if gzip_q is not None:
        return gzip_q > 0
    return wildcard_q is not None and wildcard_q > 0


class CompressionMiddleware(Middleware):
    """
    Response compression middleware.

        # Defaults: bodies ≥ 1 KiB at level 6
        pipeline.add(CompressionMiddleware())

        # From ServerConfig
        pipeline.add(CompressionMiddleware(config.gzip_min_size, config.gzip_level))
    """

    # Binary formats (images, archives, PDF) are already compressed.
    COMPRESSIBLE_TYPES: Set[str] = {
        "text/html",
        "text/css",
        "text/plain",
        "text/markdown",
        "text/csv",
        "text/xml",
        "text/javascript",
        "application/json",
        "application/javascript",
        "application/xml",
        "application/xhtml+xml",
        "image/svg+xml",
    }

    def __init__(
        self,
        min_size: int = 1024,
        level: int = 6,
        compressible_types: Optional[Set[str]] = None,
    ):
        """
        Args:
            min_size: Smallest body worth compressing, in bytes.
            level: gzip level, 1 (fastest) to 9 (smallest).
            compressible_types: Content types to compress; defaults to
                                COMPRESSIBLE_TYPES.
        """
        self.min_size = min_size
        self.level = level
        self.compressible_types = compressible_types or self.COMPRESSIBLE_TYPES

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        accept_encoding = request.get_header("accept-encoding")
        response = next(request)

        if not accepts_gzip(accept_encoding) or not self._should_compress(response):
            return response

        original_size = len(response.body)
        try:
            compressed_body = gzip.compress(response.body, compresslevel=self.level)
        except (zlib.error, ValueError, TypeError, MemoryError) as e:
            logger.warning(f"gzip failed for {request.path}, sending uncompressed: {e}")
            return response

        if len(compressed_body) >= original_size:
            return response

        response.body = compressed_body
        response.set_header("Content-Encoding", "gzip")
        response.set_header("Content-Length", str(len(compressed_body)))

        vary = response.get_header("Vary", "")
        if "accept-encoding" not in vary.lower():
            response.set_header("Vary", f"{vary}, Accept-Encoding".lstrip(", "))

        logger.debug(f"Compressed {request.path}: {original_size} → {len(compressed_body)} bytes")
        return response

    def _should_compress(self, response: HTTPResponse) -> bool:
        if response.status in (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED):
            return False

        if response.has_header("Content-Encoding"):
            return False

        if len(response.body) < self.min_size:
            return False

        # "text/html; charset=utf-8" → "text/html"
        content_type = response.get_header("Content-Type", "")
        base_type = content_type.split(";")[0].strip().lower()
        return base_type in self.compressible_types


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Check Accept-Encoding from the client
# 2. Compress text-like bodies over the size threshold
# 3. Set Content-Encoding, Content-Length and Vary
# 4. On any gzip failure, fall back to the original body
# =============================================================================
