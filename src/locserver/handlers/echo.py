"""
=============================================================================
ECHO HANDLER
=============================================================================

Sends the request back as the response body, byte for byte:

    $ curl -s http://localhost:8080/echo -H "X-Test: 1"
    GET /echo HTTP/1.1
    Host: localhost:8080
    User-Agent: curl/8.5.0
    Accept: */*
    X-Test: 1

Useful for checking what actually reaches the server through proxies and
load balancers. The body is request.raw, the framed bytes as received,
so header order and case are preserved.

=============================================================================
"""

import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, text_response
from ..http.status_codes import HTTPStatus
from .base import RequestHandler


logger = logging.getLogger(__name__)


class EchoHandler(RequestHandler):
    """200 text/plain with the raw request as the body."""

    accepts_prefix = True

    def __init__(self, prefix: str = "/echo"):
        self.prefix = prefix

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        logger.debug(f"Echoing {len(request.raw)} bytes for {request.target}")
        return text_response(HTTPStatus.OK, request.raw)

    def __repr__(self) -> str:
        return f"EchoHandler(prefix={self.prefix!r})"
