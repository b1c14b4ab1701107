"""
=============================================================================
HEALTH CHECK HANDLER
=============================================================================

A liveness probe: if the server can route a request and write a response,
it is alive.

    location /health HealthRequestHandler {}

    GET /health  →  200 OK, text/plain, "OK"

Kubernetes / load balancer configuration points at this path:

    livenessProbe:
      httpGet:
        path: /health
        port: 8080

The response is never cacheable: a proxy answering the probe from its
cache would hide a dead backend.

=============================================================================
"""

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.status_codes import HTTPStatus
from .base import RequestHandler


class HealthRequestHandler(RequestHandler):
    """Answers every request with 200 "OK"."""

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .text("OK")
            .header("Cache-Control", "no-store")
            .build())


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# Keep liveness checks trivial. Anything slow or dependent on other
# services belongs in a readiness check, not here.
# =============================================================================
