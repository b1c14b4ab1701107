"""
=============================================================================
SLEEP HANDLER
=============================================================================

Blocks for a fixed delay, then answers "Slept".

    location /sleep SleepHandler {
        delay_ms 3000;      # optional, default 3000
    }

A diagnostic for the concurrency model. The handler blocks the worker
thread that runs it, so with N workers:

    ┌───────────────────────────────────────────────────────────────────┐
    │ t=0   client A: GET /sleep   → worker 1 blocked for 3 s           │
    │ t=0   client B: GET /echo    → worker 2 answers immediately       │
    │ t=3   client A gets "Slept"                                       │
    └───────────────────────────────────────────────────────────────────┘

If B had to wait for A, the server would be serializing requests.
Run more than N concurrent sleeps and later requests queue behind them.

=============================================================================
"""

import logging
import time

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, text_response
from ..http.status_codes import HTTPStatus
from .base import RequestHandler


logger = logging.getLogger(__name__)

DEFAULT_DELAY_MS = 3000


class SleepHandler(RequestHandler):
    """Sleeps delay_ms milliseconds, then 200 text/plain "Slept"."""

    optional_directives = ("delay_ms",)

    def __init__(self, delay_ms=DEFAULT_DELAY_MS):
        """
        Args:
            delay_ms: Delay in milliseconds. Config values arrive as
                      strings and are converted here.

        Raises:
            ValueError: If delay_ms is not a non-negative integer.
        """
        try:
            self.delay_ms = int(delay_ms)
        except (TypeError, ValueError):
            raise ValueError(f"delay_ms must be an integer, got {delay_ms!r}") from None
        if self.delay_ms < 0:
            raise ValueError(f"delay_ms must be non-negative, got {self.delay_ms}")

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        logger.debug(f"Sleeping {self.delay_ms}ms")
        time.sleep(self.delay_ms / 1000)
        return text_response(HTTPStatus.OK, "Slept")
