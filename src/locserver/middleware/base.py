"""
=============================================================================
MIDDLEWARE BASE CLASSES
=============================================================================

Middleware wraps the handler a route resolves to, so cross-cutting
response processing (compression today) stays out of the handlers:

    Session ──► Middleware 1 ──► Middleware 2 ──► handler.handle()
       ▲             │                 │                 │
       └─────────────┴─────────────────┴─────────────────┘
                       response flows back out

Each middleware receives the request and a `next` callable. It may change
the request before calling next, change the response after, or answer on
its own without calling next at all.

    class AddHeader(Middleware):
        def __call__(self, request, next):
            response = next(request)
            response.set_header("X-Served-By", "locserver")
            return response

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)

# The rest of the chain: request in, response out
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """Base class for all middleware."""

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request, usually by calling next(request).

        Args:
            request: The incoming request
            next: The rest of the chain

        Returns:
            The response to send back toward the client
        """
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered middleware, wrapped around a handler per request.

        pipeline = MiddlewarePipeline()
        pipeline.add(CompressionMiddleware())
        response = pipeline.wrap(handler.handle)(request)

    The first middleware added is the outermost.
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around handler.

        Given [MW1, MW2] the result calls MW1 → MW2 → handler; wrapping
        happens in reverse so the first-added middleware ends up outside.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._link(middleware, current)
        return current

    @staticmethod
    def _link(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
