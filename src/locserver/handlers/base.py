"""
=============================================================================
REQUEST HANDLER BASE CLASS
=============================================================================

Every location in the config names a handler type:

    location /static StaticHandler {
        root ./www;
    }

The routing registry turns that into a factory, and the session calls the
factory once per request to get a fresh handler:

    RouteEntry.factory()  ──►  StaticHandler(root="./www", prefix="/static")
                                    │
                                    ▼
                           handler.handle(request) ──► HTTPResponse

=============================================================================
WHAT A HANDLER DECLARES
=============================================================================

    ┌──────────────────────┬─────────────────────────────────────────────┐
    │ required_directives  │ names that must appear in the location      │
    │                      │ block ("root", "data_path"); passed as      │
    │                      │ keyword arguments                           │
    │ optional_directives  │ names that may appear; passed only if set   │
    │ accepts_prefix       │ constructor takes prefix= (the location)    │
    │ uses_filesystem      │ constructor takes filesystem= (shared)      │
    └──────────────────────┴─────────────────────────────────────────────┘

A handler with none of these is built with no arguments at all.

Constructors must be cheap and side-effect light: the registry builds
one instance per location at startup to check the directives, and the
session builds one per request.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Tuple

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


class RequestHandler(ABC):
    """Base class for everything a location can route to."""

    required_directives: Tuple[str, ...] = ()
    optional_directives: Tuple[str, ...] = ()
    accepts_prefix: bool = False
    uses_filesystem: bool = False

    @abstractmethod
    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Produce the response for one request.

        Args:
            request: The parsed request.

        Returns:
            The response to send. Exceptions raised here are logged by
            the session and answered with 500.
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def strip_prefix(path: str, prefix: str) -> str:
    """
    Remove a location prefix from a request path.

        strip_prefix("/static/css/a.css", "/static")  → "/css/a.css"
        strip_prefix("/static", "/static")            → ""
        strip_prefix("/a.css", "/")                   → "a.css"
        strip_prefix("/other", "/static")             → "/other"

    Prefix matching is literal, so "/staticfoo" under "/static" gives
    "foo"; handlers treat the remainder as relative to their root.
    """
    if prefix == "/":
        return path[1:] if path.startswith("/") else path
    if path.startswith(prefix):
        return path[len(prefix):]
    return path
