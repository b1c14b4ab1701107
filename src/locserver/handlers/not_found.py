"""
Fallback handler: the route for every path no location matches.
"""

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, text_response
from ..http.status_codes import HTTPStatus
from .base import RequestHandler


class NotFoundHandler(RequestHandler):
    """
    Always 404.

    Also registered by name, so a config can route a prefix to it
    explicitly:

        location /private NotFoundHandler {}
    """

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        return text_response(HTTPStatus.NOT_FOUND, "404 Not Found")
