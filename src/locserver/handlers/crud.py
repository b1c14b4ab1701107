"""
=============================================================================
CRUD HANDLER
=============================================================================

A tiny JSON document store: one file per entity, one directory per entity
type.

    location /api CrudHandler {
        data_path ./data;
    }

    ┌──────────────────────────┬────────────────────────────────────────────┐
    │ POST   /api/books        │ store body as ./data/books/<next id>       │
    │                          │ → 201, Location: /api/books/3, {"id": 3}   │
    │ GET    /api/books/3      │ → 200, the stored JSON                     │
    │ GET    /api/books        │ → 200, ["1", "2", "3"]                     │
    │ PUT    /api/books/3      │ → 204 replaced / 201 created               │
    │ DELETE /api/books/3      │ → 204                                      │
    └──────────────────────────┴────────────────────────────────────────────┘

Ids are assigned as (largest positive numeric id) + 1, so deleting the
newest entity lets its id be reused. PUT may create any id, numeric or
not; non-numeric ids are ignored when picking the next POST id.

All errors are JSON: {"error": "<message>"}.

=============================================================================
"""

import json
import logging
import posixpath
import threading
from typing import Optional, Tuple
from urllib.parse import quote

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, created, json_error, no_content
from ..http.status_codes import HTTPStatus
from .base import RequestHandler, strip_prefix
from .filesystem import FileSystem, RealFileSystem


logger = logging.getLogger(__name__)


class CrudHandler(RequestHandler):
    """
    Create/read/update/delete JSON entities under data_path.

    Path layout below the prefix: /<entity>[/<id>]. Anything deeper, an
    empty entity, or a "." / ".." segment is a 400.
    """

    required_directives = ("data_path",)
    accepts_prefix = True
    uses_filesystem = True

    # Id assignment reads the directory, then writes; two concurrent POSTs
    # must not pick the same id.
    _write_lock = threading.Lock()

    def __init__(
        self,
        data_path: str,
        prefix: str = "/api",
        filesystem: Optional[FileSystem] = None
    ):
        self.data_path = data_path.rstrip("/") or "/"
        self.prefix = prefix
        self.fs = filesystem if filesystem is not None else RealFileSystem()

        if not self.fs.is_dir(self.data_path):
            self.fs.mkdir(self.data_path)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        parsed = self.parse_path(strip_prefix(request.path, self.prefix))
        if parsed is None:
            return json_error(HTTPStatus.BAD_REQUEST, "Invalid request path")
        entity, entity_id = parsed

        method = request.method
        if method == "POST":
            return self._create(request, entity)
        if method == "GET":
            if entity_id is None:
                return self._list(entity)
            return self._read(entity, entity_id)
        if method == "PUT":
            if entity_id is None:
                return json_error(HTTPStatus.BAD_REQUEST, "PUT requests require an ID")
            return self._replace(request, entity, entity_id)
        if method == "DELETE":
            if entity_id is None:
                return json_error(HTTPStatus.BAD_REQUEST, "DELETE requests require an ID")
            return self._delete(entity, entity_id)

        return json_error(HTTPStatus.METHOD_NOT_ALLOWED, "Method not allowed")

    @staticmethod
    def parse_path(path: str) -> Optional[Tuple[str, Optional[str]]]:
        """
        Split "/books/3" into ("books", "3").

            "/books"     → ("books", None)
            "/books/"    → ("books", None)
            "/books/3"   → ("books", "3")
            "/books/3/x" → None
            "/"          → None

        Returns:
            (entity, id-or-None), or None for an invalid path.
        """
        if path.startswith("/"):
            path = path[1:]
        if not path:
            return None

        entity, sep, rest = path.partition("/")
        if not entity or "/" in rest:
            return None

        entity_id = rest or None
        for segment in (entity, entity_id):
            if segment in (".", ".."):
                return None
        return entity, entity_id

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def _create(self, request: HTTPRequest, entity: str) -> HTTPResponse:
        error = self._validate_body(request)
        if error is not None:
            return error

        entity_dir = self._entity_dir(entity)
        with self._write_lock:
            self.fs.mkdir(entity_dir)
            new_id = str(self._next_id(entity_dir))
            saved = self.fs.write(posixpath.join(entity_dir, new_id), request.body)

        if not saved:
            return json_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to save entity")

        logger.info(f"Created {entity}/{new_id}")
        return created({"id": int(new_id)}, location=self._location(entity, new_id))

    def _read(self, entity: str, entity_id: str) -> HTTPResponse:
        path = posixpath.join(self._entity_dir(entity), entity_id)
        if not self.fs.exists(path):
            return json_error(HTTPStatus.NOT_FOUND, "Entity not found")

        data = self.fs.read(path)
        if data is None:
            return json_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to read entity data")

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type("application/json")
            .body(data)
            .build())

    def _list(self, entity: str) -> HTTPResponse:
        entity_dir = self._entity_dir(entity)
        ids = sorted(self.fs.list(entity_dir)) if self.fs.exists(entity_dir) else []
        return ResponseBuilder().status(HTTPStatus.OK).json(ids).build()

    def _replace(self, request: HTTPRequest, entity: str, entity_id: str) -> HTTPResponse:
        error = self._validate_body(request)
        if error is not None:
            return error

        entity_dir = self._entity_dir(entity)
        path = posixpath.join(entity_dir, entity_id)
        with self._write_lock:
            self.fs.mkdir(entity_dir)
            existed = self.fs.exists(path)
            saved = self.fs.write(path, request.body)

        if not saved:
            return json_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to save entity")

        if existed:
            return no_content()
        logger.info(f"Created {entity}/{entity_id} via PUT")
        return (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .header("Location", self._location(entity, entity_id))
            .build())

    def _delete(self, entity: str, entity_id: str) -> HTTPResponse:
        path = posixpath.join(self._entity_dir(entity), entity_id)
        if not self.fs.exists(path):
            return json_error(HTTPStatus.NOT_FOUND, "Entity not found")

        with self._write_lock:
            deleted = self.fs.delete(path)
        if not deleted:
            return json_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to delete entity")

        logger.info(f"Deleted {entity}/{entity_id}")
        return no_content()

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _validate_body(self, request: HTTPRequest) -> Optional[HTTPResponse]:
        """
        The checks POST and PUT share, in order:

            empty body               → 400
            non-JSON Content-Type    → 415 (a missing header is fine)
            body not valid JSON      → 400
        """
        if not request.body:
            return json_error(HTTPStatus.BAD_REQUEST, "Request body cannot be empty")

        content_type = request.content_type
        if content_type is not None and content_type != "application/json":
            return json_error(
                HTTPStatus.UNSUPPORTED_MEDIA_TYPE, "Content-Type must be application/json"
            )

        try:
            json.loads(request.body)
        except (ValueError, UnicodeDecodeError):
            return json_error(HTTPStatus.BAD_REQUEST, "Invalid JSON")

        return None

    def _next_id(self, entity_dir: str) -> int:
        ids = []
        for name in self.fs.list(entity_dir):
            try:
                value = int(name)
            except ValueError:
                continue
            if value > 0:
                ids.append(value)
        return max(ids) + 1 if ids else 1

    def _entity_dir(self, entity: str) -> str:
        return posixpath.join(self.data_path, entity)

    def _location(self, entity: str, entity_id: str) -> str:
        """Percent-encoded URL of an entity, safe to send as a header."""
        prefix = "" if self.prefix == "/" else self.prefix
        return quote(f"{prefix}/{entity}/{entity_id}", safe="/")

    def __repr__(self) -> str:
        return f"CrudHandler(data_path={self.data_path!r}, prefix={self.prefix!r})"
