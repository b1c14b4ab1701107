"""
=============================================================================
MARKDOWN HANDLER
=============================================================================

Renders .md files under a root directory to HTML, and lists directories.

    location /docs MarkdownHandler {
        root ./docs;
        template ./docs/_layout.html;    # optional, {{content}} placeholder
    }

    ┌───────────────────────────────┬──────────────────────────────────────┐
    │ GET /docs/guide.md            │ 200 text/html, rendered (+ template) │
    │ GET /docs/guide.md?raw=1      │ 200 text/markdown, the source        │
    │ GET /docs/notes               │ 301 → /docs/notes/  (a directory)    │
    │ GET /docs/notes/              │ 200 text/html, index of the folder   │
    │ GET /docs/logo.png            │ 404 "Not a Markdown file"            │
    │ GET /docs/../etc/passwd       │ 404 "Invalid path"                   │
    │ GET /docs/huge.md  (> 1 MiB)  │ 413                                  │
    └───────────────────────────────┴──────────────────────────────────────┘

Errors are short text/plain bodies ("404 Not Found - File does not exist").

=============================================================================
CONDITIONAL GET
=============================================================================

Files:     ETag "<size>-<mtime>"; If-None-Match is checked if present,
           otherwise If-Modified-Since. A match is 304 with both
           validators.

Listings:  rendered pages are cached per directory for 5 seconds
           (shared by all handler instances, under a lock). A cached
           page answers If-None-Match / If-Modified-Since itself; the
           ETag is "<page size>-<time rendered>".

=============================================================================
RENDERING
=============================================================================

HTML comes from patitas, installed with the "markdown" extra:

    pip install locserver[markdown]

Without it the server still starts and ?raw=1 still works; rendered
requests answer 500 and the log says what to install. Tests (or callers
that prefer another library) pass renderer=<callable str → str>.

=============================================================================
"""

import html
import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse, ResponseBuilder, format_http_date, not_modified, parse_http_date,
    redirect, text_response
)
from ..http.status_codes import HTTPStatus
from .base import RequestHandler
from .filesystem import FileSystem, RealFileSystem


logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 1024 * 1024
LISTING_CACHE_TTL = 5.0
CONTENT_PLACEHOLDER = "{{content}}"


# =============================================================================
# RENDERER
# =============================================================================

class MarkdownNotInstalledError(ImportError):
    """patitas is not installed, so Markdown cannot be rendered."""


class MarkdownRenderer:
    """
    Markdown source to HTML via patitas.

    Args:
        plugins: patitas plugins to enable (default: all).
        highlight: Syntax-highlight fenced code blocks.

    Raises:
        MarkdownNotInstalledError: If patitas is not importable.
    """

    def __init__(self, plugins: Optional[list] = None, highlight: bool = False):
        try:
            from patitas import Markdown
        except ImportError:
            msg = (
                "MarkdownHandler requires 'patitas' for Markdown rendering. "
                "Install with: pip install locserver[markdown]"
            )
            raise MarkdownNotInstalledError(msg) from None

        self._md = Markdown(plugins=plugins or ["all"], highlight=highlight)

    def render(self, source: str) -> str:
        if not source:
            return ""
        return self._md(source)

    __call__ = render


_default_renderer: Optional[MarkdownRenderer] = None
_default_renderer_lock = threading.Lock()


def default_renderer() -> MarkdownRenderer:
    """
    The process-wide MarkdownRenderer, built on first use.

    Handlers are created per request; the renderer is shared by all of
    them.
    """
    global _default_renderer
    with _default_renderer_lock:
        if _default_renderer is None:
            _default_renderer = MarkdownRenderer()
        return _default_renderer


# =============================================================================
# DIRECTORY LISTING CACHE
# =============================================================================

@dataclass
class ListingCacheEntry:
    page: bytes
    etag: str
    last_modified: str
    saved_at: float


class ListingCache:
    """
    Rendered directory pages keyed by canonical directory path.

    Entries expire ttl seconds after they were stored. Thread-safe.
    """

    def __init__(self, ttl: float = LISTING_CACHE_TTL):
        self.ttl = ttl
        self._entries: Dict[str, ListingCacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[ListingCacheEntry]:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if now - entry.saved_at >= self.ttl:
                del self._entries[key]
                return None
            return entry

    def put(self, key: str, entry: ListingCacheEntry) -> None:
        with self._lock:
            self._entries[key] = entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


listing_cache = ListingCache()


def _error(status: int, message: str) -> HTTPResponse:
    return text_response(status, message)


# =============================================================================
# HANDLER
# =============================================================================

class MarkdownHandler(RequestHandler):
    """Serves rendered Markdown and directory indexes from root."""

    required_directives = ("root",)
    optional_directives = ("template",)
    accepts_prefix = True
    uses_filesystem = True

    def __init__(
        self,
        root: str,
        prefix: str = "/",
        template: Optional[str] = None,
        filesystem: Optional[FileSystem] = None,
        renderer: Optional[Callable[[str], str]] = None,
        cache: Optional[ListingCache] = None,
    ):
        """
        Args:
            root: Directory holding the Markdown files.
            prefix: Location prefix this handler is mounted at.
            template: HTML file with a {{content}} placeholder; without
                      one, bare HTML fragments are sent.
            filesystem: Where files are read from.
            renderer: Markdown → HTML callable; defaults to patitas.
            cache: Listing cache; defaults to the shared module cache.
        """
        self.root = root
        self.prefix = prefix
        self.template = template
        self.fs = filesystem if filesystem is not None else RealFileSystem()
        self._renderer = renderer
        self.cache = cache if cache is not None else listing_cache

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        target_path = request.path
        query = urlparse(request.target).query
        raw_requested = "raw=1" in query

        # ─────────────────────────────────────────────────────────────────
        # MAP URL TO FILESYSTEM PATH
        # ─────────────────────────────────────────────────────────────────
        relative = self._relative_path(target_path)
        if relative is None:
            logger.warning(f"Request {target_path} does not align with location {self.prefix}")
            return _error(HTTPStatus.NOT_FOUND, "404 Not Found - Path mismatch")

        if not self.fs.is_dir(self.root):
            logger.error(f"Configured root {self.root!r} does not exist or is not a directory")
            return _error(
                HTTPStatus.INTERNAL_SERVER_ERROR,
                "Internal Server Error - Invalid root configuration"
            )

        target = os.path.join(self.root, relative) if relative else self.root
        if not self.fs.is_within(target, self.root):
            logger.warning(f"Path traversal attempt or invalid path: {target}")
            return _error(HTTPStatus.NOT_FOUND, "404 Not Found - Invalid path")

        canonical = self.fs.resolve(target)

        if self.fs.is_dir(canonical):
            return self._directory(request, target_path, canonical)

        if os.path.splitext(target)[1] != ".md":
            logger.info(f"Requested file is not a .md file: {target}")
            return _error(HTTPStatus.NOT_FOUND, "404 Not Found - Not a Markdown file")

        if not self.fs.exists(canonical):
            logger.info(f"Markdown file not found: {canonical}")
            return _error(HTTPStatus.NOT_FOUND, "404 Not Found - File does not exist")

        return self._file(request, canonical, raw_requested)

    def _relative_path(self, target_path: str) -> Optional[str]:
        """
        Path below the location, or None if target_path is not under it.

            prefix "/docs":  "/docs/a.md" → "a.md",  "/docs" → "",
                             "/docsx"     → None
            prefix "/":      "/a.md"      → "a.md"
        """
        if self.prefix == "/":
            return target_path[1:] if target_path.startswith("/") else target_path
        location = self.prefix.rstrip("/") + "/"
        if target_path.startswith(location):
            return target_path[len(location):]
        if target_path == self.prefix:
            return ""
        return None

    # =========================================================================
    # FILES
    # =========================================================================

    def _file(self, request: HTTPRequest, path: str, raw_requested: bool) -> HTTPResponse:
        size = self.fs.size(path)
        mtime = self.fs.mtime(path)
        if size is None or mtime is None:
            logger.error(f"Could not stat {path}")
            return _error(
                HTTPStatus.INTERNAL_SERVER_ERROR,
                "Internal Server Error - Could not determine file size"
            )

        etag = f'"{size}-{int(mtime)}"'
        last_modified = _http_date(mtime)
        validators = {"ETag": etag, "Last-Modified": last_modified}

        if self._is_not_modified(request, etag, int(mtime)):
            return not_modified(validators)

        if size > MAX_FILE_SIZE:
            logger.warning(f"File exceeds 1MB limit: {path}, size: {size}")
            return _error(
                HTTPStatus.PAYLOAD_TOO_LARGE, "413 Payload Too Large - File exceeds 1MB limit"
            )

        if size == 0:
            return text_response(HTTPStatus.OK, b"", "text/html")

        data = self.fs.read(path)
        if data is None:
            logger.error(f"Failed to read Markdown file: {path}")
            return _error(
                HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error - Could not read file"
            )

        if raw_requested:
            logger.info(f"Served raw {path}")
            return self._ok(data, "text/markdown", validators)

        try:
            fragment = self._render(data.decode("utf-8", errors="replace"))
        except MarkdownNotInstalledError as e:
            logger.error(str(e))
            return _error(
                HTTPStatus.INTERNAL_SERVER_ERROR,
                "Internal Server Error - Markdown conversion failed"
            )

        page, wrapped = self._wrap(fragment)
        logger.info(f"Served {path} ({'wrapped' if wrapped else 'raw'})")
        return self._ok(page.encode("utf-8"), "text/html", validators)

    @staticmethod
    def _is_not_modified(request: HTTPRequest, etag: str, mtime: int) -> bool:
        if request.has_header("if-none-match"):
            return request.get_header("if-none-match") == etag
        if request.has_header("if-modified-since"):
            since = parse_http_date(request.get_header("if-modified-since"))
            return since is not None and mtime <= since
        return False

    def _render(self, source: str) -> str:
        renderer = self._renderer or default_renderer()
        return renderer(source)

    # =========================================================================
    # DIRECTORIES
    # =========================================================================

    def _directory(self, request: HTTPRequest, target_path: str, canonical: str) -> HTTPResponse:
        if not target_path.endswith("/"):
            location = urlparse(request.target).path + "/"
            return redirect(location, permanent=True)

        cached = self.cache.get(canonical)
        if cached is not None:
            validators = {"ETag": cached.etag, "Last-Modified": cached.last_modified}
            if request.get_header("if-none-match") == cached.etag:
                return not_modified(validators)
            if request.get_header("if-modified-since") == cached.last_modified:
                return not_modified(validators)
            return self._ok(cached.page, "text/html", validators)

        listing = self.render_listing(target_path, canonical)
        page, _ = self._wrap(listing)
        body = page.encode("utf-8")

        etag = f'"{len(body)}-{int(time.time())}"'
        last_modified = _http_date(self.fs.mtime(canonical) or time.time())
        self.cache.put(canonical, ListingCacheEntry(body, etag, last_modified, time.monotonic()))

        return self._ok(body, "text/html", {"ETag": etag, "Last-Modified": last_modified})

    def render_listing(self, target_path: str, directory: str) -> str:
        """
        HTML index of a directory: subdirectories first, then .md files,
        each group sorted by name.

            <h1>Index of /docs/</h1>
            <ul>
              <li><a href="guides/">guides/</a></li>
              <li><a href="intro.md">intro.md</a></li>
            </ul>
        """
        subdirs = sorted(self.fs.list_dirs(directory))
        md_files = sorted(f for f in self.fs.list(directory) if f.endswith(".md"))

        lines = [f"<h1>Index of {html.escape(target_path)}</h1>\n<ul>\n"]
        for name in subdirs:
            name = html.escape(name)
            lines.append(f'  <li><a href="{name}/">{name}/</a></li>\n')
        for name in md_files:
            name = html.escape(name)
            lines.append(f'  <li><a href="{name}">{name}</a></li>\n')
        lines.append("</ul>\n")
        return "".join(lines)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _wrap(self, content: str):
        """
        Put content into the template's {{content}} slot.

        Returns:
            (page, wrapped). Without a usable template (none configured,
            unreadable, over 1 MiB, or no placeholder) the content is
            returned as-is with wrapped False.
        """
        template = self._load_template()
        if template is None or CONTENT_PLACEHOLDER not in template:
            return content, False
        return template.replace(CONTENT_PLACEHOLDER, content, 1), True

    def _load_template(self) -> Optional[str]:
        if not self.template:
            return None
        size = self.fs.size(self.template)
        if size is None or size > MAX_FILE_SIZE:
            return None
        data = self.fs.read(self.template)
        if data is None:
            return None
        return data.decode("utf-8", errors="replace")

    @staticmethod
    def _ok(body: bytes, content_type: str, validators: Dict[str, str]) -> HTTPResponse:
        builder = ResponseBuilder().status(HTTPStatus.OK).content_type(content_type).body(body)
        for name, value in validators.items():
            builder.header(name, value)
        return builder.build()

    def __repr__(self) -> str:
        return (
            f"MarkdownHandler(root={self.root!r}, prefix={self.prefix!r}, "
            f"template={self.template!r})"
        )


def _http_date(timestamp: float) -> str:
    return format_http_date(datetime.fromtimestamp(timestamp, tz=timezone.utc))
