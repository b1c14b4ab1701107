"""
=============================================================================
BUILT-IN REQUEST HANDLERS
=============================================================================

The handler types a config file can name in a location statement:

    ┌──────────────────────┬────────────────────┬───────────────────────────┐
    │ type                 │ directives         │ does                      │
    ├──────────────────────┼────────────────────┼───────────────────────────┤
    │ NotFoundHandler      │ -                  │ 404 (also the fallback)   │
    │ EchoHandler          │ -                  │ raw request as the body   │
    │ HealthRequestHandler │ -                  │ 200 "OK"                  │
    │ SleepHandler         │ delay_ms?          │ block, then "Slept"       │
    │ StaticHandler        │ root               │ files from disk           │
    │ CrudHandler          │ data_path          │ JSON entity store         │
    │ MarkdownHandler      │ root, template?    │ rendered .md + indexes    │
    └──────────────────────┴────────────────────┴───────────────────────────┘

All of them subclass RequestHandler (base.py). CrudHandler and
MarkdownHandler do their I/O through a FileSystem (filesystem.py).

=============================================================================
"""

from .base import RequestHandler, strip_prefix
from .filesystem import FileSystem, InMemoryFileSystem, RealFileSystem
from .not_found import NotFoundHandler
from .echo import EchoHandler
from .health import HealthRequestHandler
from .sleep import SleepHandler
from .static import StaticHandler
from .crud import CrudHandler
from .markdown import (
    MarkdownHandler,
    MarkdownNotInstalledError,
    MarkdownRenderer,
    ListingCache,
    listing_cache,
)

__all__ = [
    "RequestHandler",
    "strip_prefix",
    "FileSystem",
    "InMemoryFileSystem",
    "RealFileSystem",
    "NotFoundHandler",
    "EchoHandler",
    "HealthRequestHandler",
    "SleepHandler",
    "StaticHandler",
    "CrudHandler",
    "MarkdownHandler",
    "MarkdownNotInstalledError",
    "MarkdownRenderer",
    "ListingCache",
    "listing_cache",
]
