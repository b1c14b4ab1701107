"""
=============================================================================
ROUTING TABLE
=============================================================================

Turns the location statements of a parsed config into an immutable
routing table, validating everything before the server accepts a single
connection.

    location /api/v1 CrudHandler { data_path ./data; }
    location /api    EchoHandler {}
    location /       StaticHandler { root ./www; }

            │ build_routing_table(config, factory_table)
            ▼
    ┌─────────────┬───────────────┬──────────────────────────────────────┐
    │ prefix      │ handler_type  │ factory                              │
    ├─────────────┼───────────────┼──────────────────────────────────────┤
    │ /api/v1     │ CrudHandler   │ partial(CrudHandler, data_path=...,  │
    │             │               │         prefix="/api/v1", fs=...)    │
    │ /api        │ EchoHandler   │ partial(EchoHandler, prefix="/api")  │
    │ /           │ StaticHandler │ partial(StaticHandler, root=...)     │
    ├─────────────┼───────────────┼──────────────────────────────────────┤
    │ (fallback)  │ NotFound      │ NotFoundHandler                      │
    └─────────────┴───────────────┴──────────────────────────────────────┘

=============================================================================
MATCHING
=============================================================================

Entries are sorted longest prefix first (ties keep config order), and
match() returns the first entry whose prefix is a literal string prefix
of the path:

    /api/v1/books   →  /api/v1
    /api/v2         →  /api
    /apiary         →  /api        (literal, not segment-aware)
    /index.html     →  /
    (no "/" route)  →  fallback NotFoundHandler

=============================================================================
VALIDATION
=============================================================================

Each location statement must have:
    1. a { } block
    2. a prefix starting with "/" and not ending in "/" (except "/")
    3. a prefix not used by an earlier location
    4. a handler type known to the factory table
    5. every directive the handler requires, e.g. "root" for StaticHandler

Violations log once at ERROR and raise RegistryError; no table is
returned.

=============================================================================
"""

import functools
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from ..conf.parser import ConfigBlock, Statement
from ..handlers.filesystem import FileSystem, RealFileSystem
from ..handlers.not_found import NotFoundHandler
from .factory import HandlerFactoryTable


logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """
    Raised when the config's location statements cannot form a routing table.

    Attributes:
        message: What is wrong
        prefix:  The location prefix involved, when there is one
    """

    def __init__(self, message: str, prefix: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.prefix = prefix


@dataclass(frozen=True)
class RouteEntry:
    """
    One routable location.

    Attributes:
        prefix:       Path prefix this entry serves
        factory:      Zero-argument callable returning a fresh handler
        handler_type: Type name from the config, used as a log tag
    """

    prefix: str
    factory: Callable[[], object]
    handler_type: str


FALLBACK_ENTRY = RouteEntry(prefix="", factory=NotFoundHandler, handler_type="NotFoundHandler")


class RoutingTable:
    """
    Location prefixes in match order, plus the fallback.

    Read-only once built; worker threads share one instance without
    locking.
    """

    def __init__(self, entries: List[RouteEntry], fallback: RouteEntry = FALLBACK_ENTRY):
        self._entries: Tuple[RouteEntry, ...] = tuple(
            sorted(entries, key=lambda e: len(e.prefix), reverse=True)
        )
        self._fallback = fallback

    @property
    def entries(self) -> Tuple[RouteEntry, ...]:
        return self._entries

    @property
    def fallback(self) -> RouteEntry:
        return self._fallback

    def match(self, path: str) -> RouteEntry:
        """
        The entry for a request path; never None.

        Args:
            path: Decoded request path, without the query string.

        Returns:
            The longest matching entry, or the fallback.
        """
        for entry in self._entries:
            if path.startswith(entry.prefix):
                return entry
        return self._fallback

    def prefixes(self) -> List[str]:
        return [entry.prefix for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __repr__(self) -> str:
        routes = ", ".join(f"{e.prefix} → {e.handler_type}" for e in self._entries)
        return f"RoutingTable([{routes}])"


# =============================================================================
# BUILD
# =============================================================================

def build_routing_table(
    config: ConfigBlock,
    factory_table: HandlerFactoryTable,
    filesystem: Optional[FileSystem] = None
) -> RoutingTable:
    """
    Build the routing table from a parsed config.

    Only top-level statements with at least three words whose first word
    is "location" are considered; everything else ("port 8080;") is
    ignored here.

    Args:
        config: Root block of the parsed config.
        factory_table: Handler types available to the config.
        filesystem: Shared by every filesystem-backed handler;
                    RealFileSystem if not given.

    Returns:
        A RoutingTable. Building twice from the same config gives the
        same prefixes, order and handler types.

    Raises:
        RegistryError: On the first invalid location.
    """
    if filesystem is None:
        filesystem = RealFileSystem()

    entries: List[RouteEntry] = []
    seen = set()

    for statement in config.statements:
        if len(statement.tokens) < 3 or statement.tokens[0] != "location":
            continue

        prefix, handler_type = statement.tokens[1], statement.tokens[2]

        if statement.child_block is None:
            _fail(f"Missing block {{}} for handler definition at location {prefix} {handler_type}",
                  prefix)

        if not prefix.startswith("/"):
            _fail(f"Path must start with '/': {prefix}", prefix)

        if len(prefix) > 1 and prefix.endswith("/"):
            _fail(f"Path must not end with '/': {prefix}", prefix)

        if prefix in seen:
            _fail(f"Duplicate location: {prefix}", prefix)

        constructor = factory_table.lookup(handler_type)
        if constructor is None:
            _fail(f"Unknown handler type '{handler_type}' at location {prefix}", prefix)

        factory = _bind(constructor, statement, prefix, handler_type, filesystem)

        seen.add(prefix)
        entries.append(RouteEntry(prefix=prefix, factory=factory, handler_type=handler_type))
        logger.debug(f"Route {prefix} → {handler_type}")

    table = RoutingTable(entries)
    logger.info(f"Routing table built with {len(table)} location(s)")
    return table


def _bind(
    constructor: Callable,
    statement: Statement,
    prefix: str,
    handler_type: str,
    filesystem: FileSystem
) -> Callable[[], object]:
    """
    Close over the constructor's arguments, then build one instance so a
    bad directive value fails now rather than on the first request.
    """
    required = getattr(constructor, "required_directives", ())
    optional = getattr(constructor, "optional_directives", ())
    directives = read_directives(statement.child_block, tuple(required) + tuple(optional))

    for name in required:
        if name not in directives:
            _fail(f"{handler_type} at {prefix} missing/invalid {name} directive", prefix)

    kwargs: Dict[str, object] = dict(directives)
    if getattr(constructor, "accepts_prefix", False):
        kwargs["prefix"] = prefix
    if getattr(constructor, "uses_filesystem", False):
        kwargs["filesystem"] = filesystem

    factory = functools.partial(constructor, **kwargs) if kwargs else constructor

    try:
        factory()
    except (TypeError, ValueError) as e:
        _fail(f"{handler_type} at {prefix} rejected its configuration: {e}", prefix)

    return factory


def read_directives(block: ConfigBlock, names: Tuple[str, ...]) -> Dict[str, str]:
    """
    Values of the named directives in a location block.

    A directive is a direct statement of exactly two words. The first
    occurrence of a name wins; surrounding quotes are removed from the
    value:

        root "/var/www/html";   →   {"root": "/var/www/html"}
    """
    found: Dict[str, str] = {}
    for statement in block.statements:
        if len(statement.tokens) != 2:
            continue
        name, value = statement.tokens
        if name in names and name not in found:
            found[name] = unquote(value)
    return found


def unquote(value: str) -> str:
    """Strip one pair of matching surrounding quotes, if present."""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _fail(message: str, prefix: Optional[str] = None) -> None:
    logger.error(message)
    raise RegistryError(message, prefix)
