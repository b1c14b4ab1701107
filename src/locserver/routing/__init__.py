"""
=============================================================================
ROUTING
=============================================================================

    ┌─────────────┬────────────────────────────────────────────────────────┐
    │ factory.py  │ HandlerFactoryTable: type name → handler class         │
    │ registry.py │ build_routing_table(): config → RoutingTable,          │
    │             │ RoutingTable.match(): path → RouteEntry                │
    └─────────────┴────────────────────────────────────────────────────────┘

Usage:
    from locserver.conf import parse_file
    from locserver.routing import build_routing_table, default_factory_table

    table = build_routing_table(parse_file("server.conf"), default_factory_table())
    handler = table.match("/static/site.css").factory()

=============================================================================
"""

from .factory import HandlerFactoryTable, default_factory_table, register_builtin_handlers
from .registry import (
    FALLBACK_ENTRY,
    RegistryError,
    RouteEntry,
    RoutingTable,
    build_routing_table,
    read_directives,
)

__all__ = [
    "HandlerFactoryTable",
    "default_factory_table",
    "register_builtin_handlers",
    "FALLBACK_ENTRY",
    "RegistryError",
    "RouteEntry",
    "RoutingTable",
    "build_routing_table",
    "read_directives",
]
