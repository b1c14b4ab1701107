"""
=============================================================================
HANDLER FACTORY TABLE
=============================================================================

Maps the handler type names used in config files to the classes that
implement them:

    "EchoHandler"    ──►  EchoHandler
    "StaticHandler"  ──►  StaticHandler
    ...

The table is an ordinary object, not a global filled in at import time.
Whoever builds the routing table decides which types exist:

    table = HandlerFactoryTable()
    register_builtin_handlers(table)        # the seven built-ins
    table.register("ReportHandler", ReportHandler)

A name can be registered once; a second register() is refused.

=============================================================================
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

from ..handlers import (
    CrudHandler,
    EchoHandler,
    HealthRequestHandler,
    MarkdownHandler,
    NotFoundHandler,
    SleepHandler,
    StaticHandler,
)


logger = logging.getLogger(__name__)

# A handler class, or any callable with the same class attributes
HandlerConstructor = Callable[..., object]


class HandlerFactoryTable:
    """Handler type name → constructor."""

    def __init__(self):
        self._constructors: Dict[str, HandlerConstructor] = {}
        self._lock = threading.Lock()

    def register(self, name: str, constructor: HandlerConstructor) -> bool:
        """
        Add a handler type.

        Args:
            name: The type name as written in config files.
            constructor: Class (or callable) building the handler.

        Returns:
            True if added, False if the name was already taken (the
            existing entry is kept).
        """
        with self._lock:
            if name in self._constructors:
                logger.debug(f"Handler type {name!r} already registered")
                return False
            self._constructors[name] = constructor
            return True

    def lookup(self, name: str) -> Optional[HandlerConstructor]:
        """The constructor registered under name, or None."""
        with self._lock:
            return self._constructors.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._constructors)

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._constructors)

    def __repr__(self) -> str:
        return f"HandlerFactoryTable({self.names()})"


def register_builtin_handlers(table: HandlerFactoryTable) -> HandlerFactoryTable:
    """
    Register every built-in handler type in table.

    Names already present are left alone, so calling this twice is harmless.

    Returns:
        The same table, for chaining.
    """
    builtins = {
        "NotFoundHandler": NotFoundHandler,
        "EchoHandler": EchoHandler,
        "HealthRequestHandler": HealthRequestHandler,
        "SleepHandler": SleepHandler,
        "StaticHandler": StaticHandler,
        "CrudHandler": CrudHandler,
        "MarkdownHandler": MarkdownHandler,
    }
    for name, constructor in builtins.items():
        table.register(name, constructor)
    return table


def default_factory_table() -> HandlerFactoryTable:
    """A new table holding the built-in handler types."""
    return register_builtin_handlers(HandlerFactoryTable())
