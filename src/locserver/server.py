"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together:

    ┌────────────────────────────────────────────────────────────────────┐
    │                            HTTPServer                              │
    │                                                                    │
    │   RoutingTable ◄──────────── built from the config file            │
    │        │                                                           │
    │   SocketServer ── accept ──► Session (one per connection)          │
    │        │                        │  match → factory() → handle()    │
    │        │                        │  through MiddlewarePipeline      │
    │        ▼                        ▼                                  │
    │     Reactor ◄──── one-shot read/write registrations                │
    │        ▲                                                           │
    │   WorkerPool: N threads, each in reactor.run()                     │
    └────────────────────────────────────────────────────────────────────┘

Usage:
    table = build_routing_table(parse_file("site.conf"), default_factory_table())
    server = HTTPServer(table, ServerConfig(port=8080))
    server.serve_forever()     # blocks until SIGINT/SIGTERM

In tests:
    server = HTTPServer(table, ServerConfig(host="127.0.0.1", port=0))
    host, port = server.start()
    ...
    server.shutdown()

=============================================================================
"""

import logging
import signal
import threading
from typing import Dict, Optional, Tuple

from .config import ServerConfig
from .core.access_log import AccessLogger
from .core.connection import Connection
from .core.reactor import Reactor
from .core.session import Session
from .core.socket_server import SocketServer
from .core.worker_pool import WorkerPool
from .http.request import RequestParser
from .middleware.base import Middleware, MiddlewarePipeline
from .middleware.compression import CompressionMiddleware
from .routing.registry import RoutingTable


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger the way every locserver process does."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("locserver").setLevel(numeric)


class HTTPServer:
    """
    A configured server: routing table plus process settings.

    Args:
        routing_table: Built by build_routing_table().
        config: Process settings; defaults if not given.
        compression: Add CompressionMiddleware to the pipeline.
    """

    def __init__(
        self,
        routing_table: RoutingTable,
        config: Optional[ServerConfig] = None,
        compression: bool = True,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        self.routing_table = routing_table

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._reactor = Reactor()
        self._pool = WorkerPool(self._reactor, self.config.workers)
        self._socket_server = SocketServer(self.config, self._reactor, self._create_session)

        # ─────────────────────────────────────────────────────────────────
        # REQUEST PROCESSING
        # ─────────────────────────────────────────────────────────────────

        self._parser = RequestParser()
        self._access_log = AccessLogger(self.config.log_format)
        self._middleware = MiddlewarePipeline()
        if compression:
            self._middleware.add(CompressionMiddleware(
                min_size=self.config.gzip_min_size,
                level=self.config.gzip_level,
            ))

        # ─────────────────────────────────────────────────────────────────
        # RUNTIME STATE
        # ─────────────────────────────────────────────────────────────────

        self._running = False
        self._stop_event = threading.Event()
        self._shutdown_lock = threading.Lock()
        self._original_handlers: Dict[int, object] = {}

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Append middleware; it runs inside any added before it."""
        self._middleware.add(middleware)
        return self

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    def _create_session(self, connection: Connection) -> Session:
        return Session(
            connection=connection,
            reactor=self._reactor,
            routing_table=self.routing_table,
            pipeline=self._middleware,
            access_log=self._access_log,
            parser=self._parser,
            server_name=self.config.server_name,
            on_close=self._socket_server.forget,
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def bind(self) -> Tuple[str, int]:
        """
        Bind the listening socket without serving yet.

        Raises:
            OSError: If the address is unavailable.
        """
        self._socket_server.bind()
        return self.address

    def start(self) -> Tuple[str, int]:
        """
        Start serving in background threads and return immediately.

        Returns:
            The bound (host, port).
        """
        if self._running:
            return self.address

        if not self._socket_server.is_bound:
            self._socket_server.bind()

        self._pool.start()
        self._socket_server.start()
        self._running = True

        host, port = self.address
        logger.info(
            f"Serving {len(self.routing_table)} location(s) on {host}:{port} "
            f"with {self._pool.size} worker(s)"
        )
        return host, port

    def serve_forever(self) -> None:
        """
        Serve until SIGINT or SIGTERM, then shut down.

        Signal handlers are only installed when called from the main
        thread.
        """
        self._setup_signals()
        try:
            self.start()
            while not self._stop_event.wait(timeout=1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self.shutdown()
            self._restore_signals()

    def shutdown(self) -> None:
        """Stop accepting, close every session and stop the workers. Idempotent."""
        with self._shutdown_lock:
            if self._stop_event.is_set() and not self._running:
                return
            self._stop_event.set()
            was_running, self._running = self._running, False

        logger.info("Shutting down server...")
        self._socket_server.shutdown()
        self._reactor.stop()
        if was_running:
            self._pool.join(timeout=5.0)
        self._reactor.close()
        logger.info("Server stopped")

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self._stop_event.set()
            self._reactor.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()
