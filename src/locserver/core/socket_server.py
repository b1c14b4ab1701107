"""
=============================================================================
SOCKET SERVER: LISTENING SOCKET AND ACCEPT LOOP
=============================================================================

    socket() ──► setsockopt() ──► bind() ──► listen() ──► setblocking(False)
                                                                │
                        reactor.watch_read(listener, _on_acceptable)
                                                                │
    ┌───────────────────────────────────────────────────────────▼─────────┐
    │ _on_acceptable (on a worker thread):                                │
    │   accept() until it would block                                     │
    │     └── Connection(...) → Session(...) → session.start()            │
    │   re-register for the next accept                                   │
    └─────────────────────────────────────────────────────────────────────┘

A failed accept() (EMFILE, ECONNABORTED, ...) is logged and the loop goes
on; only shutdown() stops accepting.

=============================================================================
"""

import logging
import socket
import threading
from typing import Callable, Optional, Set, Tuple

from ..config import ServerConfig
from .connection import Connection
from .reactor import Reactor
from .session import Session


logger = logging.getLogger(__name__)

# Builds a Session for a freshly accepted Connection
SessionFactory = Callable[[Connection], Session]


class SocketServer:
    """
    Owns the listening socket and every live session.

    Usage:
        server = SocketServer(config, reactor, session_factory)
        server.bind()      # raises OSError if the port is taken
        server.start()     # accept readiness now handled by the reactor
        ...
        server.shutdown()
    """

    def __init__(self, config: ServerConfig, reactor: Reactor, session_factory: SessionFactory):
        self.config = config
        self.reactor = reactor
        self.session_factory = session_factory

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._sessions: Set[Session] = set()
        self._sessions_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_bound(self) -> bool:
        return self._socket is not None

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port when config.port is 0."""
        if self._socket is None:
            return (self.config.host, self.config.port)
        return self._socket.getsockname()[:2]

    @property
    def session_count(self) -> int:
        with self._sessions_lock:
            return len(self._sessions)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebind right after a restart even with connections in TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Responses go out as soon as they are written
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        return sock

    def bind(self) -> None:
        """
        Create, bind and listen.

        Raises:
            OSError: If the address cannot be bound.
        """
        self._socket = self._create_socket()
        try:
            self._socket.bind((self.config.host, self.config.port))
            self._socket.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.setblocking(False)
        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")

    def start(self) -> None:
        if self._socket is None:
            self.bind()
        self._running = True
        self.reactor.watch_read(self._socket, self._on_acceptable)

    def _on_acceptable(self) -> None:
        if not self._running:
            return

        while True:
            try:
                client_socket, client_address = self._socket.accept()
            except (BlockingIOError, InterruptedError):
                break
            except OSError as e:
                if not self._running:
                    return
                logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")
            try:
                client_socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError:
                pass
            self._start_session(client_socket, client_address)

        if self._running:
            self.reactor.watch_read(self._socket, self._on_acceptable)

    def _start_session(self, client_socket: socket.socket, client_address) -> None:
        conn = Connection(
            socket=client_socket,
            address=client_address,
            buffer_size=self.config.buffer_size,
            max_header_size=self.config.max_header_size,
            max_request_size=self.config.max_request_size,
        )
        session = self.session_factory(conn)
        with self._sessions_lock:
            self._sessions.add(session)
        session.start()

    def forget(self, session: Session) -> None:
        """Drop a terminated session. Passed to sessions as on_close."""
        with self._sessions_lock:
            self._sessions.discard(session)

    def shutdown(self) -> None:
        """Stop accepting, close the listener and every open session."""
        if not self._running and self._socket is None:
            return
        logger.info("Shutting down socket server...")
        self._running = False

        if self._socket is not None:
            self.reactor.unwatch(self._socket)
            try:
                self._socket.close()
            except OSError as e:
                logger.debug(f"Closing listener failed: {e}")
            self._socket = None

        with self._sessions_lock:
            sessions = list(self._sessions)
        for session in sessions:
            session.terminate()

        logger.info("Socket server stopped")
