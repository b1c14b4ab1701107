"""
=============================================================================
SESSION: ONE CLIENT CONNECTION'S STATE MACHINE
=============================================================================

A Session drives one Connection from accept to close. It never blocks on
the socket; each step ends by registering a one-shot callback with the
reactor (or by terminating).

    ┌───────────────┐  complete request   ┌─────────────┐
    │ AWAIT_REQUEST │ ──────────────────► │ DISPATCHING │
    └───────────────┘                     └─────────────┘
       ▲    │   │ malformed → 400              │ handler response
       │    │   └──────────────┐               ▼ (500 if it raised)
       │    │                  ▼        ┌─────────────┐
       │    │ EOF / error          ┌──► │ AWAIT_WRITE │
       │    ▼                      │    └─────────────┘
       │  ┌────────────┐           │           │ all bytes sent
       │  │ TERMINATED │ ◄─────────┼───────────┤ keep-alive off
       │  └────────────┘   write   │           │ or write error
       │                   error ──┘           │
       └───────────────────────────────────────┘ keep-alive on

=============================================================================
KEEP-ALIVE
=============================================================================

After a response is fully written:

    response has "Connection: close"        → close
    response has "Connection: keep-alive"   → keep open
    otherwise, by request:
        HTTP/1.1 without "Connection: close" → keep open
        HTTP/1.0 with "Connection: keep-alive" → keep open
        anything else                          → close

Bytes of a pipelined next request that are already buffered are served
without waiting for another read event.

=============================================================================
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..http.request import HTTPParseError, HTTPRequest, RequestParser
from ..http.response import DEFAULT_SERVER_NAME, HTTPResponse, bad_request, internal_error
from ..middleware.base import MiddlewarePipeline
from ..routing.registry import RoutingTable
from .access_log import AccessLogger, RequestLog
from .connection import Connection
from .reactor import Reactor


logger = logging.getLogger(__name__)


class SessionState(Enum):
    AWAIT_REQUEST = "await_request"
    DISPATCHING = "dispatching"
    AWAIT_WRITE = "await_write"
    TERMINATED = "terminated"


@dataclass
class _Exchange:
    """The response currently being written, plus what the access log needs."""
    method: str
    target: str
    status_code: int
    handler_type: str
    started: float
    bytes_total: int
    keep_alive: bool


class Session:
    """
    Serves HTTP requests on one connection until either side closes it.

    Args:
        connection: The accepted client connection.
        reactor: Reactor delivering readiness callbacks.
        routing_table: Resolves request paths to handler factories.
        pipeline: Middleware wrapped around every handler.
        access_log: Receives one entry per written response.
        parser: Request parser; a fresh RequestParser if None.
        server_name: Value of the Server response header.
        on_close: Called once with this session after it terminates.
    """

    def __init__(
        self,
        connection: Connection,
        reactor: Reactor,
        routing_table: RoutingTable,
        pipeline: Optional[MiddlewarePipeline] = None,
        access_log: Optional[AccessLogger] = None,
        parser: Optional[RequestParser] = None,
        server_name: str = DEFAULT_SERVER_NAME,
        on_close: Optional[Callable[["Session"], None]] = None,
    ):
        self.connection = connection
        self.reactor = reactor
        self.routing_table = routing_table
        self.pipeline = pipeline or MiddlewarePipeline()
        self.access_log = access_log or AccessLogger()
        self.parser = parser or RequestParser()
        self.server_name = server_name
        self._on_close = on_close

        self._state = SessionState.AWAIT_REQUEST
        self._state_lock = threading.Lock()
        self._exchange: Optional[_Exchange] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def id(self) -> str:
        return self.connection.id

    def start(self) -> None:
        logger.debug(f"[{self.id}] Session started for {self.connection.client_ip}")
        self._await_request()

    # =========================================================================
    # AWAIT_REQUEST
    # =========================================================================

    def _await_request(self) -> None:
        if not self._enter(SessionState.AWAIT_REQUEST):
            return
        if self.connection.has_buffered_data:
            self.reactor.post(self._process_buffer)
        else:
            self._watch_read()

    def _on_readable(self) -> None:
        if self._state is SessionState.TERMINATED:
            return

        data = self.connection.receive()
        if data is None:
            self._watch_read()
            return
        if not data:
            logger.info(f"[{self.id}] Connection closed by client (EOF)")
            self.terminate()
            return

        self._process_buffer()

    def _process_buffer(self) -> None:
        if self._state is SessionState.TERMINATED:
            return

        started = time.monotonic()
        try:
            raw = self.connection.extract_request()
        except HTTPParseError as e:
            self._reject(e, started)
            return

        if raw is None:
            self._watch_read()
            return

        self._dispatch(raw, started)

    # =========================================================================
    # DISPATCHING
    # =========================================================================

    def _dispatch(self, raw: bytes, started: float) -> None:
        if not self._enter(SessionState.DISPATCHING):
            return

        try:
            request = self.parser.parse(raw, self.connection.address)
        except HTTPParseError as e:
            self._reject(e, started)
            return

        entry = self.routing_table.match(request.path)
        try:
            handler = entry.factory()
            response = self.pipeline.wrap(handler.handle)(request)
        except Exception as e:
            logger.exception(
                f"[{self.id}] {entry.handler_type} failed on {request.method} {request.target}: {e}"
            )
            response = internal_error()

        keep_alive = self._keep_alive(request, response)
        self._respond(response, request.method, request.target, entry.handler_type, started, keep_alive)

    @staticmethod
    def _keep_alive(request: HTTPRequest, response: HTTPResponse) -> bool:
        keep_alive = response.keep_alive
        if keep_alive is None:
            keep_alive = request.is_keep_alive
            if not keep_alive:
                response.set_header("Connection", "close")
            elif request.version == "HTTP/1.0":
                response.set_header("Connection", "keep-alive")
        return keep_alive

    def _reject(self, error: HTTPParseError, started: float) -> None:
        """Answer a request that cannot be framed or parsed, then close."""
        logger.warning(f"[{self.id}] Bad request from {self.connection.client_ip}: {error.message}")
        response = bad_request()
        response.set_header("Connection", "close")
        self._respond(response, "-", "-", "-", started, keep_alive=False)

    # =========================================================================
    # AWAIT_WRITE
    # =========================================================================

    def _respond(
        self,
        response: HTTPResponse,
        method: str,
        target: str,
        handler_type: str,
        started: float,
        keep_alive: bool
    ) -> None:
        if not self._enter(SessionState.AWAIT_WRITE):
            return

        try:
            data = response.to_bytes(self.server_name)
        except ValueError as e:
            logger.error(f"[{self.id}] Cannot serialize response to {method} {target}: {e}")
            response = internal_error()
            response.set_header("Connection", "close")
            keep_alive = False
            try:
                data = response.to_bytes(self.server_name)
            except ValueError:
                self.terminate()
                return

        self._exchange = _Exchange(
            method=method,
            target=target,
            status_code=response.status,
            handler_type=handler_type,
            started=started,
            bytes_total=len(data),
            keep_alive=keep_alive,
        )
        self.connection.queue(data)
        self._on_writable()

    def _on_writable(self) -> None:
        if self._state is SessionState.TERMINATED:
            return

        try:
            done = self.connection.flush()
        except OSError as e:
            logger.info(f"[{self.id}] Write to {self.connection.client_ip} failed: {e}")
            self.terminate()
            return

        if not done:
            self._watch_write()
            return

        exchange, self._exchange = self._exchange, None
        self._log(exchange)

        if exchange.keep_alive:
            self._await_request()
        else:
            self.terminate()

    def _log(self, exchange: _Exchange) -> None:
        self.access_log.log(RequestLog(
            connection_id=self.id,
            client_ip=self.connection.client_ip,
            method=exchange.method,
            target=exchange.target,
            status_code=int(exchange.status_code),
            duration_ms=(time.monotonic() - exchange.started) * 1000,
            bytes_written=exchange.bytes_total,
            handler_type=exchange.handler_type,
        ))

    # =========================================================================
    # TERMINATED
    # =========================================================================

    def terminate(self) -> None:
        """Close the connection. Safe to call more than once, from any thread."""
        with self._state_lock:
            if self._state is SessionState.TERMINATED:
                return
            self._state = SessionState.TERMINATED

        self.reactor.unwatch(self.connection.socket)
        self.connection.close()
        logger.debug(f"[{self.id}] Session terminated")

        if self._on_close is not None:
            self._on_close(self)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _enter(self, state: SessionState) -> bool:
        """Move to state unless already terminated."""
        with self._state_lock:
            if self._state is SessionState.TERMINATED:
                return False
            self._state = state
            return True

    def _watch_read(self) -> None:
        try:
            self.reactor.watch_read(self.connection.socket, self._on_readable)
        except (KeyError, ValueError, OSError) as e:
            logger.debug(f"[{self.id}] Cannot wait for read: {e}")
            self.terminate()

    def _watch_write(self) -> None:
        try:
            self.reactor.watch_write(self.connection.socket, self._on_writable)
        except (KeyError, ValueError, OSError) as e:
            logger.debug(f"[{self.id}] Cannot wait for write: {e}")
            self.terminate()
