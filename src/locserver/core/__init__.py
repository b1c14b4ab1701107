"""
=============================================================================
CORE: SOCKETS, EVENT LOOP, SESSIONS
=============================================================================

    ┌──────────────────┬──────────────────────────────────────────────────┐
    │ reactor.py       │ Reactor: selector + ready queue for all workers  │
    │ worker_pool.py   │ WorkerPool: threads running reactor.run()        │
    │ connection.py    │ Connection: non-blocking socket, request framing │
    │ session.py       │ Session: per-connection HTTP state machine       │
    │ socket_server.py │ SocketServer: listener, accept, session tracking │
    │ access_log.py    │ RequestLog, AccessLogger ("locserver.access")    │
    └──────────────────┴──────────────────────────────────────────────────┘

=============================================================================
"""

from .access_log import AccessLogger, RequestLog
from .connection import Connection
from .reactor import Reactor
from .session import Session, SessionState
from .socket_server import SocketServer
from .worker_pool import WorkerPool, default_worker_count

__all__ = [
    "AccessLogger",
    "RequestLog",
    "Connection",
    "Reactor",
    "Session",
    "SessionState",
    "SocketServer",
    "WorkerPool",
    "default_worker_count",
]
