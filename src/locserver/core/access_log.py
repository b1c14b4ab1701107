"""
=============================================================================
ACCESS LOG
=============================================================================

One line per response fully written to a client, on the dedicated
"locserver.access" logger:

    TEXT (default):
    ┌──────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 GET /docs/ => 200 3ms 1834B [MarkdownHandler]              │
    │ ───────── ─── ────── ── ─── ─── ───── ─────────────────              │
    │ client    method     status ms  bytes handler type                   │
    │              target                                                  │
    └──────────────────────────────────────────────────────────────────────┘

    JSON (log_format = "json"):
    ┌──────────────────────────────────────────────────────────────────────┐
    │ {"connection_id": "a1b2c3d4", "client_ip": "127.0.0.1",              │
    │  "method": "GET", "target": "/docs/", "status_code": 200,            │
    │  "duration_ms": 3.12, "bytes_written": 1834,                         │
    │  "handler_type": "MarkdownHandler", "timestamp": "2024-..."}         │
    └──────────────────────────────────────────────────────────────────────┘

The logger can be routed separately from the rest:

    logging.getLogger("locserver.access").addHandler(file_handler)

=============================================================================
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone


logger = logging.getLogger("locserver.access")

LOG_FORMATS = ("text", "json")


@dataclass
class RequestLog:
    """
    One completed request/response exchange.

    Fields:
        connection_id: Connection the request arrived on
        client_ip:     Peer address
        method:        Request method, "-" if the request never parsed
        target:        Raw request-target, "-" if the request never parsed
        status_code:   Response status
        duration_ms:   From request framed to last byte written
        bytes_written: Serialized response size
        handler_type:  Handler type tag from the routing table
        timestamp:     ISO-8601, UTC
    """

    connection_id: str
    client_ip: str
    method: str
    target: str
    status_code: int
    duration_ms: float
    bytes_written: int
    handler_type: str
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict:
        return {
            "connection_id": self.connection_id,
            "client_ip": self.client_ip,
            "method": self.method,
            "target": self.target,
            "status_code": self.status_code,
            "duration_ms": round(self.duration_ms, 2),
            "bytes_written": self.bytes_written,
            "handler_type": self.handler_type,
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        return (
            f"{self.client_ip} {self.method} {self.target} => "
            f"{self.status_code} {int(self.duration_ms)}ms "
            f"{self.bytes_written}B [{self.handler_type}]"
        )


class AccessLogger:
    """
    Writes RequestLog entries in the configured format.

    Args:
        log_format: "text" or "json".
    """

    def __init__(self, log_format: str = "text"):
        if log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {log_format!r}")
        self.log_format = log_format

    def log(self, entry: RequestLog) -> None:
        if not logger.isEnabledFor(logging.INFO):
            return
        if self.log_format == "json":
            logger.info(json.dumps(entry.to_dict()))
        else:
            logger.info(entry.to_text())
