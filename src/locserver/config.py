"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Process-level settings for the server. Routes and the listening port come
from the nginx-style config file; everything about HOW the server runs
lives here.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    WHERE SETTINGS COME FROM                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   Priority (highest to lowest):                                     │
    │                                                                     │
    │   1. Command-line flags                                             │
    │      └── locserver site.conf --workers 8                            │
    │                                                                     │
    │   2. Environment variables                                          │
    │      └── LOCSERVER_LOG_LEVEL=DEBUG locserver site.conf              │
    │                                                                     │
    │   3. Defaults (in this dataclass)                                   │
    │                                                                     │
    │   The port is always taken from the config file:                    │
    │      port 8080;                                                     │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK
    - host, port, backlog, buffer_size

    HTTP
    - max_header_size, max_request_size, server_name

    THREADING
    - workers

    COMPRESSION
    - gzip_min_size, gzip_level

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"

    port: int = 0
    """
    Listening port. Filled from the config file's port statement.
    0 asks the OS for a free port (tests use this).
    """

    backlog: int = 128

    buffer_size: int = 8192
    """Bytes requested per recv()."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    max_header_size: int = 64 * 1024

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Largest request (head + body). Bigger requests get 400 and a close."""

    server_name: str = "locserver"

    # ─────────────────────────────────────────────────────────────────────
    # THREADING
    # ─────────────────────────────────────────────────────────────────────

    workers: Optional[int] = None
    """Worker threads, at least 2. None means max(2, os.cpu_count())."""

    # ─────────────────────────────────────────────────────────────────────
    # COMPRESSION
    # ─────────────────────────────────────────────────────────────────────

    gzip_min_size: int = 1024
    gzip_level: int = 6

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    log_format: str = "text"
    """Access log format: 'text' or 'json'."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        LOCSERVER_HOST        Bind address (default: 0.0.0.0)
        LOCSERVER_WORKERS     Worker threads (default: max(2, cpu_count))
        LOCSERVER_LOG_LEVEL   Logging level (default: INFO)
        LOCSERVER_LOG_FORMAT  Access log format (default: text)

        Raises:
            ValueError: If LOCSERVER_WORKERS is not an integer.
        """
        workers = os.getenv("LOCSERVER_WORKERS")
        return cls(
            host=os.getenv("LOCSERVER_HOST", "0.0.0.0"),
            workers=int(workers) if workers else None,
            log_level=os.getenv("LOCSERVER_LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOCSERVER_LOG_FORMAT", "text").lower(),
        )

    def validate(self) -> None:
        """
        Check every value; raise on the first bad one.

        Raises:
            ValueError: Describing the offending setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.workers is not None and self.workers < 2:
            raise ValueError(f"workers must be >= 2, got {self.workers}")

        if self.backlog < 1:
            raise ValueError(f"backlog must be >= 1, got {self.backlog}")

        if self.buffer_size < 1024:
            raise ValueError(f"buffer_size must be >= 1024, got {self.buffer_size}")

        if self.max_header_size < 1024:
            raise ValueError(f"max_header_size must be >= 1024, got {self.max_header_size}")

        if self.max_request_size < self.max_header_size:
            raise ValueError("max_request_size must be >= max_header_size")

        if not 1 <= self.gzip_level <= 9:
            raise ValueError(f"gzip_level must be 1-9, got {self.gzip_level}")

        if self.gzip_min_size < 0:
            raise ValueError(f"gzip_min_size must be >= 0, got {self.gzip_min_size}")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got {self.log_level!r}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {self.log_format!r}")
