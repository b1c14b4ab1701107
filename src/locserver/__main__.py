"""
=============================================================================
LOCSERVER CLI ENTRY POINT
=============================================================================

    python -m locserver site.conf
    locserver site.conf --workers 8 --log-level DEBUG
    locserver site.conf --log-format json

Startup, in order; any failure logs once and exits with status 1:

    1. parse arguments           (usage error)
    2. parse the config file     (ConfigParseError)
    3. read the port statement   (missing, non-integer or outside 1-65535)
    4. build the routing table   (RegistryError)
    5. bind the listening socket (OSError)

Then serve until SIGINT/SIGTERM and exit with status 0.

=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, ServerConfig
from .conf import ConfigParseError, get_port, parse_file
from .routing import RegistryError, build_routing_table, default_factory_table
from .server import HTTPServer, setup_logging


logger = logging.getLogger("locserver")


class _ArgumentParser(argparse.ArgumentParser):
    """argparse, but usage errors exit with status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="locserver",
        description="Config-driven HTTP/1.1 server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  locserver site.conf                       # Serve site.conf
  locserver site.conf --workers 8           # 8 worker threads
  locserver site.conf --log-format json     # JSON access log
        """
    )

    parser.add_argument("config", help="Path to the server config file")

    # ─────────────────────────────────────────────────────────────────────
    # OVERRIDES (take precedence over LOCSERVER_* environment variables)
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", default=None, help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--workers", "-w", type=int, default=None,
                        help="Worker threads (default: max(2, cpu count))")
    parser.add_argument("--log-level", "-l", choices=LOG_LEVELS, default=None,
                        help="Logging level (default: INFO)")
    parser.add_argument("--log-format", choices=LOG_FORMATS, default=None,
                        help="Access log format (default: text)")
    parser.add_argument("--version", "-v", action="version", version=f"locserver {__version__}")

    return parser


def load_config(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then CLI flags on top."""
    config = ServerConfig.from_env()
    if args.host is not None:
        config.host = args.host
    if args.workers is not None:
        config.workers = args.workers
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ValueError as e:
        setup_logging("INFO")
        logger.error(f"Invalid environment setting: {e}")
        return 1

    setup_logging(config.log_level)

    # ─────────────────────────────────────────────────────────────────────
    # CONFIG FILE
    # ─────────────────────────────────────────────────────────────────────

    try:
        server_config = parse_file(args.config)
    except ConfigParseError:
        # Already logged by the parser
        return 1

    try:
        port = get_port(server_config)
    except ValueError as e:
        logger.error(str(e))
        return 1

    if not 1 <= port <= 65535:
        logger.error(f"Invalid port: {port}. The config file must set a port in 1-65535.")
        return 1
    config.port = port

    try:
        config.validate()
    except ValueError as e:
        logger.error(f"Invalid server setting: {e}")
        return 1

    # ─────────────────────────────────────────────────────────────────────
    # ROUTES
    # ─────────────────────────────────────────────────────────────────────

    try:
        routing_table = build_routing_table(server_config, default_factory_table())
    except RegistryError:
        # Already logged by the registry
        return 1

    # ─────────────────────────────────────────────────────────────────────
    # SERVE
    # ─────────────────────────────────────────────────────────────────────

    server = HTTPServer(routing_table, config)
    try:
        server.bind()
    except OSError:
        # Already logged by the socket server
        server.shutdown()
        return 1

    server.serve_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
