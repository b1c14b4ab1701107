"""
=============================================================================
LOCSERVER: A CONFIG-DRIVEN HTTP/1.1 SERVER
=============================================================================

locserver reads an nginx-style config file, maps location prefixes to
handler types, and serves HTTP/1.1 on a reactor shared by a pool of worker
threads.

    # site.conf
    port 8080;

    location /        StaticHandler   { root ./www; }
    location /docs    MarkdownHandler { root ./docs; template ./page.html; }
    location /api     CrudHandler     { data_path ./data; }
    location /echo    EchoHandler     {}
    location /health  HealthRequestHandler {}

    $ locserver site.conf

=============================================================================
PACKAGE LAYOUT
=============================================================================

    locserver/
    ├── conf/          Config lexer, parser and serializer
    ├── routing/       Handler factory table and routing table
    ├── handlers/      Built-in handlers and the FileSystem abstraction
    ├── http/          Request parsing, responses, status codes, MIME types
    ├── middleware/    Middleware pipeline and gzip compression
    ├── core/          Reactor, worker pool, connections, sessions
    ├── config.py      ServerConfig (process settings)
    ├── server.py      HTTPServer
    └── __main__.py    Command-line entry point

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import HTTPServer, setup_logging

__all__ = ["HTTPServer", "ServerConfig", "setup_logging", "__version__"]
