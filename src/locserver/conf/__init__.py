"""
=============================================================================
NGINX-STYLE CONFIGURATION
=============================================================================

    config    := statement*
    statement := token+ ( ';' | block )
    block     := '{' statement* '}'
    # comments run to the end of the line

    ┌─────────────┬──────────────────────────────────────────────────────┐
    │ lexer.py    │ Lexer.next_token(): text → Token stream              │
    │ parser.py   │ ConfigParser.parse(): tokens → ConfigBlock tree,     │
    │             │ ConfigBlock.to_string(), get_port()                  │
    └─────────────┴──────────────────────────────────────────────────────┘

Usage:
    from locserver.conf import parse_file, get_port

    config = parse_file("server.conf")
    port = get_port(config)

=============================================================================
"""

from .lexer import Lexer, Token, TokenType, tokenize
from .parser import (
    ConfigBlock,
    ConfigParseError,
    ConfigParser,
    Statement,
    get_port,
    parse_file,
    parse_string,
)

__all__ = [
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    "ConfigBlock",
    "ConfigParseError",
    "ConfigParser",
    "Statement",
    "get_port",
    "parse_file",
    "parse_string",
]
