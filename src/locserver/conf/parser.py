"""
=============================================================================
CONFIG PARSER
=============================================================================

Builds a ConfigBlock tree from the lexer's token stream.

    port 8080;                           ConfigBlock
    location /echo EchoHandler {}          ├── Statement ["port", "8080"]
    location /static StaticHandler {       ├── Statement ["location", "/echo",
      root ./www;                          │             "EchoHandler"] {}
    }                                      └── Statement ["location", "/static",
                                                         "StaticHandler"]
                                                └── ConfigBlock
                                                    └── Statement ["root", "./www"]

=============================================================================
THE BUILDER
=============================================================================

A stack of open blocks (root at the bottom) and the type of the previous
significant token. Comments are dropped before they reach the builder.

    ┌──────────────────────┬──────────────────────────────┬─────────────────────┐
    │ new token            │ allowed after                │ effect              │
    ├──────────────────────┼──────────────────────────────┼─────────────────────┤
    │ NORMAL/QUOTED_STRING │ START STATEMENT_END          │ new statement, or   │
    │                      │ START_BLOCK END_BLOCK        │ append to current   │
    │                      │ NORMAL QUOTED_STRING         │ after a word        │
    │ STATEMENT_END        │ NORMAL QUOTED_STRING         │ -                   │
    │ START_BLOCK          │ NORMAL QUOTED_STRING         │ push child block    │
    │ END_BLOCK            │ STATEMENT_END END_BLOCK      │ pop (never root)    │
    │                      │ START_BLOCK                  │                     │
    │ EOF                  │ START STATEMENT_END          │ done, if text empty │
    │                      │ END_BLOCK                    │ and only root open  │
    └──────────────────────┴──────────────────────────────┴─────────────────────┘

Anything else raises ConfigParseError. Nothing is returned on failure, so
callers never see half a tree.

=============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union
from pathlib import Path

from .lexer import Lexer, Token, TokenType


logger = logging.getLogger(__name__)


class ConfigParseError(Exception):
    """
    Raised when configuration text is not well-formed.

    Attributes:
        message:    Human readable description
        last_token: Type of the last accepted token (None for I/O errors)
        token:      The token that could not be accepted (None for I/O errors)
    """

    def __init__(
        self,
        message: str,
        last_token: Optional[TokenType] = None,
        token: Optional[Token] = None
    ):
        super().__init__(message)
        self.message = message
        self.last_token = last_token
        self.token = token


@dataclass
class Statement:
    """One config statement: its words, and the block that follows, if any."""

    tokens: List[str] = field(default_factory=list)
    child_block: Optional["ConfigBlock"] = None

    def to_string(self, depth: int = 0) -> str:
        indent = "  " * depth
        text = indent + " ".join(self.tokens)
        if self.child_block is not None:
            text += " {\n" + self.child_block.to_string(depth + 1) + indent + "}"
        else:
            text += ";"
        return text + "\n"


@dataclass
class ConfigBlock:
    """
    A sequence of statements; the whole file is the root block.

    to_string() renders it back to config text that parses to the same
    tree:

        >>> block = parse_string("a b; c { d; }")
        >>> print(block.to_string(), end="")
        a b;
        c {
          d;
        }
    """

    statements: List[Statement] = field(default_factory=list)

    def to_string(self, depth: int = 0) -> str:
        return "".join(statement.to_string(depth) for statement in self.statements)

    def find(self, *tokens: str) -> List[Statement]:
        """Direct statements whose leading words equal tokens."""
        n = len(tokens)
        return [s for s in self.statements if tuple(s.tokens[:n]) == tokens]

    def __str__(self) -> str:
        return self.to_string()


# Previous-token sets from the transition table above
_WORD_TYPES = (TokenType.NORMAL, TokenType.QUOTED_STRING)
_BEFORE_WORD = (
    TokenType.START,
    TokenType.STATEMENT_END,
    TokenType.START_BLOCK,
    TokenType.END_BLOCK,
    TokenType.NORMAL,
    TokenType.QUOTED_STRING,
)
_BEFORE_END_BLOCK = (TokenType.STATEMENT_END, TokenType.END_BLOCK, TokenType.START_BLOCK)
_BEFORE_EOF = (TokenType.START, TokenType.STATEMENT_END, TokenType.END_BLOCK)


class ConfigParser:
    """
    Parses nginx-style configuration text.

    Stateless between calls; one instance can parse any number of inputs.
    """

    def parse(self, text: str) -> ConfigBlock:
        """
        Parse config text into its root block.

        Args:
            text: Whole configuration text.

        Returns:
            The root ConfigBlock.

        Raises:
            ConfigParseError: On any lexical or structural error.
        """
        lexer = Lexer(text)
        root = ConfigBlock()
        stack: List[ConfigBlock] = [root]
        last_type = TokenType.START

        while True:
            token = lexer.next_token()

            if token.type is TokenType.COMMENT:
                continue

            if token.type in _WORD_TYPES:
                if last_type not in _BEFORE_WORD:
                    self._fail(last_type, token)
                if last_type not in _WORD_TYPES:
                    stack[-1].statements.append(Statement())
                stack[-1].statements[-1].tokens.append(token.text)

            elif token.type is TokenType.STATEMENT_END:
                if last_type not in _WORD_TYPES:
                    self._fail(last_type, token)

            elif token.type is TokenType.START_BLOCK:
                if last_type not in _WORD_TYPES:
                    self._fail(last_type, token)
                child = ConfigBlock()
                stack[-1].statements[-1].child_block = child
                stack.append(child)

            elif token.type is TokenType.END_BLOCK:
                if last_type not in _BEFORE_END_BLOCK or len(stack) == 1:
                    self._fail(last_type, token)
                stack.pop()

            elif token.type is TokenType.EOF:
                if token.text or last_type not in _BEFORE_EOF or len(stack) != 1:
                    self._fail(last_type, token)
                return root

            else:
                self._fail(last_type, token)

            last_type = token.type

    @staticmethod
    def _fail(last_type: TokenType, token: Token) -> None:
        message = (
            f"Config parse error: bad transition from "
            f"{last_type.value} to {token.type.value}"
        )
        logger.error(message)
        raise ConfigParseError(message, last_type, token)

    def parse_file(self, path: Union[str, Path]) -> ConfigBlock:
        """
        Read and parse a config file.

        Raises:
            ConfigParseError: If the file cannot be read or does not parse.
        """
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            message = f"Failed to open config file: {path}"
            logger.error(f"{message} ({e})")
            raise ConfigParseError(message) from e
        return self.parse(text)


def parse_string(text: str) -> ConfigBlock:
    """Parse config text with a fresh ConfigParser."""
    return ConfigParser().parse(text)


def parse_file(path: Union[str, Path]) -> ConfigBlock:
    """Read and parse a config file with a fresh ConfigParser."""
    return ConfigParser().parse_file(path)


def get_port(config: ConfigBlock) -> int:
    """
    The listening port named by the first top-level `port <n>;`.

    Only statements of exactly two words count. Blocks are not searched.

    Returns:
        The port as written (range checking is the caller's job), or 0
        when no port statement exists.

    Raises:
        ValueError: If the value is not an integer.
    """
    for statement in config.statements:
        if len(statement.tokens) == 2 and statement.tokens[0] == "port":
            value = statement.tokens[1]
            try:
                return int(value)
            except ValueError:
                raise ValueError(f"Invalid port value: {value!r}") from None
    return 0
