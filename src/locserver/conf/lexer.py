"""
=============================================================================
CONFIG LEXER
=============================================================================

Splits nginx-style configuration text into tokens, one per call:

    port 8080;                      NORMAL "port"
                                    NORMAL "8080"
                                    STATEMENT_END ";"
    location /static StaticHandler {
                                    NORMAL "location", NORMAL "/static",
                                    NORMAL "StaticHandler", START_BLOCK "{"
      root "/var/www/html";         NORMAL "root"
                                    QUOTED_STRING "\"/var/www/html\""
                                    STATEMENT_END ";"
    }                               END_BLOCK "}"
                                    EOF ""

=============================================================================
SCANNING STATES
=============================================================================

    ┌──────────────┐  '#'   ┌─────────┐  line break
    │   INITIAL    │ ─────► │ COMMENT │ ──────────► emit COMMENT
    │ (whitespace) │        └─────────┘
    │              │  '"'   ┌──────────────┐  closing '"' + delimiter
    │              │ ─────► │ DOUBLE_QUOTE │ ───────────────────────► emit QUOTED_STRING
    │              │  "'"   ┌──────────────┐
    │              │ ─────► │ SINGLE_QUOTE │ ───────────────────────► emit QUOTED_STRING
    │              │ other  ┌──────────────┐  whitespace ; { }
    │              │ ─────► │     WORD     │ ─────────────────► push back, emit NORMAL
    └──────────────┘        └──────────────┘

    { } ;  from INITIAL are one-character tokens of their own.

Quoted strings keep their quotes and backslashes exactly as written: the
lexer never unescapes. A closing quote must be followed by whitespace,
';', '{', '}' or end of input, otherwise the token is an ERROR
("a"b is not two tokens).

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class TokenType(Enum):
    """Kinds of token the lexer emits (START is only a builder sentinel)."""

    START = "START"
    NORMAL = "NORMAL"
    QUOTED_STRING = "QUOTED_STRING"
    START_BLOCK = "START_BLOCK"
    END_BLOCK = "END_BLOCK"
    COMMENT = "COMMENT"
    STATEMENT_END = "STATEMENT_END"
    EOF = "EOF"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Token:
    type: TokenType
    text: str = ""


class _State(Enum):
    INITIAL = "initial"
    SINGLE_QUOTE = "single_quote"
    DOUBLE_QUOTE = "double_quote"
    COMMENT = "comment"
    WORD = "word"


WHITESPACE = frozenset(" \t\n\r")

# Characters that end a plain word (and must follow a closing quote)
DELIMITERS = WHITESPACE | frozenset(";{}")

LINE_BREAKS = frozenset("\n\r")


class Lexer:
    """
    Pull-based tokenizer over a config string.

    Usage:
        lexer = Lexer('port 80;')
        while True:
            token = lexer.next_token()
            if token.type in (TokenType.EOF, TokenType.ERROR):
                break
    """

    def __init__(self, text: str):
        self._text = text
        self._pos = 0

    def _peek(self) -> Optional[str]:
        if self._pos < len(self._text):
            return self._text[self._pos]
        return None

    def next_token(self) -> Token:
        """
        Scan and return the next token.

        EOF carries whatever partial text was being accumulated; a
        non-empty EOF text means the input ended mid-statement.
        """
        state = _State.INITIAL
        chars: List[str] = []

        while self._pos < len(self._text):
            c = self._text[self._pos]
            self._pos += 1

            if state is _State.INITIAL:
                if c == "{":
                    return Token(TokenType.START_BLOCK, c)
                if c == "}":
                    return Token(TokenType.END_BLOCK, c)
                if c == ";":
                    return Token(TokenType.STATEMENT_END, c)
                if c in WHITESPACE:
                    continue

                chars = [c]
                if c == "#":
                    state = _State.COMMENT
                elif c == '"':
                    state = _State.DOUBLE_QUOTE
                elif c == "'":
                    state = _State.SINGLE_QUOTE
                else:
                    state = _State.WORD

            elif state in (_State.SINGLE_QUOTE, _State.DOUBLE_QUOTE):
                chars.append(c)
                quote = '"' if state is _State.DOUBLE_QUOTE else "'"

                if c == "\\":
                    # Escape: keep backslash and the next character verbatim
                    if self._pos < len(self._text):
                        chars.append(self._text[self._pos])
                        self._pos += 1
                    continue

                if c == quote:
                    following = self._peek()
                    if following is not None and following not in DELIMITERS:
                        return Token(TokenType.ERROR, "".join(chars))
                    return Token(TokenType.QUOTED_STRING, "".join(chars))

            elif state is _State.COMMENT:
                if c in LINE_BREAKS:
                    return Token(TokenType.COMMENT, "".join(chars))
                chars.append(c)

            elif state is _State.WORD:
                if c in DELIMITERS:
                    self._pos -= 1
                    return Token(TokenType.NORMAL, "".join(chars))
                chars.append(c)

        # End of input
        if state in (_State.SINGLE_QUOTE, _State.DOUBLE_QUOTE):
            return Token(TokenType.ERROR, "".join(chars))
        if state is _State.COMMENT:
            return Token(TokenType.COMMENT, "".join(chars))
        return Token(TokenType.EOF, "".join(chars))


def tokenize(text: str) -> List[Token]:
    """
    All tokens of text, up to and including the terminating EOF or ERROR.

    A debugging aid; the parser pulls tokens one at a time.
    """
    lexer = Lexer(text)
    tokens = []
    while True:
        token = lexer.next_token()
        tokens.append(token)
        if token.type in (TokenType.EOF, TokenType.ERROR):
            return tokens
