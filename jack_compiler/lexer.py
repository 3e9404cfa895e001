"""
Lexer / Tokenizer for the Jack compiler.

Turns Jack source lines into a lazy stream of tokens with a single token of
lookahead. Lines are pulled from the input only when the parser needs the
next token, so a unit is never held in memory as a token list.

Handles:
  - // line comments and /* ... */ block comments, including block comments
    that open on one line and close several lines later
  - keywords, identifiers, single-character symbols
  - decimal integer constants
  - double-quoted string constants (no escapes, must close on the same line)
"""

from __future__ import annotations
import enum
import re
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import LexicalError, PreconditionError


# ──────────────────────────────────────────────
# Token types
# ──────────────────────────────────────────────

class TokenType(enum.Enum):
    KEYWORD = "keyword"
    SYMBOL = "symbol"
    IDENTIFIER = "identifier"
    INT_CONST = "integerConstant"
    STRING_CONST = "stringConstant"


class Keyword(enum.Enum):
    CLASS = "class"
    CONSTRUCTOR = "constructor"
    FUNCTION = "function"
    METHOD = "method"
    FIELD = "field"
    STATIC = "static"
    VAR = "var"
    INT = "int"
    CHAR = "char"
    BOOLEAN = "boolean"
    VOID = "void"
    TRUE = "true"
    FALSE = "false"
    NULL = "null"
    THIS = "this"
    LET = "let"
    DO = "do"
    IF = "if"
    ELSE = "else"
    WHILE = "while"
    RETURN = "return"


KEYWORDS = {kw.value: kw for kw in Keyword}

SYMBOLS = frozenset("{}()[].,;+-*/&|<>=~")


# ──────────────────────────────────────────────
# Token data class
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str | int
    line: int
    col: int

    @property
    def keyword(self) -> Optional[Keyword]:
        """The Keyword variant for keyword tokens, None otherwise."""
        if self.type is TokenType.KEYWORD:
            return KEYWORDS[self.value]
        return None

    @property
    def text(self) -> str:
        return str(self.value)

    def is_symbol(self, *symbols: str) -> bool:
        return self.type is TokenType.SYMBOL and self.value in symbols

    def is_keyword(self, *keywords: Keyword) -> bool:
        return self.type is TokenType.KEYWORD and KEYWORDS[self.value] in keywords

    def describe(self) -> str:
        """Short human-readable form used in error messages."""
        return f"{self.type.value} {self.value!r}"

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, L{self.line}:{self.col})"


_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_INT_RE = re.compile(r"[0-9]+")


# ──────────────────────────────────────────────
# Lexer
# ──────────────────────────────────────────────

class Lexer:
    """Lazy single-lookahead tokenizer over Jack source lines.

    ``has_next()`` peeks at the next token without consuming it and
    ``advance()`` commits the peeked token as ``current``.
    """

    def __init__(self, source: Union[str, Iterable[str]]):
        if isinstance(source, str):
            source = source.splitlines()
        self._lines: Iterator[str] = iter(source)
        self._line_no = 0
        self._buffer: Deque[Token] = deque()
        self._in_block_comment = False
        self._comment_start: Tuple[int, int] = (0, 0)
        self._next: Optional[Token] = None
        self.current: Optional[Token] = None

    # ── Public interface ──────────────────────

    def has_next(self) -> bool:
        """True if another token is available. Does not consume it."""
        if self._next is None:
            self._next = self._pull()
        return self._next is not None

    def peek(self) -> Optional[Token]:
        """Return the lookahead token (None at end of input)."""
        self.has_next()
        return self._next

    def advance(self) -> Token:
        """Commit the lookahead token as the current token and return it."""
        if not self.has_next():
            raise PreconditionError("advance() called at end of input", self._line_no)
        self.current, self._next = self._next, None
        return self.current

    def tokens(self) -> Iterator[Token]:
        """Consume and yield every remaining token."""
        while self.has_next():
            yield self.advance()

    # ── Line handling ─────────────────────────

    def _pull(self) -> Optional[Token]:
        while not self._buffer:
            line = next(self._lines, None)
            if line is None:
                if self._in_block_comment:
                    line_no, col = self._comment_start
                    raise LexicalError("Unterminated block comment", line_no, col)
                return None
            self._line_no += 1
            self._buffer.extend(self._scan_line(line.rstrip("\r\n")))
        return self._buffer.popleft()

    def _scan_line(self, text: str) -> List[Token]:
        tokens: List[Token] = []
        pos = 0
        end = len(text)

        while pos < end:
            if self._in_block_comment:
                close = text.find("*/", pos)
                if close < 0:
                    break
                self._in_block_comment = False
                pos = close + 2
                continue

            ch = text[pos]
            col = pos + 1

            if ch.isspace():
                pos += 1
                continue

            # Line comment
            if text.startswith("//", pos):
                break

            # Block comment (may run past the end of this line)
            if text.startswith("/*", pos):
                self._in_block_comment = True
                self._comment_start = (self._line_no, col)
                pos += 2
                continue

            # Keyword or identifier
            m = _IDENT_RE.match(text, pos)
            if m:
                word = m.group()
                ttype = TokenType.KEYWORD if word in KEYWORDS else TokenType.IDENTIFIER
                tokens.append(Token(ttype, word, self._line_no, col))
                pos = m.end()
                continue

            # Integer constant
            m = _INT_RE.match(text, pos)
            if m:
                tokens.append(Token(TokenType.INT_CONST, int(m.group()), self._line_no, col))
                pos = m.end()
                continue

            # String constant
            if ch == '"':
                close = text.find('"', pos + 1)
                if close < 0:
                    raise LexicalError("Unterminated string constant", self._line_no, col)
                tokens.append(Token(TokenType.STRING_CONST, text[pos + 1:close],
                                    self._line_no, col))
                pos = close + 1
                continue

            if ch in SYMBOLS:
                tokens.append(Token(TokenType.SYMBOL, ch, self._line_no, col))
                pos += 1
                continue

            raise LexicalError(f"Unexpected character: {ch!r}", self._line_no, col)

        return tokens
