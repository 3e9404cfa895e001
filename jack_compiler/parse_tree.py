"""
Diagnostic parse-tree trace.

Mirrors the grammar descent as a nested-tag document, one element per
production and one leaf per token. Identifiers are annotated with what the
symbol table knows about them. Not needed for compilation; the engine uses
NullParseTree unless a trace was requested.
"""

from __future__ import annotations
from contextlib import contextmanager, nullcontext
from typing import List, Optional
from xml.sax.saxutils import escape

from .lexer import Token, TokenType
from .symbol_table import StorageKind

_ENTITIES = {'"': "&quot;"}


def escape_markup(text: str) -> str:
    """Escape ``" < > &`` for use inside the trace document."""
    return escape(text, _ENTITIES)


class ParseTreeWriter:
    INDENT = "  "

    def __init__(self):
        self.lines: List[str] = []
        self._depth = 0

    def _emit(self, line: str):
        self.lines.append(self.INDENT * self._depth + line)

    @contextmanager
    def node(self, tag: str):
        self._emit(f"<{tag}>")
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            self._emit(f"</{tag}>")

    def token(self, tok: Token):
        tag = tok.type.value
        text = tok.text
        if tok.type in (TokenType.SYMBOL, TokenType.STRING_CONST):
            text = escape_markup(text)
        self._emit(f"<{tag}> {text} </{tag}>")

    def identifier(self, tok: Token, category: str, kind: Optional[StorageKind] = None,
                   index: Optional[int] = None, defined: bool = False):
        attrs = [f'category="{category}"']
        if kind is not None and kind is not StorageKind.NONE:
            attrs.append(f'kind="{kind.value}"')
        if index is not None:
            attrs.append(f'index="{index}"')
        attrs.append('usage="defined"' if defined else 'usage="used"')
        self._emit(f"<identifier {' '.join(attrs)}> {tok.text} </identifier>")

    def text(self) -> str:
        return "\n".join(self.lines) + "\n" if self.lines else ""


class NullParseTree:
    """Drop-in replacement that records nothing."""

    def node(self, tag: str):
        return nullcontext()

    def token(self, tok: Token):
        pass

    def identifier(self, tok: Token, category: str, kind: Optional[StorageKind] = None,
                   index: Optional[int] = None, defined: bool = False):
        pass

    def text(self) -> str:
        return ""
