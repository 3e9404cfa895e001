"""
Error types for the Jack compiler.

Every error is fatal for the unit being compiled. A host compiling several
units catches CompileError, reports it and moves on to the next unit.
"""

from __future__ import annotations
from typing import Optional


class CompileError(Exception):
    """Base class for all errors that abort compilation of one unit."""

    def __init__(self, message: str, line: Optional[int] = None,
                 col: Optional[int] = None, unit: Optional[str] = None):
        self.message = message
        self.line = line
        self.col = col
        self.unit = unit
        super().__init__(message)

    def __str__(self) -> str:
        loc = []
        if self.unit:
            loc.append(self.unit)
        if self.line is not None:
            loc.append(f"L{self.line}" if self.col is None else f"L{self.line}:{self.col}")
        if loc:
            return f"{':'.join(loc)}: {self.message}"
        return self.message


class LexicalError(CompileError):
    """No token pattern matches at the current position."""


class JackSyntaxError(CompileError):
    """Current token does not match what the grammar expects."""


class DuplicateSymbolError(CompileError):
    """A name is defined twice in the same scope."""


class UndefinedSymbolError(CompileError):
    """An identifier is used as a variable but was never declared."""


class PreconditionError(CompileError):
    """An internal invariant was violated."""
