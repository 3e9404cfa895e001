"""
Two-level symbol table for the Jack compiler.

Class scope holds static and field variables and lives for the whole class.
Subroutine scope holds arguments and locals and is rebuilt for every
subroutine. Lookups try the subroutine scope first, so a local or argument
shadows a class member of the same name.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass, field
from typing import Dict, Optional

from .errors import DuplicateSymbolError, PreconditionError


class StorageKind(enum.Enum):
    NONE = "none"
    STATIC = "static"
    FIELD = "field"
    ARG = "arg"
    VAR = "var"

    @property
    def is_class_level(self) -> bool:
        return self in (StorageKind.STATIC, StorageKind.FIELD)


@dataclass(frozen=True)
class SymbolEntry:
    name: str
    type: str              # "int", "char", "boolean" or a class name
    kind: StorageKind
    index: int


@dataclass
class Scope:
    symbols: Dict[str, SymbolEntry] = field(default_factory=dict)

    def lookup(self, name: str) -> Optional[SymbolEntry]:
        return self.symbols.get(name)

    def define(self, entry: SymbolEntry):
        if entry.name in self.symbols:
            raise DuplicateSymbolError(f"{entry.name!r} is already defined in this scope")
        self.symbols[entry.name] = entry

    def clear(self):
        self.symbols.clear()


class SymbolTable:
    """Maps identifiers to (type, storage kind, index) across two scopes."""

    def __init__(self):
        self.class_scope = Scope()
        self.subroutine_scope = Scope()
        self._counts: Dict[StorageKind, int] = {
            StorageKind.STATIC: 0,
            StorageKind.FIELD: 0,
            StorageKind.ARG: 0,
            StorageKind.VAR: 0,
        }

    def start_subroutine(self):
        """Forget all arguments and locals; their indices restart at 0."""
        self.subroutine_scope.clear()
        self._counts[StorageKind.ARG] = 0
        self._counts[StorageKind.VAR] = 0

    def define(self, name: str, type_: str, kind: StorageKind) -> SymbolEntry:
        """Define a new identifier and give it the next index of its kind."""
        if kind is StorageKind.NONE or kind not in self._counts:
            raise PreconditionError(f"Cannot define {name!r} with kind {kind!r}")
        scope = self.class_scope if kind.is_class_level else self.subroutine_scope
        entry = SymbolEntry(name, type_, kind, self._counts[kind])
        scope.define(entry)
        self._counts[kind] += 1
        return entry

    def var_count(self, kind: StorageKind) -> int:
        return self._counts.get(kind, 0)

    def lookup(self, name: str) -> Optional[SymbolEntry]:
        entry = self.subroutine_scope.lookup(name)
        if entry is None:
            entry = self.class_scope.lookup(name)
        return entry

    def exists(self, name: str) -> bool:
        return self.lookup(name) is not None

    def kind_of(self, name: str) -> StorageKind:
        entry = self.lookup(name)
        return entry.kind if entry else StorageKind.NONE

    def type_of(self, name: str) -> Optional[str]:
        entry = self.lookup(name)
        return entry.type if entry else None

    def index_of(self, name: str) -> Optional[int]:
        entry = self.lookup(name)
        return entry.index if entry else None
