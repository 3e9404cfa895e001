"""
VM command writer for the Jack compiler.

Renders stack-machine instructions as text lines, in the exact order they
are requested. Operands are validated before anything is written:

  push <segment> <index>        index >= 0
  pop <segment> <index>         index >= 0, segment != constant
  add | sub | neg | eq | gt | lt | and | or | not
  label <name> / goto <name> / if-goto <name>
  call <name> <nArgs>           nArgs >= 0
  function <name> <nLocals>     nLocals >= 0
  return

Output is kept in memory for the unit; the caller decides when (and if)
to persist it.
"""

from __future__ import annotations
import enum
import logging
from typing import List

from .errors import PreconditionError

log = logging.getLogger(__name__)


class Segment(enum.Enum):
    CONSTANT = "constant"
    ARGUMENT = "argument"
    LOCAL = "local"
    STATIC = "static"
    THIS = "this"
    THAT = "that"
    POINTER = "pointer"
    TEMP = "temp"


class Command(enum.Enum):
    ADD = "add"
    SUB = "sub"
    NEG = "neg"
    EQ = "eq"
    GT = "gt"
    LT = "lt"
    AND = "and"
    OR = "or"
    NOT = "not"


def _check_count(value, what: str):
    # bool is an int subclass but never a valid operand
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise PreconditionError(f"{what} must be an integer >= 0, got {value!r}")


def _check_name(name, what: str):
    if not isinstance(name, str) or not name or any(c.isspace() for c in name):
        raise PreconditionError(f"Invalid {what}: {name!r}")


class VMWriter:
    """Collects VM instructions for one compiled unit."""

    def __init__(self):
        self.lines: List[str] = []

    def _write(self, line: str):
        self.lines.append(line)

    def write_push(self, segment: Segment, index: int):
        if not isinstance(segment, Segment):
            raise PreconditionError(f"Unknown segment: {segment!r}")
        _check_count(index, "index")
        self._write(f"push {segment.value} {index}")

    def write_pop(self, segment: Segment, index: int):
        if not isinstance(segment, Segment):
            raise PreconditionError(f"Unknown segment: {segment!r}")
        if segment is Segment.CONSTANT:
            raise PreconditionError("Cannot pop to the constant segment")
        _check_count(index, "index")
        self._write(f"pop {segment.value} {index}")

    def write_arithmetic(self, command: Command):
        if not isinstance(command, Command):
            raise PreconditionError(f"Unknown command: {command!r}")
        self._write(command.value)

    def write_label(self, label: str):
        _check_name(label, "label")
        self._write(f"label {label}")

    def write_goto(self, label: str):
        _check_name(label, "label")
        self._write(f"goto {label}")

    def write_if(self, label: str):
        _check_name(label, "label")
        self._write(f"if-goto {label}")

    def write_call(self, name: str, n_args: int):
        _check_name(name, "function name")
        _check_count(n_args, "nArgs")
        self._write(f"call {name} {n_args}")

    def write_function(self, name: str, n_locals: int):
        _check_name(name, "function name")
        _check_count(n_locals, "nLocals")
        log.debug("function %s (%d locals)", name, n_locals)
        self._write(f"function {name} {n_locals}")

    def write_return(self):
        self._write("return")

    def text(self) -> str:
        """The whole unit as VM source, one instruction per line."""
        if not self.lines:
            return ""
        return "\n".join(self.lines) + "\n"

    def __len__(self):
        return len(self.lines)
