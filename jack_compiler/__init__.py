"""
Jack Compiler
=============
A single-pass compiler from the Jack object-oriented teaching language to
stack-machine VM code.

Architecture:
    ┌────────────┐    ┌──────────┐    ┌─────────────────────┐    ┌───────────┐
    │ Jack class │───>│  Lexer   │───>│ CompilationEngine   │───>│ VMWriter  │
    │ (.jack)    │    │ (tokens) │    │ parse + emit        │    │ (.vm text)│
    └────────────┘    └──────────┘    └─────────────────────┘    └───────────┘
                                        │              │
                                  SymbolTable    LabelGenerator

    - lexer.py:        lazy line-by-line tokenizer with one token of lookahead
    - symbol_table.py: class scope (static/field) + subroutine scope (arg/var)
    - labels.py:       unique if/while label pairs per class and subroutine
    - vm_writer.py:    validated push/pop/arithmetic/branch/call emission
    - engine.py:       recursive descent; emits code while it parses
    - parse_tree.py:   optional nested-tag trace of the descent
    - driver.py:       file/directory compilation with per-unit error isolation
"""

__version__ = "1.0.0"

from .errors import (CompileError, LexicalError, JackSyntaxError, DuplicateSymbolError,
                     UndefinedSymbolError, PreconditionError)
from .lexer import Lexer, Token, TokenType, Keyword
from .symbol_table import SymbolTable, SymbolEntry, StorageKind
from .vm_writer import VMWriter, Segment, Command
from .labels import LabelGenerator, ControlFlow
from .engine import CompilationEngine, CompilationContext, SubroutineKind
from .parse_tree import ParseTreeWriter, NullParseTree
from .driver import CompileResult, compile_unit, compile_file, compile_path


def compile_source(source, unit_name: str = "<source>", *, parse_tree: bool = False):
    """Compile one Jack class to VM code.

    Args:
        source: Jack source as a string or an iterable of lines.
        unit_name: Name used in error messages.
        parse_tree: Also return the diagnostic parse-tree trace.

    Returns:
        VM text (str), or a (vm_text, tree_text) tuple when parse_tree is set.
    """
    result = compile_unit(source, unit=unit_name, parse_tree=parse_tree)
    if parse_tree:
        return result.vm_text, result.tree_text
    return result.vm_text
