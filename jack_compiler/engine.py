"""
Single-pass recursive-descent compilation engine for Jack.

Parses one class from the Lexer and, while parsing, records declarations
in the SymbolTable and emits VM code through the VMWriter. There is no
intermediate tree: each grammar rule below is one method, and code is
emitted at the point in the descent where its operands are known.

  class           'class' className '{' classVarDec* subroutineDec* '}'
  classVarDec     ('static'|'field') type varName (',' varName)* ';'
  subroutineDec   ('constructor'|'function'|'method') ('void'|type)
                  subroutineName '(' parameterList ')' subroutineBody
  parameterList   ((type varName) (',' type varName)*)?
  subroutineBody  '{' varDec* statements '}'
  varDec          'var' type varName (',' varName)* ';'
  statements      (let | if | while | do | return)*
  expression      term (op term)*          -- left to right, no precedence
  term            integer | string | keywordConstant | varName
                  | varName '[' expression ']' | subroutineCall
                  | '(' expression ')' | unaryOp term

Object model conventions:
  - constructors allocate ``field count`` words via Memory.alloc and bind
    the result to ``pointer 0``
  - methods receive the object as argument 0 and bind it to ``pointer 0``
  - array access goes through ``pointer 1`` / ``that 0``
  - string constants are built at run time with String.new/appendChar
"""

from __future__ import annotations
import dataclasses
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .errors import CompileError, JackSyntaxError, LexicalError, UndefinedSymbolError
from .labels import ControlFlow, LabelGenerator
from .lexer import Keyword, Lexer, Token, TokenType
from .parse_tree import NullParseTree, ParseTreeWriter
from .symbol_table import SymbolEntry, StorageKind, SymbolTable
from .vm_writer import Command, Segment, VMWriter

log = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Language / OS constants
# ──────────────────────────────────────────────

MAX_INT = 32767

OS_ALLOC = "Memory.alloc"
OS_MULTIPLY = "Math.multiply"
OS_DIVIDE = "Math.divide"
OS_STRING_NEW = "String.new"
OS_STRING_APPEND = "String.appendChar"

KIND_SEGMENTS: Dict[StorageKind, Segment] = {
    StorageKind.STATIC: Segment.STATIC,
    StorageKind.FIELD: Segment.THIS,
    StorageKind.ARG: Segment.ARGUMENT,
    StorageKind.VAR: Segment.LOCAL,
}

ARITHMETIC_OPS: Dict[str, Command] = {
    "+": Command.ADD,
    "-": Command.SUB,
    "&": Command.AND,
    "|": Command.OR,
    "<": Command.LT,
    ">": Command.GT,
    "=": Command.EQ,
}

# operator -> (OS routine, nArgs)
LIBRARY_OPS = {
    "*": (OS_MULTIPLY, 2),
    "/": (OS_DIVIDE, 2),
}

BINARY_OPS = tuple(ARITHMETIC_OPS) + tuple(LIBRARY_OPS)

UNARY_OPS: Dict[str, Command] = {
    "-": Command.NEG,
    "~": Command.NOT,
}

PRIMITIVE_TYPES = (Keyword.INT, Keyword.CHAR, Keyword.BOOLEAN)
KEYWORD_CONSTANTS = (Keyword.TRUE, Keyword.FALSE, Keyword.NULL, Keyword.THIS)


class SubroutineKind(enum.Enum):
    CONSTRUCTOR = "constructor"
    FUNCTION = "function"
    METHOD = "method"


@dataclass(frozen=True)
class CompilationContext:
    """Where in the unit the descent currently is."""
    class_name: str
    subroutine_name: str = ""
    subroutine_kind: Optional[SubroutineKind] = None

    @property
    def full_name(self) -> str:
        return f"{self.class_name}.{self.subroutine_name}"

    @property
    def is_method(self) -> bool:
        return self.subroutine_kind is SubroutineKind.METHOD

    @property
    def is_constructor(self) -> bool:
        return self.subroutine_kind is SubroutineKind.CONSTRUCTOR


class CompilationEngine:
    """Compiles one Jack class into VM code."""

    def __init__(self, lexer: Lexer, writer: Optional[VMWriter] = None,
                 symbols: Optional[SymbolTable] = None,
                 labels: Optional[LabelGenerator] = None,
                 tree: Optional[ParseTreeWriter] = None,
                 unit: str = "<source>"):
        self.lexer = lexer
        self.writer = writer if writer is not None else VMWriter()
        self.symbols = symbols if symbols is not None else SymbolTable()
        self.labels = labels if labels is not None else LabelGenerator()
        self.tree = tree if tree is not None else NullParseTree()
        self.unit = unit

        self._statement_handlers: Dict[Keyword, Callable[[CompilationContext], None]] = {
            Keyword.LET: self._compile_let,
            Keyword.IF: self._compile_if,
            Keyword.WHILE: self._compile_while,
            Keyword.DO: self._compile_do,
            Keyword.RETURN: self._compile_return,
        }

    # ── Token helpers ─────────────────────────

    def _peek(self) -> Optional[Token]:
        return self.lexer.peek()

    def _at_symbol(self, *symbols: str) -> bool:
        tok = self._peek()
        return tok is not None and tok.is_symbol(*symbols)

    def _at_keyword(self, *keywords: Keyword) -> bool:
        tok = self._peek()
        return tok is not None and tok.is_keyword(*keywords)

    def _error(self, expected: str, tok: Optional[Token]):
        if tok is None:
            cur = self.lexer.current
            raise JackSyntaxError(f"Expected {expected}, got end of input",
                                  cur.line if cur else None, cur.col if cur else None)
        raise JackSyntaxError(f"Expected {expected}, got {tok.describe()}", tok.line, tok.col)

    def _eat(self) -> Token:
        """Consume the lookahead token, tracing it unless it is an identifier."""
        if not self.lexer.has_next():
            self._error("more input", None)
        tok = self.lexer.advance()
        if tok.type is not TokenType.IDENTIFIER:
            self.tree.token(tok)
        return tok

    def _expect_symbol(self, symbol: str) -> Token:
        tok = self._peek()
        if tok is None or not tok.is_symbol(symbol):
            self._error(f"symbol {symbol!r}", tok)
        return self._eat()

    def _expect_keyword(self, *keywords: Keyword) -> Token:
        tok = self._peek()
        if tok is None or not tok.is_keyword(*keywords):
            names = ", ".join(repr(kw.value) for kw in keywords)
            self._error(f"keyword {names}" if len(keywords) == 1 else f"one of {names}", tok)
        return self._eat()

    def _expect_identifier(self) -> Token:
        tok = self._peek()
        if tok is None or tok.type is not TokenType.IDENTIFIER:
            self._error("identifier", tok)
        return self.lexer.advance()

    # ── Symbol helpers ────────────────────────

    def _define(self, tok: Token, type_: str, kind: StorageKind) -> SymbolEntry:
        try:
            entry = self.symbols.define(tok.value, type_, kind)
        except CompileError as e:
            e.line, e.col = tok.line, tok.col
            raise
        self.tree.identifier(tok, "varName", kind, entry.index, defined=True)
        return entry

    def _resolve(self, tok: Token) -> SymbolEntry:
        entry = self.symbols.lookup(tok.value)
        if entry is None:
            raise UndefinedSymbolError(f"Undefined variable {tok.value!r}", tok.line, tok.col)
        self.tree.identifier(tok, "varName", entry.kind, entry.index)
        return entry

    def _push_var(self, entry: SymbolEntry):
        self.writer.write_push(KIND_SEGMENTS[entry.kind], entry.index)

    def _pop_var(self, entry: SymbolEntry):
        self.writer.write_pop(KIND_SEGMENTS[entry.kind], entry.index)

    def _push_receiver(self, ctx: CompilationContext):
        if ctx.is_method:
            self.writer.write_push(Segment.ARGUMENT, 0)
        else:
            self.writer.write_push(Segment.POINTER, 0)

    # ── Program structure ─────────────────────

    def compile_class(self) -> str:
        """Compile the whole unit. Returns the class name."""
        try:
            with self.tree.node("class"):
                self._expect_keyword(Keyword.CLASS)
                name_tok = self._expect_identifier()
                self.tree.identifier(name_tok, "className", defined=True)
                ctx = CompilationContext(class_name=name_tok.value)
                log.debug("%s: compiling class %s", self.unit, ctx.class_name)

                self._expect_symbol("{")
                while self._at_keyword(Keyword.STATIC, Keyword.FIELD):
                    self._compile_class_var_dec()
                while self._at_keyword(Keyword.CONSTRUCTOR, Keyword.FUNCTION, Keyword.METHOD):
                    self._compile_subroutine(ctx)
                self._expect_symbol("}")

            if self.lexer.has_next():
                self._error("end of input after class body", self._peek())
        except CompileError as e:
            if e.unit is None:
                e.unit = self.unit
            raise

        log.debug("%s: %d VM instructions", self.unit, len(self.writer))
        return ctx.class_name

    def _compile_type(self, allow_void: bool = False) -> str:
        tok = self._peek()
        if tok is not None:
            if tok.is_keyword(*PRIMITIVE_TYPES) or (allow_void and tok.is_keyword(Keyword.VOID)):
                return self._eat().value
            if tok.type is TokenType.IDENTIFIER:
                self.lexer.advance()
                self.tree.identifier(tok, "className")
                return tok.value
        self._error("'void' or type" if allow_void else "type", tok)

    def _compile_class_var_dec(self):
        with self.tree.node("classVarDec"):
            kind_tok = self._expect_keyword(Keyword.STATIC, Keyword.FIELD)
            kind = StorageKind.STATIC if kind_tok.keyword is Keyword.STATIC else StorageKind.FIELD
            type_ = self._compile_type()
            self._define(self._expect_identifier(), type_, kind)
            while self._at_symbol(","):
                self._eat()
                self._define(self._expect_identifier(), type_, kind)
            self._expect_symbol(";")

    def _compile_subroutine(self, class_ctx: CompilationContext):
        with self.tree.node("subroutineDec"):
            kind_tok = self._expect_keyword(Keyword.CONSTRUCTOR, Keyword.FUNCTION, Keyword.METHOD)
            sub_kind = SubroutineKind(kind_tok.value)

            self.symbols.start_subroutine()
            if sub_kind is SubroutineKind.METHOD:
                # receiver is always argument 0; user parameters start at 1
                self.symbols.define("this", class_ctx.class_name, StorageKind.ARG)

            self._compile_type(allow_void=True)
            name_tok = self._expect_identifier()
            self.tree.identifier(name_tok, "subroutineName", defined=True)
            ctx = dataclasses.replace(class_ctx, subroutine_name=name_tok.value,
                                      subroutine_kind=sub_kind)

            self._expect_symbol("(")
            self._compile_parameter_list()
            self._expect_symbol(")")
            self._compile_subroutine_body(ctx)

    def _compile_parameter_list(self):
        with self.tree.node("parameterList"):
            if self._at_symbol(")"):
                return
            type_ = self._compile_type()
            self._define(self._expect_identifier(), type_, StorageKind.ARG)
            while self._at_symbol(","):
                self._eat()
                type_ = self._compile_type()
                self._define(self._expect_identifier(), type_, StorageKind.ARG)

    def _compile_subroutine_body(self, ctx: CompilationContext):
        with self.tree.node("subroutineBody"):
            self._expect_symbol("{")
            while self._at_keyword(Keyword.VAR):
                self._compile_var_dec()

            n_locals = self.symbols.var_count(StorageKind.VAR)
            self.writer.write_function(ctx.full_name, n_locals)

            if ctx.is_constructor:
                self.writer.write_push(Segment.CONSTANT, self.symbols.var_count(StorageKind.FIELD))
                self.writer.write_call(OS_ALLOC, 1)
                self.writer.write_pop(Segment.POINTER, 0)
            elif ctx.is_method:
                self.writer.write_push(Segment.ARGUMENT, 0)
                self.writer.write_pop(Segment.POINTER, 0)

            self._compile_statements(ctx)
            self._expect_symbol("}")

    def _compile_var_dec(self):
        with self.tree.node("varDec"):
            self._expect_keyword(Keyword.VAR)
            type_ = self._compile_type()
            self._define(self._expect_identifier(), type_, StorageKind.VAR)
            while self._at_symbol(","):
                self._eat()
                self._define(self._expect_identifier(), type_, StorageKind.VAR)
            self._expect_symbol(";")

    # ── Statements ────────────────────────────

    def _compile_statements(self, ctx: CompilationContext):
        with self.tree.node("statements"):
            while True:
                tok = self._peek()
                handler = self._statement_handlers.get(tok.keyword) if tok is not None else None
                if handler is None:
                    break
                handler(ctx)

    def _compile_block(self, ctx: CompilationContext):
        self._expect_symbol("{")
        self._compile_statements(ctx)
        self._expect_symbol("}")

    def _compile_let(self, ctx: CompilationContext):
        with self.tree.node("letStatement"):
            self._expect_keyword(Keyword.LET)
            entry = self._resolve(self._expect_identifier())

            if self._at_symbol("["):
                # target address = base + index, computed before the value
                self._eat()
                self._push_var(entry)
                self._compile_expression(ctx)
                self._expect_symbol("]")
                self.writer.write_arithmetic(Command.ADD)

                self._expect_symbol("=")
                self._compile_expression(ctx)
                self._expect_symbol(";")

                self.writer.write_pop(Segment.TEMP, 0)
                self.writer.write_pop(Segment.POINTER, 1)
                self.writer.write_push(Segment.TEMP, 0)
                self.writer.write_pop(Segment.THAT, 0)
            else:
                self._expect_symbol("=")
                self._compile_expression(ctx)
                self._expect_symbol(";")
                self._pop_var(entry)

    def _compile_if(self, ctx: CompilationContext):
        with self.tree.node("ifStatement"):
            self._expect_keyword(Keyword.IF)
            self._expect_symbol("(")
            self._compile_expression(ctx)
            self._expect_symbol(")")

            false_label, end_label = self.labels.next_pair(
                ControlFlow.IF, ctx.class_name, ctx.subroutine_name)
            self.writer.write_arithmetic(Command.NOT)
            self.writer.write_if(false_label)

            self._compile_block(ctx)

            if self._at_keyword(Keyword.ELSE):
                self._eat()
                self.writer.write_goto(end_label)
                self.writer.write_label(false_label)
                self._compile_block(ctx)
                self.writer.write_label(end_label)
            else:
                self.writer.write_label(false_label)

    def _compile_while(self, ctx: CompilationContext):
        with self.tree.node("whileStatement"):
            self._expect_keyword(Keyword.WHILE)
            start_label, end_label = self.labels.next_pair(
                ControlFlow.WHILE, ctx.class_name, ctx.subroutine_name)

            self.writer.write_label(start_label)
            self._expect_symbol("(")
            self._compile_expression(ctx)
            self._expect_symbol(")")
            self.writer.write_arithmetic(Command.NOT)
            self.writer.write_if(end_label)

            self._compile_block(ctx)

            self.writer.write_goto(start_label)
            self.writer.write_label(end_label)

    def _compile_do(self, ctx: CompilationContext):
        with self.tree.node("doStatement"):
            self._expect_keyword(Keyword.DO)
            self._compile_subroutine_call(self._expect_identifier(), ctx)
            self._expect_symbol(";")
            # discard the return value
            self.writer.write_pop(Segment.TEMP, 0)

    def _compile_return(self, ctx: CompilationContext):
        with self.tree.node("returnStatement"):
            self._expect_keyword(Keyword.RETURN)
            if self._at_symbol(";"):
                self.writer.write_push(Segment.CONSTANT, 0)
            else:
                self._compile_expression(ctx)
            self._expect_symbol(";")
            self.writer.write_return()

    # ── Calls ─────────────────────────────────

    def _compile_subroutine_call(self, name_tok: Token, ctx: CompilationContext):
        """Compile a call whose first identifier has already been consumed.

        name(args)            method on the current object
        varName.name(args)    method on the object held in varName
        ClassName.name(args)  function or constructor, no receiver
        """
        if self._at_symbol("."):
            entry = self.symbols.lookup(name_tok.value)
            if entry is not None:
                self.tree.identifier(name_tok, "varName", entry.kind, entry.index)
            else:
                self.tree.identifier(name_tok, "className")
            self._eat()
            sub_tok = self._expect_identifier()
            self.tree.identifier(sub_tok, "subroutineName")

            self._expect_symbol("(")
            if entry is not None:
                self._push_var(entry)
                n_args = self._compile_expression_list(ctx) + 1
                callee = f"{entry.type}.{sub_tok.value}"
            else:
                n_args = self._compile_expression_list(ctx)
                callee = f"{name_tok.value}.{sub_tok.value}"
            self._expect_symbol(")")

        elif self._at_symbol("("):
            self.tree.identifier(name_tok, "subroutineName")
            self._eat()
            self._push_receiver(ctx)
            n_args = self._compile_expression_list(ctx) + 1
            callee = f"{ctx.class_name}.{name_tok.value}"
            self._expect_symbol(")")

        else:
            self._error("'(' or '.'", self._peek())

        self.writer.write_call(callee, n_args)

    # ── Expressions ───────────────────────────

    def _compile_expression(self, ctx: CompilationContext):
        with self.tree.node("expression"):
            self._compile_term(ctx)
            while self._at_symbol(*BINARY_OPS):
                op = self._eat().value
                self._compile_term(ctx)
                if op in ARITHMETIC_OPS:
                    self.writer.write_arithmetic(ARITHMETIC_OPS[op])
                else:
                    routine, n_args = LIBRARY_OPS[op]
                    self.writer.write_call(routine, n_args)

    def _compile_term(self, ctx: CompilationContext):
        with self.tree.node("term"):
            tok = self._peek()
            if tok is None:
                self._error("term", tok)

            if tok.type is TokenType.INT_CONST:
                self._eat()
                if tok.value > MAX_INT:
                    raise LexicalError(f"Integer constant {tok.value} out of range 0..{MAX_INT}",
                                       tok.line, tok.col)
                self.writer.write_push(Segment.CONSTANT, tok.value)

            elif tok.type is TokenType.STRING_CONST:
                self._eat()
                self._compile_string_constant(tok.value)

            elif tok.is_keyword(*KEYWORD_CONSTANTS):
                self._eat()
                self._compile_keyword_constant(tok, ctx)

            elif tok.type is TokenType.IDENTIFIER:
                self.lexer.advance()
                if self._at_symbol(".", "("):
                    self._compile_subroutine_call(tok, ctx)
                elif self._at_symbol("["):
                    entry = self._resolve(tok)
                    self._eat()
                    self._push_var(entry)
                    self._compile_expression(ctx)
                    self._expect_symbol("]")
                    self.writer.write_arithmetic(Command.ADD)
                    self.writer.write_pop(Segment.POINTER, 1)
                    self.writer.write_push(Segment.THAT, 0)
                else:
                    self._push_var(self._resolve(tok))

            elif tok.is_symbol("("):
                self._eat()
                self._compile_expression(ctx)
                self._expect_symbol(")")

            elif tok.is_symbol(*UNARY_OPS):
                self._eat()
                self._compile_term(ctx)
                self.writer.write_arithmetic(UNARY_OPS[tok.value])

            else:
                self._error("term", tok)

    def _compile_string_constant(self, text: str):
        self.writer.write_push(Segment.CONSTANT, len(text))
        self.writer.write_call(OS_STRING_NEW, 1)
        for ch in text:
            self.writer.write_push(Segment.CONSTANT, ord(ch))
            self.writer.write_call(OS_STRING_APPEND, 2)

    def _compile_keyword_constant(self, tok: Token, ctx: CompilationContext):
        kw = tok.keyword
        if kw is Keyword.TRUE:
            self.writer.write_push(Segment.CONSTANT, 1)
            self.writer.write_arithmetic(Command.NEG)
        elif kw in (Keyword.FALSE, Keyword.NULL):
            self.writer.write_push(Segment.CONSTANT, 0)
        elif ctx.is_method:
            self.writer.write_push(Segment.ARGUMENT, 0)
        elif ctx.is_constructor:
            self.writer.write_push(Segment.POINTER, 0)
        else:
            raise UndefinedSymbolError(f"'this' used in function {ctx.full_name}",
                                       tok.line, tok.col)

    def _compile_expression_list(self, ctx: CompilationContext) -> int:
        with self.tree.node("expressionList"):
            if self._at_symbol(")"):
                return 0
            self._compile_expression(ctx)
            count = 1
            while self._at_symbol(","):
                self._eat()
                self._compile_expression(ctx)
                count += 1
            return count
