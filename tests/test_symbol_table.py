"""
Symbol table tests: index allocation per kind, subroutine reset, shadowing
and duplicate detection.
"""

import pytest
from jack_compiler.errors import DuplicateSymbolError, PreconditionError
from jack_compiler.symbol_table import StorageKind, SymbolTable


class TestIndices:
    def test_class_kinds_counted_independently(self):
        st = SymbolTable()
        st.define("a", "int", StorageKind.STATIC)
        st.define("b", "int", StorageKind.FIELD)
        st.define("c", "Point", StorageKind.STATIC)
        st.define("d", "boolean", StorageKind.FIELD)
        assert [st.index_of(n) for n in "abcd"] == [0, 0, 1, 1]
        assert st.var_count(StorageKind.STATIC) == 2
        assert st.var_count(StorageKind.FIELD) == 2

    def test_lookup_returns_type_and_kind(self):
        st = SymbolTable()
        st.define("p", "Point", StorageKind.FIELD)
        st.start_subroutine()
        st.define("n", "int", StorageKind.ARG)
        assert st.kind_of("p") is StorageKind.FIELD
        assert st.type_of("p") == "Point"
        assert st.kind_of("n") is StorageKind.ARG
        assert st.lookup("n").index == 0

    def test_unknown_name(self):
        st = SymbolTable()
        assert st.kind_of("nope") is StorageKind.NONE
        assert st.type_of("nope") is None
        assert st.index_of("nope") is None
        assert not st.exists("nope")


class TestSubroutineScope:
    def test_start_subroutine_resets_args_and_locals(self):
        st = SymbolTable()
        st.define("f", "int", StorageKind.FIELD)
        st.start_subroutine()
        st.define("a", "int", StorageKind.ARG)
        st.define("v", "int", StorageKind.VAR)
        st.start_subroutine()
        assert not st.exists("a")
        assert not st.exists("v")
        assert st.var_count(StorageKind.ARG) == 0
        assert st.var_count(StorageKind.VAR) == 0
        assert st.index_of("f") == 0
        st.define("g", "int", StorageKind.FIELD)
        assert st.index_of("g") == 1

    def test_same_locals_in_two_subroutines(self):
        st = SymbolTable()
        seqs = []
        for _ in range(2):
            st.start_subroutine()
            for name in ("i", "j", "k"):
                st.define(name, "int", StorageKind.VAR)
            seqs.append([st.index_of(n) for n in ("i", "j", "k")])
        assert seqs == [[0, 1, 2], [0, 1, 2]]

    def test_local_shadows_field(self):
        st = SymbolTable()
        st.define("x", "int", StorageKind.FIELD)
        st.start_subroutine()
        st.define("x", "char", StorageKind.VAR)
        assert st.kind_of("x") is StorageKind.VAR
        assert st.type_of("x") == "char"
        st.start_subroutine()
        assert st.kind_of("x") is StorageKind.FIELD


class TestRedefinition:
    def test_duplicate_in_class_scope(self):
        st = SymbolTable()
        st.define("x", "int", StorageKind.FIELD)
        with pytest.raises(DuplicateSymbolError):
            st.define("x", "int", StorageKind.STATIC)

    def test_duplicate_in_subroutine_scope(self):
        st = SymbolTable()
        st.start_subroutine()
        st.define("x", "int", StorageKind.ARG)
        with pytest.raises(DuplicateSymbolError):
            st.define("x", "int", StorageKind.VAR)

    def test_failed_define_does_not_consume_index(self):
        st = SymbolTable()
        st.start_subroutine()
        st.define("x", "int", StorageKind.VAR)
        with pytest.raises(DuplicateSymbolError):
            st.define("x", "int", StorageKind.VAR)
        st.define("y", "int", StorageKind.VAR)
        assert st.index_of("y") == 1

    def test_none_kind_rejected(self):
        st = SymbolTable()
        with pytest.raises(PreconditionError):
            st.define("x", "int", StorageKind.NONE)
