"""
Parse-tree trace tests.
"""

from jack_compiler import compile_source
from jack_compiler.parse_tree import ParseTreeWriter, escape_markup

SRC = """
class Main {
    field int count;
    function void f(int n) {
        var int x;
        let x = n < 2;
        do Output.printString("a&b");
        return;
    }
}
"""


def _trace(src=SRC):
    vm, tree = compile_source(src, unit_name="Main.jack", parse_tree=True)
    return vm, tree.splitlines()


class TestTrace:
    def test_returns_vm_and_tree(self):
        vm, tree = compile_source(SRC, parse_tree=True)
        assert vm == compile_source(SRC)
        assert tree.endswith("\n")

    def test_root_and_indentation(self):
        _, lines = _trace()
        assert lines[0] == "<class>"
        assert lines[1] == "  <keyword> class </keyword>"
        assert lines[-1] == "</class>"
        assert "  <classVarDec>" in lines
        assert "    <subroutineBody>" in lines

    def test_symbols_and_strings_escaped(self):
        _, lines = _trace()
        stripped = [l.strip() for l in lines]
        assert "<symbol> &lt; </symbol>" in stripped
        assert "<stringConstant> a&amp;b </stringConstant>" in stripped
        assert "<integerConstant> 2 </integerConstant>" in stripped

    def test_identifier_attributes(self):
        _, lines = _trace()
        stripped = [l.strip() for l in lines]
        assert '<identifier category="className" usage="defined"> Main </identifier>' in stripped
        assert ('<identifier category="varName" kind="field" index="0" usage="defined">'
                ' count </identifier>') in stripped
        assert ('<identifier category="varName" kind="arg" index="0" usage="defined">'
                ' n </identifier>') in stripped
        assert ('<identifier category="varName" kind="var" index="0" usage="used">'
                ' x </identifier>') in stripped
        assert '<identifier category="className" usage="used"> Output </identifier>' in stripped
        assert ('<identifier category="subroutineName" usage="used">'
                ' printString </identifier>') in stripped

    def test_statement_nodes_balanced(self):
        _, lines = _trace()
        for tag in ("letStatement", "doStatement", "returnStatement", "expression", "term"):
            opened = sum(1 for l in lines if l.strip() == f"<{tag}>")
            closed = sum(1 for l in lines if l.strip() == f"</{tag}>")
            assert opened == closed > 0


class TestWriter:
    def test_escape_markup(self):
        assert escape_markup('<a & "b">') == "&lt;a &amp; &quot;b&quot;&gt;"

    def test_empty_writer(self):
        assert ParseTreeWriter().text() == ""

    def test_nested_nodes(self):
        w = ParseTreeWriter()
        with w.node("outer"):
            with w.node("inner"):
                pass
        assert w.lines == ["<outer>", "  <inner>", "  </inner>", "</outer>"]
