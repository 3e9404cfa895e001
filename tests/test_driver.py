"""
Driver and CLI tests: per-unit output files, error isolation between units,
and jackc exit codes.
"""

import logging

import pytest
from rich.logging import RichHandler

import jackc
from jack_compiler.driver import compile_file, compile_path, find_sources, output_path
from jack_compiler.errors import JackSyntaxError

GOOD = "class Good { function int one() { return 1; } }\n"
BAD = "class Bad {\n  function void f() {\n    let = 1;\n  }\n}\n"


@pytest.fixture
def project(tmp_path):
    (tmp_path / "Good.jack").write_text(GOOD, encoding="utf-8")
    (tmp_path / "Bad.jack").write_text(BAD, encoding="utf-8")
    (tmp_path / "notes.txt").write_text("not jack", encoding="utf-8")
    return tmp_path


# ─── Driver ───────────────────────────────

class TestDriver:
    def test_find_sources_sorted(self, project):
        assert [p.name for p in find_sources(project)] == ["Bad.jack", "Good.jack"]

    def test_find_sources_rejects_missing_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            find_sources(tmp_path / "Nope.jack")

    def test_output_path(self, tmp_path):
        src = tmp_path / "Main.jack"
        assert output_path(src) == tmp_path / "Main.vm"
        assert output_path(src, "_out", ".xml") == tmp_path / "Main_out.xml"

    def test_failing_unit_does_not_stop_others(self, project, caplog):
        with caplog.at_level(logging.INFO):
            results = compile_path(project)
        by_unit = {r.unit: r for r in results}

        assert by_unit["Good.jack"].ok
        assert (project / "Good.vm").read_text() == (
            "function Good.one 0\npush constant 1\nreturn\n")

        bad = by_unit["Bad.jack"]
        assert not bad.ok
        assert isinstance(bad.error, JackSyntaxError)
        assert bad.error.unit == "Bad.jack"
        assert bad.error.line == 3
        assert not (project / "Bad.vm").exists()
        assert "Bad.jack:L3" in caplog.text

    def test_undecodable_unit_does_not_stop_others(self, tmp_path, caplog):
        (tmp_path / "A.jack").write_bytes(b"class A {\n \xff }\n")
        (tmp_path / "Good.jack").write_text(GOOD, encoding="utf-8")
        with caplog.at_level(logging.INFO):
            results = compile_path(tmp_path)
        by_unit = {r.unit: r for r in results}

        assert isinstance(by_unit["A.jack"].error, UnicodeDecodeError)
        assert not (tmp_path / "A.vm").exists()
        assert by_unit["Good.jack"].ok
        assert (tmp_path / "Good.vm").exists()
        assert "A.jack: cannot read source" in caplog.text

    def test_suffix_and_parse_tree(self, project):
        result = compile_file(project / "Good.jack", suffix="_mine", parse_tree=True)
        assert result.vm_path == project / "Good_mine.vm"
        assert result.tree_path == project / "Good_mine.xml"
        assert result.tree_path.read_text().startswith("<class>\n")

    def test_class_name_mismatch_warns(self, tmp_path, caplog):
        src = tmp_path / "Other.jack"
        src.write_text(GOOD, encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            result = compile_file(src)
        assert result.ok
        assert result.class_name == "Good"
        assert "does not match" in caplog.text

    def test_empty_directory(self, tmp_path):
        assert compile_path(tmp_path) == []


# ─── CLI ──────────────────────────────────

class TestCli:
    def test_directory_with_failure_exits_one(self, project):
        assert jackc.main([str(project), "-q"]) == 1
        assert (project / "Good.vm").exists()

    def test_single_good_file_exits_zero(self, project):
        assert jackc.main([str(project / "Good.jack"), "-q"]) == 0

    def test_missing_input_exits_one(self, tmp_path):
        assert jackc.main([str(tmp_path / "missing"), "-q"]) == 1

    def test_output_to_stdout(self, project, capsys):
        assert jackc.main([str(project / "Good.jack"), "-o", "-", "-q"]) == 0
        out = capsys.readouterr().out
        assert out == "function Good.one 0\npush constant 1\nreturn\n"
        assert not (project / "Good.vm").exists()

    def test_output_file(self, project, tmp_path):
        dest = tmp_path / "out.vm"
        assert jackc.main([str(project / "Good.jack"), "-o", str(dest), "-q"]) == 0
        assert dest.read_text().startswith("function Good.one 0")

    def test_output_needs_single_file(self, project):
        assert jackc.main([str(project), "-o", "-", "-q"]) == 1

    def test_undecodable_file_exits_one(self, tmp_path):
        (tmp_path / "A.jack").write_bytes(b"\xff\xfe")
        (tmp_path / "Good.jack").write_text(GOOD, encoding="utf-8")
        assert jackc.main([str(tmp_path), "-q"]) == 1
        assert (tmp_path / "Good.vm").exists()
        assert jackc.main([str(tmp_path / "A.jack"), "-o", "-", "-q"]) == 1

    def test_suffix_with_output_rejected(self, project, tmp_path):
        dest = tmp_path / "out.vm"
        assert jackc.main([str(project / "Good.jack"), "-o", str(dest), "-s", "_x", "-q"]) == 1
        assert not dest.exists()

    def test_parse_tree_follows_output_path(self, project, tmp_path):
        dest = tmp_path / "build" / "main.vm"
        dest.parent.mkdir()
        assert jackc.main([str(project / "Good.jack"), "-o", str(dest), "-p", "-q"]) == 0
        assert (tmp_path / "build" / "main.xml").read_text().startswith("<class>")

    @pytest.mark.parametrize("verbose,show_locals", [(0, False), (1, False), (2, True)])
    def test_verbosity_levels(self, verbose, show_locals):
        jackc.setup_logging(verbose=verbose)
        handler = next(h for h in logging.getLogger().handlers if isinstance(h, RichHandler))
        assert handler.level == (logging.DEBUG if verbose else logging.INFO)
        assert handler.tracebacks_show_locals is show_locals

    def test_token_dump(self, project, capsys):
        assert jackc.main([str(project / "Good.jack"), "--tokens", "-q"]) == 0
        out = capsys.readouterr().out.splitlines()
        assert out[0] == "Token(KEYWORD, 'class', L1:1)"
        assert out[1] == "Token(IDENTIFIER, 'Good', L1:7)"

    def test_log_file(self, project, tmp_path):
        log_file = tmp_path / "logs" / "jackc.log"
        jackc.main([str(project), "-q", "--log-file", str(log_file)])
        text = log_file.read_text(encoding="utf-8")
        assert "Compiling" in text
        assert "Bad.jack:L3" in text
