"""
Unit and directory compilation.

Each .jack file is one unit with its own lexer, symbol table, label
generator and writer. Output files are only written once a unit compiled
cleanly; a failing unit is logged and skipped so the rest still compile.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .engine import CompilationEngine
from .errors import CompileError
from .lexer import Lexer
from .parse_tree import ParseTreeWriter

log = logging.getLogger(__name__)

SOURCE_SUFFIX = ".jack"
VM_SUFFIX = ".vm"
TREE_SUFFIX = ".xml"


@dataclass
class CompileResult:
    unit: str
    class_name: Optional[str] = None
    vm_text: str = ""
    tree_text: Optional[str] = None
    vm_path: Optional[Path] = None
    tree_path: Optional[Path] = None
    error: Optional[Exception] = None   # CompileError, OSError or UnicodeDecodeError

    @property
    def ok(self) -> bool:
        return self.error is None


def compile_unit(source: Union[str, Iterable[str]], unit: str = "<source>",
                 parse_tree: bool = False) -> CompileResult:
    """Run the full pipeline on one unit. Errors propagate to the caller."""
    tree = ParseTreeWriter() if parse_tree else None
    engine = CompilationEngine(Lexer(source), tree=tree, unit=unit)
    class_name = engine.compile_class()
    return CompileResult(
        unit=unit,
        class_name=class_name,
        vm_text=engine.writer.text(),
        tree_text=tree.text() if tree is not None else None,
    )


def output_path(source_path: Path, suffix: str = "", ext: str = VM_SUFFIX) -> Path:
    return source_path.with_name(source_path.stem + suffix + ext)


def compile_file(path: Union[str, Path], *, suffix: str = "",
                 parse_tree: bool = False) -> CompileResult:
    """Compile one .jack file, writing <name><suffix>.vm next to it.

    CompileError, and read or decode failures of the file itself, are
    caught and stored on the result; nothing is written for a failed unit.
    """
    path = Path(path)
    log.info("Compiling %s", path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            result = compile_unit(f, unit=path.name, parse_tree=parse_tree)
    except CompileError as e:
        log.error("%s", e)
        return CompileResult(unit=path.name, error=e)
    except (OSError, UnicodeDecodeError) as e:
        log.error("%s: cannot read source: %s", path.name, e)
        return CompileResult(unit=path.name, error=e)

    if result.class_name != path.stem:
        log.warning("%s: class %s does not match file name", path.name, result.class_name)

    result.vm_path = output_path(path, suffix)
    result.vm_path.write_text(result.vm_text, encoding="utf-8")
    if result.tree_text is not None:
        result.tree_path = output_path(path, suffix, TREE_SUFFIX)
        result.tree_path.write_text(result.tree_text, encoding="utf-8")

    log.info("%s -> %s", path.name, result.vm_path.name)
    return result


def find_sources(path: Union[str, Path]) -> List[Path]:
    """The .jack files named by ``path`` (a file or a directory)."""
    path = Path(path)
    if path.is_dir():
        return sorted(p for p in path.iterdir()
                      if p.suffix == SOURCE_SUFFIX and p.is_file())
    if path.is_file() and path.suffix == SOURCE_SUFFIX:
        return [path]
    raise FileNotFoundError(f"Not a {SOURCE_SUFFIX} file or directory: {path}")


def compile_path(path: Union[str, Path], *, suffix: str = "",
                 parse_tree: bool = False) -> List[CompileResult]:
    """Compile every unit under ``path``. One failure does not stop the rest."""
    sources = find_sources(path)
    if not sources:
        log.warning("No %s files in %s", SOURCE_SUFFIX, path)
    results = [compile_file(src, suffix=suffix, parse_tree=parse_tree) for src in sources]
    failed = sum(1 for r in results if not r.ok)
    if failed:
        log.warning("%d of %d unit(s) failed", failed, len(results))
    return results
