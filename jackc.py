#!/usr/bin/env python3
"""
jackc: Jack to VM compiler CLI

Usage:
    python jackc.py <File.jack | directory> [-s SUFFIX] [-p] [-o output.vm]
                    [--tokens] [-v | -q] [--log-file PATH]

Each .jack file is compiled to a .vm file of the same name next to it.
A directory compiles every .jack file inside it; a unit that fails is
reported and skipped, the others are still written.

Examples:
    python jackc.py Square/                  # Square/*.jack -> Square/*.vm
    python jackc.py Main.jack -o -           # VM code to stdout
    python jackc.py Main.jack -p             # also write Main.xml parse tree
    python jackc.py Main.jack --tokens       # dump token stream (debug)
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

# Allow running from project root or as module
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from jack_compiler import __version__
from jack_compiler.driver import compile_path, compile_unit, find_sources
from jack_compiler.errors import CompileError
from jack_compiler.lexer import Lexer

log = logging.getLogger("jackc")


def setup_logging(verbose: int = 0, quiet: bool = False, log_file: str = None):
    """Console logging through rich, plus an optional plain log file.

    -v enables debug records; -vv also shows local variables in the
    traceback of an internal compiler error.
    """
    if quiet:
        console_level = logging.ERROR
    elif verbose:
        console_level = logging.DEBUG
    else:
        console_level = logging.INFO

    console = RichHandler(
        console=Console(stderr=True),
        level=console_level,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=verbose > 1,
    )
    handlers = [console]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_path, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        handlers.append(fh)

    logging.basicConfig(
        level=logging.DEBUG if log_file else console_level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jackc",
        description="Jack to VM compiler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("input", help="Input .jack file or directory of .jack files")
    parser.add_argument("-s", "--suffix", default="",
                        help="Text appended to output file names (before the extension)")
    parser.add_argument("-p", "--parse-tree", action="store_true",
                        help="Also write the parse tree trace (<name>.xml)")
    parser.add_argument("-o", "--output",
                        help="VM output file for a single input file ('-' for stdout). "
                             "With -p the trace goes next to it as <output>.xml. "
                             "Cannot be combined with -s")
    parser.add_argument("--tokens", action="store_true",
                        help="Dump the token stream of a single file and exit (debug)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Log compilation details (-vv: also show locals in "
                             "internal-error tracebacks)")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only log errors")
    parser.add_argument("--log-file", help="Also write the log to this file")
    parser.add_argument("--version", action="version",
                        version=f"jackc {__version__}")
    return parser


def _compile_single(path: Path, args) -> int:
    """Single-file mode with an explicit output destination."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            result = compile_unit(f, unit=path.name, parse_tree=args.parse_tree)
    except CompileError as e:
        log.error("%s", e)
        return 1
    except UnicodeDecodeError as e:
        log.error("%s: cannot read source: %s", path.name, e)
        return 1

    if args.output == "-":
        sys.stdout.write(result.vm_text)
    else:
        out = Path(args.output)
        out.write_text(result.vm_text, encoding="utf-8")
        log.info("%s -> %s", path.name, out)
        if result.tree_text is not None:
            out.with_suffix(".xml").write_text(result.tree_text, encoding="utf-8")
    return 0


def _dump_tokens(path: Path) -> int:
    try:
        with open(path, "r", encoding="utf-8") as f:
            for tok in Lexer(f).tokens():
                print(tok)
    except CompileError as e:
        log.error("%s", e)
        return 1
    except UnicodeDecodeError as e:
        log.error("%s: cannot read source: %s", path.name, e)
        return 1
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.quiet, args.log_file)

    try:
        sources = find_sources(args.input)
    except FileNotFoundError as e:
        log.error("%s", e)
        return 1

    if (args.tokens or args.output) and len(sources) != 1:
        log.error("--tokens and --output need a single .jack file")
        return 1
    if args.output and args.suffix:
        log.error("--suffix cannot be combined with --output")
        return 1

    try:
        if args.tokens:
            return _dump_tokens(sources[0])
        if args.output:
            return _compile_single(sources[0], args)

        results = compile_path(args.input, suffix=args.suffix, parse_tree=args.parse_tree)
    except OSError as e:
        log.error("%s", e)
        return 1
    except Exception:
        log.exception("Internal compiler error")
        return 2

    return 0 if all(r.ok for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
