"""Command-line entrypoint for building and querying package indexes."""

from __future__ import annotations

import argparse
import json
import logging
import sqlite3
import sys
from pathlib import Path
from typing import Any, TextIO

from rich.console import Console
from rich.text import Text

from skillidx.config import load_effective_config
from skillidx.errors import Diagnostic, SkillIndexError
from skillidx.index.hashing import hash_tree
from skillidx.index.models import HeadingRecord, SearchResult
from skillidx.index.snippets import render_snippet
from skillidx.index.schema import index_path
from skillidx.index.state import STATE_UP_TO_DATE
from skillidx.logging import configure_logging
from skillidx.logging.diagnostics import ROOT_LOGGER_NAME
from skillidx.retrieval import (
    DEFAULT_SEARCH_LIMIT,
    build_index,
    find_section,
    outline,
    search,
)

logger = logging.getLogger(__name__)

PASSTHROUGH_ERROR_CODE = "E999"
FORMAT_TEXT = "text"
FORMAT_JSON = "json"


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for all subcommands."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("source_dir", help="package source directory")
    common.add_argument("--runtime-dir", required=False, default=None)
    common.add_argument("--name", required=False, default=None)
    common.add_argument("--format", choices=(FORMAT_TEXT, FORMAT_JSON), default=FORMAT_TEXT)
    common.add_argument("--verbose", action="store_true")

    parser = argparse.ArgumentParser(prog="skillidx")
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", parents=[common], help="build or refresh the index")
    build.add_argument("--source-hash", required=False, default=None)

    search_cmd = commands.add_parser("search", parents=[common], help="ranked full-text search")
    search_cmd.add_argument("query")
    search_cmd.add_argument("--limit", type=int, default=DEFAULT_SEARCH_LIMIT)

    show = commands.add_parser("show", parents=[common], help="print one section")
    show.add_argument("section")
    show.add_argument("--file", dest="file_filter", required=False, default=None)
    show.add_argument("--max-lines", type=int, required=False, default=None)

    outline_cmd = commands.add_parser("outline", parents=[common], help="list headings")
    outline_cmd.add_argument("--max-level", type=int, required=False, default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the skillidx command."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    handler = configure_logging(verbose=args.verbose, stream=sys.stderr)
    try:
        return _run(args)
    finally:
        package_logger = logging.getLogger(ROOT_LOGGER_NAME)
        package_logger.removeHandler(handler)
        package_logger.setLevel(logging.NOTSET)


def _run(args: argparse.Namespace) -> int:
    console = Console(file=sys.stdout, highlight=False, soft_wrap=True)
    warnings: list[Diagnostic] = []
    try:
        result = _dispatch(args, warnings)
    except SkillIndexError as error:
        return _report_error(args.format, error.code, error.message, warnings, sys.stdout)
    except (OSError, sqlite3.Error, ValueError) as error:
        logger.debug("%s failed", args.command, exc_info=True)
        return _report_error(args.format, PASSTHROUGH_ERROR_CODE, str(error), warnings, sys.stdout)

    if args.format == FORMAT_JSON:
        _write_envelope(
            sys.stdout,
            {
                "ok": True,
                "result": _result_payload(result),
                "warnings": [item.to_dict() for item in warnings],
                "error": None,
            },
        )
        return 0
    _print_text(console, args.command, result)
    return 0


def _dispatch(args: argparse.Namespace, warnings: list[Diagnostic]) -> Any:
    source_dir = Path(args.source_dir)
    runtime_dir = Path(args.runtime_dir) if args.runtime_dir is not None else source_dir
    if args.command == "search":
        return search(source_dir, runtime_dir, args.query, args.limit, name=args.name)

    config = load_effective_config()
    if args.command == "build":
        source_hash = args.source_hash or hash_tree(source_dir)
        state = build_index(source_dir, runtime_dir, source_hash, config=config)
        return {
            "state": state,
            "index_path": str(index_path(runtime_dir, source_dir)),
            "source_hash": source_hash,
            "config": config.to_public_dict(),
        }
    if args.command == "show":
        content, matched_file = find_section(
            source_dir,
            runtime_dir,
            args.section,
            args.file_filter,
            max_lines=args.max_lines,
            name=args.name,
            config=config,
            warnings=warnings,
        )
        return {"file": matched_file, "content": content}
    return outline(
        source_dir,
        runtime_dir,
        args.max_level,
        name=args.name,
        config=config,
        warnings=warnings,
    )


def _result_payload(result: Any) -> object:
    if isinstance(result, list):
        return [item.to_dict() for item in result]
    return result


def _print_text(console: Console, command: str, result: Any) -> None:
    if command == "build":
        if result["state"] == STATE_UP_TO_DATE:
            console.print(Text(f"index up to date: {result['index_path']}"))
        else:
            console.print(Text(f"index rebuilt ({result['state']}): {result['index_path']}"))
    elif command == "show":
        console.print(Text(result["content"]))
    elif command == "search":
        _print_search_results(console, result)
    else:
        _print_outline(console, result)


def _print_search_results(console: Console, results: list[SearchResult]) -> None:
    if not results:
        console.print("no results")
        return
    for hit in results:
        heading = hit.section or "(whole file)"
        console.print(Text(f"{hit.file} > {heading}  [{hit.score:.3f}]", style="bold"))
        line = Text("  ")
        line.append_text(render_snippet(hit.marked_snippet, console.is_terminal))
        console.print(line)


def _print_outline(console: Console, headings: list[HeadingRecord]) -> None:
    current_file: str | None = None
    for heading in headings:
        if heading.file != current_file:
            current_file = heading.file
            console.print(Text(current_file, style="bold"))
        indent = "  " * heading.level
        console.print(Text(f"{indent}{heading.text}"))


def _report_error(
    output_format: str,
    code: str,
    message: str,
    warnings: list[Diagnostic],
    stream: TextIO,
) -> int:
    if output_format == FORMAT_JSON:
        _write_envelope(
            stream,
            {
                "ok": False,
                "result": None,
                "warnings": [item.to_dict() for item in warnings],
                "error": {"code": code, "message": message},
            },
        )
    else:
        sys.stderr.write(f"error[{code}]: {message}\n")
    return 1


def _write_envelope(stream: TextIO, payload: dict[str, object]) -> None:
    stream.write(f"{json.dumps(payload, sort_keys=True)}\n")
    stream.flush()
