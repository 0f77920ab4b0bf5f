"""Structural heading lookup and ranked full-text search over an open index."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from pathlib import Path

from skillidx.errors import (
    Diagnostic,
    EmptyQueryError,
    IndexUnusableError,
    SectionNotFoundError,
    multiple_matches_warning,
)
from skillidx.index.models import HeadingRecord, SearchResult
from skillidx.index.schema import connect_readonly, index_path
from skillidx.index.snippets import (
    MATCH_END,
    MATCH_START,
    SNIPPET_ELLIPSIS,
    SNIPPET_TOKENS,
    strip_markers,
)
from skillidx.index.state import validate_for_query
from skillidx.index.tokenizer import TokenizerChoice

logger = logging.getLogger(__name__)

DESCRIPTION_SEPARATOR = " — "
DEFAULT_SUGGESTION_LIMIT = 5
_QUERY_WHITESPACE = (" ", "\t", "\n", "\r")
_HEADING_COLUMNS = "file, text, level, start_line, end_line"


@contextmanager
def open_validated(
    source_dir: Path,
    runtime_dir: Path,
    tokenizer: TokenizerChoice,
    name: str,
) -> Iterator[sqlite3.Connection]:
    """Open a package index read-only after re-validating it against the source."""
    path = index_path(runtime_dir, source_dir)
    if not path.exists():
        raise IndexUnusableError(name, "index file missing")
    try:
        conn = connect_readonly(path)
    except sqlite3.Error as error:
        raise IndexUnusableError(name, f"cannot open index: {error}") from error
    with closing(conn):
        try:
            validate_for_query(conn, source_dir, runtime_dir, tokenizer, name)
        except sqlite3.Error as error:
            raise IndexUnusableError(name, f"unreadable index: {error}") from error
        conn.create_function("fold_case", 1, fold_case, deterministic=True)
        yield conn


def fold_case(value: object) -> str | None:
    """Lowercase text the same way for index queries and source parsing."""
    if not isinstance(value, str):
        return None
    return value.lower()


def normalize_query(query: str) -> str:
    """Trim a section query and drop a trailing `` — description`` suffix."""
    trimmed = query.strip()
    head, separator, _ = trimmed.partition(DESCRIPTION_SEPARATOR)
    if separator:
        return head.strip()
    return trimmed


def build_fts_query(query: str) -> str:
    """Quote each whitespace-separated token so user input is never FTS syntax."""
    tokens = [query]
    for separator in _QUERY_WHITESPACE:
        tokens = [part for token in tokens for part in token.split(separator)]
    quoted = ['"' + token.replace('"', '""') + '"' for token in tokens if token]
    return " ".join(quoted)


def pick_first_match(
    matches: list[HeadingRecord],
    query: str,
    suggestions: tuple[HeadingRecord, ...],
    warnings: list[Diagnostic] | None,
) -> HeadingRecord:
    """Return the first match, raising with suggestions when there is none."""
    if not matches:
        raise SectionNotFoundError(query, suggestions)
    if len(matches) > 1:
        record_warning(warnings, multiple_matches_warning(query))
    return matches[0]


def record_warning(warnings: list[Diagnostic] | None, diagnostic: Diagnostic) -> None:
    """Log a warning and append it to an optional collector."""
    logger.warning("%s", diagnostic)
    if warnings is not None:
        warnings.append(diagnostic)


def find_headings(
    conn: sqlite3.Connection,
    query: str,
    file_filter: str | None = None,
) -> list[HeadingRecord]:
    """Return headings whose text equals the query, ignoring case."""
    folded = normalize_query(query).lower()
    if file_filter is None:
        rows = conn.execute(
            f"SELECT {_HEADING_COLUMNS} FROM headings "
            "WHERE fold_case(text) = ? ORDER BY file, start_line",
            (folded,),
        )
    else:
        rows = conn.execute(
            f"SELECT {_HEADING_COLUMNS} FROM headings "
            "WHERE fold_case(text) = ? AND file = ? ORDER BY file, start_line",
            (folded, file_filter),
        )
    return [_row_to_heading(row) for row in rows]


def suggest(
    conn: sqlite3.Connection,
    query: str,
    limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> list[HeadingRecord]:
    """Return substring matches, prefix matches first, then alphabetical by text."""
    if limit < 1:
        return []
    folded = normalize_query(query).lower()
    rows = conn.execute(
        f"SELECT {_HEADING_COLUMNS} FROM headings "
        "WHERE instr(fold_case(text), ?) > 0 "
        "ORDER BY CASE WHEN instr(fold_case(text), ?) = 1 THEN 0 ELSE 1 END, "
        "text, file, start_line "
        "LIMIT ?",
        (folded, folded, limit),
    )
    return [_row_to_heading(row) for row in rows]


def list_headings(conn: sqlite3.Connection, max_level: int | None = None) -> list[HeadingRecord]:
    """Return every heading in file then line order, optionally capped by level."""
    if max_level is None:
        rows = conn.execute(f"SELECT {_HEADING_COLUMNS} FROM headings ORDER BY file, start_line")
    else:
        rows = conn.execute(
            f"SELECT {_HEADING_COLUMNS} FROM headings WHERE level <= ? ORDER BY file, start_line",
            (max_level,),
        )
    return [_row_to_heading(row) for row in rows]


def lookup_section(
    conn: sqlite3.Connection,
    query: str,
    file_filter: str | None = None,
    warnings: list[Diagnostic] | None = None,
) -> HeadingRecord:
    """Resolve a section query to one heading using the structural table."""
    matches = find_headings(conn, query, file_filter)
    suggestions: tuple[HeadingRecord, ...] = ()
    if not matches:
        suggestions = tuple(suggest(conn, query))
    return pick_first_match(matches, query, suggestions, warnings)


def run_search(conn: sqlite3.Connection, query: str, limit: int) -> list[SearchResult]:
    """Run a ranked full-text query; higher score means a better match."""
    if not query.strip():
        raise EmptyQueryError()
    if limit < 1:
        return []
    fts_query = build_fts_query(query)
    logger.debug("search: fts_query=%s limit=%d", fts_query, limit)
    rows = conn.execute(
        "SELECT file, section, "
        "snippet(sections, 2, ?, ?, ?, ?), bm25(sections) "
        "FROM sections WHERE sections MATCH ? "
        "ORDER BY bm25(sections) LIMIT ?",
        (MATCH_START, MATCH_END, SNIPPET_ELLIPSIS, SNIPPET_TOKENS, fts_query, limit),
    )
    results: list[SearchResult] = []
    for file, section, marked, rank in rows:
        results.append(
            SearchResult(
                file=file,
                section=section,
                snippet=strip_markers(marked),
                score=-float(rank),
                marked_snippet=marked,
            )
        )
    return results


def _row_to_heading(row: tuple[object, ...]) -> HeadingRecord:
    file, text, level, start_line, end_line = row
    return HeadingRecord(
        file=str(file),
        text=str(text),
        level=int(level),
        start_line=int(start_line),
        end_line=int(end_line),
    )


def normalize_file_filter(file_filter: str | None) -> str | None:
    """Convert a user-supplied relative path to the stored posix form."""
    if file_filter is None:
        return None
    normalized = file_filter.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized or None
