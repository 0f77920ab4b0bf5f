"""Structural lookup served straight from source files, without an index."""

from __future__ import annotations

import logging
from pathlib import Path

from skillidx.errors import Diagnostic
from skillidx.index.hashing import iter_source_files
from skillidx.index.models import HeadingRecord
from skillidx.index.query import (
    DEFAULT_SUGGESTION_LIMIT,
    normalize_query,
    pick_first_match,
)
from skillidx.index.sections import (
    heading_records,
    read_document,
    section_text,
    split_lines,
    truncate_lines,
)
from skillidx.index.store import MARKDOWN_SUFFIXES

logger = logging.getLogger(__name__)


def source_headings(source_dir: Path) -> list[HeadingRecord]:
    """Extract every markdown heading under a source tree in file then line order."""
    records: list[HeadingRecord] = []
    for relative, full_path in iter_source_files(source_dir):
        if full_path.suffix.lower() not in MARKDOWN_SUFFIXES:
            continue
        records.extend(heading_records(relative, read_document(full_path)))
    return records


def rank_suggestions(
    records: list[HeadingRecord],
    query: str,
    limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> list[HeadingRecord]:
    """Order substring matches the way the index does: prefix first, then text."""
    if limit < 1:
        return []
    folded = normalize_query(query).lower()
    candidates = [record for record in records if folded in record.text.lower()]
    candidates.sort(
        key=lambda record: (
            0 if record.text.lower().startswith(folded) else 1,
            record.text,
            record.file,
            record.start_line,
        )
    )
    return candidates[:limit]


def match_headings(
    records: list[HeadingRecord],
    query: str,
    file_filter: str | None = None,
) -> list[HeadingRecord]:
    """Return records whose text equals the query, ignoring case."""
    folded = normalize_query(query).lower()
    return [
        record
        for record in records
        if record.text.lower() == folded and (file_filter is None or record.file == file_filter)
    ]


def read_section(source_dir: Path, record: HeadingRecord, max_lines: int | None = None) -> str:
    """Slice a heading's section out of the live source file."""
    lines = split_lines(read_document(Path(source_dir) / record.file))
    return truncate_lines(section_text(lines, record.start_line, record.end_line), max_lines)


def find_section_fallback(
    source_dir: Path,
    query: str,
    file_filter: str | None = None,
    *,
    max_lines: int | None = None,
    warnings: list[Diagnostic] | None = None,
) -> tuple[str, str]:
    """Resolve a section by parsing source files; returns (content, matched file)."""
    records = source_headings(source_dir)
    logger.debug("fallback: %d headings parsed from %s", len(records), source_dir)
    matches = match_headings(records, query, file_filter)
    suggestions: tuple[HeadingRecord, ...] = ()
    if not matches:
        suggestions = tuple(rank_suggestions(records, query))
    record = pick_first_match(matches, query, suggestions, warnings)
    return read_section(source_dir, record, max_lines), record.file


def outline_fallback(source_dir: Path, max_level: int | None = None) -> list[HeadingRecord]:
    """List headings by parsing source files."""
    records = source_headings(source_dir)
    if max_level is None:
        return records
    return [record for record in records if record.level <= max_level]
