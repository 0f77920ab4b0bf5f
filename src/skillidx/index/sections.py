"""Markdown heading extraction and line-based section bounds.

Headings are found with a line scanner that understands the block structure
that can hide a ``#`` line: fenced code blocks, HTML comment blocks, and a
leading YAML front matter block. Reported line numbers are 1-based and always
relative to the original document, front matter included.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import NamedTuple

from skillidx.index.models import HeadingRecord, SectionDocument

_HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.*)$")
_CLOSING_SEQUENCE_RE = re.compile(r"[ \t]+#+[ \t]*$")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})(.*)$")
_COMMENT_OPEN_RE = re.compile(r"^ {0,3}<!--")
_FRONT_MATTER_DELIMITER = "---"


class ExtractedHeading(NamedTuple):
    """Heading found in a single document."""

    level: int
    text: str
    line: int


def read_document(path: Path) -> str:
    """Read a source file as UTF-8, keeping its original line endings."""
    with Path(path).open("r", encoding="utf-8", errors="replace", newline="") as handle:
        return handle.read()


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, dropping a trailing ``\\r`` and the empty tail after a final newline."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def front_matter_line_count(lines: list[str]) -> int:
    """Return how many leading lines belong to a YAML front matter block."""
    if not lines or lines[0].rstrip() != _FRONT_MATTER_DELIMITER:
        return 0
    for index in range(1, len(lines)):
        if lines[index].rstrip() == _FRONT_MATTER_DELIMITER:
            return index + 1
    return 0


def extract(document_text: str) -> list[ExtractedHeading]:
    """Return headings in document order, skipping code fences and comments."""
    lines = split_lines(document_text)
    start = front_matter_line_count(lines)
    headings: list[ExtractedHeading] = []
    fence: str | None = None
    in_comment = False

    for index in range(start, len(lines)):
        line = lines[index]

        if fence is not None:
            if _closes_fence(line, fence):
                fence = None
            continue

        if in_comment:
            if "-->" in line:
                in_comment = False
            continue

        fence_match = _FENCE_RE.match(line)
        if fence_match is not None:
            marker, info = fence_match.group(1), fence_match.group(2)
            if not (marker[0] == "`" and "`" in info):
                fence = marker
                continue

        if _COMMENT_OPEN_RE.match(line):
            opener = line.index("<!--")
            in_comment = "-->" not in line[opener + 4 :]
            continue

        heading = _parse_heading(line)
        if heading is None:
            continue
        level, text = heading
        headings.append(ExtractedHeading(level=level, text=text, line=index + 1))
    return headings


def _closes_fence(line: str, fence: str) -> bool:
    match = _FENCE_RE.match(line)
    if match is None:
        return False
    marker, rest = match.group(1), match.group(2)
    if marker[0] != fence[0] or len(marker) < len(fence):
        return False
    return not rest.strip()


def _parse_heading(line: str) -> tuple[int, str] | None:
    match = _HEADING_RE.match(line)
    if match is None:
        return None
    text = match.group(2).strip()
    if text and set(text) == {"#"}:
        return None
    text = _CLOSING_SEQUENCE_RE.sub("", text).strip()
    if not text:
        return None
    return len(match.group(1)), text


def section_bounds(
    headings: list[ExtractedHeading],
    total_lines: int,
    file: str = "",
) -> list[HeadingRecord]:
    """Attach end-exclusive bounds: each section ends where the next heading starts."""
    records: list[HeadingRecord] = []
    for index, heading in enumerate(headings):
        if index + 1 < len(headings):
            end_line = headings[index + 1].line
        else:
            end_line = total_lines + 1
        records.append(
            HeadingRecord(
                file=file,
                text=heading.text,
                level=heading.level,
                start_line=heading.line,
                end_line=end_line,
            )
        )
    return records


def heading_records(file: str, document_text: str) -> list[HeadingRecord]:
    """Extract headings with bounds for one markdown file."""
    total_lines = len(split_lines(document_text))
    return section_bounds(extract(document_text), total_lines, file=file)


def section_text(lines: list[str], start_line: int, end_line: int) -> str:
    """Join the literal lines of a section range, without trailing blank lines."""
    start_index = max(0, start_line - 1)
    end_index = min(len(lines), max(start_index, end_line - 1))
    selected = lines[start_index:end_index]
    while selected and not selected[-1].strip():
        selected.pop()
    return "\n".join(selected)


def truncate_lines(text: str, max_lines: int | None) -> str:
    """Keep the first ``max_lines`` lines and note how many were dropped."""
    if max_lines is None:
        return text
    lines = text.split("\n")
    if len(lines) <= max_lines:
        return text
    remaining = len(lines) - max_lines
    return "\n".join(lines[:max_lines]) + f"\n... ({remaining} more lines)"


def markdown_documents(file: str, document_text: str) -> list[SectionDocument]:
    """Split a markdown file into one full-text row per section.

    A file without headings becomes a single row with an empty section name.
    """
    records = heading_records(file, document_text)
    if not records:
        return [SectionDocument(file=file, section="", content=document_text)]
    lines = split_lines(document_text)
    return [
        SectionDocument(
            file=file,
            section=record.text,
            content=section_text(lines, record.start_line, record.end_line),
        )
        for record in records
    ]


def text_documents(file: str, document_text: str) -> list[SectionDocument]:
    """Index a plain-text file as a single row."""
    return [SectionDocument(file=file, section="", content=document_text)]
