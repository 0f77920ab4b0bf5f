"""Typed models for index contents and query results."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class HeadingRecord:
    """A markdown heading and the 1-based, end-exclusive line range of its section."""

    file: str
    text: str
    level: int
    start_line: int
    end_line: int

    def to_dict(self) -> dict[str, object]:
        """Return serializable heading payload."""
        return {
            "file": self.file,
            "text": self.text,
            "level": self.level,
            "start_line": self.start_line,
            "end_line": self.end_line,
        }


@dataclass(slots=True, frozen=True)
class SectionDocument:
    """Full-text unit: one section of a markdown file or one whole text file."""

    file: str
    section: str
    content: str


@dataclass(slots=True, frozen=True)
class IndexMetadata:
    """Key/value facts frozen into an index at build time."""

    skill_path: str
    source_hash: str
    schema_version: int
    tokenizer: str
    indexed_at: str | None


@dataclass(slots=True, frozen=True)
class SearchResult:
    """Ranked full-text hit.

    ``marked_snippet`` keeps the engine's match sentinels for interactive
    rendering and is never serialized.
    """

    file: str
    section: str
    snippet: str
    score: float
    marked_snippet: str

    def to_dict(self) -> dict[str, object]:
        """Return machine-readable hit without sentinel markers."""
        return {
            "file": self.file,
            "section": self.section,
            "snippet": self.snippet,
            "score": self.score,
        }
