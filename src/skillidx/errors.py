"""Error taxonomy and warning diagnostics with stable codes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skillidx.index.models import HeadingRecord

MAX_RENDERED_SUGGESTIONS = 5


@dataclass(slots=True, frozen=True)
class Diagnostic:
    """Non-fatal warning reported separately from errors."""

    code: str
    message: str

    def __str__(self) -> str:
        return f"warning[{self.code}]: {self.message}"

    def to_dict(self) -> dict[str, str]:
        """Return serializable warning payload."""
        return {"code": self.code, "message": self.message}


def multiple_matches_warning(query: str) -> Diagnostic:
    """W001: more than one heading matched a section query."""
    return Diagnostic(code="W001", message=f"multiple matches for '{query}'; showing first")


def index_fallback_warning(name: str) -> Diagnostic:
    """W002: an index exists but was rejected, so source files were parsed instead."""
    return Diagnostic(
        code="W002",
        message=f"search index for '{name}' is unusable; section served from source files",
    )


class SkillIndexError(Exception):
    """Base error carrying a stable machine-checkable code."""

    code = "E999"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"error[{self.code}]: {self.message}"

    def to_dict(self) -> dict[str, str]:
        """Return serializable error payload."""
        return {"code": self.code, "message": self.message}


class IndexUnusableError(SkillIndexError):
    """Index is missing, corrupt, stale, or built with another schema or tokenizer."""

    code = "E002"

    def __init__(self, name: str, reason: str | None = None) -> None:
        super().__init__(
            f"search index for package '{name}' unusable; "
            "run 'skillidx build <source_dir>' to rebuild"
        )
        self.name = name
        self.reason = reason


class IndexHashCollisionError(SkillIndexError):
    """Index filename is owned by a different source path."""

    code = "E003"

    def __init__(self, hash16: str) -> None:
        super().__init__(
            f"index hash collision; delete .skillidx-meta/search-{hash16}.db and rebuild"
        )
        self.hash16 = hash16


class EmptyQueryError(SkillIndexError):
    """Search query is empty or whitespace only."""

    code = "E004"

    def __init__(self) -> None:
        super().__init__("empty query")


class SectionNotFoundError(SkillIndexError):
    """No heading matched a section query."""

    code = "E020"

    def __init__(self, query: str, suggestions: tuple[HeadingRecord, ...] = ()) -> None:
        message = f"section not found: '{query}'"
        if suggestions:
            lines = [message, "", "Did you mean one of these?"]
            for entry in suggestions[:MAX_RENDERED_SUGGESTIONS]:
                lines.append(f"  - {entry.text} ({entry.file})")
            message = "\n".join(lines)
        super().__init__(message)
        self.query = query
        self.suggestions = suggestions
