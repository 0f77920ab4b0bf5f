"""Persistent section and full-text index for markdown skill packages."""

from .errors import (
    Diagnostic,
    EmptyQueryError,
    IndexHashCollisionError,
    IndexUnusableError,
    SectionNotFoundError,
    SkillIndexError,
)
from .retrieval import build_index, find_section, outline, read_manifest_hash, search

__all__ = [
    "Diagnostic",
    "EmptyQueryError",
    "IndexHashCollisionError",
    "IndexUnusableError",
    "SectionNotFoundError",
    "SkillIndexError",
    "build_index",
    "find_section",
    "outline",
    "read_manifest_hash",
    "search",
]
