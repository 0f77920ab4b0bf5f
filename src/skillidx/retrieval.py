"""Build and query entry points with index-first, source-fallback dispatch."""

from __future__ import annotations

import logging
from pathlib import Path

from skillidx.config import EngineConfig, load_effective_config
from skillidx.errors import (
    Diagnostic,
    EmptyQueryError,
    IndexHashCollisionError,
    IndexUnusableError,
    index_fallback_warning,
)
from skillidx.index.fallback import find_section_fallback, outline_fallback, read_section
from skillidx.index.manifest import read_manifest_hash
from skillidx.index.models import HeadingRecord, SearchResult
from skillidx.index.query import (
    list_headings,
    lookup_section,
    normalize_file_filter,
    open_validated,
    record_warning,
    run_search,
)
from skillidx.index.schema import index_path
from skillidx.index.state import IndexState
from skillidx.index.store import IndexStore
from skillidx.index.tokenizer import TokenizerChoice, negotiate

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 10

__all__ = [
    "build_index",
    "find_section",
    "outline",
    "read_manifest_hash",
    "search",
]


def _negotiate(config: EngineConfig | None) -> TokenizerChoice:
    effective = config or load_effective_config()
    return negotiate(effective.search.tokenizer)


def _package_name(source_dir: Path, name: str | None) -> str:
    return name or Path(source_dir).name


def build_index(
    source_dir: Path,
    runtime_dir: Path,
    source_hash: str,
    *,
    config: EngineConfig | None = None,
) -> IndexState:
    """Build or refresh the package index; returns the state found before building."""
    tokenizer = _negotiate(config)
    store = IndexStore(Path(source_dir), Path(runtime_dir))
    return store.build(source_hash, tokenizer)


def search(
    source_dir: Path,
    runtime_dir: Path,
    query: str,
    limit: int = DEFAULT_SEARCH_LIMIT,
    *,
    name: str | None = None,
    config: EngineConfig | None = None,
) -> list[SearchResult]:
    """Ranked full-text search; requires a usable index and never falls back."""
    if not query.strip():
        raise EmptyQueryError()
    tokenizer = _negotiate(config)
    package = _package_name(source_dir, name)
    with open_validated(Path(source_dir), Path(runtime_dir), tokenizer, package) as conn:
        return run_search(conn, query, limit)


def find_section(
    source_dir: Path,
    runtime_dir: Path,
    query: str,
    file_filter: str | None = None,
    *,
    max_lines: int | None = None,
    name: str | None = None,
    config: EngineConfig | None = None,
    warnings: list[Diagnostic] | None = None,
) -> tuple[str, str]:
    """Return (section content, matched file) for a heading query."""
    source = Path(source_dir)
    runtime = Path(runtime_dir)
    relative_filter = normalize_file_filter(file_filter)
    tokenizer = _negotiate(config)
    package = _package_name(source, name)
    try:
        with open_validated(source, runtime, tokenizer, package) as conn:
            record = lookup_section(conn, query, relative_filter, warnings)
    except (IndexUnusableError, IndexHashCollisionError) as error:
        _note_fallback(source, runtime, package, error, warnings)
        return find_section_fallback(
            source, query, relative_filter, max_lines=max_lines, warnings=warnings
        )
    return read_section(source, record, max_lines), record.file


def outline(
    source_dir: Path,
    runtime_dir: Path,
    max_level: int | None = None,
    *,
    name: str | None = None,
    config: EngineConfig | None = None,
    warnings: list[Diagnostic] | None = None,
) -> list[HeadingRecord]:
    """List a package's headings in file and line order."""
    source = Path(source_dir)
    runtime = Path(runtime_dir)
    tokenizer = _negotiate(config)
    package = _package_name(source, name)
    try:
        with open_validated(source, runtime, tokenizer, package) as conn:
            return list_headings(conn, max_level)
    except (IndexUnusableError, IndexHashCollisionError) as error:
        _note_fallback(source, runtime, package, error, warnings)
        return outline_fallback(source, max_level)


def _note_fallback(
    source_dir: Path,
    runtime_dir: Path,
    name: str,
    error: IndexUnusableError | IndexHashCollisionError,
    warnings: list[Diagnostic] | None,
) -> None:
    reason = getattr(error, "reason", None) or error.message
    logger.debug("index for %s not used (%s); parsing source files", name, reason)
    if index_path(runtime_dir, source_dir).exists():
        record_warning(warnings, index_fallback_warning(name))
