"""Persistent index population and rebuild orchestration."""

from __future__ import annotations

import logging
import os
import sqlite3
import time
from contextlib import closing
from datetime import UTC, datetime
from pathlib import Path

from skillidx.errors import IndexHashCollisionError
from skillidx.index.hashing import canonical_path, identity_digest, iter_source_files
from skillidx.index.models import HeadingRecord, IndexMetadata, SectionDocument
from skillidx.index.schema import (
    META_KEY_INDEXED_AT,
    META_KEY_SCHEMA_VERSION,
    META_KEY_SKILL_PATH,
    META_KEY_SOURCE_HASH,
    META_KEY_TOKENIZER,
    SCHEMA_VERSION,
    create_schema,
    index_path,
)
from skillidx.index.sections import (
    heading_records,
    markdown_documents,
    read_document,
    text_documents,
)
from skillidx.index.state import (
    STATE_COLLISION,
    STATE_CORRUPT,
    STATE_STALE,
    STATE_UP_TO_DATE,
    IndexState,
    evaluate_index_state,
)
from skillidx.index.tokenizer import TokenizerChoice

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = (".md",)
TEXT_SUFFIXES = (".txt",)


class IndexStore:
    """Owns one package's index file: classification, rebuild and metadata."""

    def __init__(self, source_dir: Path, runtime_dir: Path) -> None:
        self._source_dir = Path(source_dir)
        self._runtime_dir = Path(runtime_dir)
        self._path = index_path(self._runtime_dir, self._source_dir)

    @property
    def path(self) -> Path:
        """Return on-disk index location."""
        return self._path

    def state(self, source_hash: str, tokenizer: TokenizerChoice) -> IndexState:
        """Classify the current index file."""
        return evaluate_index_state(self._path, self._source_dir, source_hash, tokenizer)

    def build(self, source_hash: str, tokenizer: TokenizerChoice) -> IndexState:
        """Rebuild the index unless it is up to date; returns the state found."""
        started = time.perf_counter()
        state = self.state(source_hash, tokenizer)
        logger.debug("build %s: state=%s tokenizer=%s", self._path, state, tokenizer.spec)

        if state == STATE_UP_TO_DATE:
            logger.debug("build %s: skipped, index up to date", self._path)
            return state
        if state == STATE_COLLISION:
            raise IndexHashCollisionError(identity_digest(self._source_dir))
        if state in (STATE_CORRUPT, STATE_STALE):
            self._path.unlink(missing_ok=True)

        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(f"{self._path.name}.{os.getpid()}.tmp")
        tmp.unlink(missing_ok=True)
        try:
            self._write_index(tmp, source_hash, tokenizer)
            os.replace(tmp, self._path)
        finally:
            tmp.unlink(missing_ok=True)

        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.debug("build %s: completed in %dms", self._path, duration_ms)
        return state

    def _write_index(self, path: Path, source_hash: str, tokenizer: TokenizerChoice) -> None:
        documents, headings = collect_documents(self._source_dir)
        metadata = IndexMetadata(
            skill_path=canonical_path(self._source_dir),
            source_hash=source_hash,
            schema_version=SCHEMA_VERSION,
            tokenizer=tokenizer.short_name,
            indexed_at=_utc_now_iso(),
        )
        with closing(sqlite3.connect(path)) as conn:
            create_schema(conn, tokenizer)
            insert_documents(conn, documents)
            insert_headings(conn, headings)
            write_metadata(conn, metadata)
            conn.commit()
        logger.debug(
            "indexed %d sections and %d headings from %s",
            len(documents),
            len(headings),
            self._source_dir,
        )


def collect_documents(source_dir: Path) -> tuple[list[SectionDocument], list[HeadingRecord]]:
    """Read every supported file once and derive full-text rows and headings."""
    documents: list[SectionDocument] = []
    headings: list[HeadingRecord] = []
    for relative, full_path in iter_source_files(source_dir):
        suffix = full_path.suffix.lower()
        if suffix in MARKDOWN_SUFFIXES:
            text = read_document(full_path)
            documents.extend(markdown_documents(relative, text))
            headings.extend(heading_records(relative, text))
        elif suffix in TEXT_SUFFIXES:
            documents.extend(text_documents(relative, read_document(full_path)))
    return documents, headings


def insert_documents(conn: sqlite3.Connection, documents: list[SectionDocument]) -> None:
    """Insert full-text rows."""
    conn.executemany(
        "INSERT INTO sections (file, section, content) VALUES (?, ?, ?)",
        [(doc.file, doc.section, doc.content) for doc in documents],
    )


def insert_headings(conn: sqlite3.Connection, headings: list[HeadingRecord]) -> None:
    """Insert structural rows in file then line order."""
    conn.executemany(
        "INSERT INTO headings (file, text, level, start_line, end_line) VALUES (?, ?, ?, ?, ?)",
        [
            (record.file, record.text, record.level, record.start_line, record.end_line)
            for record in headings
        ],
    )


def write_metadata(conn: sqlite3.Connection, metadata: IndexMetadata) -> None:
    """Write the five metadata rows."""
    rows = [
        (META_KEY_SKILL_PATH, metadata.skill_path),
        (META_KEY_SOURCE_HASH, metadata.source_hash),
        (META_KEY_SCHEMA_VERSION, str(metadata.schema_version)),
        (META_KEY_TOKENIZER, metadata.tokenizer),
        (META_KEY_INDEXED_AT, metadata.indexed_at or _utc_now_iso()),
    ]
    conn.executemany("INSERT INTO index_meta (key, value) VALUES (?, ?)", rows)


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
