"""Index state classification for builds and validation for queries."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Literal

from skillidx.errors import IndexHashCollisionError, IndexUnusableError
from skillidx.index.hashing import canonical_path, identity_digest
from skillidx.index.manifest import read_manifest_hash
from skillidx.index.models import IndexMetadata
from skillidx.index.schema import (
    META_KEY_INDEXED_AT,
    META_KEY_SCHEMA_VERSION,
    META_KEY_SKILL_PATH,
    META_KEY_SOURCE_HASH,
    META_KEY_TOKENIZER,
    SCHEMA_VERSION,
    connect_readonly,
    has_meta_table,
    read_meta_values,
)
from skillidx.index.tokenizer import TokenizerChoice

logger = logging.getLogger(__name__)

IndexState = Literal["missing", "corrupt", "collision", "stale", "up_to_date"]

STATE_MISSING: IndexState = "missing"
STATE_CORRUPT: IndexState = "corrupt"
STATE_COLLISION: IndexState = "collision"
STATE_STALE: IndexState = "stale"
STATE_UP_TO_DATE: IndexState = "up_to_date"


def parse_metadata(values: dict[str, str]) -> IndexMetadata | None:
    """Build metadata from raw rows, or None when a required key is absent or unparseable."""
    skill_path = values.get(META_KEY_SKILL_PATH)
    source_hash = values.get(META_KEY_SOURCE_HASH)
    raw_schema = values.get(META_KEY_SCHEMA_VERSION)
    tokenizer = values.get(META_KEY_TOKENIZER)
    if skill_path is None or source_hash is None or raw_schema is None or tokenizer is None:
        return None
    try:
        schema_version = int(raw_schema)
    except ValueError:
        return None
    return IndexMetadata(
        skill_path=skill_path,
        source_hash=source_hash,
        schema_version=schema_version,
        tokenizer=tokenizer,
        indexed_at=values.get(META_KEY_INDEXED_AT),
    )


def read_metadata(conn: sqlite3.Connection) -> IndexMetadata | None:
    """Read metadata from an open index, or None when the table or a key is missing."""
    if not has_meta_table(conn):
        return None
    return parse_metadata(read_meta_values(conn))


def classify(
    metadata: IndexMetadata,
    source_dir: Path,
    source_hash: str,
    tokenizer: TokenizerChoice,
) -> IndexState:
    """Classify readable metadata; identity is checked before staleness."""
    if metadata.skill_path != canonical_path(source_dir):
        return STATE_COLLISION
    if (
        metadata.source_hash != source_hash
        or metadata.schema_version < SCHEMA_VERSION
        or metadata.tokenizer != tokenizer.short_name
    ):
        return STATE_STALE
    return STATE_UP_TO_DATE


def evaluate_index_state(
    index_file: Path,
    source_dir: Path,
    source_hash: str,
    tokenizer: TokenizerChoice,
) -> IndexState:
    """Classify an index file against the current source and tokenizer."""
    if not index_file.exists():
        return STATE_MISSING
    try:
        with closing(connect_readonly(index_file)) as conn:
            metadata = read_metadata(conn)
    except sqlite3.Error as error:
        logger.debug("index %s unreadable: %s", index_file, error)
        return STATE_CORRUPT
    if metadata is None:
        return STATE_CORRUPT
    return classify(metadata, source_dir, source_hash, tokenizer)


def validate_for_query(
    conn: sqlite3.Connection,
    source_dir: Path,
    runtime_dir: Path,
    tokenizer: TokenizerChoice,
    name: str,
) -> IndexMetadata:
    """Re-check an opened index before serving a query, raising on the first failure."""
    if not has_meta_table(conn):
        raise IndexUnusableError(name, "index_meta table missing")
    values = read_meta_values(conn)

    stored_path = values.get(META_KEY_SKILL_PATH)
    if stored_path is None:
        raise IndexUnusableError(name, "skill_path missing")
    if stored_path != canonical_path(source_dir):
        raise IndexHashCollisionError(identity_digest(source_dir))

    metadata = parse_metadata(values)
    if metadata is None:
        raise IndexUnusableError(name, "required metadata missing or unparseable")
    if metadata.schema_version < SCHEMA_VERSION:
        raise IndexUnusableError(
            name, f"schema {metadata.schema_version} older than {SCHEMA_VERSION}"
        )
    if metadata.tokenizer != tokenizer.short_name:
        raise IndexUnusableError(
            name, f"tokenizer {metadata.tokenizer} differs from {tokenizer.short_name}"
        )

    try:
        manifest_hash = read_manifest_hash(runtime_dir)
    except (OSError, ValueError) as error:
        raise IndexUnusableError(name, "build manifest unreadable") from error
    if manifest_hash is not None and metadata.source_hash != manifest_hash:
        raise IndexUnusableError(name, "source hash differs from build manifest")
    return metadata
