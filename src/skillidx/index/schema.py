"""On-disk index location, schema definition and connections."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from skillidx.index.hashing import identity_digest
from skillidx.index.manifest import meta_dir
from skillidx.index.tokenizer import TokenizerChoice

SCHEMA_VERSION = 2

META_KEY_SKILL_PATH = "skill_path"
META_KEY_SOURCE_HASH = "source_hash"
META_KEY_SCHEMA_VERSION = "schema_version"
META_KEY_TOKENIZER = "tokenizer"
META_KEY_INDEXED_AT = "indexed_at"

_HEADINGS_DDL = """
CREATE TABLE headings (
    file TEXT NOT NULL,
    text TEXT NOT NULL,
    level INTEGER NOT NULL,
    start_line INTEGER NOT NULL,
    end_line INTEGER NOT NULL
)
"""


def index_path(runtime_dir: Path, source_dir: Path) -> Path:
    """Return ``<runtime>/.skillidx-meta/search-<hash16>.db`` for a source tree."""
    return meta_dir(runtime_dir) / f"search-{identity_digest(source_dir)}.db"


def connect_readonly(path: Path) -> sqlite3.Connection:
    """Open an existing index without write access."""
    uri = f"{Path(path).resolve().as_uri()}?mode=ro"
    return sqlite3.connect(uri, uri=True)


def create_schema(conn: sqlite3.Connection, tokenizer: TokenizerChoice) -> None:
    """Create the full-text, structural and metadata tables."""
    conn.execute(
        "CREATE VIRTUAL TABLE sections USING fts5("
        f"file, section, content, tokenize='{tokenizer.spec}')"
    )
    conn.execute(_HEADINGS_DDL)
    conn.execute("CREATE TABLE index_meta (key TEXT PRIMARY KEY, value TEXT)")


def has_meta_table(conn: sqlite3.Connection) -> bool:
    """Return True when the metadata table exists."""
    row = conn.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = 'index_meta'"
    ).fetchone()
    return bool(row and row[0] > 0)


def read_meta_values(conn: sqlite3.Connection) -> dict[str, str]:
    """Return every metadata row whose value is text."""
    output: dict[str, str] = {}
    for key, value in conn.execute("SELECT key, value FROM index_meta"):
        if isinstance(key, str) and isinstance(value, str):
            output[key] = value
    return output
