from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path

import pytest

from skillidx.index import store as store_module
from skillidx.index.hashing import hash_tree, identity_digest
from skillidx.index.schema import SCHEMA_VERSION, connect_readonly, index_path, read_meta_values
from skillidx.index.sections import heading_records
from skillidx.index.store import IndexStore, collect_documents
from skillidx.index.tokenizer import TokenizerChoice

TOKENIZER = TokenizerChoice(spec="unicode61", short_name="unicode61")


def _make_package(root: Path) -> Path:
    source = root / "pkg"
    (source / "docs").mkdir(parents=True)
    (source / ".cache").mkdir()
    (source / "SKILL.md").write_text("# Intro\n\nHello\n\n## Details\n\nMore\n", encoding="utf-8")
    (source / "docs" / "guide.md").write_text("# Guide\n\nSteps\n", encoding="utf-8")
    (source / "notes.txt").write_text("plain notes\n", encoding="utf-8")
    (source / "script.py").write_text("print('skip me')\n", encoding="utf-8")
    (source / ".cache" / "hidden.md").write_text("# Hidden\n", encoding="utf-8")
    return source


def test_index_path_uses_identity_digest(tmp_path: Path) -> None:
    source = _make_package(tmp_path)

    path = index_path(tmp_path / "runtime", source)

    assert path == tmp_path / "runtime" / ".skillidx-meta" / f"search-{identity_digest(source)}.db"


def test_collect_documents_selects_markdown_sections_and_text_files(tmp_path: Path) -> None:
    source = _make_package(tmp_path)

    documents, headings = collect_documents(source)

    assert [(d.file, d.section) for d in documents] == [
        ("SKILL.md", "Intro"),
        ("SKILL.md", "Details"),
        ("docs/guide.md", "Guide"),
        ("notes.txt", ""),
    ]
    assert [(h.file, h.text) for h in headings] == [
        ("SKILL.md", "Intro"),
        ("SKILL.md", "Details"),
        ("docs/guide.md", "Guide"),
    ]


def test_build_writes_schema_metadata_and_headings(tmp_path: Path) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")
    source_hash = hash_tree(source)

    assert store.build(source_hash, TOKENIZER) == "missing"

    with closing(connect_readonly(store.path)) as conn:
        values = read_meta_values(conn)
        rows = conn.execute(
            "SELECT file, text, level, start_line, end_line FROM headings ORDER BY rowid"
        ).fetchall()
        section_count = conn.execute("SELECT COUNT(*) FROM sections").fetchone()[0]

    assert values["skill_path"] == str(source.resolve())
    assert values["source_hash"] == source_hash
    assert values["schema_version"] == str(SCHEMA_VERSION)
    assert values["tokenizer"] == "unicode61"
    assert values["indexed_at"].endswith("Z")
    expected = heading_records("SKILL.md", (source / "SKILL.md").read_text(encoding="utf-8"))
    assert rows[:2] == [
        (r.file, r.text, r.level, r.start_line, r.end_line) for r in expected
    ]
    assert section_count == 4


def test_up_to_date_build_is_a_no_op(tmp_path: Path) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")
    source_hash = hash_tree(source)
    store.build(source_hash, TOKENIZER)
    with closing(connect_readonly(store.path)) as conn:
        first_indexed_at = read_meta_values(conn)["indexed_at"]

    assert store.build(source_hash, TOKENIZER) == "up_to_date"

    with closing(connect_readonly(store.path)) as conn:
        assert read_meta_values(conn)["indexed_at"] == first_indexed_at


def test_stale_build_replaces_index_and_leaves_no_temporary_files(tmp_path: Path) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")
    store.build(hash_tree(source), TOKENIZER)

    (source / "SKILL.md").write_text("# Renamed\n\nBody\n", encoding="utf-8")
    new_hash = hash_tree(source)

    assert store.build(new_hash, TOKENIZER) == "stale"
    with closing(connect_readonly(store.path)) as conn:
        assert read_meta_values(conn)["source_hash"] == new_hash
        texts = [row[0] for row in conn.execute("SELECT text FROM headings ORDER BY rowid")]
    assert texts == ["Renamed", "Guide"]
    assert sorted(p.name for p in store.path.parent.iterdir()) == [store.path.name]


def test_failed_build_leaves_no_index(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")

    def fail_insert(conn: sqlite3.Connection, documents: object) -> None:
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store_module, "insert_documents", fail_insert)

    with pytest.raises(sqlite3.OperationalError):
        store.build(hash_tree(source), TOKENIZER)

    assert not store.path.exists()
    assert list(store.path.parent.iterdir()) == []
    assert store.state(hash_tree(source), TOKENIZER) == "missing"


def test_headings_table_has_only_record_columns(tmp_path: Path) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")
    store.build(hash_tree(source), TOKENIZER)

    with closing(connect_readonly(store.path)) as conn:
        columns = [row[1] for row in conn.execute("PRAGMA table_info(headings)")]
        indexes = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = 'headings'"
        ).fetchall()

    assert columns == ["file", "text", "level", "start_line", "end_line"]
    assert indexes == []
