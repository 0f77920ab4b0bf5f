from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path

import pytest

from skillidx.errors import IndexHashCollisionError
from skillidx.index.hashing import hash_tree
from skillidx.index.store import IndexStore
from skillidx.index.tokenizer import TokenizerChoice

TOKENIZER = TokenizerChoice(spec="unicode61", short_name="unicode61")


def _make_package(root: Path) -> Path:
    source = root / "pkg"
    source.mkdir()
    (source / "SKILL.md").write_text("# Intro\n\nHello\n\n## Details\n\nMore\n", encoding="utf-8")
    return source


def _set_meta(path: Path, key: str, value: str | None) -> None:
    with closing(sqlite3.connect(path)) as conn:
        if value is None:
            conn.execute("DELETE FROM index_meta WHERE key = ?", (key,))
        else:
            conn.execute("UPDATE index_meta SET value = ? WHERE key = ?", (value, key))
        conn.commit()


def test_missing_then_up_to_date(tmp_path: Path) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")
    source_hash = hash_tree(source)

    assert store.state(source_hash, TOKENIZER) == "missing"
    store.build(source_hash, TOKENIZER)
    assert store.state(source_hash, TOKENIZER) == "up_to_date"


def test_staleness_round_trip(tmp_path: Path) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")
    original = (source / "SKILL.md").read_bytes()
    original_hash = hash_tree(source)
    store.build(original_hash, TOKENIZER)

    (source / "SKILL.md").write_bytes(original.replace(b"Hello", b"Jello"))
    mutated_hash = hash_tree(source)
    assert mutated_hash != original_hash
    assert store.state(mutated_hash, TOKENIZER) == "stale"

    (source / "SKILL.md").write_bytes(original)
    assert hash_tree(source) == original_hash
    assert store.state(original_hash, TOKENIZER) == "up_to_date"


def test_tokenizer_change_is_stale(tmp_path: Path) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")
    source_hash = hash_tree(source)
    store.build(source_hash, TOKENIZER)

    other = TokenizerChoice(spec="porter unicode61", short_name="porter")

    assert store.state(source_hash, other) == "stale"


def test_older_schema_is_stale(tmp_path: Path) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")
    source_hash = hash_tree(source)
    store.build(source_hash, TOKENIZER)

    _set_meta(store.path, "schema_version", "1")

    assert store.state(source_hash, TOKENIZER) == "stale"


def test_missing_or_unparseable_metadata_is_corrupt(tmp_path: Path) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")
    source_hash = hash_tree(source)
    store.build(source_hash, TOKENIZER)

    _set_meta(store.path, "schema_version", "two")
    assert store.state(source_hash, TOKENIZER) == "corrupt"

    store.path.unlink()
    store.build(source_hash, TOKENIZER)
    _set_meta(store.path, "tokenizer", None)
    assert store.state(source_hash, TOKENIZER) == "corrupt"


def test_non_database_file_is_corrupt_and_rebuilt(tmp_path: Path) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")
    source_hash = hash_tree(source)
    store.path.parent.mkdir(parents=True)
    store.path.write_bytes(b"this is not a sqlite database at all" * 128)

    assert store.state(source_hash, TOKENIZER) == "corrupt"
    assert store.build(source_hash, TOKENIZER) == "corrupt"
    assert store.state(source_hash, TOKENIZER) == "up_to_date"


def test_database_without_meta_table_is_corrupt(tmp_path: Path) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")
    store.path.parent.mkdir(parents=True)
    with closing(sqlite3.connect(store.path)) as conn:
        conn.execute("CREATE TABLE unrelated (x INTEGER)")
        conn.commit()

    assert store.state(hash_tree(source), TOKENIZER) == "corrupt"


def test_collision_is_detected_before_staleness_and_never_overwritten(tmp_path: Path) -> None:
    source = _make_package(tmp_path)
    store = IndexStore(source, tmp_path / "runtime")
    source_hash = hash_tree(source)
    store.build(source_hash, TOKENIZER)
    _set_meta(store.path, "skill_path", str(tmp_path / "someone-else"))
    before = store.path.read_bytes()

    assert store.state("0" * 64, TOKENIZER) == "collision"
    with pytest.raises(IndexHashCollisionError):
        store.build("0" * 64, TOKENIZER)

    assert store.path.read_bytes() == before
