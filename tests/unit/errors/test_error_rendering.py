from __future__ import annotations

from skillidx.errors import (
    Diagnostic,
    EmptyQueryError,
    IndexHashCollisionError,
    IndexUnusableError,
    SectionNotFoundError,
    index_fallback_warning,
    multiple_matches_warning,
)
from skillidx.index.models import HeadingRecord


def _heading(text: str, file: str = "SKILL.md") -> HeadingRecord:
    return HeadingRecord(file=file, text=text, level=2, start_line=1, end_line=2)


def test_errors_carry_stable_codes() -> None:
    assert IndexUnusableError("demo").code == "E002"
    assert IndexHashCollisionError("0123456789abcdef").code == "E003"
    assert EmptyQueryError().code == "E004"
    assert SectionNotFoundError("x").code == "E020"


def test_error_string_renders_code_and_message() -> None:
    error = IndexUnusableError("demo", reason="stale")

    assert str(error) == (
        "error[E002]: search index for package 'demo' unusable; "
        "run 'skillidx build <source_dir>' to rebuild"
    )
    assert error.reason == "stale"
    assert error.to_dict() == {"code": "E002", "message": error.message}


def test_collision_message_names_index_file() -> None:
    error = IndexHashCollisionError("0123456789abcdef")

    assert "search-0123456789abcdef.db" in error.message


def test_section_not_found_lists_at_most_five_suggestions() -> None:
    suggestions = tuple(_heading(f"Install {i}", file=f"f{i}.md") for i in range(7))

    error = SectionNotFoundError("install", suggestions)

    lines = error.message.splitlines()
    assert lines[0] == "section not found: 'install'"
    assert "Did you mean one of these?" in lines
    assert [line for line in lines if line.startswith("  - ")] == [
        f"  - Install {i} (f{i}.md)" for i in range(5)
    ]
    assert len(error.suggestions) == 7


def test_section_not_found_without_suggestions_is_one_line() -> None:
    assert SectionNotFoundError("missing").message == "section not found: 'missing'"


def test_warning_diagnostics() -> None:
    first = multiple_matches_warning("Intro")
    second = index_fallback_warning("demo")

    assert first.code == "W001"
    assert second.code == "W002"
    assert str(first).startswith("warning[W001]: ")
    assert Diagnostic(code="W009", message="m").to_dict() == {"code": "W009", "message": "m"}
