from __future__ import annotations

from skillidx.index.sections import (
    heading_records,
    markdown_documents,
    section_text,
    split_lines,
    text_documents,
    truncate_lines,
)


def test_sections_partition_document_after_preamble() -> None:
    text = "preamble\n# A\ntext\n## B\n## C\nend\n"

    records = heading_records("SKILL.md", text)

    assert [(r.text, r.start_line, r.end_line) for r in records] == [
        ("A", 2, 4),
        ("B", 4, 5),
        ("C", 5, 7),
    ]
    for earlier, later in zip(records, records[1:]):
        assert earlier.end_line == later.start_line
    assert records[-1].end_line == len(split_lines(text)) + 1
    assert all(record.file == "SKILL.md" for record in records)


def test_nested_heading_ends_parent_section() -> None:
    text = "# Parent\nintro\n## Child\nchild body\n# Sibling\n"

    records = heading_records("SKILL.md", text)
    lines = split_lines(text)

    parent = records[0]
    assert section_text(lines, parent.start_line, parent.end_line) == "# Parent\nintro"


def test_heading_followed_by_heading_is_single_line_section() -> None:
    text = "# One\n# Two\nbody\n"

    records = heading_records("SKILL.md", text)

    assert (records[0].start_line, records[0].end_line) == (1, 2)


def test_section_text_drops_trailing_blank_lines() -> None:
    lines = split_lines("# Intro\n\nHello\n\n## Details\n\nMore\n")

    assert section_text(lines, 1, 5) == "# Intro\n\nHello"
    assert section_text(lines, 5, 8) == "## Details\n\nMore"


def test_truncate_lines_reports_remaining_count() -> None:
    assert truncate_lines("a\nb\nc\nd", 2) == "a\nb\n... (2 more lines)"
    assert truncate_lines("a\nb", 2) == "a\nb"
    assert truncate_lines("a\nb\nc", None) == "a\nb\nc"


def test_markdown_documents_split_per_section() -> None:
    text = "intro line\n# Intro\n\nHello\n\n## Details\n\nMore\n"

    documents = markdown_documents("SKILL.md", text)

    assert [(d.section, d.content) for d in documents] == [
        ("Intro", "# Intro\n\nHello"),
        ("Details", "## Details\n\nMore"),
    ]


def test_markdown_without_headings_is_one_unnamed_row() -> None:
    documents = markdown_documents("notes.md", "just text\n")

    assert len(documents) == 1
    assert documents[0].section == ""
    assert documents[0].content == "just text\n"


def test_text_documents_index_whole_file() -> None:
    documents = text_documents("notes.txt", "# not markdown\nline\n")

    assert [(d.file, d.section, d.content) for d in documents] == [
        ("notes.txt", "", "# not markdown\nline\n")
    ]
