"""Formatting of sentinel-marked search snippets."""

from __future__ import annotations

from rich.text import Text

MATCH_START = "[MATCH]"
MATCH_END = "[/MATCH]"
SNIPPET_ELLIPSIS = "..."
SNIPPET_TOKENS = 32
MATCH_STYLE = "bold yellow"


def strip_markers(snippet: str) -> str:
    """Remove match sentinels, leaving the plain snippet text."""
    return snippet.replace(MATCH_START, "").replace(MATCH_END, "")


def render_snippet(snippet: str, supports_emphasis: bool) -> Text:
    """Render a marked snippet, styling match spans only when emphasis is supported."""
    if not supports_emphasis:
        return Text(strip_markers(snippet))

    rendered = Text()
    remaining = snippet
    while True:
        start = remaining.find(MATCH_START)
        if start < 0:
            break
        after_start = remaining[start + len(MATCH_START) :]
        end = after_start.find(MATCH_END)
        if end < 0:
            break
        rendered.append(remaining[:start])
        rendered.append(after_start[:end], style=MATCH_STYLE)
        remaining = after_start[end + len(MATCH_END) :]
    rendered.append(strip_markers(remaining))
    return rendered
