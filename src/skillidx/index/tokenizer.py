"""FTS5 tokenizer negotiation from configuration and runtime capability."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from contextlib import closing
from dataclasses import dataclass

logger = logging.getLogger(__name__)

PREFERENCE_ASCII = "ascii"
PREFERENCE_CJK = "cjk"
PREFERENCES = (PREFERENCE_ASCII, PREFERENCE_CJK)

STEMMED_TOKENIZER = "porter unicode61"
CHARACTER_TOKENIZER = "unicode61"


@dataclass(slots=True, frozen=True)
class TokenizerChoice:
    """Negotiated tokenizer: the FTS5 spec string and its stored short name."""

    spec: str
    short_name: str


def short_name(spec: str) -> str:
    """Map a tokenizer spec to the label stored in index metadata."""
    if "porter" in spec:
        return "porter"
    return "unicode61"


def probe_engine_capability() -> bool:
    """Return True when the linked SQLite can build a stemmed FTS5 table."""
    try:
        with closing(sqlite3.connect(":memory:")) as conn:
            conn.execute(
                "CREATE VIRTUAL TABLE _tokenizer_probe USING fts5(x, tokenize='porter unicode61')"
            )
            conn.execute("DROP TABLE _tokenizer_probe")
    except sqlite3.Error as error:
        logger.debug("porter tokenizer unavailable: %s", error)
        return False
    return True


def negotiate(
    preference: str,
    probe: Callable[[], bool] = probe_engine_capability,
) -> TokenizerChoice:
    """Choose the tokenizer for a preference, probing only when stemming is wanted."""
    if preference not in PREFERENCES:
        raise ValueError(f"Unknown tokenizer preference '{preference}'; expected ascii or cjk.")
    if preference == PREFERENCE_CJK:
        spec = CHARACTER_TOKENIZER
    elif probe():
        spec = STEMMED_TOKENIZER
    else:
        spec = CHARACTER_TOKENIZER
    return TokenizerChoice(spec=spec, short_name=short_name(spec))
