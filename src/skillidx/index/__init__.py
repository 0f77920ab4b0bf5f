"""Section extraction, index storage and query package."""

from .fallback import find_section_fallback, outline_fallback
from .hashing import hash_tree, identity_digest, iter_source_files
from .manifest import read_manifest_hash
from .models import HeadingRecord, IndexMetadata, SearchResult, SectionDocument
from .query import build_fts_query, normalize_query
from .schema import SCHEMA_VERSION, index_path
from .sections import extract, section_bounds
from .state import IndexState, evaluate_index_state, validate_for_query
from .store import IndexStore
from .tokenizer import TokenizerChoice, negotiate, probe_engine_capability

__all__ = [
    "HeadingRecord",
    "IndexMetadata",
    "IndexState",
    "IndexStore",
    "SCHEMA_VERSION",
    "SearchResult",
    "SectionDocument",
    "TokenizerChoice",
    "build_fts_query",
    "evaluate_index_state",
    "extract",
    "find_section_fallback",
    "hash_tree",
    "identity_digest",
    "index_path",
    "iter_source_files",
    "negotiate",
    "normalize_query",
    "outline_fallback",
    "probe_engine_capability",
    "read_manifest_hash",
    "section_bounds",
    "validate_for_query",
]
