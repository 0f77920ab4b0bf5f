"""Read-only access to the build manifest written by the compile step."""

from __future__ import annotations

import json
from pathlib import Path

META_DIR_NAME = ".skillidx-meta"
MANIFEST_FILE_NAME = "manifest.json"


def meta_dir(runtime_dir: Path) -> Path:
    """Return the directory holding index and manifest files."""
    return Path(runtime_dir) / META_DIR_NAME


def manifest_path(runtime_dir: Path) -> Path:
    """Return the manifest location for a runtime directory."""
    return meta_dir(runtime_dir) / MANIFEST_FILE_NAME


def read_manifest_hash(runtime_dir: Path) -> str | None:
    """Return the manifest's frozen source hash, or None when there is no manifest."""
    path = manifest_path(runtime_dir)
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        return None
    value = payload.get("source_hash")
    if isinstance(value, str):
        return value
    return None
