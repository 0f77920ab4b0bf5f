"""Deterministic source tree hashing and index identity digests."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

_READ_CHUNK_BYTES = 1024 * 128


def iter_source_files(root: Path) -> list[tuple[str, Path]]:
    """Return sorted (relative posix path, full path) pairs for regular files.

    Directories whose name starts with ``.`` are pruned. Symlinks are neither
    followed nor reported.
    """
    base = Path(root)
    output: list[tuple[str, Path]] = []
    stack: list[Path] = [base]
    while stack:
        current = stack.pop()
        with os.scandir(current) as entries:
            ordered_entries = sorted(entries, key=lambda item: item.name)
        for entry in ordered_entries:
            full_path = Path(entry.path)
            if entry.is_dir(follow_symlinks=False):
                if entry.name.startswith("."):
                    continue
                stack.append(full_path)
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
            output.append((full_path.relative_to(base).as_posix(), full_path))
    output.sort(key=lambda item: item[0])
    return output


def sha256_file(path: Path) -> str:
    """Compute SHA-256 hash in deterministic chunked reads."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        while True:
            chunk = handle.read(_READ_CHUNK_BYTES)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def hash_tree(root: Path) -> str:
    """Hash every file's relative path and content digest in path order."""
    pairs = [(relative, sha256_file(full_path)) for relative, full_path in iter_source_files(root)]
    pairs.sort(key=lambda item: item[0])
    digest = hashlib.sha256()
    for relative, file_hash in pairs:
        digest.update(relative.encode("utf-8", errors="surrogateescape"))
        digest.update(file_hash.encode("ascii"))
    return digest.hexdigest()


def canonical_path(path: Path) -> str:
    """Resolve symlinks to an absolute path, or keep the given path if that fails."""
    try:
        return str(Path(path).resolve(strict=True))
    except (OSError, RuntimeError):
        return str(path)


def identity_digest(path: Path) -> str:
    """Return the 16-hex-character digest naming a source tree's index file."""
    digest = hashlib.sha256(canonical_path(path).encode("utf-8", errors="surrogateescape"))
    return digest.hexdigest()[:16]
