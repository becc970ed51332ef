"""Filesystem operations for vault documents.

INVARIANT: Files are truth. The header index is derived and can always be
rebuilt from the files alone.

Paths handed across layers are vault-relative POSIX strings
(``Tasks/Write report.md``); this module converts them to absolute paths
and refuses anything that escapes the vault root.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path, PurePosixPath

DOCUMENT_SUFFIX = ".md"

# Directories to skip when discovering documents.
_SKIP_DIRS = frozenset({".tasksync", ".obsidian", ".git", ".trash"})


# ---------------------------------------------------------------------------
# Path resolution
# ---------------------------------------------------------------------------


def resolve_document_path(vault_root: Path, relative: str) -> Path:
    """Resolve a vault-relative path, guarding against traversal."""
    result = vault_root / PurePosixPath(relative)
    vault_resolved = vault_root.resolve()
    if not result.resolve().is_relative_to(vault_resolved):
        msg = f"Path escapes vault root: {relative}"
        raise ValueError(msg)
    return result


def relative_document_path(vault_root: Path, path: Path) -> str:
    """Inverse of :func:`resolve_document_path`."""
    return path.resolve().relative_to(vault_root.resolve()).as_posix()


def document_path(folder: str, file_name: str) -> str:
    """Vault-relative path for a new document named *file_name* in *folder*."""
    folder = folder.strip().strip("/")
    name = f"{file_name}{DOCUMENT_SUFFIX}"
    return f"{folder}/{name}" if folder else name


def find_documents(vault_root: Path, folder: str) -> list[str]:
    """Discover ``*.md`` documents below *folder*, recursively and sorted.

    A missing folder yields an empty list.
    """
    root = resolve_document_path(vault_root, folder) if folder else vault_root
    if not root.is_dir():
        return []

    results: list[str] = []
    for path in root.rglob(f"*{DOCUMENT_SUFFIX}"):
        if not path.is_file():
            continue
        relative = path.relative_to(vault_root)
        if any(part in _SKIP_DIRS for part in relative.parts):
            continue
        results.append(relative.as_posix())
    return sorted(results)


# ---------------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------------


def read_document(path: Path) -> str:
    """Read document text without newline translation."""
    with path.open(encoding="utf-8", newline="") as handle:
        return handle.read()


def create_exclusive(path: Path, text: str) -> None:
    """Create *path* with *text*; raises ``FileExistsError`` if it exists.

    Creates parent directories if they don't exist.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("x", encoding="utf-8", newline="") as handle:
        handle.write(text)


def atomic_write_text(path: Path, text: str) -> None:
    """Replace *path* with *text* via a sibling temp file and ``os.replace``.

    Readers observe either the old or the new content, never a partial write.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
