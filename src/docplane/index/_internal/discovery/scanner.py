"""Document discovery: walk a root and select indexable files."""

from __future__ import annotations

import os
from pathlib import Path

from docplane.config.models import IndexConfig


def relative_posix(root: Path, path: Path) -> str:
    """Repo-relative path with forward slashes, stable across platforms."""
    return str(path.relative_to(root)).replace("\\", "/")


def _is_prunable(name: str, skip: frozenset[str]) -> bool:
    return name in skip or name.startswith(".")


def find_documents(root: Path, config: IndexConfig | None = None) -> list[Path]:
    """Find all indexable files under root, sorted by relative path.

    Hidden directories, configured skip directories and symlinks (files or
    directories) are never followed. Files must carry an allow-listed
    extension, must not be an excluded name, and must fit the size limit.
    """
    config = config or IndexConfig()
    skip = frozenset(config.skip_directories)
    extensions = frozenset(config.extensions)
    excluded = frozenset(config.excluded_names)
    max_bytes = config.max_file_size_mb * 1024 * 1024

    results: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not _is_prunable(d, skip))
        for filename in filenames:
            if filename in excluded:
                continue
            if os.path.splitext(filename)[1].lower() not in extensions:
                continue
            path = Path(dirpath) / filename
            if path.is_symlink() or not path.is_file():
                continue
            if path.stat().st_size > max_bytes:
                continue
            results.append(path)

    results.sort(key=lambda p: relative_posix(root, p))
    return results
