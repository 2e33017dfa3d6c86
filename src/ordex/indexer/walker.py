"""Workspace file enumeration with glob-based include/exclude filters.

Glob patterns are matched against paths relative to the scan root, using
forward slashes. A leading "**/" also matches at the root, so
"**/*.md" matches both "notes.md" and "a/b/notes.md".
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from fnmatch import fnmatchcase
from pathlib import Path


def is_reserved_name(name: str) -> bool:
    """True for names reserved for hidden or generated artifacts."""
    return name.startswith(".") or name.startswith("_")


def glob_matches(rel_path: str, pattern: str) -> bool:
    """Match a root-relative POSIX path against one glob pattern."""
    if fnmatchcase(rel_path, pattern):
        return True
    # "**/x" should also match "x" at the root
    while pattern.startswith("**/"):
        pattern = pattern[3:]
        if fnmatchcase(rel_path, pattern):
            return True
    return False


def is_excluded(rel_path: str, patterns: Iterable[str], is_dir: bool = False) -> bool:
    """Check a root-relative path against exclusion globs.

    Directories are also tested with a trailing slash so "build/**"
    prunes the "build" directory itself.
    """
    candidates = [rel_path]
    if is_dir:
        candidates.append(rel_path.rstrip("/") + "/")
    return any(glob_matches(candidate, pattern) for pattern in patterns for candidate in candidates)


def iter_files(
    root: Path,
    include: Iterable[str] | None = None,
    exclude: Iterable[str] = (),
) -> Iterator[Path]:
    """Yield files under root, in sorted order.

    Hidden directories (leading ".") are never descended into.

    Args:
        root: Directory to walk.
        include: Globs a file must match (None means every file).
        exclude: Globs that skip a file or prune a whole directory.
    """
    include = list(include) if include is not None else None
    exclude = list(exclude)

    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        rel_dir = current.relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir

        kept = []
        for dirname in sorted(dirnames):
            if dirname.startswith("."):
                continue
            rel = f"{rel_dir}/{dirname}" if rel_dir else dirname
            if is_excluded(rel, exclude, is_dir=True):
                continue
            kept.append(dirname)
        dirnames[:] = kept

        for filename in sorted(filenames):
            rel = f"{rel_dir}/{filename}" if rel_dir else filename
            if exclude and is_excluded(rel, exclude):
                continue
            if include is not None and not any(glob_matches(rel, p) for p in include):
                continue
            yield current / filename
