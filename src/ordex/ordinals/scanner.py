"""Ordinal item discovery.

An ordinal item is a file or folder named <digits>_<name>, e.g.
"00010_intro.md". Items are ordered by the numeric value of the prefix,
never alphabetically, so "9_x" sorts before "10_x".
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from ..config import DEFAULT_EXCLUDED_DIRS, ORDINAL_SEPARATOR, ORDINAL_WIDTH
from ..context import WorkspaceSettings
from ..errors import DirectoryUnreadable
from ..indexer.walker import is_excluded, is_reserved_name
from ..models import OrdinalItem

log = logging.getLogger(__name__)

# <digits>_<rest>; the rest must be non-empty
ORDINAL_PATTERN = re.compile(r"^(\d+)_(.+)$", re.DOTALL)


def parse_ordinal(name: str) -> int | None:
    """Extract the ordinal from a name like "00012_something.md".

    Returns:
        The ordinal, or None if the name has no ordinal prefix.
    """
    match = ORDINAL_PATTERN.match(name)
    if match:
        return int(match.group(1))
    return None


def strip_ordinal_prefix(name: str) -> str:
    """Strip the ordinal prefix ("00010_") from a name if present."""
    match = ORDINAL_PATTERN.match(name)
    return match.group(2) if match else name


def format_ordinal_prefix(ordinal: int) -> str:
    """Render an ordinal as a name prefix: 10 -> "00010_"."""
    if ordinal < 0:
        raise ValueError(f"Ordinals are unsigned: {ordinal}")
    return str(ordinal).zfill(ORDINAL_WIDTH) + ORDINAL_SEPARATOR


def ordinal_name(ordinal: int, suffix: str) -> str:
    """Build a full name from an ordinal and a suffix."""
    return format_ordinal_prefix(ordinal) + suffix


def item_from_path(path: Path) -> OrdinalItem | None:
    """Build an OrdinalItem for a single existing path.

    Returns:
        The item, or None if the name carries no ordinal prefix.
    """
    match = ORDINAL_PATTERN.match(path.name)
    if not match:
        return None
    return OrdinalItem(
        original_name=path.name,
        ordinal=int(match.group(1)),
        suffix=match.group(2),
        is_directory=path.is_dir(),
        full_path=path,
    )


def scan_ordinal_items(directory: Path) -> list[OrdinalItem]:
    """Scan one directory for ordinal items.

    Names starting with "." or "_" are skipped; they are reserved for hidden
    and generated artifacts, including the temporary names used while
    staging renames.

    Args:
        directory: Directory to scan (not recursive).

    Returns:
        Items sorted by current ordinal, ties broken by name.

    Raises:
        DirectoryUnreadable: If the directory cannot be listed.
    """
    try:
        entries = list(os.scandir(directory))
    except OSError as e:
        raise DirectoryUnreadable(directory, e.strerror or str(e)) from e

    items: list[OrdinalItem] = []
    for entry in entries:
        if is_reserved_name(entry.name):
            continue

        match = ORDINAL_PATTERN.match(entry.name)
        if not match:
            continue

        try:
            is_directory = entry.is_dir()
        except OSError:
            is_directory = False

        items.append(
            OrdinalItem(
                original_name=entry.name,
                ordinal=int(match.group(1)),
                suffix=match.group(2),
                is_directory=is_directory,
                full_path=Path(directory) / entry.name,
            )
        )

    items.sort(key=lambda item: (item.ordinal, item.original_name))
    return items


def find_duplicate_suffixes(items: list[OrdinalItem]) -> dict[str, list[str]]:
    """Group items whose suffixes collide case-insensitively.

    Returns:
        Lowercased suffix -> original names, only for suffixes seen twice or more.
    """
    names_seen: dict[str, list[str]] = {}
    for item in items:
        names_seen.setdefault(item.suffix.lower(), []).append(item.original_name)
    return {key: names for key, names in names_seen.items() if len(names) > 1}


def find_ordinal_directories(root: Path, settings: WorkspaceSettings) -> list[Path]:
    """List root and every descendant directory that renumbering should visit.

    Skips hidden and "_" directories, the default excluded directory names
    and anything matching an exclusion glob. Unreadable directories are
    logged and skipped.

    Returns:
        Directories in walk order, root first.
    """
    directories: list[Path] = [root]

    def _scan(directory: Path) -> None:
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            log.warning("Skipping unreadable directory %s: %s", directory, e)
            return

        for entry in entries:
            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
            except OSError:
                continue

            if is_reserved_name(entry.name) or entry.name in DEFAULT_EXCLUDED_DIRS:
                continue

            sub_dir = directory / entry.name
            rel_path = sub_dir.relative_to(root).as_posix()
            if is_excluded(rel_path, settings.exclude, is_dir=True):
                continue

            directories.append(sub_dir)
            _scan(sub_dir)

    _scan(root)
    return directories
