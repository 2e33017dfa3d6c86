"""Embedded identifiers and the identifier -> location index.

A target file carries its identifier as a marker comment on its first line:

    <!-- GUID:9b1c...e4 -->

Linking documents put a companion marker right before the link:

    <!-- TARGET-GUID:9b1c...e4 -->[Design notes](docs/design.md)

Only the leading IDENTIFIER_READ_BYTES of each file are read when indexing.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from collections.abc import Iterable
from functools import lru_cache
from pathlib import Path

from ..config import IDENTIFIER_READ_BYTES

log = logging.getLogger(__name__)


@lru_cache(maxsize=16)
def _identifier_pattern(marker: str) -> re.Pattern[str]:
    # MARKER:<hex>, but not TARGET-MARKER:<hex> (that one belongs to links)
    return re.compile(
        rf"(?<![\w-]){re.escape(marker)}:([0-9a-f]{{32}})\b",
        re.IGNORECASE,
    )


def new_identifier() -> str:
    """Generate a random 128-bit identifier as 32 hex characters."""
    return uuid.uuid4().hex


def identifier_comment(identifier: str, marker: str) -> str:
    """Marker comment written on a target file's first line."""
    return f"<!-- {marker}:{identifier} -->"


def target_comment(identifier: str, marker: str) -> str:
    """Companion marker written before a link in a linking document."""
    return f"<!-- TARGET-{marker}:{identifier} -->"


def find_identifier(text: str, marker: str) -> str | None:
    """Find an embedded identifier in the leading text of a file."""
    match = _identifier_pattern(marker).search(text)
    return match.group(1).lower() if match else None


def read_identifier(path: Path, marker: str) -> str | None:
    """Read a file's embedded identifier from its leading bytes.

    Returns:
        Lowercase identifier, or None if the file has none or is unreadable.
    """
    try:
        with open(path, "rb") as f:
            head = f.read(IDENTIFIER_READ_BYTES)
    except OSError as e:
        log.debug("Skipping unreadable %s during identifier scan: %s", path, e)
        return None

    if b"\x00" in head:
        # Binary file; markers are only ever written into text
        return None

    return find_identifier(head.decode("utf-8", errors="replace"), marker)


def build_identifier_index(paths: Iterable[Path], marker: str) -> dict[str, Path]:
    """Map identifier -> path by reading the head of each candidate file."""
    index: dict[str, Path] = {}
    for path in sorted(paths):
        identifier = read_identifier(path, marker)
        if identifier:
            index[identifier] = path
    return index


async def build_identifier_index_concurrent(
    paths: Iterable[Path],
    marker: str,
    batch_size: int = 64,
) -> dict[str, Path]:
    """Build the identifier index with batched concurrent reads.

    Each batch is read on worker threads; results are merged in sorted
    path order so the index is identical to build_identifier_index().
    """
    ordered = sorted(paths)
    found: dict[Path, str] = {}

    for start in range(0, len(ordered), batch_size):
        batch = ordered[start : start + batch_size]
        identifiers = await asyncio.gather(
            *(asyncio.to_thread(read_identifier, path, marker) for path in batch)
        )
        for path, identifier in zip(batch, identifiers):
            if identifier:
                found[path] = identifier

    index: dict[str, Path] = {}
    for path in ordered:
        identifier = found.get(path)
        if identifier:
            index[identifier] = path

    log.debug("Indexed %d identifier(s) from %d file(s)", len(index), len(ordered))
    return index
