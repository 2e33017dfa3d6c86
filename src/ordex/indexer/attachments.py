"""Attachment naming and the fingerprint -> location index.

Attachments carry their content fingerprint in the filename:

    photo.ATTACH-3f2a...9c.png

The index is built from filenames alone; the name is trusted as the source
of truth, so no file is re-hashed during a repair run.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path

from ..config import FINGERPRINT_LENGTH
from ..context import WorkspaceSettings
from ..models import AttachmentInfo
from .walker import iter_files

log = logging.getLogger(__name__)


@lru_cache(maxsize=16)
def _fingerprint_pattern(marker: str) -> re.Pattern[str]:
    # .MARKER-<hex> at the end of the name, before an optional extension
    return re.compile(
        rf"\.{re.escape(marker)}-([0-9a-f]{{{FINGERPRINT_LENGTH}}})(?:\.[^./\\]+)?$",
        re.IGNORECASE,
    )


def extract_fingerprint(name_or_path: str, marker: str) -> str | None:
    """Extract the fingerprint from an attachment filename or path.

    Returns:
        Lowercase fingerprint, or None if the name does not follow the
        attachment naming convention.
    """
    match = _fingerprint_pattern(marker).search(name_or_path)
    return match.group(1).lower() if match else None


def attachment_filename(stem: str, fingerprint: str, extension: str, marker: str) -> str:
    """Build an attachment filename: ("photo", fp, ".png") -> "photo.ATTACH-fp.png"."""
    if extension and not extension.startswith("."):
        extension = "." + extension
    return f"{stem}.{marker}-{fingerprint.lower()}{extension}"


def display_stem(filename: str, marker: str) -> str:
    """Human name for an attachment, without fingerprint or extension."""
    match = _fingerprint_pattern(marker).search(filename)
    if match:
        return filename[: match.start()]
    return Path(filename).stem


def build_attachment_index(root: Path, settings: WorkspaceSettings) -> dict[str, AttachmentInfo]:
    """Map fingerprint -> attachment for every attachment under root.

    Files are visited in sorted path order. When two files share a
    fingerprint the later one wins, which keeps the result deterministic
    across runs.

    Args:
        root: Directory to scan recursively.
        settings: Workspace settings (exclusion globs, attachment marker).

    Returns:
        Dict keyed by lowercase fingerprint.
    """
    marker = settings.attachment_marker
    index: dict[str, AttachmentInfo] = {}

    for path in iter_files(root, include=None, exclude=settings.exclude):
        fingerprint = extract_fingerprint(path.name, marker)
        if not fingerprint:
            continue

        previous = index.get(fingerprint)
        if previous is not None:
            log.debug(
                "Duplicate attachment fingerprint %s: %s replaces %s",
                fingerprint,
                path,
                previous.full_path,
            )

        index[fingerprint] = AttachmentInfo(
            fingerprint=fingerprint,
            full_path=path,
            filename=path.name,
        )

    log.debug("Indexed %d attachment(s) under %s", len(index), root)
    return index
