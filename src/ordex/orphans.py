"""Orphaned attachment detection.

An orphan is an indexed attachment whose fingerprint no scanned document
references. Orphans are marked by prefixing ORPHAN- to the filename.
Marking is idempotent and each rename stands alone: one failure never
undoes the others.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Set
from pathlib import Path

from .config import ORPHAN_PREFIX
from .errors import RenameFailed
from .models import AttachmentInfo, OrphanReport, RenameStep
from .transaction import RenameTransaction

log = logging.getLogger(__name__)


def is_marked_orphan(filename: str) -> bool:
    return filename.startswith(ORPHAN_PREFIX)


def find_orphans(attachment_index: dict[str, AttachmentInfo], referenced: Set[str]) -> list[AttachmentInfo]:
    """Attachments whose fingerprint is not in the referenced set, by path."""
    orphans = [info for fingerprint, info in attachment_index.items() if fingerprint not in referenced]
    orphans.sort(key=lambda info: info.full_path)
    return orphans


def mark_orphan(info: AttachmentInfo) -> Path | None:
    """Rename an attachment to ORPHAN-<name>.

    Returns:
        The new path, or None if the file was already marked.

    Raises:
        RenameFailed: If the rename failed.
    """
    if is_marked_orphan(info.filename):
        return None

    destination = info.full_path.with_name(ORPHAN_PREFIX + info.filename)
    RenameTransaction(label="orphan").execute([RenameStep(source=info.full_path, destination=destination)])
    log.info("Marked as orphan: %s -> %s", info.filename, destination.name)
    return destination


async def reconcile_orphans(
    attachment_index: dict[str, AttachmentInfo],
    referenced: Set[str],
    dry_run: bool = False,
) -> OrphanReport:
    """Mark every unreferenced attachment as an orphan.

    Args:
        attachment_index: fingerprint -> attachment, from the same repair run.
        referenced: Fingerprints seen in any document's links.
        dry_run: Report orphans without renaming them.

    Returns:
        OrphanReport. Already-marked orphans are counted, not renamed again.
    """
    report = OrphanReport()

    for info in find_orphans(attachment_index, referenced):
        # Cancellation point between renames
        await asyncio.sleep(0)

        if is_marked_orphan(info.filename):
            report.already_marked.append(info.full_path)
            report.orphans_found += 1
            continue

        if dry_run:
            report.marked.append(info.full_path.with_name(ORPHAN_PREFIX + info.filename))
            report.orphans_found += 1
            continue

        try:
            destination = mark_orphan(info)
        except RenameFailed as e:
            log.error("Failed to mark orphan %s: %s", info.filename, e.message)
            report.failed.append(f"{info.full_path}: {e.reason}")
            continue

        if destination is not None:
            report.marked.append(destination)
        report.orphans_found += 1

    return report
