"""Broken-link repair for a single document.

For every hash or identifier link, the target is resolved relative to the
document. Links that resolve are left alone. Broken links are looked up by
fingerprint or identifier and rewritten to the file's current location;
links whose key is in neither index are reported as missing, never removed.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .context import WorkspaceSettings
from .models import AttachmentInfo, DocumentRepair, LinkKind, LinkRecord, LinkRepair
from .parser.links import (
    decode_link_path,
    encode_link_path,
    extract_links,
    has_url_scheme,
    relative_link_path,
)

log = logging.getLogger(__name__)


def read_document(path: Path) -> str:
    """Read a document preserving its line endings."""
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def write_document(path: Path, content: str) -> None:
    """Write a document without translating line endings."""
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def _resolve_target(record: LinkRecord, document_dir: Path) -> Path | None:
    """Resolve a link's decoded target on disk, or None if it is broken."""
    decoded = decode_link_path(record.target)
    if not decoded:
        return None
    candidate = document_dir / decoded
    return candidate if candidate.exists() else None


def _lookup(
    record: LinkRecord,
    attachment_index: dict[str, AttachmentInfo],
    identifier_index: dict[str, Path],
) -> Path | None:
    if record.key is None:
        return None
    if record.kind is LinkKind.HASH:
        info = attachment_index.get(record.key)
        return info.full_path if info else None
    if record.kind is LinkKind.IDENTIFIER:
        return identifier_index.get(record.key)
    raise ValueError(f"Unknown link kind: {record.kind}")


def apply_replacements(
    content: str,
    replacements: list[tuple[LinkRecord, str]],
) -> tuple[str, list[tuple[LinkRecord, str]], list[str]]:
    """Rewrite link paths in one pass.

    Replacements whose link spans overlap an earlier replacement are
    skipped. The rest are applied from the end of the document backwards
    so pending offsets stay valid.

    Returns:
        (new_content, applied_replacements, warnings)
    """
    warnings: list[str] = []
    accepted: list[tuple[LinkRecord, str]] = []
    last_end = -1

    for record, new_target in sorted(replacements, key=lambda pair: pair[0].start):
        if record.start < last_end:
            warnings.append(
                f"Skipped overlapping {record.kind.value} link at offset {record.start}: {record.target}"
            )
            continue
        accepted.append((record, new_target))
        last_end = record.end

    for record, new_target in sorted(accepted, key=lambda pair: pair[0].start, reverse=True):
        content = content[: record.path_start] + new_target + content[record.path_end :]

    return content, accepted, warnings


def repair_document(
    path: Path,
    attachment_index: dict[str, AttachmentInfo],
    identifier_index: dict[str, Path],
    settings: WorkspaceSettings,
    dry_run: bool = False,
) -> DocumentRepair:
    """Find and fix broken hash and identifier links in one document.

    Args:
        path: Markdown document to scan.
        attachment_index: fingerprint -> attachment.
        identifier_index: identifier -> path.
        settings: Workspace settings (marker keywords).
        dry_run: Compute repairs without writing the document.

    Returns:
        DocumentRepair with rewrites, missing targets and every fingerprint
        the document references (broken or not).
    """
    result = DocumentRepair(path=path)

    try:
        content = read_document(path)
    except (OSError, UnicodeDecodeError) as e:
        result.warnings.append(f"Could not read {path}: {e}")
        log.warning("Skipping unreadable document %s: %s", path, e)
        return result

    document_dir = path.parent
    replacements: list[tuple[LinkRecord, str]] = []

    for record in extract_links(content, settings):
        if record.kind is LinkKind.HASH and record.key:
            result.referenced.add(record.key)

        if has_url_scheme(record.target):
            continue

        if _resolve_target(record, document_dir) is not None:
            continue

        if record.key is None:
            result.warnings.append(f"Could not extract fingerprint from link: {record.target}")
            log.warning("Could not extract fingerprint from link %s in %s", record.target, path)
            continue

        location = _lookup(record, attachment_index, identifier_index)
        if location is None:
            decoded = decode_link_path(record.target)
            if decoded not in result.missing:
                result.missing.append(decoded)
                log.warning("Missing %s target in %s: %s (%s)", record.kind.value, path.name, decoded, record.key)
            continue

        replacements.append((record, encode_link_path(relative_link_path(document_dir, location))))

    if not replacements:
        return result

    new_content, applied, warnings = apply_replacements(content, replacements)
    for warning in warnings:
        log.warning("%s in %s", warning, path)
    result.warnings.extend(warnings)

    result.repairs = [
        LinkRepair(
            kind=record.kind,
            key=record.key or "",
            old_target=record.target,
            new_target=new_target,
        )
        for record, new_target in applied
    ]

    if new_content != content:
        result.modified = True
        if not dry_run:
            write_document(path, new_content)
            log.info("Fixed %d link(s) in %s", len(result.repairs), path.name)

    return result
