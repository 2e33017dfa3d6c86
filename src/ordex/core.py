"""Core business logic for ordex.

This module contains the operations behind every CLI command.

Design principles:
- All functions are async for consistency
- Planning happens in ordinals.sequencer; renames happen in RenameTransaction
- Settings are passed in explicitly; nothing here reads global state
"""

import asyncio
import logging
from pathlib import Path
from typing import Literal

from .clipboard import clear_clipboard, load_clipboard, save_clipboard
from .config import IMAGE_EXTENSIONS
from .context import WorkspaceSettings
from .errors import (
    ClipboardEmpty,
    DirectoryUnreadable,
    DuplicateSuffix,
    EntryExists,
    EntryNotFound,
    NotOrdinalItem,
    RenameFailed,
    TargetNotFound,
)
from .hashing import compute_bytes_fingerprint, compute_fingerprint
from .indexer import build_attachment_index, build_identifier_index_concurrent, extract_fingerprint, iter_files
from .indexer.attachments import attachment_filename, display_stem
from .indexer.identifiers import identifier_comment, new_identifier, read_identifier, target_comment
from .models import (
    AttachResult,
    ClipboardItem,
    IdentifierResult,
    InsertResult,
    LinkKind,
    MoveResult,
    OrdinalItem,
    RelocateResult,
    RenameStep,
    RenumberAllSummary,
    RenumberResult,
    RepairSummary,
)
from .ordinals import (
    find_ordinal_directories,
    parse_ordinal,
    plan_insert_after,
    plan_move_adjacent,
    plan_relocate,
    plan_renumber,
    scan_ordinal_items,
    strip_ordinal_prefix,
)
from .orphans import reconcile_orphans
from .parser import build_markdown_link, encode_link_path, relative_link_path
from .repair import read_document, repair_document, write_document
from .transaction import RenameTransaction

log = logging.getLogger(__name__)

_UTF8_BOM = b"\xef\xbb\xbf"


def _require_exists(path: Path) -> None:
    if not path.exists():
        raise EntryNotFound(path)


def _relative_to(root: Path, path: Path) -> str:
    try:
        rel = path.relative_to(root).as_posix()
    except ValueError:
        return str(path)
    return rel if rel != "." else "."


# ─────────────────────────────────────────────────────────────────────────────
# Ordinal sequences
# ─────────────────────────────────────────────────────────────────────────────


async def scan(directory: Path) -> list[OrdinalItem]:
    """List a directory's ordinal items in sequence order.

    Raises:
        DirectoryUnreadable: If the directory cannot be listed.
    """
    return scan_ordinal_items(directory)


async def renumber(directory: Path) -> RenumberResult:
    """Renumber one directory's ordinal items to 10, 20, 30, ...

    Relative order is preserved and items already carrying their target
    name are not touched. Running it twice renames nothing the second time.

    Raises:
        DirectoryUnreadable: If the directory cannot be listed.
        DuplicateSuffix: If two items share a name after their prefix.
        RenameFailed: If a rename failed (completed renames are undone).
    """
    items = scan_ordinal_items(directory)
    steps = plan_renumber(items, directory)

    renamed = RenameTransaction(label=f"renumber {directory.name}").execute(steps)
    if renamed:
        log.info("Renumbered %d of %d item(s) in %s", len(renamed), len(items), directory)

    return RenumberResult(directory=directory, items=len(items), renamed=renamed)


async def renumber_all(root: Path, settings: WorkspaceSettings | None = None) -> RenumberAllSummary:
    """Renumber every directory under root that holds ordinal items.

    Each directory is its own transaction. A directory that fails (duplicate
    suffixes, a failed rename) is reported in errors and the rest carry on;
    unreadable directories are reported in skipped.
    """
    settings = settings or WorkspaceSettings()
    summary = RenumberAllSummary(root=root)

    # Children before parents: renaming a parent folder would invalidate
    # the paths of everything below it
    for directory in reversed(find_ordinal_directories(root, settings)):
        # Cancellation point between directories
        await asyncio.sleep(0)

        rel = _relative_to(root, directory)
        try:
            items = scan_ordinal_items(directory)
        except DirectoryUnreadable as e:
            log.warning("Skipping %s: %s", rel, e.message)
            summary.skipped.append(rel)
            continue

        if not items:
            continue

        try:
            steps = plan_renumber(items, directory)
            renamed = RenameTransaction(label=f"renumber {rel}").execute(steps)
        except (DuplicateSuffix, RenameFailed) as e:
            log.error("Could not renumber %s: %s", rel, e.message)
            summary.errors.append(f"{rel}: {e.message}")
            continue

        summary.directories_processed += 1
        summary.items_renumbered += len(items)
        summary.items_renamed += len(renamed)

    log.info(
        "Renumbered %d director%s (%d item(s), %d renamed)",
        summary.directories_processed,
        "y" if summary.directories_processed == 1 else "ies",
        summary.items_renumbered,
        summary.items_renamed,
    )
    return summary


async def insert_after(path: Path, directory: bool = False, overwrite: bool = False) -> InsertResult:
    """Create an empty file (or folder) right after an ordinal item.

    The new item takes the selected item's ordinal plus one and the name
    "new.md" (or "new" for folders). Nothing else is renamed.

    Raises:
        EntryNotFound: If path does not exist.
        NotOrdinalItem: If path has no ordinal prefix.
        EntryExists: If the new name is taken and overwrite is False, or
            is taken by an entry of the other kind.
    """
    _require_exists(path)
    new_path, ordinal = plan_insert_after(path, directory=directory)

    existed = new_path.exists()
    if existed and (not overwrite or new_path.is_dir() != directory):
        raise EntryExists(new_path)

    if directory:
        new_path.mkdir(exist_ok=True)
    else:
        new_path.write_text("", encoding="utf-8")

    log.info("Created %s", new_path)
    return InsertResult(path=new_path, ordinal=ordinal, is_directory=directory, overwritten=existed)


async def move(path: Path, direction: Literal["up", "down"]) -> MoveResult:
    """Swap an ordinal item with its predecessor (up) or successor (down).

    At the start or end of the sequence nothing happens and the result's
    status is "at_boundary".

    Raises:
        EntryNotFound: If path does not exist.
        NotOrdinalItem: If path has no ordinal prefix.
        RenameFailed: If a rename failed (completed renames are undone).
    """
    _require_exists(path)
    ordinal = parse_ordinal(path.name)
    if ordinal is None:
        raise NotOrdinalItem(path)

    items = scan_ordinal_items(path.parent)
    plan = plan_move_adjacent(items, path.name, direction)
    if plan is None:
        log.info("%s is already at the %s", path.name, "top" if direction == "up" else "bottom")
        return MoveResult(status="at_boundary", direction=direction, path=path, ordinal=ordinal)

    renamed = RenameTransaction(label=f"move {direction}").execute(plan.steps)
    log.info("Moved %s %s (now %s)", path.name, direction, plan.selected_destination.name)

    return MoveResult(
        status="moved",
        direction=direction,
        path=plan.selected_destination,
        ordinal=plan.neighbor.ordinal,
        neighbor=plan.neighbor_destination,
        renamed=renamed,
    )


async def relocate(source: Path, target: Path) -> RelocateResult:
    """Move source into target's slot, shifting target and later items down.

    source keeps its name minus any ordinal prefix and takes target's
    ordinal; it may come from another directory.

    Raises:
        EntryNotFound: If source or target does not exist.
        NotOrdinalItem: If target has no ordinal prefix.
        DuplicateSuffix: If target's directory already holds an item with
            source's name.
        RenameFailed: If a rename failed (completed renames are undone).
    """
    _require_exists(source)
    _require_exists(target)
    source = source.resolve()
    target = target.resolve()

    suffix = strip_ordinal_prefix(source.name)
    destination_items = scan_ordinal_items(target.parent)
    plan = plan_relocate(source, suffix, source.is_dir(), target, destination_items)

    if plan is None:
        return RelocateResult(status="unchanged", path=source, ordinal=parse_ordinal(source.name) or 0)

    renamed = RenameTransaction(label="relocate").execute(plan.steps)
    log.info("Moved %s -> %s (%d item(s) shifted)", source.name, plan.final_path, len(plan.shifted))

    return RelocateResult(
        status="moved",
        path=plan.final_path,
        ordinal=plan.ordinal,
        shifted=len(plan.shifted),
        renamed=renamed,
    )


async def cut(path: Path, workspace_root: Path) -> ClipboardItem:
    """Remember an item for a later paste."""
    _require_exists(path)
    resolved = path.resolve()
    item = ClipboardItem(
        source_path=resolved,
        original_name=resolved.name,
        suffix=strip_ordinal_prefix(resolved.name),
        is_directory=resolved.is_dir(),
    )
    save_clipboard(item, workspace_root)
    log.info("Cut ready: %s", resolved.name)
    return item


async def paste(target: Path, workspace_root: Path) -> RelocateResult:
    """Relocate the cut item into target's slot and clear the clipboard.

    Raises:
        ClipboardEmpty: If nothing was cut, or the cut item no longer exists
            (the stale clipboard is cleared).
    """
    item = load_clipboard(workspace_root)
    if item is None:
        raise ClipboardEmpty("Nothing to paste; cut an item first")

    if not item.source_path.exists():
        clear_clipboard(workspace_root)
        raise ClipboardEmpty(
            f"The cut item no longer exists: {item.source_path}",
            {"path": str(item.source_path)},
        )

    result = await relocate(item.source_path, target)
    clear_clipboard(workspace_root)
    return result


# ─────────────────────────────────────────────────────────────────────────────
# Attachments and identifiers
# ─────────────────────────────────────────────────────────────────────────────


async def hash_file(path: Path) -> str:
    """Content fingerprint of a file."""
    _require_exists(path)
    return compute_fingerprint(path)


def _append_line(document: Path, line: str) -> None:
    content = read_document(document) if document.exists() else ""
    if content and not content.endswith("\n"):
        content += "\n"
    write_document(document, content + line + "\n")


async def attach_file(
    document: Path,
    file: Path,
    settings: WorkspaceSettings | None = None,
    append: bool = False,
) -> AttachResult:
    """Give a file its fingerprinted name and build a link to it from document.

    Files already named with a fingerprint are linked as they are.

    Args:
        document: Markdown document the link is for.
        file: File to attach.
        settings: Workspace settings (attachment marker).
        append: Also append the link to the end of the document.

    Raises:
        EntryNotFound: If file does not exist.
        HashComputationFailed: If file cannot be read.
        RenameFailed: If the rename failed.
    """
    settings = settings or WorkspaceSettings()
    marker = settings.attachment_marker
    _require_exists(file)

    fingerprint = extract_fingerprint(file.name, marker)
    path = file
    renamed = False

    if fingerprint is None:
        fingerprint = compute_fingerprint(file)
        path = file.with_name(attachment_filename(file.stem, fingerprint, file.suffix, marker))
        RenameTransaction(label="attach").execute([RenameStep(source=file, destination=path)])
        renamed = True
        log.info("Renamed %s -> %s", file.name, path.name)

    target = encode_link_path(relative_link_path(document.parent, path))
    link = build_markdown_link(display_stem(path.name, marker), target, path.suffix.lower() in IMAGE_EXTENSIONS)

    if append:
        _append_line(document, link)

    return AttachResult(path=path, fingerprint=fingerprint, link=link, renamed=renamed, appended=append)


async def save_attachment_bytes(
    directory: Path,
    data: bytes,
    stem: str = "image",
    extension: str = ".png",
    settings: WorkspaceSettings | None = None,
) -> Path:
    """Write in-memory content (e.g. a pasted image) as a fingerprinted file.

    Saving the same bytes twice reuses the existing file.
    """
    settings = settings or WorkspaceSettings()
    fingerprint = compute_bytes_fingerprint(data)
    path = directory / attachment_filename(stem, fingerprint, extension, settings.attachment_marker)

    if path.exists():
        log.info("Attachment already saved: %s", path.name)
        return path

    directory.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    log.info("Saved attachment %s", path)
    return path


async def assign_identifier(path: Path, settings: WorkspaceSettings | None = None) -> IdentifierResult:
    """Give a file an identifier marker on its first line, at most once.

    Raises:
        EntryNotFound: If path does not exist.
        ValueError: If path is a folder or looks binary.
    """
    settings = settings or WorkspaceSettings()
    marker = settings.identifier_marker
    _require_exists(path)
    if path.is_dir():
        raise ValueError(f"Cannot assign an identifier to a folder: {path}")

    existing = read_identifier(path, marker)
    if existing:
        return IdentifierResult(path=path, identifier=existing, created=False)

    data = path.read_bytes()
    if b"\x00" in data[:1024]:
        raise ValueError(f"Cannot assign an identifier to a binary file: {path}")

    identifier = new_identifier()
    line = (identifier_comment(identifier, marker) + "\n").encode("utf-8")
    if data.startswith(_UTF8_BOM):
        data = _UTF8_BOM + line + data[len(_UTF8_BOM) :]
    else:
        data = line + data
    path.write_bytes(data)

    log.info("Assigned identifier %s to %s", identifier, path.name)
    return IdentifierResult(path=path, identifier=identifier, created=True)


async def link_identifier(
    document: Path,
    target: Path,
    text: str | None = None,
    settings: WorkspaceSettings | None = None,
    append: bool = False,
) -> str:
    """Build an identifier link from document to target.

    The target gets an identifier first if it has none. The link is
    preceded by a TARGET marker so repair can find the target after it
    moves.

    Returns:
        The marker comment and link, e.g.
        "<!-- TARGET-GUID:... -->[notes](../notes.md)"
    """
    settings = settings or WorkspaceSettings()
    assigned = await assign_identifier(target, settings)

    link_target = encode_link_path(relative_link_path(document.parent, target))
    is_image = target.suffix.lower() in IMAGE_EXTENSIONS
    link = build_markdown_link(text or target.stem, link_target, is_image)
    rendered = target_comment(assigned.identifier, settings.identifier_marker) + link

    if append:
        _append_line(document, rendered)
    return rendered


async def locate(root: Path, key: str, settings: WorkspaceSettings | None = None) -> tuple[LinkKind, Path]:
    """Find the current location of a fingerprint or identifier under root.

    Raises:
        TargetNotFound: If neither index knows the key.
    """
    settings = settings or WorkspaceSettings()
    key = key.strip().lower()

    info = build_attachment_index(root, settings).get(key)
    if info is not None:
        return LinkKind.HASH, info.full_path

    identifiers = await build_identifier_index_concurrent(
        iter_files(root, exclude=settings.exclude),
        settings.identifier_marker,
        batch_size=settings.identifier_batch_size,
    )
    if key in identifiers:
        return LinkKind.IDENTIFIER, identifiers[key]

    raise TargetNotFound(key, key)


# ─────────────────────────────────────────────────────────────────────────────
# Link repair
# ─────────────────────────────────────────────────────────────────────────────


async def repair_links(
    root: Path,
    settings: WorkspaceSettings | None = None,
    dry_run: bool = False,
    orphans: bool = True,
) -> RepairSummary:
    """Repair broken hash and identifier links under root.

    Both indexes are built once up front. Each document is then scanned and
    its broken links rewritten to the targets' current locations. Finally
    attachments no document references are marked as orphans.

    Args:
        root: Workspace folder to scan.
        settings: Include/exclude globs and marker keywords.
        dry_run: Report what would change without writing or renaming.
        orphans: Also mark unreferenced attachments.

    Returns:
        RepairSummary with per-run counts.
    """
    settings = settings or WorkspaceSettings()
    summary = RepairSummary(root=root)

    attachment_index = build_attachment_index(root, settings)
    identifier_index = await build_identifier_index_concurrent(
        iter_files(root, exclude=settings.exclude),
        settings.identifier_marker,
        batch_size=settings.identifier_batch_size,
    )
    summary.attachments_indexed = len(attachment_index)
    summary.identifiers_indexed = len(identifier_index)

    referenced: set[str] = set()

    for document in iter_files(root, include=settings.include, exclude=settings.exclude):
        # Cancellation point between documents
        await asyncio.sleep(0)

        result = repair_document(document, attachment_index, identifier_index, settings, dry_run=dry_run)
        summary.documents_scanned += 1
        referenced |= result.referenced

        if result.modified:
            summary.documents_modified += 1
        for repair in result.repairs:
            summary.links_repaired += 1
            if repair.kind is LinkKind.HASH:
                summary.hash_links_repaired += 1
            else:
                summary.identifier_links_repaired += 1

        rel = _relative_to(root, document)
        for target in result.missing:
            entry = f"{rel}: {target}"
            if entry not in summary.missing:
                summary.missing.append(entry)
        summary.warnings.extend(f"{rel}: {warning}" for warning in result.warnings)

    if orphans:
        summary.orphans = await reconcile_orphans(attachment_index, referenced, dry_run=dry_run)

    log.info(
        "Scanned %d document(s), repaired %d link(s) in %d document(s)",
        summary.documents_scanned,
        summary.links_repaired,
        summary.documents_modified,
    )
    return summary
