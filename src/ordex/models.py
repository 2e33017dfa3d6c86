"""Pydantic models for ordex."""

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class OrdinalItem(BaseModel):
    """A file or folder whose name starts with <digits>_."""

    original_name: str  # Name as found on disk, e.g. "00010_intro.md"
    ordinal: int  # Parsed numeric prefix
    suffix: str  # Name without prefix and separator, e.g. "intro.md"
    is_directory: bool
    full_path: Path


class RenameStep(BaseModel):
    """One planned or completed rename."""

    source: Path
    destination: Path

    def inverse(self) -> "RenameStep":
        return RenameStep(source=self.destination, destination=self.source)


class RenumberResult(BaseModel):
    """Result of renumbering one directory."""

    directory: Path
    items: int  # Ordinal items found
    renamed: list[RenameStep] = Field(default_factory=list)


class RenumberAllSummary(BaseModel):
    """Result of renumbering every ordinal directory under a root."""

    root: Path
    directories_processed: int = 0
    items_renumbered: int = 0
    items_renamed: int = 0
    errors: list[str] = Field(default_factory=list)  # "<relative dir>: <reason>"
    skipped: list[str] = Field(default_factory=list)  # Unreadable directories


class InsertResult(BaseModel):
    """Result of creating an item after an existing ordinal item."""

    path: Path
    ordinal: int
    is_directory: bool
    overwritten: bool = False


class MoveResult(BaseModel):
    """Result of swapping an item with its neighbour.

    status is "at_boundary" when there is no neighbour in the requested
    direction; nothing is renamed in that case.
    """

    status: Literal["moved", "at_boundary"]
    direction: Literal["up", "down"]
    path: Path  # Where the selected item lives afterwards
    ordinal: int  # Ordinal of the selected item afterwards
    neighbor: Path | None = None  # Neighbour's path afterwards
    renamed: list[RenameStep] = Field(default_factory=list)


class RelocateResult(BaseModel):
    """Result of a cut/paste relocation."""

    status: Literal["moved", "unchanged"]
    path: Path  # Final location of the moved item
    ordinal: int
    shifted: int = 0  # Neighbours whose ordinals were bumped
    renamed: list[RenameStep] = Field(default_factory=list)


class ClipboardItem(BaseModel):
    """A pending cut, persisted between CLI invocations."""

    source_path: Path
    original_name: str
    suffix: str
    is_directory: bool


class AttachmentInfo(BaseModel):
    """An attachment located by the fingerprint in its filename."""

    fingerprint: str
    full_path: Path
    filename: str


class AttachResult(BaseModel):
    """Result of attaching a file to a document."""

    path: Path  # Attachment location after naming
    fingerprint: str
    link: str  # Markdown link relative to the document
    renamed: bool = False  # True if the file was renamed to carry its fingerprint
    appended: bool = False


class IdentifierResult(BaseModel):
    """Result of assigning an identifier to a file."""

    path: Path
    identifier: str
    created: bool  # False if the file already carried one


class LinkKind(str, Enum):
    """Which index resolves a link."""

    HASH = "hash"
    IDENTIFIER = "identifier"


class LinkRecord(BaseModel):
    """A link found while scanning one document."""

    kind: LinkKind
    start: int  # Span of the whole match (marker comment included)
    end: int
    path_start: int  # Span of the path inside the parentheses
    path_end: int
    is_image: bool
    text: str  # Visible link text
    target: str  # Path as written (possibly URL-encoded)
    key: str | None  # Lowercase fingerprint or identifier; None if unparseable


class LinkRepair(BaseModel):
    """A rewrite computed for one broken link."""

    kind: LinkKind
    key: str
    old_target: str
    new_target: str


class DocumentRepair(BaseModel):
    """Repair outcome for one document."""

    path: Path
    repairs: list[LinkRepair] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)  # Decoded targets with no index entry
    referenced: set[str] = Field(default_factory=set)  # Fingerprints linked from this document
    warnings: list[str] = Field(default_factory=list)
    modified: bool = False


class OrphanReport(BaseModel):
    """Attachments no scanned document references."""

    orphans_found: int = 0  # Newly marked plus already marked
    marked: list[Path] = Field(default_factory=list)  # Renamed during this run
    already_marked: list[Path] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


class RepairSummary(BaseModel):
    """Per-run counts handed back to the caller for display."""

    root: Path
    documents_scanned: int = 0
    documents_modified: int = 0
    links_repaired: int = 0
    hash_links_repaired: int = 0
    identifier_links_repaired: int = 0
    attachments_indexed: int = 0
    identifiers_indexed: int = 0
    missing: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    orphans: OrphanReport | None = None

    @property
    def orphans_found(self) -> int:
        return self.orphans.orphans_found if self.orphans else 0
