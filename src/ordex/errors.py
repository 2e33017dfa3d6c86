"""Error types for ordex.

Every error raised by the core carries a stable ErrorCode so the CLI can
emit structured JSON with --json-errors. Outcomes that are not failures
(an item already at the start of its sequence) are result statuses, not
exceptions.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes for programmatic error handling."""

    DIRECTORY_UNREADABLE = "DIRECTORY_UNREADABLE"
    DUPLICATE_SUFFIX = "DUPLICATE_SUFFIX"
    NOT_ORDINAL_ITEM = "NOT_ORDINAL_ITEM"
    RENAME_FAILED = "RENAME_FAILED"
    ROLLBACK_INCOMPLETE = "ROLLBACK_INCOMPLETE"
    HASH_COMPUTATION_FAILED = "HASH_COMPUTATION_FAILED"
    TARGET_NOT_FOUND = "TARGET_NOT_FOUND"
    ENTRY_EXISTS = "ENTRY_EXISTS"
    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"
    INVALID_PATH = "INVALID_PATH"
    CLIPBOARD_EMPTY = "CLIPBOARD_EMPTY"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    FILE_READ_ERROR = "FILE_READ_ERROR"


def format_error_json(code: ErrorCode | str, message: str, details: dict | None = None) -> str:
    """Format an error as JSON for --json-errors output."""
    code_value = code.value if isinstance(code, ErrorCode) else code
    error: dict[str, dict[str, Any]] = {"error": {"code": code_value, "message": message}}
    if details:
        error["error"]["details"] = details
    return json.dumps(error, default=str)


class OrdexError(Exception):
    """Base class for ordex errors."""

    code: ErrorCode = ErrorCode.FILE_READ_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_json(self) -> str:
        return format_error_json(self.code, self.message, self.details)


class DirectoryUnreadable(OrdexError):
    """A directory could not be listed."""

    code = ErrorCode.DIRECTORY_UNREADABLE

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(
            f"Cannot read directory {path}: {reason}",
            {"path": str(path)},
        )


class DuplicateSuffix(OrdexError):
    """Two ordinal items in one directory share a name after prefix stripping.

    Raised before any rename is attempted.
    """

    code = ErrorCode.DUPLICATE_SUFFIX

    def __init__(self, directory: Path, duplicates: dict[str, list[str]]) -> None:
        self.directory = directory
        self.duplicates = duplicates
        lines = [f'"{key}" found in: {", ".join(names)}' for key, names in duplicates.items()]
        super().__init__(
            "Duplicate file names detected (ignoring ordinal prefixes):\n"
            + "\n".join(lines)
            + "\nRename these items to have unique names before renumbering.",
            {
                "directory": str(directory),
                "duplicates": duplicates,
                "suggestion": "Rename the duplicates, then run the command again",
            },
        )


class NotOrdinalItem(OrdexError):
    """A path was expected to carry an ordinal prefix but does not."""

    code = ErrorCode.NOT_ORDINAL_ITEM

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(
            f'"{path.name}" does not have an ordinal prefix (e.g., "00010_name.md")',
            {"path": str(path)},
        )


class EntryExists(OrdexError):
    """A file or folder would be created over an existing one."""

    code = ErrorCode.ENTRY_EXISTS

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(
            f'"{path.name}" already exists',
            {"path": str(path), "suggestion": "Pass --force to overwrite it"},
        )


class EntryNotFound(OrdexError):
    """A file or folder named on the command line does not exist."""

    code = ErrorCode.ENTRY_NOT_FOUND

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"No such file or folder: {path}", {"path": str(path)})


class ClipboardEmpty(OrdexError):
    """Paste was requested with nothing cut, or the cut item vanished."""

    code = ErrorCode.CLIPBOARD_EMPTY


class RenameFailed(OrdexError):
    """A rename inside a transaction failed; completed renames were undone."""

    code = ErrorCode.RENAME_FAILED

    def __init__(self, source: Path, destination: Path, reason: str) -> None:
        self.source = source
        self.destination = destination
        self.reason = reason
        super().__init__(
            f"Failed to rename {source.name} -> {destination.name}: {reason}",
            {"source": str(source), "destination": str(destination)},
        )


class RollbackIncomplete(RenameFailed):
    """A rename failed and some completed renames could not be undone.

    The original failure is kept in the message and on ``__cause__``;
    ``unrestored`` lists (current_path, original_path) pairs left behind.
    """

    code = ErrorCode.ROLLBACK_INCOMPLETE

    def __init__(self, original: RenameFailed, unrestored: list[tuple[Path, Path]]) -> None:
        self.original = original
        self.unrestored = unrestored
        super().__init__(original.source, original.destination, original.reason)
        self.message = (
            f"{original.message}\n"
            f"Rollback incomplete: {len(unrestored)} rename(s) could not be undone:\n"
            + "\n".join(f"  {current} (was {previous})" for current, previous in unrestored)
        )
        self.args = (self.message,)
        self.details["unrestored"] = [
            {"current": str(current), "original": str(previous)} for current, previous in unrestored
        ]


class HashComputationFailed(OrdexError):
    """A file could not be read for hashing."""

    code = ErrorCode.HASH_COMPUTATION_FAILED

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Failed to read {path} for hashing: {reason}", {"path": str(path)})


class TargetNotFound(OrdexError):
    """A fingerprint or identifier has no entry in its index."""

    code = ErrorCode.TARGET_NOT_FOUND

    def __init__(self, key: str, link_target: str) -> None:
        self.key = key
        self.link_target = link_target
        super().__init__(
            f"No file found for {key} (linked as {link_target})",
            {"key": key, "link_target": link_target},
        )
