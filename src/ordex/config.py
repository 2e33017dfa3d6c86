"""Configuration management for ordex.

This module contains the workspace root discovery and all configurable
constants. Naming conventions are documented here rather than scattered
throughout the codebase.
"""

import os
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""

    pass


# Workspace config filename (marks a directory as a workspace root)
WORKSPACE_CONFIG_FILENAME = ".ordexconfig"

# Per-workspace state directory (cut clipboard)
STATE_DIRNAME = ".ordex"


def get_workspace_root() -> Path:
    """Get the workspace root directory.

    Discovery order:
    1. ORDEX_ROOT environment variable (explicit override)
    2. Walk up from cwd looking for .ordexconfig
    3. Error with helpful message

    Raises:
        ConfigurationError: If no workspace can be found.
    """
    root = os.environ.get("ORDEX_ROOT")
    if root:
        return Path(root)

    discovered = discover_workspace_root()
    if discovered:
        return discovered

    raise ConfigurationError(
        "No workspace found. Options:\n"
        "  1. Run 'ox init' to mark the current directory as a workspace\n"
        "  2. Set ORDEX_ROOT to an existing workspace directory"
    )


def find_workspace_root() -> Path | None:
    """Like get_workspace_root(), but returns None instead of raising."""
    try:
        return get_workspace_root()
    except ConfigurationError:
        return None


def discover_workspace_root(start_dir: Path | None = None, max_depth: int = 50) -> Path | None:
    """Walk up from start_dir looking for a .ordexconfig file.

    Args:
        start_dir: Directory to start from (defaults to cwd)
        max_depth: Maximum directories to traverse up

    Returns:
        Directory containing .ordexconfig, or None.
    """
    current = Path(start_dir or os.getcwd()).resolve()

    for _ in range(max_depth):
        if (current / WORKSPACE_CONFIG_FILENAME).is_file():
            return current

        parent = current.parent
        if parent == current:  # Reached filesystem root
            break
        current = parent

    return None


def get_state_root(workspace_root: Path | None = None) -> Path:
    """Get the state directory, creating it if needed."""
    root = (workspace_root or get_workspace_root()) / STATE_DIRNAME
    root.mkdir(parents=True, exist_ok=True)
    return root


# =============================================================================
# Ordinal Naming
# =============================================================================

# Gap between consecutive ordinals after a renumber.
# A gap of 10 leaves room to insert items between neighbours (insert-after
# uses ordinal + 1) without renumbering the whole directory.
ORDINAL_STEP = 10

# Rendered width of an ordinal prefix: 10 -> "00010_"
ORDINAL_WIDTH = 5

# Separator between the ordinal and the rest of the name
ORDINAL_SEPARATOR = "_"

# Default names for items created by insert-after
DEFAULT_INSERT_FILE_SUFFIX = "new.md"
DEFAULT_INSERT_DIR_SUFFIX = "new"

# Prefix for temporary names used while staging renames.
# Must start with "_" so scans never mistake a staged item for an ordinal item.
TEMP_NAME_PREFIX = "_ordex_"

# Directory names never descended into when walking a workspace.
DEFAULT_EXCLUDED_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        ".vscode",
        "out",
        "dist",
        "build",
        ".next",
        "target",
    }
)


# =============================================================================
# Attachments
# =============================================================================

# Marker token in attachment filenames: photo.ATTACH-<fingerprint>.png
DEFAULT_ATTACHMENT_MARKER = "ATTACH"

# Fingerprint length in hex characters (128 bits of SHA-256).
# Short enough for filenames; collisions are negligible at personal scale.
FINGERPRINT_LENGTH = 32

# Read size when streaming a file through the digest
HASH_CHUNK_SIZE = 64 * 1024

# Prefix marking an attachment no document references
ORPHAN_PREFIX = "ORPHAN-"

# Extensions rendered as inline images (![text](path))
IMAGE_EXTENSIONS = frozenset(
    {
        ".png",
        ".jpg",
        ".jpeg",
        ".gif",
        ".bmp",
        ".svg",
        ".webp",
        ".tif",
        ".tiff",
        ".avif",
    }
)


# =============================================================================
# Embedded Identifiers
# =============================================================================

# Keyword in identifier markers: <!-- GUID:<hex> --> on the target's first
# line and <!-- TARGET-GUID:<hex> --> before links in linking documents.
DEFAULT_IDENTIFIER_MARKER = "GUID"

# Leading bytes read from each candidate file when building the identifier
# index. The marker is always written as the first line, so this is a
# safe bound rather than a heuristic.
IDENTIFIER_READ_BYTES = 1024

# Files read per batch when building the identifier index concurrently
IDENTIFIER_BATCH_SIZE = 64


# =============================================================================
# Document Corpus
# =============================================================================

# Documents scanned for links during repair
DEFAULT_INCLUDE_GLOBS = ("**/*.md",)

# Paths skipped by every scan
DEFAULT_EXCLUDE_GLOBS = (
    "**/node_modules/**",
    "**/.git/**",
    "**/.vscode/**",
    "**/out/**",
    "**/dist/**",
    "**/build/**",
    "**/.next/**",
    "**/target/**",
)
