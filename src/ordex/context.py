"""Workspace settings discovery and loading.

A .ordexconfig file at the workspace root tunes which files the scanners
look at and which marker keywords the link formats use.

Example .ordexconfig file:
    include:                     # Documents scanned for links
      - "**/*.md"
    exclude:                     # Skipped by every scan (glob patterns)
      - "**/node_modules/**"
      - "archive/**"
    attachment_marker: ATTACH    # photo.ATTACH-<fingerprint>.png
    identifier_marker: GUID      # <!-- GUID:<hex> -->

Settings are loaded once by the caller and passed explicitly into every
scanning and indexing function; nothing below the CLI reads them from
global state.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .config import (
    DEFAULT_ATTACHMENT_MARKER,
    DEFAULT_EXCLUDE_GLOBS,
    DEFAULT_IDENTIFIER_MARKER,
    DEFAULT_INCLUDE_GLOBS,
    IDENTIFIER_BATCH_SIZE,
    WORKSPACE_CONFIG_FILENAME,
)

log = logging.getLogger(__name__)

_MARKER_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")

# Cache for .ordexconfig loading (per-session)
_settings_cache: dict[str, "WorkspaceSettings"] = {}


class WorkspaceSettings(BaseModel):
    """Settings from a workspace's .ordexconfig file."""

    include: list[str] = Field(default_factory=lambda: list(DEFAULT_INCLUDE_GLOBS))
    exclude: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_GLOBS))
    attachment_marker: str = DEFAULT_ATTACHMENT_MARKER
    identifier_marker: str = DEFAULT_IDENTIFIER_MARKER
    identifier_batch_size: int = Field(default=IDENTIFIER_BATCH_SIZE, ge=1)
    source_file: Path | None = None

    @field_validator("include", "exclude")
    @classmethod
    def _normalize_globs(cls, value: list[str]) -> list[str]:
        return [glob.strip() for glob in value if glob and glob.strip()]

    @field_validator("attachment_marker", "identifier_marker")
    @classmethod
    def _validate_marker(cls, value: str) -> str:
        if not _MARKER_PATTERN.match(value):
            raise ValueError("markers must be a letter followed by letters or digits")
        return value

    @classmethod
    def from_dict(cls, data: dict[str, Any], source_file: Path | None = None) -> WorkspaceSettings:
        """Create settings from parsed YAML, ignoring unknown keys."""
        known = {key: data[key] for key in cls.model_fields if key in data and key != "source_file"}
        return cls(**known, source_file=source_file)


def load_settings(workspace_root: Path | None) -> WorkspaceSettings:
    """Load .ordexconfig from a workspace root.

    Missing files yield defaults. Unreadable or invalid files also yield
    defaults, with a warning naming the problem.

    Args:
        workspace_root: Workspace directory, or None for defaults.

    Returns:
        WorkspaceSettings for the workspace.
    """
    if workspace_root is None:
        return WorkspaceSettings()

    config_file = workspace_root / WORKSPACE_CONFIG_FILENAME
    if not config_file.exists():
        return WorkspaceSettings()

    try:
        data = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        log.warning("Ignoring unreadable %s: %s", config_file, e)
        return WorkspaceSettings()

    # Empty file or all-comments file
    if data is None:
        return WorkspaceSettings(source_file=config_file)

    if not isinstance(data, dict):
        log.warning("Ignoring %s: expected a mapping at the top level", config_file)
        return WorkspaceSettings()

    try:
        return WorkspaceSettings.from_dict(data, source_file=config_file)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"{loc}: {error['msg']}")
        log.warning("Ignoring invalid %s (%s)", config_file, "; ".join(errors))
        return WorkspaceSettings()


def get_settings(workspace_root: Path | None) -> WorkspaceSettings:
    """Get workspace settings (cached per resolved root)."""
    if workspace_root is None:
        return WorkspaceSettings()

    cache_key = str(workspace_root.resolve())
    if cache_key not in _settings_cache:
        _settings_cache[cache_key] = load_settings(workspace_root)
    return _settings_cache[cache_key]


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing or after .ordexconfig changes."""
    _settings_cache.clear()


DEFAULT_CONFIG_TEMPLATE = """\
# ordex workspace settings
#
# Documents scanned for links by `ox repair`
include:
  - "**/*.md"

# Paths skipped by every scan
exclude:
  - "**/node_modules/**"
  - "**/.git/**"
  - "**/dist/**"
  - "**/build/**"

# Attachment filenames: photo.{attachment_marker}-<fingerprint>.png
attachment_marker: {attachment_marker}

# Identifier markers: <!-- {identifier_marker}:<hex> -->
identifier_marker: {identifier_marker}
"""


def write_default_config(workspace_root: Path, force: bool = False) -> Path:
    """Write a commented .ordexconfig into workspace_root.

    Raises:
        FileExistsError: If the file exists and force is False.
    """
    config_file = workspace_root / WORKSPACE_CONFIG_FILENAME
    if config_file.exists() and not force:
        raise FileExistsError(f"Workspace already initialized: {config_file}")

    workspace_root.mkdir(parents=True, exist_ok=True)
    config_file.write_text(
        DEFAULT_CONFIG_TEMPLATE.replace("{attachment_marker}", DEFAULT_ATTACHMENT_MARKER).replace(
            "{identifier_marker}", DEFAULT_IDENTIFIER_MARKER
        ),
        encoding="utf-8",
    )
    clear_settings_cache()
    return config_file
