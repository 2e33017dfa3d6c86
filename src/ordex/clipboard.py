"""Persistent cut clipboard for `ox cut` / `ox paste`."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from .config import get_state_root
from .models import ClipboardItem

log = logging.getLogger(__name__)

CLIPBOARD_FILENAME = "clipboard.json"


def _clipboard_path(workspace_root: Path | None = None) -> Path:
    return get_state_root(workspace_root) / CLIPBOARD_FILENAME


def load_clipboard(workspace_root: Path | None = None) -> ClipboardItem | None:
    path = _clipboard_path(workspace_root)
    if not path.exists():
        return None

    try:
        return ClipboardItem.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, OSError, ValidationError) as e:
        log.warning("Ignoring unreadable clipboard %s: %s", path, e)
        return None


def save_clipboard(item: ClipboardItem, workspace_root: Path | None = None) -> None:
    path = _clipboard_path(workspace_root)
    path.write_text(json.dumps(item.model_dump(mode="json"), indent=2), encoding="utf-8")


def clear_clipboard(workspace_root: Path | None = None) -> None:
    path = _clipboard_path(workspace_root)
    path.unlink(missing_ok=True)
