"""Link extraction for hash-bearing and identifier-bearing markdown links.

Two link shapes are recognized:

    ![diagram](assets/diagram.ATTACH-<fingerprint>.png)       hash link
    <!-- TARGET-GUID:<identifier> -->[Notes](docs/notes.md)   identifier link

Each match becomes a LinkRecord tagged with its LinkKind, so repair code
dispatches on the kind rather than re-inspecting raw text.
"""

from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path
from urllib.parse import quote, unquote

from ..context import WorkspaceSettings
from ..indexer.attachments import extract_fingerprint
from ..models import LinkKind, LinkRecord

# scheme: at the start of a link target (http:, https:, mailto:, file:)
_URL_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")


@lru_cache(maxsize=16)
def _hash_link_pattern(marker: str) -> re.Pattern[str]:
    # Optional image marker, bracketed text, path containing .MARKER-
    return re.compile(
        rf"(?P<image>!?)\[(?P<text>[^\]]*)\]\((?P<path>[^)]*\.{re.escape(marker)}-[^)]+)\)",
        re.IGNORECASE,
    )


@lru_cache(maxsize=16)
def _identifier_link_pattern(marker: str) -> re.Pattern[str]:
    # <!-- TARGET-MARKER:<hex> --> immediately followed by a link
    return re.compile(
        rf"<!--\s*TARGET-{re.escape(marker)}:(?P<id>[0-9a-f]{{32}})\s*-->\s*"
        r"(?P<image>!?)\[(?P<text>[^\]]*)\]\((?P<path>[^)]*)\)",
        re.IGNORECASE,
    )


def extract_hash_links(content: str, marker: str) -> list[LinkRecord]:
    """Extract hash-bearing links from markdown content."""
    records = []
    for match in _hash_link_pattern(marker).finditer(content):
        target = match.group("path")
        records.append(
            LinkRecord(
                kind=LinkKind.HASH,
                start=match.start(),
                end=match.end(),
                path_start=match.start("path"),
                path_end=match.end("path"),
                is_image=bool(match.group("image")),
                text=match.group("text"),
                target=target,
                key=extract_fingerprint(decode_link_path(target), marker),
            )
        )
    return records


def extract_identifier_links(content: str, marker: str) -> list[LinkRecord]:
    """Extract identifier-bearing link blocks from markdown content."""
    records = []
    for match in _identifier_link_pattern(marker).finditer(content):
        records.append(
            LinkRecord(
                kind=LinkKind.IDENTIFIER,
                start=match.start(),
                end=match.end(),
                path_start=match.start("path"),
                path_end=match.end("path"),
                is_image=bool(match.group("image")),
                text=match.group("text"),
                target=match.group("path"),
                key=match.group("id").lower(),
            )
        )
    return records


def extract_links(content: str, settings: WorkspaceSettings) -> list[LinkRecord]:
    """Extract both link shapes, ordered by position in the document."""
    records = extract_hash_links(content, settings.attachment_marker)
    records.extend(extract_identifier_links(content, settings.identifier_marker))
    records.sort(key=lambda record: (record.start, record.end))
    return records


def has_url_scheme(target: str) -> bool:
    """True for targets like https://... that are not filesystem paths."""
    return bool(_URL_SCHEME.match(target)) and not re.match(r"^[A-Za-z]:[\\/]", target)


def decode_link_path(target: str) -> str:
    """Undo URL-encoding in a link target ("my%20file.png" -> "my file.png")."""
    return unquote(target.strip())


def encode_link_path(path: str) -> str:
    """URL-encode each segment of a forward-slash path."""
    return "/".join(quote(segment, safe="") for segment in path.split("/"))


def relative_link_path(document_dir: Path, target: Path) -> str:
    """Path from a document's directory to target, with forward slashes."""
    return Path(os.path.relpath(target, document_dir)).as_posix()


def build_markdown_link(text: str, target: str, is_image: bool = False) -> str:
    """Render [text](target), with a leading ! for images."""
    prefix = "!" if is_image else ""
    return f"{prefix}[{text}]({target})"
