"""Markdown link extraction for hash and identifier links."""

from ..models import LinkKind, LinkRecord
from .links import (
    build_markdown_link,
    decode_link_path,
    encode_link_path,
    extract_hash_links,
    extract_identifier_links,
    extract_links,
    relative_link_path,
)

__all__ = [
    "LinkKind",
    "LinkRecord",
    "build_markdown_link",
    "decode_link_path",
    "encode_link_path",
    "extract_hash_links",
    "extract_identifier_links",
    "extract_links",
    "relative_link_path",
]
