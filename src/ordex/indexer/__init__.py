"""Workspace indexes: attachments by fingerprint, files by embedded identifier."""

from .attachments import build_attachment_index, extract_fingerprint
from .identifiers import build_identifier_index, build_identifier_index_concurrent, read_identifier
from .walker import iter_files

__all__ = [
    "build_attachment_index",
    "build_identifier_index",
    "build_identifier_index_concurrent",
    "extract_fingerprint",
    "iter_files",
    "read_identifier",
]
