"""Content fingerprints for attachments.

A fingerprint is the first 128 bits (32 hex characters) of the SHA-256
digest of a file's bytes. It depends on content only: renaming, moving or
touching a file never changes it.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

from .config import FINGERPRINT_LENGTH, HASH_CHUNK_SIZE
from .errors import HashComputationFailed

FINGERPRINT_PATTERN = re.compile(rf"^[0-9a-f]{{{FINGERPRINT_LENGTH}}}$")


def compute_fingerprint(path: Path) -> str:
    """Stream a file through SHA-256 and return its truncated hex digest.

    Raises:
        HashComputationFailed: If the file cannot be read.
    """
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            while chunk := f.read(HASH_CHUNK_SIZE):
                digest.update(chunk)
    except OSError as e:
        raise HashComputationFailed(path, e.strerror or str(e)) from e
    return digest.hexdigest()[:FINGERPRINT_LENGTH]


def compute_bytes_fingerprint(data: bytes) -> str:
    """Fingerprint in-memory content (e.g. image bytes piped on stdin)."""
    return hashlib.sha256(data).hexdigest()[:FINGERPRINT_LENGTH]


def is_fingerprint(value: str) -> bool:
    """True if value looks like a fingerprint (case-insensitive)."""
    return bool(FINGERPRINT_PATTERN.match(value.lower()))
