from __future__ import annotations

import hashlib
from typing import BinaryIO

# Name recorded in manifests for the single digest algorithm used system-wide.
HASH_ALGORITHM = "SHA2_256"

_CHUNK = 64 * 1024


def hash_bytes(data: bytes) -> tuple[str, str]:
    return HASH_ALGORITHM, hashlib.sha256(data).hexdigest()


def hash_stream(fp: BinaryIO) -> tuple[str, str]:
    """Digest a readable binary stream without loading it whole."""
    h = hashlib.sha256()
    for chunk in iter(lambda: fp.read(_CHUNK), b""):
        h.update(chunk)
    return HASH_ALGORITHM, h.hexdigest()


__all__ = ["HASH_ALGORITHM", "hash_bytes", "hash_stream"]
