"""
Storage utilities shared by the vector store implementations.
"""

import hashlib


def record_point_id(document_identity: str, block_identifier: str) -> int:
    """
    Stable Qdrant point ID for a (document, block) key.

    Uses the first 8 bytes of a SHA-256 digest as an unsigned integer, so the
    same key always maps to the same point and a rewrite overwrites it.

    Example:
        >>> record_point_id("src/app.py", "method:main:3:4")  # doctest: +SKIP
        12345678901234567890
    """
    key = f"{document_identity}::{block_identifier}"
    hash_digest = hashlib.sha256(key.encode('utf-8')).digest()
    return int.from_bytes(hash_digest[:8], byteorder='big', signed=False)
