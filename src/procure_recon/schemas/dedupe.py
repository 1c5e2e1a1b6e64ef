"""
Content hashing for document deduplication.

A document's identity on disk is its SHA-256 content hash. Re-discovering
the same bytes under another path or name never creates a second document.
"""

import hashlib
from pathlib import Path

# Chunk size used when hashing files from disk
HASH_CHUNK_SIZE = 1024 * 1024


def compute_file_hash(content: bytes) -> str:
    """Compute SHA256 hash of file content."""
    return hashlib.sha256(content).hexdigest()


def compute_path_hash(path: Path) -> str:
    """Compute SHA256 hash of a file on disk without loading it whole."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
