"""
Raw directory scanner.

Lists candidate procurement documents in the raw drop folder and hashes
their content. Only text, markdown and PDF files are considered.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from ..schemas.dedupe import compute_path_hash

logger = logging.getLogger(__name__)

MIME_TYPES_BY_EXTENSION = {
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".pdf": "application/pdf",
}

IGNORED_FILE_NAMES = frozenset({".DS_Store", "Thumbs.db"})


@dataclass
class ScannedFile:
    """A candidate file found in the raw directory."""

    source_path: str
    file_name: str
    size_bytes: int
    mime_type: str | None
    sha256: str

    def to_dict(self) -> dict:
        return {
            "sourcePath": self.source_path,
            "fileName": self.file_name,
            "sizeBytes": self.size_bytes,
            "mimeType": self.mime_type,
            "sha256": self.sha256,
        }


def infer_mime_type(file_name: str) -> str:
    """Content type for a file name; unknown extensions are binary."""
    suffix = Path(file_name).suffix.lower()
    if suffix == ".json":
        return "application/json"
    return MIME_TYPES_BY_EXTENSION.get(suffix, "application/octet-stream")


def _is_ignored(file_name: str) -> bool:
    # Hidden OS/editor artifacts and dotfiles in raw dump folders
    return file_name in IGNORED_FILE_NAMES or file_name.startswith(".")


def scan_raw_directory(raw_dir: Path) -> list[ScannedFile]:
    """
    Scan the raw directory (non-recursive) for supported documents.

    Args:
        raw_dir: Directory to scan

    Returns:
        Scanned files sorted by file name

    Raises:
        FileNotFoundError: If raw_dir does not exist
    """
    raw_dir = Path(raw_dir)
    if not raw_dir.is_dir():
        raise FileNotFoundError(f"Raw data directory not found: {raw_dir}")

    results: list[ScannedFile] = []
    for entry in raw_dir.iterdir():
        if not entry.is_file() or _is_ignored(entry.name):
            continue
        suffix = entry.suffix.lower()
        if suffix not in MIME_TYPES_BY_EXTENSION:
            logger.debug("Skipping unsupported file %s", entry.name)
            continue

        results.append(
            ScannedFile(
                source_path=str(entry),
                file_name=entry.name,
                size_bytes=entry.stat().st_size,
                mime_type=MIME_TYPES_BY_EXTENSION[suffix],
                sha256=compute_path_hash(entry),
            )
        )

    results.sort(key=lambda f: f.file_name)
    logger.debug("Scanned %d candidate files in %s", len(results), raw_dir)
    return results
