"""
Blob store interface and local filesystem implementation.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from ..errors import BlobStoreError
from .paths import join_object_path

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    """
    Object storage for document and transaction artifacts.

    Keys are '/'-separated relative paths. A configured prefix is
    applied by the implementation, so callers always use bare keys.
    """

    @abstractmethod
    def upload(self, key: str, body: bytes | str, content_type: str) -> None:
        """Create or overwrite an object."""
        pass

    @abstractmethod
    def download(self, key: str) -> bytes:
        """Read an object. Raises BlobStoreError if it does not exist."""
        pass

    @abstractmethod
    def list(self, prefix: str = "") -> list[str]:
        """List object keys under a prefix (recursive), sorted."""
        pass


class LocalBlobStore(BlobStore):
    """Blob store backed by a directory tree."""

    def __init__(self, root: Path | str, prefix: str = ""):
        self.root = Path(root)
        self.prefix = prefix.strip("/")

    def _path_for(self, key: str) -> Path:
        object_key = join_object_path(self.prefix, key)
        if not object_key or ".." in object_key.split("/"):
            raise BlobStoreError(f"Invalid object key: {key!r}")
        return self.root / object_key

    def upload(self, key: str, body: bytes | str, content_type: str) -> None:
        path = self._path_for(key)
        data = body.encode("utf-8") if isinstance(body, str) else body
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise BlobStoreError(f"Failed to write '{key}': {e}") from e
        logger.debug("Stored %s (%d bytes, %s)", path, len(data), content_type)

    def download(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except OSError as e:
            raise BlobStoreError(f"Failed to read '{key}': {e}") from e

    def list(self, prefix: str = "") -> list[str]:
        base = self.root / join_object_path(self.prefix, prefix)
        if not base.is_dir():
            return []
        store_root = self.root / self.prefix
        keys = [
            path.relative_to(store_root).as_posix() for path in base.rglob("*") if path.is_file()
        ]
        return sorted(keys)
