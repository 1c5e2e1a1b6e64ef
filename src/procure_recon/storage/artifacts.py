"""
Artifact writer.

Copies raw documents and their extracted JSON next to the transaction
they were routed to, and writes the per-transaction rollup snapshot.
Also packs a transaction's artifacts into a tar bundle and stages
uploaded raw documents under the raw area.
"""

import io
import json
import logging
import tarfile
import time
from pathlib import Path
from typing import Any

from ..errors import ArtifactsNotFoundError, BlobStoreError
from ..ingest.file_scanner import infer_mime_type
from ..schemas.extracted_document import ExtractedDocument
from .blob_store import BlobStore
from .paths import (
    TRANSACTIONS_ROOT,
    document_object_key,
    extracted_object_key,
    join_object_path,
    raw_object_key,
    rollup_object_key,
    sanitize_key,
    transaction_prefix,
)

logger = logging.getLogger(__name__)


class ArtifactWriter:
    """Writes document-level and transaction-level artifacts to a blob store."""

    def __init__(self, blob_store: BlobStore):
        self.blob_store = blob_store

    def sync_document_artifacts(
        self,
        transaction_key: str,
        source_path: str,
        file_name: str,
        document_id: str,
        extracted: ExtractedDocument,
    ) -> None:
        """
        Upload the raw file and its extracted record.

        Raises:
            BlobStoreError: If the raw file cannot be read or an upload fails
        """
        try:
            raw_bytes = Path(source_path).read_bytes()
        except OSError as e:
            raise BlobStoreError(f"Failed to read raw document '{source_path}': {e}") from e

        self.blob_store.upload(
            document_object_key(transaction_key, file_name),
            raw_bytes,
            infer_mime_type(file_name),
        )
        self.blob_store.upload(
            extracted_object_key(transaction_key, document_id),
            json.dumps(extracted.to_dict(), indent=2),
            "application/json",
        )
        logger.debug("Synced artifacts for document %s under %s", document_id, transaction_key)

    def write_transaction_rollup(self, transaction_key: str, payload: dict[str, Any]) -> None:
        """Overwrite the transaction rollup snapshot."""
        self.blob_store.upload(
            rollup_object_key(transaction_key),
            json.dumps(payload, indent=2),
            "application/json",
        )

    def read_transaction_rollup(self, transaction_key: str) -> dict[str, Any]:
        """Read back the latest rollup snapshot."""
        return json.loads(self.blob_store.download(rollup_object_key(transaction_key)))

    def upload_raw_file(self, source_path: str | Path) -> str:
        """
        Stage a raw document under the raw area.

        Returns:
            Object key the file was stored under

        Raises:
            BlobStoreError: If the file cannot be read or the upload fails
        """
        path = Path(source_path)
        try:
            body = path.read_bytes()
        except OSError as e:
            raise BlobStoreError(f"Failed to read raw document '{path}': {e}") from e

        key = raw_object_key(path.name)
        self.blob_store.upload(key, body, infer_mime_type(path.name))
        logger.info("Uploaded %s to %s (%d bytes)", path.name, key, len(body))
        return key

    def export_transaction_bundle(self, transaction_key: str) -> bytes:
        """
        Pack every stored artifact of a transaction into a tar archive.

        Members are named transactions/<sanitized key>/<relative path>.
        Artifacts stored under the unsanitized key are found as well.

        Raises:
            ArtifactsNotFoundError: If nothing is stored for the key
            BlobStoreError: If listing or a download fails
        """
        safe_key = sanitize_key(transaction_key)
        if not safe_key:
            raise ArtifactsNotFoundError(transaction_key)

        base = transaction_prefix(transaction_key)
        keys = self.blob_store.list(base)
        if not keys and safe_key != transaction_key and ".." not in transaction_key.split("/"):
            base = join_object_path(TRANSACTIONS_ROOT, transaction_key)
            keys = self.blob_store.list(base)
        if not keys:
            raise ArtifactsNotFoundError(transaction_key)

        archive_root = join_object_path(TRANSACTIONS_ROOT, safe_key)
        mtime = time.time()
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w") as archive:
            for key in keys:
                content = self.blob_store.download(key)
                relative = key[len(base) + 1 :] if key.startswith(f"{base}/") else key
                member = tarfile.TarInfo(join_object_path(archive_root, relative))
                member.size = len(content)
                member.mtime = mtime
                member.mode = 0o644
                archive.addfile(member, io.BytesIO(content))

        logger.info("Bundled %d artifact(s) of transaction %s", len(keys), transaction_key)
        return buffer.getvalue()
