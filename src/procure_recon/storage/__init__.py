"""
Artifact storage.

Backends:
- local: directory tree under storage.storage_dir
- supabase: Supabase Storage bucket over REST
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .artifacts import ArtifactWriter
from .blob_store import BlobStore, LocalBlobStore
from .paths import (
    bundle_file_name,
    document_object_key,
    extracted_object_key,
    join_object_path,
    raw_object_key,
    rollup_object_key,
    sanitize_key,
    transaction_prefix,
)
from .supabase_client import SupabaseBlobStore

if TYPE_CHECKING:
    from ..config import Config


def build_blob_store(config: Config) -> BlobStore:
    """Build the configured blob store backend."""
    storage = config.storage
    if storage.backend == "supabase":
        return SupabaseBlobStore(
            url=storage.supabase_url or "",
            service_role_key=storage.supabase_service_role_key or "",
            bucket=storage.supabase_bucket,
            prefix=storage.prefix,
            timeout=storage.timeout_seconds,
        )
    return LocalBlobStore(storage.storage_dir, prefix=storage.prefix)


__all__ = [
    "ArtifactWriter",
    "BlobStore",
    "LocalBlobStore",
    "SupabaseBlobStore",
    "build_blob_store",
    "bundle_file_name",
    "document_object_key",
    "extracted_object_key",
    "join_object_path",
    "raw_object_key",
    "rollup_object_key",
    "sanitize_key",
    "transaction_prefix",
]
