"""
SSOT (Single Source of Truth) schemas for the pipeline.

These canonical schemas are the ONLY models used across all modules.
No duplicated "near-same" models allowed.
"""

from .dedupe import compute_file_hash, compute_path_hash
from .domain import (
    EXTRACTABLE_DOC_TYPES,
    AuditEventType,
    CheckStatus,
    CheckType,
    DocumentRole,
    DocumentStatus,
    DocumentType,
    ManualReviewStatus,
    TransactionState,
)
from .extracted_document import (
    ExtractedDocument,
    ExtractedLineItem,
    validate_extraction_payload,
)

__all__ = [
    # Domain vocabularies
    "AuditEventType",
    "CheckStatus",
    "CheckType",
    "DocumentRole",
    "DocumentStatus",
    "DocumentType",
    "EXTRACTABLE_DOC_TYPES",
    "ManualReviewStatus",
    "TransactionState",
    # Canonical extraction record
    "ExtractedDocument",
    "ExtractedLineItem",
    "validate_extraction_payload",
    # Dedupe
    "compute_file_hash",
    "compute_path_hash",
]
