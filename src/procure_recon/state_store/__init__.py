"""
State Store (SQLite-based).

Lightweight persistent DB for tracking:
- Discovered documents and their extracted fields
- Transactions and document links
- Reconciliation checks
- Audit events and manual review items

Enforces uniqueness on content hash, transaction key,
(transaction, document) and (transaction, check type).
"""

from .sqlite_store import (
    AuditEventRecord,
    CheckRecord,
    DocumentRecord,
    LinkedDocument,
    ManualReviewRecord,
    StateStore,
    TransactionRecord,
)

__all__ = [
    "StateStore",
    "AuditEventRecord",
    "CheckRecord",
    "DocumentRecord",
    "LinkedDocument",
    "ManualReviewRecord",
    "TransactionRecord",
]
