"""
Fixed vocabularies of the reconciliation domain (SSOT).

Every status, type and state string that is persisted or serialized is
defined here. Values must match the stored/serialized strings exactly.
"""

from enum import Enum


class DocumentStatus(str, Enum):
    """Processing status of a discovered document."""

    NEW = "NEW"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class DocumentType(str, Enum):
    """
    Inferred document type.

    UNKNOWN is the value before extraction has run; the extraction
    schema itself only admits the other four.
    """

    PURCHASE_ORDER = "PURCHASE_ORDER"
    INVOICE = "INVOICE"
    GOODS_RECEIPT = "GOODS_RECEIPT"
    OTHER = "OTHER"
    UNKNOWN = "UNKNOWN"


EXTRACTABLE_DOC_TYPES = (
    DocumentType.PURCHASE_ORDER,
    DocumentType.INVOICE,
    DocumentType.GOODS_RECEIPT,
    DocumentType.OTHER,
)


class TransactionState(str, Enum):
    """
    Reconciliation state of a transaction.

    READY_TO_RECONCILE is part of the stored vocabulary but is never
    produced by the state machine.
    """

    WAITING_FOR_PO = "WAITING_FOR_PO"
    WAITING_FOR_INVOICE = "WAITING_FOR_INVOICE"
    WAITING_FOR_GOODS_RECEIPT = "WAITING_FOR_GOODS_RECEIPT"
    WAITING_FOR_INVOICE_AND_GRN = "WAITING_FOR_INVOICE_AND_GRN"
    READY_TO_RECONCILE = "READY_TO_RECONCILE"
    MATCHED = "MATCHED"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    QTY_MISMATCH = "QTY_MISMATCH"
    DUPLICATE_INVOICE = "DUPLICATE_INVOICE"
    FX_OR_REGION_MISMATCH = "FX_OR_REGION_MISMATCH"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    PARSE_FAILED = "PARSE_FAILED"


class DocumentRole(str, Enum):
    """Role of a document within its transaction, fixed at attach time."""

    PO = "PO"
    INVOICE = "INVOICE"
    GRN = "GRN"
    OTHER = "OTHER"


class CheckType(str, Enum):
    """Reconciliation checks computed for every transaction."""

    PO_PRESENT = "PO_PRESENT"
    INVOICE_PRESENT = "INVOICE_PRESENT"
    GRN_PRESENT = "GRN_PRESENT"
    AMOUNT_MATCH = "AMOUNT_MATCH"
    QUANTITY_MATCH = "QUANTITY_MATCH"
    DUPLICATE_INVOICE = "DUPLICATE_INVOICE"
    FX_OR_REGION_MATCH = "FX_OR_REGION_MATCH"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    PARSE_FAILED = "PARSE_FAILED"


class CheckStatus(str, Enum):
    """Outcome of a single reconciliation check."""

    OK = "OK"
    MISSING = "MISSING"
    MISMATCH = "MISMATCH"
    PENDING = "PENDING"
    ERROR = "ERROR"


class AuditEventType(str, Enum):
    """Audit event taxonomy."""

    DISCOVERED = "DISCOVERED"
    INGESTED = "INGESTED"
    EXTRACTED = "EXTRACTED"
    ROUTED = "ROUTED"
    STATE_UPDATED = "STATE_UPDATED"
    RECONCILED = "RECONCILED"
    MANUAL_REVIEW_REQUIRED = "MANUAL_REVIEW_REQUIRED"
    ERROR = "ERROR"


class ManualReviewStatus(str, Enum):
    """Manual review item status. Resolution is one-way."""

    OPEN = "OPEN"
    RESOLVED = "RESOLVED"
