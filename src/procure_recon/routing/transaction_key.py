"""
Transaction key derivation (CRITICAL).

The transaction key groups a PO with its invoices and goods receipts.
It must be stable: the same inputs always produce the same key.

Key formats:
1. PO number known: the trimmed PO number, verbatim
2. PO number unknown: UNKNOWN-{first 8 hex chars of the content hash, uppercased}
"""

from ..schemas.domain import DocumentRole, DocumentType

UNKNOWN_KEY_PREFIX = "UNKNOWN-"

# Number of content-hash characters in an UNKNOWN key
HASH_PREFIX_LENGTH = 8

ROLE_BY_DOC_TYPE = {
    DocumentType.PURCHASE_ORDER: DocumentRole.PO,
    DocumentType.INVOICE: DocumentRole.INVOICE,
    DocumentType.GOODS_RECEIPT: DocumentRole.GRN,
}


def derive_transaction_key(po_number: str | None, content_hash: str) -> str:
    """
    Derive the grouping key for a document.

    Examples:
        >>> derive_transaction_key("  PO-1001 ", "abcdef1234567890")
        'PO-1001'
        >>> derive_transaction_key("", "abcdef1234567890")
        'UNKNOWN-ABCDEF12'
    """
    normalized_po = (po_number or "").strip()
    if normalized_po:
        return normalized_po
    return f"{UNKNOWN_KEY_PREFIX}{content_hash[:HASH_PREFIX_LENGTH].upper()}"


def role_for_doc_type(doc_type: DocumentType) -> DocumentRole:
    """Map a document type to its role in a transaction. Anything else is OTHER."""
    return ROLE_BY_DOC_TYPE.get(doc_type, DocumentRole.OTHER)
