"""
Transaction router.

Resolves (or creates) the transaction a processed document belongs to
and attaches the document with a role derived from its type.
"""

import logging
from dataclasses import dataclass

from ..schemas.domain import DocumentRole
from ..schemas.extracted_document import ExtractedDocument
from ..state_store import DocumentRecord, StateStore, TransactionRecord
from .transaction_key import derive_transaction_key, role_for_doc_type

logger = logging.getLogger(__name__)


@dataclass
class RoutingResult:
    """Outcome of routing one document."""

    transaction: TransactionRecord
    transaction_key: str
    role: DocumentRole
    attached: bool  # False if the document was already linked


class TransactionRouter:
    """Groups documents into transactions keyed by PO number."""

    def __init__(self, store: StateStore):
        self.store = store

    def resolve(self, transaction_key: str, extracted: ExtractedDocument) -> TransactionRecord:
        """
        Look up the transaction for a key, creating it if needed.

        Blank representative fields are filled from the current document;
        populated fields are kept (first non-blank wins).
        """
        return self.store.upsert_transaction(
            transaction_key=transaction_key,
            po_number=extracted.po_number,
            vendor_name=extracted.vendor_name,
            country=extracted.country,
            currency=extracted.currency,
        )

    def attach(self, transaction_id: str, document_id: str, role: DocumentRole) -> bool:
        """Attach a document. Re-attaching is a no-op and keeps the original role."""
        attached = self.store.attach_document(transaction_id, document_id, role)
        if not attached:
            logger.debug("Document %s already attached to %s", document_id, transaction_id)
        return attached

    def route(self, document: DocumentRecord, extracted: ExtractedDocument) -> RoutingResult:
        """Resolve the owning transaction and attach the document to it."""
        transaction_key = derive_transaction_key(extracted.po_number, document.sha256)
        transaction = self.resolve(transaction_key, extracted)
        role = role_for_doc_type(extracted.doc_type)
        attached = self.attach(transaction.id, document.id, role)
        return RoutingResult(
            transaction=transaction,
            transaction_key=transaction_key,
            role=role,
            attached=attached,
        )
