"""Read-side transaction views and manual review resolution."""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..audit import AuditRecorder
from ..errors import DocumentNotInTransactionError, TransactionNotFoundError
from ..reconciliation import summarize_issue
from ..schemas.domain import AuditEventType

if TYPE_CHECKING:
    from ..state_store import (
        AuditEventRecord,
        CheckRecord,
        LinkedDocument,
        ManualReviewRecord,
        StateStore,
        TransactionRecord,
    )

logger = logging.getLogger(__name__)

REVIEW_RESOLVED_MESSAGE = "Manual review resolved"


@dataclass
class TransactionDetail:
    """A transaction with its documents, checks and audit trail."""

    transaction: TransactionRecord
    documents: list[LinkedDocument] = field(default_factory=list)
    checks: list[CheckRecord] = field(default_factory=list)
    events: list[AuditEventRecord] = field(default_factory=list)
    review_resolution: ManualReviewRecord | None = None

    @property
    def issue_summary(self) -> str:
        return summarize_issue(self.transaction.state)

    def to_dict(self) -> dict:
        transaction = self.transaction.to_dict()
        transaction["issueSummary"] = self.issue_summary
        return {
            "transaction": transaction,
            "documents": [
                {
                    **link.document.to_dict(),
                    "role": link.role.value,
                    "attachedAt": link.attached_at,
                    "hasOpenReview": link.has_open_review,
                }
                for link in self.documents
            ],
            "checks": [check.to_dict() for check in self.checks],
            "events": [event.to_dict() for event in self.events],
            "reviewResolution": (
                self.review_resolution.to_dict() if self.review_resolution else None
            ),
        }


class TransactionViewService:
    """Transaction detail reads and manual review resolution.

    The detail read fetches documents, checks and events concurrently.
    The combined read is fail-fast: the first failing read cancels the
    reads that have not started yet and its exception propagates.
    """

    def __init__(self, store: StateStore, max_workers: int = 3) -> None:
        self.store = store
        self.max_workers = max_workers
        self.audit = AuditRecorder(store)

    def get_transaction_detail(self, transaction_id: str) -> TransactionDetail | None:
        """Load a transaction with its documents, checks and events.

        Returns:
            None if the transaction does not exist.
        """
        transaction = self.store.get_transaction(transaction_id)
        if transaction is None:
            return None

        pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="tx-detail")
        try:
            documents = pool.submit(self.store.get_transaction_documents, transaction_id)
            checks = pool.submit(self.store.get_checks, transaction_id)
            events = pool.submit(self.store.get_audit_events, transaction_id=transaction_id)

            done, pending = wait([documents, checks, events], return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()
            for future in done:
                error = future.exception()
                if error is not None:
                    logger.error("Detail read for transaction %s failed: %s", transaction_id, error)
                    raise error

            return TransactionDetail(
                transaction=transaction,
                documents=documents.result(),
                checks=checks.result(),
                events=events.result(),
                review_resolution=self.store.get_latest_review_resolution(transaction_id),
            )
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def resolve_manual_review(
        self,
        transaction_id: str,
        document_id: str | None = None,
        notes: str = "",
    ) -> int:
        """Resolve open review items of one document or of the whole transaction.

        Returns:
            Number of review items resolved.

        Raises:
            TransactionNotFoundError: If the transaction does not exist.
            DocumentNotInTransactionError: If the document is attached to
                other transactions only.
        """
        if self.store.get_transaction(transaction_id) is None:
            raise TransactionNotFoundError(transaction_id)

        if document_id:
            # Unrouted documents have no links and may be resolved from any transaction
            owners = self.store.get_transaction_ids_for_document(document_id)
            if owners and transaction_id not in owners:
                raise DocumentNotInTransactionError(document_id, transaction_id)

        notes = notes.strip()
        resolved = self.store.resolve_manual_reviews(transaction_id, document_id, notes)

        self.audit.record(
            AuditEventType.STATE_UPDATED,
            REVIEW_RESOLVED_MESSAGE,
            transaction_id=transaction_id,
            document_id=document_id,
            meta={"resolvedCount": resolved, "notes": notes},
        )
        return resolved

    def get_review_resolution(self, transaction_id: str) -> ManualReviewRecord | None:
        """Latest resolved review item among the transaction's documents."""
        return self.store.get_latest_review_resolution(transaction_id)
