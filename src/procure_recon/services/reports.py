"""Reporting summary: KPIs, state breakdown and the exception queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..reconciliation import summarize_issue
from ..schemas.domain import DocumentStatus, TransactionState

if TYPE_CHECKING:
    from ..state_store import StateStore, TransactionRecord

EXCEPTION_QUEUE_SIZE = 20


@dataclass
class ReportsSummary:
    """Dashboard-level view of the pipeline."""

    total_docs: int
    processed_docs: int
    total_transactions: int
    exceptions: int
    state_breakdown: list[tuple[TransactionState, int]] = field(default_factory=list)
    exception_queue: list[TransactionRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "kpis": {
                "totalDocs": self.total_docs,
                "processedDocs": self.processed_docs,
                "totalTransactions": self.total_transactions,
                "exceptions": self.exceptions,
            },
            "stateBreakdown": [
                {"state": state.value, "count": count} for state, count in self.state_breakdown
            ],
            "exceptionQueue": [
                {**transaction.to_dict(), "issueSummary": summarize_issue(transaction.state)}
                for transaction in self.exception_queue
            ],
        }


def get_reports_summary(
    store: StateStore, exception_limit: int = EXCEPTION_QUEUE_SIZE
) -> ReportsSummary:
    """Build the reporting summary. Every non-MATCHED transaction is an exception."""
    return ReportsSummary(
        total_docs=store.count_documents(),
        processed_docs=store.count_documents(DocumentStatus.PROCESSED),
        total_transactions=store.count_transactions(),
        exceptions=store.count_transactions(exclude_state=TransactionState.MATCHED),
        state_breakdown=store.get_state_breakdown(),
        exception_queue=store.list_transactions(
            exclude_state=TransactionState.MATCHED, limit=exception_limit
        ),
    )
