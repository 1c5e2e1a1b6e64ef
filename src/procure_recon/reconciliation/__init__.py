"""
Reconciliation: rule-based checks and the transaction state machine.
"""

from .checks import (
    AmountComparison,
    CheckComputation,
    CheckResult,
    ReconciliationDocument,
    ReconciliationFlags,
    compute_checks_for_transaction,
    detect_duplicate_invoice_numbers,
    is_amount_mismatch,
    is_quantity_mismatch,
)
from .state_machine import ISSUE_SUMMARIES, compute_state, summarize_issue

__all__ = [
    "AmountComparison",
    "CheckComputation",
    "CheckResult",
    "ReconciliationDocument",
    "ReconciliationFlags",
    "compute_checks_for_transaction",
    "detect_duplicate_invoice_numbers",
    "is_amount_mismatch",
    "is_quantity_mismatch",
    "ISSUE_SUMMARIES",
    "compute_state",
    "summarize_issue",
]
