"""
Transaction state machine.

The state is a pure function of the reconciliation flags, evaluated as a
strict priority cascade (first matching rule wins). There is no memory:
every recompute derives the state from scratch.

Priority:
1. parse_failed                         → PARSE_FAILED
2. low_confidence                       → LOW_CONFIDENCE
3. duplicate_invoice                    → DUPLICATE_INVOICE
4. invoice or GRN without a PO          → WAITING_FOR_PO
5. PO only                              → WAITING_FOR_INVOICE_AND_GRN
6. PO + GRN                             → WAITING_FOR_INVOICE
7. PO + invoice                         → WAITING_FOR_GOODS_RECEIPT
8. PO + invoice + GRN                   → FX_OR_REGION_MISMATCH, QTY_MISMATCH,
                                          AMOUNT_MISMATCH or MATCHED (in that order)
9. nothing present                      → WAITING_FOR_PO
"""

from ..schemas.domain import TransactionState
from .checks import ReconciliationFlags


def compute_state(flags: ReconciliationFlags) -> TransactionState:
    """Derive the transaction state from reconciliation flags."""
    if flags.parse_failed:
        return TransactionState.PARSE_FAILED

    if flags.low_confidence:
        return TransactionState.LOW_CONFIDENCE

    if flags.duplicate_invoice:
        return TransactionState.DUPLICATE_INVOICE

    if not flags.has_po and (flags.has_invoice or flags.has_grn):
        return TransactionState.WAITING_FOR_PO

    if flags.has_po and not flags.has_invoice and not flags.has_grn:
        return TransactionState.WAITING_FOR_INVOICE_AND_GRN

    if flags.has_po and flags.has_grn and not flags.has_invoice:
        return TransactionState.WAITING_FOR_INVOICE

    if flags.has_po and flags.has_invoice and not flags.has_grn:
        return TransactionState.WAITING_FOR_GOODS_RECEIPT

    if flags.has_po and flags.has_invoice and flags.has_grn:
        if flags.fx_mismatch:
            return TransactionState.FX_OR_REGION_MISMATCH
        if flags.qty_mismatch:
            return TransactionState.QTY_MISMATCH
        if flags.amount_mismatch:
            return TransactionState.AMOUNT_MISMATCH
        return TransactionState.MATCHED

    # Nothing reconcilable attached yet
    return TransactionState.WAITING_FOR_PO


ISSUE_SUMMARIES: dict[TransactionState, str] = {
    TransactionState.MATCHED: "All checks passed",
    TransactionState.PARSE_FAILED: "At least one document failed extraction",
    TransactionState.LOW_CONFIDENCE: "One or more extracted documents have low confidence",
    TransactionState.DUPLICATE_INVOICE: "Duplicate invoice number detected",
    TransactionState.WAITING_FOR_PO: "Invoice/GRN exists but PO is missing",
    TransactionState.WAITING_FOR_INVOICE: "PO and GRN present; invoice is missing",
    TransactionState.WAITING_FOR_GOODS_RECEIPT: "PO and invoice present; GRN is missing",
    TransactionState.WAITING_FOR_INVOICE_AND_GRN: "PO present; invoice and GRN missing",
    TransactionState.FX_OR_REGION_MISMATCH: "Country or currency mismatch across documents",
    TransactionState.QTY_MISMATCH: "Goods receipt quantity is less than PO quantity",
    TransactionState.AMOUNT_MISMATCH: "Invoice total differs from PO total",
    TransactionState.READY_TO_RECONCILE: "Pending reconciliation",
}

_missing_summaries = set(TransactionState) - set(ISSUE_SUMMARIES)
if _missing_summaries:
    raise RuntimeError(
        "Issue summary missing for states: "
        + ", ".join(sorted(s.value for s in _missing_summaries))
    )


def summarize_issue(state: TransactionState) -> str:
    """One-line human summary of a transaction state."""
    return ISSUE_SUMMARIES[state]
