"""Tests for the transaction state machine."""

import itertools

import pytest

from procure_recon.reconciliation import (
    ISSUE_SUMMARIES,
    ReconciliationFlags,
    compute_state,
    summarize_issue,
)
from procure_recon.schemas import TransactionState

ALL_PRESENT = {"has_po": True, "has_invoice": True, "has_grn": True}


class TestComputeState:
    """Tests for the priority cascade."""

    def test_parse_failed_first(self):
        """PARSE_FAILED wins over everything."""
        flags = ReconciliationFlags(**ALL_PRESENT, parse_failed=True)
        assert compute_state(flags) == TransactionState.PARSE_FAILED

    def test_parse_failed_wins_regardless_of_other_flags(self):
        """Every combination with parse_failed set yields PARSE_FAILED."""
        names = [
            "has_po", "has_invoice", "has_grn", "low_confidence", "duplicate_invoice",
            "amount_mismatch", "qty_mismatch", "fx_mismatch",
        ]
        for values in itertools.product([False, True], repeat=len(names)):
            flags = ReconciliationFlags(parse_failed=True, **dict(zip(names, values)))
            assert compute_state(flags) == TransactionState.PARSE_FAILED

    def test_low_confidence_before_other_issues(self):
        """LOW_CONFIDENCE wins over duplicate, missing and mismatch flags."""
        flags = ReconciliationFlags(
            **ALL_PRESENT,
            low_confidence=True,
            duplicate_invoice=True,
            fx_mismatch=True,
            qty_mismatch=True,
            amount_mismatch=True,
        )
        assert compute_state(flags) == TransactionState.LOW_CONFIDENCE

    def test_duplicate_invoice_before_missing_states(self):
        """DUPLICATE_INVOICE wins over a missing PO."""
        flags = ReconciliationFlags(has_invoice=True, duplicate_invoice=True)
        assert compute_state(flags) == TransactionState.DUPLICATE_INVOICE

    @pytest.mark.parametrize(
        "present,expected",
        [
            ({"has_invoice": True}, TransactionState.WAITING_FOR_PO),
            ({"has_grn": True}, TransactionState.WAITING_FOR_PO),
            ({"has_invoice": True, "has_grn": True}, TransactionState.WAITING_FOR_PO),
            ({"has_po": True}, TransactionState.WAITING_FOR_INVOICE_AND_GRN),
            ({"has_po": True, "has_grn": True}, TransactionState.WAITING_FOR_INVOICE),
            ({"has_po": True, "has_invoice": True}, TransactionState.WAITING_FOR_GOODS_RECEIPT),
            ({}, TransactionState.WAITING_FOR_PO),
        ],
    )
    def test_presence_states(self, present, expected):
        """Document presence selects the waiting state."""
        assert compute_state(ReconciliationFlags(**present)) == expected

    def test_fx_before_quantity_before_amount(self):
        """With all documents present, mismatches are ranked fx > qty > amount."""
        flags = ReconciliationFlags(
            **ALL_PRESENT, fx_mismatch=True, qty_mismatch=True, amount_mismatch=True
        )
        assert compute_state(flags) == TransactionState.FX_OR_REGION_MISMATCH

        flags = ReconciliationFlags(**ALL_PRESENT, qty_mismatch=True, amount_mismatch=True)
        assert compute_state(flags) == TransactionState.QTY_MISMATCH

        flags = ReconciliationFlags(**ALL_PRESENT, amount_mismatch=True)
        assert compute_state(flags) == TransactionState.AMOUNT_MISMATCH

    def test_mismatch_flags_ignored_until_all_present(self):
        """Mismatch flags do not matter while a document is missing."""
        flags = ReconciliationFlags(has_po=True, has_invoice=True, amount_mismatch=True)
        assert compute_state(flags) == TransactionState.WAITING_FOR_GOODS_RECEIPT

    def test_matched(self):
        """All documents present and no issue flags → MATCHED."""
        assert compute_state(ReconciliationFlags(**ALL_PRESENT)) == TransactionState.MATCHED

    def test_never_ready_to_reconcile(self):
        """READY_TO_RECONCILE is never produced."""
        names = [
            "has_po", "has_invoice", "has_grn", "parse_failed", "low_confidence",
            "duplicate_invoice", "amount_mismatch", "qty_mismatch", "fx_mismatch",
        ]
        for values in itertools.product([False, True], repeat=len(names)):
            flags = ReconciliationFlags(**dict(zip(names, values)))
            assert compute_state(flags) != TransactionState.READY_TO_RECONCILE


class TestIssueSummary:
    """Tests for per-state issue summaries."""

    def test_every_state_has_summary(self):
        """The summary table covers the whole vocabulary."""
        assert set(ISSUE_SUMMARIES) == set(TransactionState)

    def test_known_summaries(self):
        assert summarize_issue(TransactionState.MATCHED) == "All checks passed"
        assert (
            summarize_issue(TransactionState.WAITING_FOR_PO)
            == "Invoice/GRN exists but PO is missing"
        )
        assert summarize_issue(TransactionState.READY_TO_RECONCILE) == "Pending reconciliation"
