"""
Reconciliation check engine.

Computes the fixed set of checks over the documents attached to a
transaction, plus the boolean flags the state machine consumes.

Only PROCESSED documents of the matching type take part in presence and
value checks. A FAILED document counts toward the parse-failure flag
whatever its type. Where a check compares two documents, the primary
document of each type is the first one in document order.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from ..schemas.domain import CheckStatus, CheckType, DocumentStatus, DocumentType
from ..schemas.extracted_document import ExtractedLineItem
from ..state_store import DocumentRecord

QUANTITY_MATCH_METHOD = "line_item_description_quantity"


@dataclass
class ReconciliationDocument:
    """The fields of a document that reconciliation looks at."""

    id: str
    status: DocumentStatus
    doc_type: DocumentType
    po_number: str | None = None
    invoice_number: str | None = None
    vendor_name: str | None = None
    country: str | None = None
    currency: str | None = None
    total_amount: float | None = None
    confidence: float | None = None
    line_items: list[ExtractedLineItem] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: DocumentRecord) -> "ReconciliationDocument":
        extracted = record.extracted
        return cls(
            id=record.id,
            status=record.status,
            doc_type=record.doc_type,
            po_number=record.po_number,
            invoice_number=record.invoice_number,
            vendor_name=record.vendor_name,
            country=record.country,
            currency=record.currency,
            total_amount=record.total_amount,
            confidence=record.confidence,
            line_items=list(extracted.line_items) if extracted else [],
        )


@dataclass
class CheckResult:
    """Result of one reconciliation check."""

    check_type: CheckType
    status: CheckStatus
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "checkType": self.check_type.value,
            "status": self.status.value,
            "details": self.details,
        }


@dataclass(frozen=True)
class ReconciliationFlags:
    """Boolean flags consumed by the state machine."""

    has_po: bool = False
    has_invoice: bool = False
    has_grn: bool = False
    parse_failed: bool = False
    low_confidence: bool = False
    duplicate_invoice: bool = False
    amount_mismatch: bool = False
    qty_mismatch: bool = False
    fx_mismatch: bool = False

    def to_dict(self) -> dict:
        return {
            "hasPO": self.has_po,
            "hasInvoice": self.has_invoice,
            "hasGRN": self.has_grn,
            "parseFailed": self.parse_failed,
            "lowConfidence": self.low_confidence,
            "duplicateInvoice": self.duplicate_invoice,
            "amountMismatch": self.amount_mismatch,
            "qtyMismatch": self.qty_mismatch,
            "fxMismatch": self.fx_mismatch,
        }


@dataclass
class CheckComputation:
    """All checks of a transaction and the flags they imply."""

    checks: list[CheckResult]
    flags: ReconciliationFlags


@dataclass(frozen=True)
class AmountComparison:
    """Result of comparing a PO total with an invoice total."""

    mismatch: bool
    diff_pct: float | None

    def to_dict(self) -> dict:
        return asdict(self)


def _normalize_text(value: str | None) -> str:
    return (value or "").strip().casefold()


def detect_duplicate_invoice_numbers(invoice_numbers: list[str | None]) -> bool:
    """
    Check whether any two invoice numbers are equal after trim + case-fold.

    Empty and whitespace-only values never count.
    """
    seen: set[str] = set()
    for raw in invoice_numbers:
        invoice_number = _normalize_text(raw)
        if not invoice_number:
            continue
        if invoice_number in seen:
            return True
        seen.add(invoice_number)
    return False


def is_amount_mismatch(
    po_total: float | None,
    invoice_total: float | None,
    tolerance_pct: float,
) -> AmountComparison:
    """
    Compare invoice and PO totals against a fractional tolerance.

    - Either total unknown: not evaluated (no mismatch, no diff)
    - PO total zero: mismatch iff the invoice total is non-zero
    - Otherwise: mismatch iff |invoice - po| / |po| > tolerance (strict)
    """
    if po_total is None or invoice_total is None:
        return AmountComparison(mismatch=False, diff_pct=None)

    if po_total == 0:
        return AmountComparison(mismatch=invoice_total != 0, diff_pct=None)

    diff_pct = abs(invoice_total - po_total) / abs(po_total)
    return AmountComparison(mismatch=diff_pct > tolerance_pct, diff_pct=diff_pct)


def is_quantity_mismatch(
    po_doc: ReconciliationDocument | None,
    grn_doc: ReconciliationDocument | None,
) -> bool:
    """
    Check whether the goods receipt received less than ordered.

    Line items are joined on normalized description. Descriptions present
    on only one side are not compared; missing quantities count as 0.
    """
    if po_doc is None or grn_doc is None:
        return False
    if not po_doc.line_items or not grn_doc.line_items:
        return False

    grn_qty_by_description: dict[str, float] = {}
    for item in grn_doc.line_items:
        description = _normalize_text(item.description)
        if description:
            grn_qty_by_description[description] = item.quantity or 0

    for item in po_doc.line_items:
        description = _normalize_text(item.description)
        if not description or description not in grn_qty_by_description:
            continue
        if grn_qty_by_description[description] < (item.quantity or 0):
            return True
    return False


def _distinct_upper(values: list[str | None]) -> list[str]:
    # Ordered dedupe keeps details deterministic across runs
    return list(dict.fromkeys(v.strip().upper() for v in values if v and v.strip()))


def compute_checks_for_transaction(
    docs: list[ReconciliationDocument],
    confidence_threshold: float,
    amount_tolerance_pct: float,
) -> CheckComputation:
    """
    Compute every check and flag for a transaction's document set.

    Args:
        docs: Attached documents, in document order
        confidence_threshold: Minimum acceptable extraction confidence
        amount_tolerance_pct: Allowed PO/invoice total deviation (fraction)
    """

    def processed_of(doc_type: DocumentType) -> list[ReconciliationDocument]:
        return [d for d in docs if d.doc_type == doc_type and d.status == DocumentStatus.PROCESSED]

    po_docs = processed_of(DocumentType.PURCHASE_ORDER)
    invoice_docs = processed_of(DocumentType.INVOICE)
    grn_docs = processed_of(DocumentType.GOODS_RECEIPT)
    failed_docs = [d for d in docs if d.status == DocumentStatus.FAILED]

    has_po = bool(po_docs)
    has_invoice = bool(invoice_docs)
    has_grn = bool(grn_docs)
    parse_failed = bool(failed_docs)

    participating = po_docs + invoice_docs + grn_docs
    below_threshold = [
        d for d in participating if d.confidence is not None and d.confidence < confidence_threshold
    ]
    low_confidence = bool(below_threshold)

    invoice_numbers = [d.invoice_number for d in invoice_docs]
    duplicate_invoice = detect_duplicate_invoice_numbers(invoice_numbers)

    po_primary = po_docs[0] if po_docs else None
    invoice_primary = invoice_docs[0] if invoice_docs else None
    grn_primary = grn_docs[0] if grn_docs else None

    po_total = po_primary.total_amount if po_primary else None
    invoice_total = invoice_primary.total_amount if invoice_primary else None
    amount = is_amount_mismatch(po_total, invoice_total, amount_tolerance_pct)
    qty_mismatch = is_quantity_mismatch(po_primary, grn_primary)

    countries = _distinct_upper([d.country for d in participating])
    currencies = _distinct_upper([d.currency for d in participating])
    fx_mismatch = len(countries) > 1 or len(currencies) > 1

    def presence(present: bool, others_present: bool) -> CheckStatus:
        if present:
            return CheckStatus.OK
        return CheckStatus.MISSING if others_present else CheckStatus.PENDING

    def evaluated(applicable: bool, mismatch: bool) -> CheckStatus:
        if not applicable:
            return CheckStatus.PENDING
        return CheckStatus.MISMATCH if mismatch else CheckStatus.OK

    amount_evaluated = (
        has_po and has_invoice and po_total is not None and invoice_total is not None
    )

    checks = [
        CheckResult(
            CheckType.PO_PRESENT,
            presence(has_po, has_invoice or has_grn),
            {"poCount": len(po_docs)},
        ),
        CheckResult(
            CheckType.INVOICE_PRESENT,
            presence(has_invoice, has_po or has_grn),
            {"invoiceCount": len(invoice_docs)},
        ),
        CheckResult(
            CheckType.GRN_PRESENT,
            presence(has_grn, has_po or has_invoice),
            {"grnCount": len(grn_docs)},
        ),
        CheckResult(
            CheckType.AMOUNT_MATCH,
            evaluated(amount_evaluated, amount.mismatch),
            {"poTotal": po_total, "invoiceTotal": invoice_total, "diffPct": amount.diff_pct},
        ),
        CheckResult(
            CheckType.QUANTITY_MATCH,
            evaluated(has_po and has_grn, qty_mismatch),
            {"compared": has_po and has_grn, "method": QUANTITY_MATCH_METHOD},
        ),
        CheckResult(
            CheckType.DUPLICATE_INVOICE,
            CheckStatus.MISMATCH if duplicate_invoice else CheckStatus.OK,
            {"invoiceNumbers": invoice_numbers},
        ),
        CheckResult(
            CheckType.FX_OR_REGION_MATCH,
            evaluated(has_po and (has_invoice or has_grn), fx_mismatch),
            {"countries": countries, "currencies": currencies},
        ),
        CheckResult(
            CheckType.LOW_CONFIDENCE,
            CheckStatus.MISMATCH if low_confidence else CheckStatus.OK,
            {
                "threshold": confidence_threshold,
                "belowThresholdDocumentIds": [d.id for d in below_threshold],
            },
        ),
        CheckResult(
            CheckType.PARSE_FAILED,
            CheckStatus.ERROR if parse_failed else CheckStatus.OK,
            {"failedDocumentIds": [d.id for d in failed_docs]},
        ),
    ]

    flags = ReconciliationFlags(
        has_po=has_po,
        has_invoice=has_invoice,
        has_grn=has_grn,
        parse_failed=parse_failed,
        low_confidence=low_confidence,
        duplicate_invoice=duplicate_invoice,
        amount_mismatch=amount.mismatch,
        qty_mismatch=qty_mismatch,
        fx_mismatch=fx_mismatch,
    )
    return CheckComputation(checks=checks, flags=flags)
