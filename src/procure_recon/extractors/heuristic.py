"""
Regex heuristic extractor.

Used when no AI completion capability is configured. Pattern-matches the
common labels of POs, invoices and goods receipts and always reports a
low confidence so the transaction is flagged for review.

Supported labels (case-insensitive):
- PO Number / PO No. / PO# / PO Ref
- Invoice Number / Inv No. / Invoice
- GRN Number / GRN#
- Vendor / Supplier, Country, Currency
- Grand Total / Invoice Total / TOTAL DUE / Total Amount / TOTAL
- Tax / GST / VAT / MwSt
- Date / Invoice Date / PO Date / GRN Date, Due Date
"""

import re

from ..schemas.domain import DocumentType
from ..schemas.extracted_document import ExtractedDocument
from .normalize import normalize_date, parse_possible_number

HEURISTIC_CONFIDENCE = 0.4

HEURISTIC_NOTE = (
    "Heuristic extraction fallback used because no AI completion capability was configured."
)

PO_NUMBER_PATTERN = re.compile(
    r"\bPO\s*(?:Number|No\.?|#|Ref(?:erence)?)?\s*[:#-]?\s*([A-Z0-9-]{3,})", re.IGNORECASE
)
INVOICE_NUMBER_PATTERN = re.compile(
    r"\b(?:Invoice\s*(?:Number|No\.?|#)|Inv\s*No\.?|Invoice)\s*[:#-]?\s*([A-Z0-9-]{3,})",
    re.IGNORECASE,
)
GRN_NUMBER_PATTERN = re.compile(
    r"\bGRN\s*(?:Number|No\.?|#)?\s*[:#-]?\s*([A-Z0-9-]{3,})", re.IGNORECASE
)
VENDOR_PATTERN = re.compile(
    r"\b(?:Vendor|Supplier)\s*(?:Name|Id|ID|code|Code)?\s*[:=-]\s*([^\n]+)", re.IGNORECASE
)
COUNTRY_PATTERN = re.compile(r"\bCountry\s*[:=-]\s*([A-Za-z]{2,3})\b", re.IGNORECASE)
CURRENCY_PATTERN = re.compile(r"\bCurrency\s*[:=-]\s*([A-Za-z]{3})\b", re.IGNORECASE)
TOTAL_PATTERN = re.compile(
    r"\b(?:Grand\s*Total|Invoice\s*Total|TOTAL\s*DUE|Total\s*Amount|TOTAL)\s*[:=-]?\s*"
    r"(?:[A-Za-z]{3}\s*)?([0-9,]+(?:\.\d{1,2})?)",
    re.IGNORECASE,
)
TAX_PATTERN = re.compile(
    r"\b(?:Tax|GST|VAT|MwSt)\s*(?:\d+(?:\.\d+)?%?)?\s*[:=-]?\s*"
    r"(?:[A-Za-z]{3}\s*)?([0-9,]+(?:\.\d{1,2})?)",
    re.IGNORECASE,
)
DOC_DATE_PATTERN = re.compile(
    r"\b(?:Date|Invoice Date|PO Date|GRN Date|Doc dt)\s*[:=-]\s*([^\n]+)", re.IGNORECASE
)
DUE_DATE_PATTERN = re.compile(
    r"\b(?:Due Date|Payment Due Date)\s*[:=-]\s*([^\n]+)", re.IGNORECASE
)


def _first_group(pattern: re.Pattern, text: str) -> str:
    match = pattern.search(text)
    return match.group(1).strip() if match else ""


def infer_doc_type(raw_text: str) -> DocumentType:
    """Infer the document type from keywords. Goods receipt wins over invoice over PO."""
    text = raw_text.lower()
    if "goods receipt" in text or "grn" in text:
        return DocumentType.GOODS_RECEIPT
    if "invoice" in text or "rechnung" in text:
        return DocumentType.INVOICE
    if "purchase order" in text or "po number" in text or "po#" in text:
        return DocumentType.PURCHASE_ORDER
    return DocumentType.OTHER


def heuristic_extract(raw_text: str) -> ExtractedDocument:
    """Extract fields with regex patterns only. Line items are not attempted."""
    return ExtractedDocument(
        doc_type=infer_doc_type(raw_text),
        po_number=_first_group(PO_NUMBER_PATTERN, raw_text),
        invoice_number=_first_group(INVOICE_NUMBER_PATTERN, raw_text),
        grn_number=_first_group(GRN_NUMBER_PATTERN, raw_text),
        vendor_name=_first_group(VENDOR_PATTERN, raw_text),
        vendor_id="",
        country=_first_group(COUNTRY_PATTERN, raw_text).upper(),
        currency=_first_group(CURRENCY_PATTERN, raw_text).upper(),
        doc_date=normalize_date(_first_group(DOC_DATE_PATTERN, raw_text)),
        due_date=normalize_date(_first_group(DUE_DATE_PATTERN, raw_text)),
        total_amount=parse_possible_number(_first_group(TOTAL_PATTERN, raw_text)),
        tax_amount=parse_possible_number(_first_group(TAX_PATTERN, raw_text)),
        line_items=[],
        confidence=HEURISTIC_CONFIDENCE,
        notes=HEURISTIC_NOTE,
    )
