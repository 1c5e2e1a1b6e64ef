"""
Value normalization for extracted fields.

- Dates become YYYY-MM-DD or ""
- Amount strings are cleaned of separators, letters and currency symbols
- Whole records are trimmed, upper-cased and clamped into canonical form
"""

import math
import re
from datetime import date, datetime, timezone

from dateutil import parser as date_parser

from ..schemas.extracted_document import ExtractedDocument, ExtractedLineItem

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Day-first numeric dates: 5/3/24, 05-03-2024
DAY_FIRST_DATE_PATTERN = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{2}|\d{4})$")

# Thousands separators and spaces
_SEPARATOR_CHARS = re.compile(r"[, ]")
# Letters and currency symbols
_NON_NUMERIC_CHARS = re.compile(r"[A-Za-z$€£₹]")

# Fills components a parsed string does not name (e.g. "March 2024" → day 1)
_DATE_DEFAULT = datetime(2000, 1, 1)


def normalize_date(value: str | None) -> str:
    """
    Normalize a date string to ISO YYYY-MM-DD.

    - ISO dates pass through unchanged
    - D/M/YY, D-M-YY, D/M/YYYY, D-M-YYYY are day-first; two-digit
      years are read as 20YY
    - Anything else goes through the calendar parser; timezone-aware
      values are converted to UTC first

    Returns:
        ISO date, or "" if the value is empty or unparseable
    """
    raw = (value or "").strip()
    if not raw:
        return ""

    if ISO_DATE_PATTERN.match(raw):
        return raw

    match = DAY_FIRST_DATE_PATTERN.match(raw)
    if match:
        day, month, year = match.groups()
        if len(year) == 2:
            year = f"20{year}"
        try:
            return date(int(year), int(month), int(day)).isoformat()
        except ValueError:
            return ""

    try:
        parsed = date_parser.parse(raw, default=_DATE_DEFAULT)
    except (ValueError, OverflowError):
        return ""

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def parse_possible_number(value: str | None) -> float | None:
    """
    Parse an amount string such as "EUR 1,234.50".

    Returns:
        Float value, or None if nothing numeric remains
    """
    if not value:
        return None
    cleaned = _NON_NUMERIC_CHARS.sub("", _SEPARATOR_CHARS.sub("", value))
    try:
        parsed = float(cleaned)
    except ValueError:
        return None
    # float() accepts "nan" and "inf" spellings
    return parsed if math.isfinite(parsed) else None


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


def normalize_extracted_document(doc: ExtractedDocument) -> ExtractedDocument:
    """Return a canonical copy: trimmed strings, upper-cased country/currency, ISO dates."""
    return ExtractedDocument(
        doc_type=doc.doc_type,
        po_number=doc.po_number.strip(),
        invoice_number=doc.invoice_number.strip(),
        grn_number=doc.grn_number.strip(),
        vendor_name=doc.vendor_name.strip(),
        vendor_id=doc.vendor_id.strip(),
        country=doc.country.strip().upper(),
        currency=doc.currency.strip().upper(),
        doc_date=normalize_date(doc.doc_date),
        due_date=normalize_date(doc.due_date),
        total_amount=doc.total_amount,
        tax_amount=doc.tax_amount,
        line_items=[
            ExtractedLineItem(
                description=item.description.strip(),
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
            )
            for item in doc.line_items
        ],
        confidence=clamp_confidence(doc.confidence),
        notes=doc.notes.strip(),
    )
