"""
Canonical extracted procurement record (SSOT).

This is THE single source of truth for fields extracted from a PO,
invoice or goods receipt. The AI response, the heuristic fallback and
the persisted document JSON all map into/out of ExtractedDocument.

The model payload is validated exactly once, at the boundary, by
validate_extraction_payload(). Nothing downstream re-interprets the
raw JSON shape.
"""

from dataclasses import dataclass, field
from typing import Any

from ..errors import SchemaValidationError
from .domain import EXTRACTABLE_DOC_TYPES, DocumentType

# String fields of the record: (attribute name, JSON key)
STRING_FIELDS = (
    ("po_number", "poNumber"),
    ("invoice_number", "invoiceNumber"),
    ("grn_number", "grnNumber"),
    ("vendor_name", "vendorName"),
    ("vendor_id", "vendorId"),
    ("country", "country"),
    ("currency", "currency"),
    ("doc_date", "docDate"),
    ("due_date", "dueDate"),
    ("notes", "notes"),
)

NUMERIC_FIELDS = (
    ("total_amount", "totalAmount"),
    ("tax_amount", "taxAmount"),
)

LINE_ITEM_NUMERIC_FIELDS = (
    ("quantity", "quantity"),
    ("unit_price", "unitPrice"),
    ("line_total", "lineTotal"),
)

DEFAULT_CONFIDENCE = 0.5


@dataclass
class ExtractedLineItem:
    """Single line item of a PO, invoice or goods receipt."""

    description: str = ""
    quantity: float | None = None
    unit_price: float | None = None
    line_total: float | None = None

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "lineTotal": self.line_total,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExtractedLineItem":
        """Create from a trusted (already validated) dictionary."""
        return cls(
            description=data.get("description") or "",
            quantity=data.get("quantity"),
            unit_price=data.get("unitPrice"),
            line_total=data.get("lineTotal"),
        )


@dataclass
class ExtractedDocument:
    """
    Canonical extraction result for one document.

    String fields default to "", numeric fields are nullable and dates
    are YYYY-MM-DD or "".
    """

    doc_type: DocumentType = DocumentType.OTHER
    po_number: str = ""
    invoice_number: str = ""
    grn_number: str = ""
    vendor_name: str = ""
    vendor_id: str = ""
    country: str = ""
    currency: str = ""
    doc_date: str = ""
    due_date: str = ""
    total_amount: float | None = None
    tax_amount: float | None = None
    line_items: list[ExtractedLineItem] = field(default_factory=list)
    confidence: float = DEFAULT_CONFIDENCE
    notes: str = ""

    def to_dict(self) -> dict:
        """Serialize with the camelCase keys of the canonical JSON schema."""
        return {
            "docType": self.doc_type.value,
            "poNumber": self.po_number,
            "invoiceNumber": self.invoice_number,
            "grnNumber": self.grn_number,
            "vendorName": self.vendor_name,
            "vendorId": self.vendor_id,
            "country": self.country,
            "currency": self.currency,
            "docDate": self.doc_date,
            "dueDate": self.due_date,
            "totalAmount": self.total_amount,
            "taxAmount": self.tax_amount,
            "lineItems": [item.to_dict() for item in self.line_items],
            "confidence": self.confidence,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExtractedDocument":
        """Create from a trusted dictionary (e.g. JSON persisted by the state store)."""
        return cls(
            doc_type=DocumentType(data.get("docType") or DocumentType.OTHER.value),
            po_number=data.get("poNumber") or "",
            invoice_number=data.get("invoiceNumber") or "",
            grn_number=data.get("grnNumber") or "",
            vendor_name=data.get("vendorName") or "",
            vendor_id=data.get("vendorId") or "",
            country=data.get("country") or "",
            currency=data.get("currency") or "",
            doc_date=data.get("docDate") or "",
            due_date=data.get("dueDate") or "",
            total_amount=data.get("totalAmount"),
            tax_amount=data.get("taxAmount"),
            line_items=[ExtractedLineItem.from_dict(item) for item in data.get("lineItems") or []],
            confidence=data.get("confidence", DEFAULT_CONFIDENCE),
            notes=data.get("notes") or "",
        )


def _is_number(value: Any) -> bool:
    # bool is a subclass of int but never a valid amount
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _optional_number(value: Any, path: str, errors: list[str]) -> float | None:
    if value is None:
        return None
    if not _is_number(value):
        errors.append(f"{path}: expected number or null, got {type(value).__name__}")
        return None
    return float(value)


def _string(value: Any, path: str, errors: list[str]) -> str:
    if not isinstance(value, str):
        errors.append(f"{path}: expected string, got {type(value).__name__}")
        return ""
    return value


def _validate_line_item(item: Any, path: str, errors: list[str]) -> ExtractedLineItem:
    if not isinstance(item, dict):
        errors.append(f"{path}: expected object, got {type(item).__name__}")
        return ExtractedLineItem()

    description = ""
    if "description" in item:
        description = _string(item["description"], f"{path}.description", errors)
    numbers = {
        attr: _optional_number(item.get(key), f"{path}.{key}", errors)
        for attr, key in LINE_ITEM_NUMERIC_FIELDS
    }
    return ExtractedLineItem(description=description, **numbers)


def validate_extraction_payload(payload: Any) -> ExtractedDocument:
    """
    Validate a parsed model response against the extraction schema.

    Missing fields take their defaults ("" for strings, None for numbers,
    [] for line items, 0.5 for confidence). Present fields must have the
    right type; booleans are never accepted as numbers.

    Args:
        payload: Parsed JSON value from the model

    Returns:
        ExtractedDocument with raw (not yet normalized) values

    Raises:
        SchemaValidationError: Listing every violation found
    """
    if not isinstance(payload, dict):
        raise SchemaValidationError([f"expected JSON object, got {type(payload).__name__}"])

    errors: list[str] = []

    doc_type = DocumentType.OTHER
    raw_doc_type = payload.get("docType")
    allowed = [t.value for t in EXTRACTABLE_DOC_TYPES]
    if raw_doc_type not in allowed:
        errors.append(f"docType: expected one of {', '.join(allowed)}, got {raw_doc_type!r}")
    else:
        doc_type = DocumentType(raw_doc_type)

    strings = {
        attr: _string(payload[key], key, errors) if key in payload else ""
        for attr, key in STRING_FIELDS
    }
    numbers = {
        attr: _optional_number(payload.get(key), key, errors) for attr, key in NUMERIC_FIELDS
    }

    line_items: list[ExtractedLineItem] = []
    raw_items = payload.get("lineItems", [])
    if not isinstance(raw_items, list):
        errors.append(f"lineItems: expected array, got {type(raw_items).__name__}")
    else:
        line_items = [
            _validate_line_item(item, f"lineItems[{i}]", errors) for i, item in enumerate(raw_items)
        ]

    confidence = DEFAULT_CONFIDENCE
    raw_confidence = payload.get("confidence", DEFAULT_CONFIDENCE)
    if not _is_number(raw_confidence):
        errors.append(f"confidence: expected number, got {type(raw_confidence).__name__}")
    elif not 0 <= raw_confidence <= 1:
        errors.append(f"confidence: must be between 0 and 1, got {raw_confidence}")
    else:
        confidence = float(raw_confidence)

    if errors:
        raise SchemaValidationError(errors)

    return ExtractedDocument(
        doc_type=doc_type,
        line_items=line_items,
        confidence=confidence,
        **strings,
        **numbers,
    )
