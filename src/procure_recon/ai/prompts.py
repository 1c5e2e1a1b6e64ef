"""Prompt templates for AI-assisted field extraction.

Prompts are versioned so stored extraction notes can be traced back to
the template that produced them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

# v1.0: Initial AP extraction schema (PO / invoice / GRN)
PROMPT_VERSION = "v1.0"


@dataclass
class ExtractionPrompt:
    """Prompt template for structured field extraction.

    Attributes:
        version: Prompt version.
        preamble: Role, schema and rules shown before the document.
    """

    version: str = PROMPT_VERSION

    preamble: str = """You are an AP procurement document extraction engine.
Extract structured fields from the following raw document text.
Return JSON only (no markdown, no prose), with this shape:
{
  "docType": "PURCHASE_ORDER"|"INVOICE"|"GOODS_RECEIPT"|"OTHER",
  "poNumber": "",
  "invoiceNumber": "",
  "grnNumber": "",
  "vendorName": "",
  "vendorId": "",
  "country": "",
  "currency": "",
  "docDate": "YYYY-MM-DD or empty",
  "dueDate": "YYYY-MM-DD or empty",
  "totalAmount": number|null,
  "taxAmount": number|null,
  "lineItems": [{"description": "", "quantity": number|null, "unitPrice": number|null, "lineTotal": number|null}],
  "confidence": 0..1,
  "notes": "short note"
}
Rules:
- If missing, use empty string for text fields and null for numeric fields.
- Normalize dates to YYYY-MM-DD if possible.
- Keep confidence low for ambiguous or OCR-noisy text."""

    def build(
        self,
        raw_text: str,
        file_name: str,
        po_context: dict[str, Any] | None = None,
    ) -> str:
        """Build the full extraction prompt.

        Args:
            raw_text: Document text.
            file_name: Original file name (a useful hint for the model).
            po_context: Extracted record of the related PO, if known.

        Returns:
            Prompt text.
        """
        parts = [self.preamble, f"File name: {file_name}"]
        if po_context:
            parts.append(f"PO context JSON:\n{json.dumps(po_context)}")
        parts.append("Document text:")
        parts.append(raw_text)
        return "\n".join(parts)


@dataclass
class RepairPrompt:
    """Prompt template asking the model to fix an invalid response."""

    version: str = PROMPT_VERSION

    instructions: str = (
        "Fix this JSON so it is strictly valid and follows the required extraction schema.\n\n"
        "Return only corrected JSON, no markdown."
    )

    def build(self, bad_payload: str) -> str:
        """Build the repair prompt for a malformed or off-schema payload."""
        return f"{self.instructions}\n\n{bad_payload}"
