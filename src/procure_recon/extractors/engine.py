"""
Field extraction engine.

Turns raw document text into a canonical ExtractedDocument:

1. No completion client configured → regex heuristic (confidence 0.4)
2. Otherwise prompt the model for strict JSON, strip code fences, parse
   - Unusable first response → one repair call, re-parse
   - Off-schema payload → one repair call on the serialized payload,
     re-validate
3. Normalize the validated record

At most one repair call is made per failure mode. A failing repair
propagates to the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ..ai.client import CompletionClient
from ..ai.prompts import ExtractionPrompt, RepairPrompt
from ..errors import CompletionError, ModelResponseError, SchemaValidationError
from ..schemas.extracted_document import ExtractedDocument, validate_extraction_payload
from .heuristic import heuristic_extract
from .normalize import normalize_extracted_document

logger = logging.getLogger(__name__)


def clean_model_json_text(content: str) -> str:
    """Strip surrounding whitespace and a markdown code fence (```json ... ```)."""
    content = content.strip()
    if content.startswith("```") and content.endswith("```") and len(content) >= 6:
        first_newline = content.find("\n")
        if first_newline == -1:
            content = content[3:-3]
        else:
            # Drop the opening fence line, including any language tag
            content = content[first_newline + 1 : -3]
    return content.strip()


def parse_model_json(content: str) -> Any:
    """Parse JSON from a model response.

    Args:
        content: Raw model response content.

    Returns:
        Parsed JSON value.

    Raises:
        ModelResponseError: If content is empty or not valid JSON.
    """
    cleaned = clean_model_json_text(content or "")
    if not cleaned:
        raise ModelResponseError("Model returned an empty response")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ModelResponseError(f"Model response is not valid JSON: {e}") from e


class FieldExtractionEngine:
    """
    Extracts canonical fields from document text.

    The completion client is optional: None selects the heuristic
    extractor for every document.
    """

    def __init__(self, completion_client: CompletionClient | None = None):
        self.client = completion_client
        self._extraction_prompt = ExtractionPrompt()
        self._repair_prompt = RepairPrompt()

    @property
    def uses_ai(self) -> bool:
        """True when a completion client is configured."""
        return self.client is not None

    def extract(
        self,
        raw_text: str,
        file_name: str,
        po_context: ExtractedDocument | None = None,
    ) -> ExtractedDocument:
        """
        Extract a canonical record from raw text.

        Args:
            raw_text: Document text
            file_name: Original file name
            po_context: Extracted record of the related PO (second pass for invoices)

        Raises:
            CompletionError: If a model call fails during repair
            ModelResponseError: If the response is still not JSON after repair
            SchemaValidationError: If the payload is still off-schema after repair
        """
        if self.client is None:
            logger.debug("No completion client; heuristic extraction for %s", file_name)
            return heuristic_extract(raw_text)

        prompt = self._extraction_prompt.build(
            raw_text=raw_text,
            file_name=file_name,
            po_context=po_context.to_dict() if po_context else None,
        )
        logger.debug(
            "Extracting %s (prompt %d chars, po_context=%s)",
            file_name,
            len(prompt),
            po_context is not None,
        )

        parsed = self._complete_and_parse(prompt, file_name)

        try:
            validated = validate_extraction_payload(parsed)
        except SchemaValidationError as e:
            logger.warning(
                "Extraction for %s failed schema validation (%d errors); requesting repair",
                file_name,
                len(e.errors),
            )
            repaired = self._repair(json.dumps(parsed))
            validated = validate_extraction_payload(repaired)

        return normalize_extracted_document(validated)

    def _complete_and_parse(self, prompt: str, file_name: str) -> Any:
        """First model call plus at most one repair if the response is unusable."""
        first_response = ""
        try:
            first_response = self.client.complete(prompt)
            return parse_model_json(first_response)
        except (CompletionError, ModelResponseError) as e:
            logger.warning("Unusable model response for %s (%s); requesting repair", file_name, e)
            # Repair the bad payload, or re-send the prompt when nothing came back
            return self._repair(first_response or prompt)

    def _repair(self, bad_payload: str) -> Any:
        repair_response = self.client.complete(self._repair_prompt.build(bad_payload))
        return parse_model_json(repair_response)
