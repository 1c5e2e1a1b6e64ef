"""
Field extraction.

The engine prefers the AI completion capability and falls back to the
regex heuristic when none is configured.
"""

from .engine import FieldExtractionEngine, clean_model_json_text, parse_model_json
from .heuristic import HEURISTIC_CONFIDENCE, heuristic_extract, infer_doc_type
from .normalize import (
    normalize_date,
    normalize_extracted_document,
    parse_possible_number,
)

__all__ = [
    "FieldExtractionEngine",
    "clean_model_json_text",
    "parse_model_json",
    "HEURISTIC_CONFIDENCE",
    "heuristic_extract",
    "infer_doc_type",
    "normalize_date",
    "normalize_extracted_document",
    "parse_possible_number",
]
