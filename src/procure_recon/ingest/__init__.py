"""
Raw document intake.

Discovers candidate files in the raw directory and turns their bytes
into text for field extraction.
"""

from .file_scanner import (
    IGNORED_FILE_NAMES,
    MIME_TYPES_BY_EXTENSION,
    ScannedFile,
    infer_mime_type,
    scan_raw_directory,
)
from .text_extractor import (
    PDF_PLACEHOLDER_TEXT,
    ExtractionMethod,
    TextExtractionResult,
    extract_text_from_file,
)

__all__ = [
    "IGNORED_FILE_NAMES",
    "MIME_TYPES_BY_EXTENSION",
    "ScannedFile",
    "infer_mime_type",
    "scan_raw_directory",
    "PDF_PLACEHOLDER_TEXT",
    "ExtractionMethod",
    "TextExtractionResult",
    "extract_text_from_file",
]
