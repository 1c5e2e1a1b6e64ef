"""
Byte-level text extraction keyed by file extension.

Text and markdown files are decoded as UTF-8, with undecodable bytes
replaced rather than rejected. PDFs are not parsed: they yield a fixed
placeholder, and the pipeline routes them to manual review when the
critical identifiers stay empty.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..errors import UnsupportedFileTypeError

PDF_PLACEHOLDER_TEXT = (
    "[PDF extraction not implemented in MVP. "
    "Route to manual review if critical fields are missing.]"
)


class ExtractionMethod(str, Enum):
    """How the text of a document was obtained."""

    RAW_TEXT = "raw_text"
    MARKDOWN = "markdown"
    PDF_STUB = "pdf_stub"


@dataclass
class TextExtractionResult:
    """Extracted document text and the method used."""

    text: str
    method: ExtractionMethod


def _read_lossy(path: Path) -> str:
    # Latin-1 and cp1252 supplier files must not fail the document
    return path.read_bytes().decode("utf-8", errors="replace")


def extract_text_from_file(source_path: str | Path) -> TextExtractionResult:
    """
    Extract text from a raw document.

    Raises:
        UnsupportedFileTypeError: For any extension other than .txt, .md, .pdf
        OSError: If the file cannot be read
    """
    path = Path(source_path)
    suffix = path.suffix.lower()

    if suffix == ".txt":
        return TextExtractionResult(text=_read_lossy(path), method=ExtractionMethod.RAW_TEXT)

    if suffix == ".md":
        return TextExtractionResult(text=_read_lossy(path), method=ExtractionMethod.MARKDOWN)

    if suffix == ".pdf":
        return TextExtractionResult(text=PDF_PLACEHOLDER_TEXT, method=ExtractionMethod.PDF_STUB)

    raise UnsupportedFileTypeError(f"Unsupported file extension: {suffix}")
