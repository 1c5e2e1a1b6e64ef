"""Tests for raw file scanning, text extraction and content hashing."""

import hashlib

import pytest

from procure_recon.errors import UnsupportedFileTypeError
from procure_recon.ingest import (
    PDF_PLACEHOLDER_TEXT,
    ExtractionMethod,
    extract_text_from_file,
    infer_mime_type,
    scan_raw_directory,
)
from procure_recon.schemas import compute_file_hash, compute_path_hash

from conftest import write_raw_file


class TestScanner:
    """Tests for scan_raw_directory."""

    def test_finds_supported_files_sorted(self, raw_dir):
        write_raw_file(raw_dir, "b.txt", "second")
        write_raw_file(raw_dir, "a.md", "# first")
        write_raw_file(raw_dir, "c.pdf", b"%PDF-1.4")

        files = scan_raw_directory(raw_dir)

        assert [f.file_name for f in files] == ["a.md", "b.txt", "c.pdf"]
        assert [f.mime_type for f in files] == ["text/markdown", "text/plain", "application/pdf"]

    def test_ignores_hidden_and_unsupported(self, raw_dir):
        write_raw_file(raw_dir, ".DS_Store", b"\x00")
        write_raw_file(raw_dir, ".hidden.txt", "hidden")
        write_raw_file(raw_dir, "Thumbs.db", b"\x00")
        write_raw_file(raw_dir, "image.png", b"\x89PNG")
        write_raw_file(raw_dir, "po.txt", "PO Number: PO-1")

        files = scan_raw_directory(raw_dir)

        assert [f.file_name for f in files] == ["po.txt"]

    def test_does_not_recurse(self, raw_dir):
        nested = raw_dir / "nested"
        nested.mkdir()
        write_raw_file(nested, "deep.txt", "deep")

        assert scan_raw_directory(raw_dir) == []

    def test_records_size_and_hash(self, raw_dir):
        path = write_raw_file(raw_dir, "po.txt", "hello")
        [scanned] = scan_raw_directory(raw_dir)

        assert scanned.source_path == str(path)
        assert scanned.size_bytes == 5
        assert scanned.sha256 == hashlib.sha256(b"hello").hexdigest()

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            scan_raw_directory(tmp_path / "missing")

    def test_to_dict(self, raw_dir):
        write_raw_file(raw_dir, "po.txt", "hello")
        [scanned] = scan_raw_directory(raw_dir)
        assert set(scanned.to_dict()) == {"sourcePath", "fileName", "sizeBytes", "mimeType", "sha256"}


class TestTextExtractor:
    """Tests for extract_text_from_file."""

    def test_text_file(self, raw_dir):
        path = write_raw_file(raw_dir, "po.txt", "PO Number: PO-1 €")
        result = extract_text_from_file(path)
        assert result.text == "PO Number: PO-1 €"
        assert result.method == ExtractionMethod.RAW_TEXT

    def test_markdown_file(self, raw_dir):
        path = write_raw_file(raw_dir, "po.md", "# PO")
        result = extract_text_from_file(path)
        assert result.method == ExtractionMethod.MARKDOWN

    def test_non_utf8_bytes_are_replaced(self, raw_dir):
        """Latin-1 supplier files decode lossily instead of failing."""
        path = write_raw_file(raw_dir, "po.txt", b"Vendor: M\xfcller GmbH")
        result = extract_text_from_file(path)
        assert result.text == "Vendor: M\ufffdller GmbH"
        assert result.method == ExtractionMethod.RAW_TEXT

    def test_non_utf8_markdown(self, raw_dir):
        path = write_raw_file(raw_dir, "po.md", b"# Bestellung \x96 Stra\xdfe")
        assert "\ufffd" in extract_text_from_file(path).text

    def test_pdf_is_placeholder(self, raw_dir):
        path = write_raw_file(raw_dir, "scan.PDF", b"%PDF-1.4 binary")
        result = extract_text_from_file(path)
        assert result.text == PDF_PLACEHOLDER_TEXT
        assert result.method == ExtractionMethod.PDF_STUB

    def test_unsupported_extension(self, raw_dir):
        path = write_raw_file(raw_dir, "sheet.xlsx", b"PK")
        with pytest.raises(UnsupportedFileTypeError, match="Unsupported file extension: .xlsx"):
            extract_text_from_file(path)


class TestDedupe:
    """Tests for content hashing."""

    def test_bytes_and_path_hash_agree(self, tmp_path):
        content = b"x" * (3 * 1024 * 1024 + 17)
        path = tmp_path / "big.bin"
        path.write_bytes(content)
        assert compute_path_hash(path) == compute_file_hash(content)

    def test_same_content_same_hash(self):
        assert compute_file_hash(b"abc") == compute_file_hash(b"abc")
        assert compute_file_hash(b"abc") != compute_file_hash(b"abd")


class TestMimeTypes:
    def test_infer_mime_type(self):
        assert infer_mime_type("a.TXT") == "text/plain"
        assert infer_mime_type("x.json") == "application/json"
        assert infer_mime_type("blob") == "application/octet-stream"
