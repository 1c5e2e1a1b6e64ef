"""Test fixtures and utilities."""

import json
import re
from pathlib import Path

import pytest

from procure_recon.config import (
    Config,
    LLMConfig,
    ProcessingConfig,
    ReconciliationConfig,
    StorageConfig,
)
from procure_recon.errors import CompletionError
from procure_recon.state_store import StateStore
from procure_recon.storage import LocalBlobStore

# Sample raw documents (heuristic-friendly labels)
SAMPLE_PO_TEXT = """Purchase Order
PO Number: PO-1001
Vendor: Acme Industrial Ltd
Country: IN
Currency: INR
Date: 05/03/2024
Total Amount: 1,000.00
"""

SAMPLE_INVOICE_TEXT = """Invoice Number: INV-2001
PO Number: PO-1001
Vendor: Acme Industrial Ltd
Country: IN
Currency: INR
Invoice Date: 2024-03-10
Due Date: 2024-04-09
Total Amount: 1,010.00
Tax: 180.00
"""

SAMPLE_GRN_TEXT = """Goods Receipt Note
GRN Number: GRN-3001
PO Number: PO-1001
Vendor: Acme Industrial Ltd
Country: IN
Date: 12-03-2024
"""


def po_payload(**overrides) -> dict:
    """Canonical model payload for the sample PO."""
    payload = {
        "docType": "PURCHASE_ORDER",
        "poNumber": "PO-1001",
        "invoiceNumber": "",
        "grnNumber": "",
        "vendorName": "Acme Industrial Ltd",
        "vendorId": "V-77",
        "country": "in",
        "currency": "inr",
        "docDate": "05/03/2024",
        "dueDate": "",
        "totalAmount": 1000.0,
        "taxAmount": None,
        "lineItems": [
            {"description": "Steel bolts", "quantity": 100, "unitPrice": 10.0, "lineTotal": 1000.0}
        ],
        "confidence": 0.95,
        "notes": "",
    }
    payload.update(overrides)
    return payload


def invoice_payload(**overrides) -> dict:
    """Canonical model payload for the sample invoice."""
    payload = {
        "docType": "INVOICE",
        "poNumber": "PO-1001",
        "invoiceNumber": "INV-2001",
        "grnNumber": "",
        "vendorName": "Acme Industrial Ltd",
        "vendorId": "V-77",
        "country": "IN",
        "currency": "INR",
        "docDate": "2024-03-10",
        "dueDate": "2024-04-09",
        "totalAmount": 1010.0,
        "taxAmount": 180.0,
        "lineItems": [],
        "confidence": 0.9,
        "notes": "",
    }
    payload.update(overrides)
    return payload


def grn_payload(**overrides) -> dict:
    """Canonical model payload for the sample goods receipt."""
    payload = {
        "docType": "GOODS_RECEIPT",
        "poNumber": "PO-1001",
        "invoiceNumber": "",
        "grnNumber": "GRN-3001",
        "vendorName": "Acme Industrial Ltd",
        "vendorId": "V-77",
        "country": "IN",
        "currency": "INR",
        "docDate": "2024-03-12",
        "dueDate": "",
        "totalAmount": None,
        "taxAmount": None,
        "lineItems": [{"description": "Steel Bolts", "quantity": 100}],
        "confidence": 0.92,
        "notes": "",
    }
    payload.update(overrides)
    return payload


class ScriptedCompletionClient:
    """
    Completion client answering by file name.

    Responses map a file name to a payload dict (serialized to JSON), a raw
    string (returned as-is) or an exception instance (raised). Every prompt
    is recorded.
    """

    FILE_NAME_PATTERN = re.compile(r"^File name: (.+)$", re.MULTILINE)

    def __init__(self, responses: dict):
        self.responses = responses
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        match = self.FILE_NAME_PATTERN.search(prompt)
        if not match:
            raise CompletionError("No file name in prompt")
        response = self.responses[match.group(1).strip()]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return response
        return json.dumps(response)

    def prompts_for(self, file_name: str) -> list[str]:
        return [p for p in self.prompts if f"File name: {file_name}\n" in p]


def write_raw_file(raw_dir: Path, name: str, content: str | bytes) -> Path:
    """Write a raw document into the scanned directory."""
    path = raw_dir / name
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Temporary database path."""
    return tmp_path / "test_state.db"


@pytest.fixture
def raw_dir(tmp_path: Path) -> Path:
    """Empty raw data directory."""
    path = tmp_path / "raw"
    path.mkdir()
    return path


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    """Artifact root for the local blob store."""
    return tmp_path / "storage"


@pytest.fixture
def config(temp_db: Path, raw_dir: Path, storage_dir: Path) -> Config:
    """Configuration pointing at temporary directories, LLM disabled."""
    return Config(
        storage=StorageConfig(raw_data_dir=raw_dir, storage_dir=storage_dir),
        llm=LLMConfig(enabled=False),
        reconciliation=ReconciliationConfig(),
        processing=ProcessingConfig(batch_size=25),
        state_db_path=temp_db,
    )


@pytest.fixture
def store(temp_db: Path) -> StateStore:
    """Fresh state store."""
    return StateStore(temp_db)


@pytest.fixture
def blob_store(storage_dir: Path) -> LocalBlobStore:
    """Local blob store rooted in a temporary directory."""
    return LocalBlobStore(storage_dir)


@pytest.fixture
def sample_po_text() -> str:
    return SAMPLE_PO_TEXT


@pytest.fixture
def sample_invoice_text() -> str:
    return SAMPLE_INVOICE_TEXT


@pytest.fixture
def sample_grn_text() -> str:
    return SAMPLE_GRN_TEXT
