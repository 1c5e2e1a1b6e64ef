"""
SQLite-based state store implementation.

Tables:
- documents: Discovered files, their status and extracted fields
- transactions: Reconciliation units keyed by transaction_key
- transaction_documents: Document-to-transaction links with a fixed role
- reconciliation_checks: Latest result per (transaction, check type)
- audit_events: Append-only event trail
- manual_review_items: Review tasks opened for failed documents
"""

import json
import sqlite3
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from ..schemas.domain import (
    AuditEventType,
    CheckStatus,
    CheckType,
    DocumentRole,
    DocumentStatus,
    DocumentType,
    ManualReviewStatus,
    TransactionState,
)
from ..schemas.extracted_document import ExtractedDocument


def _now(offset_seconds: float = 0) -> str:
    moment = datetime.now(timezone.utc) - timedelta(seconds=offset_seconds)
    # Fixed width so lexical order matches time order
    return moment.isoformat(timespec="microseconds").replace("+00:00", "Z")


def _new_id() -> str:
    return uuid.uuid4().hex


def _or_none(value: str) -> str | None:
    return value or None


@dataclass
class DocumentRecord:
    """Record of a discovered document."""

    id: str
    sha256: str
    source_path: str
    file_name: str
    mime_type: str | None
    size_bytes: int
    status: DocumentStatus
    doc_type: DocumentType
    confidence: float | None
    extracted_json: str | None
    raw_text: str | None
    error_message: str | None
    po_number: str | None
    invoice_number: str | None
    grn_number: str | None
    vendor_name: str | None
    vendor_id: str | None
    country: str | None
    currency: str | None
    doc_date: str | None
    due_date: str | None
    total_amount: float | None
    tax_amount: float | None
    first_seen_at: str  # ISO timestamp
    processed_at: str | None
    updated_at: str
    claim_token: str | None = None
    claimed_at: str | None = None
    version: int = 0

    @property
    def extracted(self) -> ExtractedDocument | None:
        """Canonical extracted record, if the document has been processed."""
        if not self.extracted_json:
            return None
        return ExtractedDocument.from_dict(json.loads(self.extracted_json))

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "DocumentRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            sha256=row["sha256"],
            source_path=row["source_path"],
            file_name=row["file_name"],
            mime_type=row["mime_type"],
            size_bytes=row["size_bytes"],
            status=DocumentStatus(row["status"]),
            doc_type=DocumentType(row["doc_type"]),
            confidence=row["confidence"],
            extracted_json=row["extracted_json"],
            raw_text=row["raw_text"],
            error_message=row["error_message"],
            po_number=row["po_number"],
            invoice_number=row["invoice_number"],
            grn_number=row["grn_number"],
            vendor_name=row["vendor_name"],
            vendor_id=row["vendor_id"],
            country=row["country"],
            currency=row["currency"],
            doc_date=row["doc_date"],
            due_date=row["due_date"],
            total_amount=row["total_amount"],
            tax_amount=row["tax_amount"],
            first_seen_at=row["first_seen_at"],
            processed_at=row["processed_at"],
            updated_at=row["updated_at"],
            claim_token=row["claim_token"],
            claimed_at=row["claimed_at"],
            version=row["version"],
        )

    def to_dict(self) -> dict:
        """Summary view used by the CLI and transaction detail (no raw text)."""
        return {
            "id": self.id,
            "fileName": self.file_name,
            "sourcePath": self.source_path,
            "sha256": self.sha256,
            "status": self.status.value,
            "docType": self.doc_type.value,
            "confidence": self.confidence,
            "poNumber": self.po_number,
            "invoiceNumber": self.invoice_number,
            "grnNumber": self.grn_number,
            "vendorName": self.vendor_name,
            "country": self.country,
            "currency": self.currency,
            "totalAmount": self.total_amount,
            "errorMessage": self.error_message,
            "firstSeenAt": self.first_seen_at,
            "processedAt": self.processed_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class TransactionRecord:
    """Record of a reconciliation transaction."""

    id: str
    transaction_key: str
    po_number: str | None
    vendor_name: str | None
    country: str | None
    currency: str | None
    state: TransactionState
    last_reconciled_at: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "TransactionRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            transaction_key=row["transaction_key"],
            po_number=row["po_number"],
            vendor_name=row["vendor_name"],
            country=row["country"],
            currency=row["currency"],
            state=TransactionState(row["state"]),
            last_reconciled_at=row["last_reconciled_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transactionKey": self.transaction_key,
            "state": self.state.value,
            "poNumber": self.po_number,
            "vendorName": self.vendor_name,
            "country": self.country,
            "currency": self.currency,
            "lastReconciledAt": self.last_reconciled_at,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class LinkedDocument:
    """A document as attached to a transaction."""

    document: DocumentRecord
    role: DocumentRole
    attached_at: str
    has_open_review: bool = False


@dataclass
class CheckRecord:
    """Latest persisted result of one reconciliation check."""

    transaction_id: str
    check_type: CheckType
    status: CheckStatus
    details: dict[str, Any]
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "CheckRecord":
        """Create from database row."""
        return cls(
            transaction_id=row["transaction_id"],
            check_type=CheckType(row["check_type"]),
            status=CheckStatus(row["status"]),
            details=json.loads(row["details"]) if row["details"] else {},
            created_at=row["created_at"],
        )

    def to_dict(self) -> dict:
        return {
            "checkType": self.check_type.value,
            "status": self.status.value,
            "details": self.details,
            "createdAt": self.created_at,
        }


@dataclass
class AuditEventRecord:
    """Append-only audit event."""

    id: int
    transaction_id: str | None
    document_id: str | None
    event_type: AuditEventType
    message: str
    meta: dict[str, Any]
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "AuditEventRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            transaction_id=row["transaction_id"],
            document_id=row["document_id"],
            event_type=AuditEventType(row["event_type"]),
            message=row["message"],
            meta=json.loads(row["meta"]) if row["meta"] else {},
            created_at=row["created_at"],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transactionId": self.transaction_id,
            "documentId": self.document_id,
            "eventType": self.event_type.value,
            "message": self.message,
            "meta": self.meta,
            "createdAt": self.created_at,
        }


@dataclass
class ManualReviewRecord:
    """Manual review task for a document that failed processing."""

    id: str
    document_id: str
    reason: str
    status: ManualReviewStatus
    notes: str | None
    created_at: str
    resolved_at: str | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ManualReviewRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            document_id=row["document_id"],
            reason=row["reason"],
            status=ManualReviewStatus(row["status"]),
            notes=row["notes"],
            created_at=row["created_at"],
            resolved_at=row["resolved_at"],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "documentId": self.document_id,
            "reason": self.reason,
            "status": self.status.value,
            "notes": self.notes,
            "createdAt": self.created_at,
            "resolvedAt": self.resolved_at,
        }


class StateStore:
    """
    SQLite-based state store for the reconciliation pipeline.

    Provides persistent tracking of:
    - Discovered documents (unique by content hash)
    - Transactions (unique by transaction key) and their document links
    - Reconciliation checks (one row per transaction and check type)
    - Audit events (append-only)
    - Manual review items

    Every public method opens its own connection, so a single StateStore
    may be shared by reader threads.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            # Schema version tracking
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """
            )

            # Documents table
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    sha256 TEXT NOT NULL UNIQUE,
                    source_path TEXT NOT NULL,
                    file_name TEXT NOT NULL,
                    mime_type TEXT,
                    size_bytes INTEGER NOT NULL,
                    status TEXT NOT NULL DEFAULT 'NEW',
                    doc_type TEXT NOT NULL DEFAULT 'UNKNOWN',
                    confidence REAL,
                    extracted_json TEXT,  -- canonical ExtractedDocument JSON
                    raw_text TEXT,
                    error_message TEXT,
                    po_number TEXT,
                    invoice_number TEXT,
                    grn_number TEXT,
                    vendor_name TEXT,
                    vendor_id TEXT,
                    country TEXT,
                    currency TEXT,
                    doc_date TEXT,
                    due_date TEXT,
                    total_amount REAL,
                    tax_amount REAL,
                    first_seen_at TEXT NOT NULL,
                    processed_at TEXT,
                    updated_at TEXT NOT NULL,
                    claim_token TEXT,
                    claimed_at TEXT,
                    version INTEGER NOT NULL DEFAULT 0
                )
            """
            )

            # Transactions table
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    transaction_key TEXT NOT NULL UNIQUE,
                    po_number TEXT,
                    vendor_name TEXT,
                    country TEXT,
                    currency TEXT,
                    state TEXT NOT NULL DEFAULT 'WAITING_FOR_INVOICE_AND_GRN',
                    last_reconciled_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """
            )

            # Transaction-document links
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS transaction_documents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    transaction_id TEXT NOT NULL,
                    document_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE (transaction_id, document_id),
                    FOREIGN KEY (transaction_id) REFERENCES transactions(id) ON DELETE CASCADE,
                    FOREIGN KEY (document_id) REFERENCES documents(id) ON DELETE CASCADE
                )
            """
            )

            # Reconciliation checks (latest evaluation only)
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS reconciliation_checks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    transaction_id TEXT NOT NULL,
                    check_type TEXT NOT NULL,
                    status TEXT NOT NULL,
                    details TEXT NOT NULL DEFAULT '{}',  -- JSON object
                    created_at TEXT NOT NULL,
                    UNIQUE (transaction_id, check_type),
                    FOREIGN KEY (transaction_id) REFERENCES transactions(id) ON DELETE CASCADE
                )
            """
            )

            # Audit events (append-only)
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS audit_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    transaction_id TEXT,
                    document_id TEXT,
                    event_type TEXT NOT NULL,
                    message TEXT NOT NULL,
                    meta TEXT NOT NULL DEFAULT '{}',  -- JSON object
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (transaction_id) REFERENCES transactions(id) ON DELETE SET NULL,
                    FOREIGN KEY (document_id) REFERENCES documents(id) ON DELETE SET NULL
                )
            """
            )

            # Manual review items
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS manual_review_items (
                    id TEXT PRIMARY KEY,
                    document_id TEXT NOT NULL,
                    reason TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'OPEN',
                    notes TEXT,
                    created_at TEXT NOT NULL,
                    resolved_at TEXT,
                    FOREIGN KEY (document_id) REFERENCES documents(id) ON DELETE CASCADE
                )
            """
            )

            # Create indexes
            conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_po_number ON documents(po_number)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_invoice_number "
                "ON documents(invoice_number)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_transactions_state ON transactions(state)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_audit_events_transaction_id "
                "ON audit_events(transaction_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_manual_review_document_id "
                "ON manual_review_items(document_id)"
            )

            # Set schema version
            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (self.SCHEMA_VERSION,)
            )

    # Document methods

    def get_document(self, document_id: str) -> DocumentRecord | None:
        """Get a document record by ID."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
            return DocumentRecord.from_row(row) if row else None

    def get_document_by_sha256(self, sha256: str) -> DocumentRecord | None:
        """Get a document record by content hash."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM documents WHERE sha256 = ?", (sha256,)).fetchone()
            return DocumentRecord.from_row(row) if row else None

    def create_document(
        self,
        source_path: str,
        file_name: str,
        sha256: str,
        mime_type: str | None,
        size_bytes: int,
    ) -> DocumentRecord:
        """Insert a newly discovered document with status NEW."""
        now = _now()
        document_id = _new_id()

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO documents
                (id, sha256, source_path, file_name, mime_type, size_bytes, status, doc_type,
                 first_seen_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    document_id,
                    sha256,
                    source_path,
                    file_name,
                    mime_type,
                    size_bytes,
                    DocumentStatus.NEW.value,
                    DocumentType.UNKNOWN.value,
                    now,
                    now,
                ),
            )
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
            return DocumentRecord.from_row(row)

    def touch_document_metadata(
        self,
        document_id: str,
        source_path: str,
        file_name: str,
        mime_type: str | None,
        size_bytes: int,
    ) -> None:
        """Refresh location metadata of a re-discovered document. Status is untouched."""
        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE documents
                SET source_path = ?, file_name = ?, mime_type = ?, size_bytes = ?, updated_at = ?
                WHERE id = ?
            """,
                (source_path, file_name, mime_type, size_bytes, _now(), document_id),
            )

    def count_unique_documents(self) -> int:
        """Count distinct content hashes on record."""
        with self._transaction() as conn:
            row = conn.execute("SELECT COUNT(DISTINCT sha256) AS n FROM documents").fetchone()
            return row["n"]

    def count_documents(self, status: DocumentStatus | None = None) -> int:
        """Count documents, optionally filtered by status."""
        with self._transaction() as conn:
            if status:
                row = conn.execute(
                    "SELECT COUNT(*) AS n FROM documents WHERE status = ?", (status.value,)
                ).fetchone()
            else:
                row = conn.execute("SELECT COUNT(*) AS n FROM documents").fetchone()
            return row["n"]

    def list_documents(
        self,
        status: DocumentStatus | None = None,
        doc_type: DocumentType | None = None,
        q: str | None = None,
        confidence_below: float | None = None,
        limit: int = 500,
    ) -> list[DocumentRecord]:
        """
        List documents, most recently updated first.

        Args:
            q: Case-insensitive substring of file name, vendor, PO or invoice number
            confidence_below: Only documents with a confidence strictly below this
        """
        sql = "SELECT * FROM documents WHERE 1 = 1"
        params: list[Any] = []
        if status:
            sql += " AND status = ?"
            params.append(status.value)
        if doc_type:
            sql += " AND doc_type = ?"
            params.append(doc_type.value)
        if confidence_below is not None:
            sql += " AND confidence < ?"
            params.append(confidence_below)
        if q:
            sql += """
              AND (file_name LIKE ? OR vendor_name LIKE ? OR po_number LIKE ?
                   OR invoice_number LIKE ?)
            """
            params.extend([f"%{q}%"] * 4)
        sql += " ORDER BY updated_at DESC, rowid DESC LIMIT ?"
        params.append(limit)

        with self._transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [DocumentRecord.from_row(row) for row in rows]

    def list_pending_documents(self, limit: int, include_failed: bool = False) -> list[DocumentRecord]:
        """
        List documents awaiting processing, oldest first.

        Args:
            limit: Maximum number of documents
            include_failed: Also return FAILED documents (retry)
        """
        statuses = [DocumentStatus.NEW.value]
        if include_failed:
            statuses.append(DocumentStatus.FAILED.value)
        placeholders = ", ".join("?" for _ in statuses)

        with self._transaction() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM documents
                WHERE status IN ({placeholders})
                ORDER BY first_seen_at ASC, rowid ASC
                LIMIT ?
            """,
                (*statuses, limit),
            ).fetchall()
            return [DocumentRecord.from_row(row) for row in rows]

    def claim_document(
        self,
        document_id: str,
        expected_version: int,
        statuses: Iterable[DocumentStatus] | None = None,
        stale_after_seconds: float | None = None,
    ) -> str | None:
        """
        Atomically claim a document for processing.

        The claim succeeds only if the document still has the version the
        caller read and is not held by another run. A claim older than
        stale_after_seconds counts as abandoned and may be taken over.
        When statuses is given, the document must still have one of them.

        Returns:
            Claim token on success, None if the document could not be claimed
        """
        token = _new_id()
        now = _now()

        sql = """
            UPDATE documents
            SET claim_token = ?, claimed_at = ?, version = version + 1
            WHERE id = ? AND version = ?
        """
        params: list[Any] = [token, now, document_id, expected_version]

        if stale_after_seconds:
            sql += " AND (claim_token IS NULL OR claimed_at < ?)"
            params.append(_now(stale_after_seconds))
        else:
            sql += " AND claim_token IS NULL"

        if statuses is not None:
            status_values = [s.value for s in statuses]
            sql += f" AND status IN ({', '.join('?' for _ in status_values)})"
            params.extend(status_values)

        with self._transaction() as conn:
            cursor = conn.execute(sql, params)
            return token if cursor.rowcount == 1 else None

    def mark_document_processed(
        self, document_id: str, raw_text: str, extracted: ExtractedDocument
    ) -> DocumentRecord:
        """Persist extraction results, set PROCESSED and release the claim."""
        now = _now()

        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE documents
                SET status = ?, raw_text = ?, doc_type = ?, confidence = ?, extracted_json = ?,
                    po_number = ?, invoice_number = ?, grn_number = ?, vendor_name = ?,
                    vendor_id = ?, country = ?, currency = ?, doc_date = ?, due_date = ?,
                    total_amount = ?, tax_amount = ?, error_message = NULL,
                    processed_at = ?, updated_at = ?, claim_token = NULL, claimed_at = NULL
                WHERE id = ?
            """,
                (
                    DocumentStatus.PROCESSED.value,
                    raw_text,
                    extracted.doc_type.value,
                    extracted.confidence,
                    json.dumps(extracted.to_dict()),
                    _or_none(extracted.po_number),
                    _or_none(extracted.invoice_number),
                    _or_none(extracted.grn_number),
                    _or_none(extracted.vendor_name),
                    _or_none(extracted.vendor_id),
                    _or_none(extracted.country),
                    _or_none(extracted.currency),
                    _or_none(extracted.doc_date),
                    _or_none(extracted.due_date),
                    extracted.total_amount,
                    extracted.tax_amount,
                    now,
                    now,
                    document_id,
                ),
            )
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
            return DocumentRecord.from_row(row)

    def mark_document_failed(self, document_id: str, message: str) -> DocumentRecord:
        """Set FAILED with an error message and release the claim."""
        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE documents
                SET status = ?, error_message = ?, updated_at = ?,
                    claim_token = NULL, claimed_at = NULL
                WHERE id = ?
            """,
                (DocumentStatus.FAILED.value, message, _now(), document_id),
            )
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
            return DocumentRecord.from_row(row)

    def release_claim(self, document_id: str) -> bool:
        """
        Drop a held claim without touching status.

        Returns:
            True if a claim was released
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE documents SET claim_token = NULL, claimed_at = NULL
                WHERE id = ? AND claim_token IS NOT NULL
            """,
                (document_id,),
            )
            return cursor.rowcount == 1

    def find_latest_processed_po(self, po_number: str) -> DocumentRecord | None:
        """Most recently updated processed PO document with this PO number."""
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT * FROM documents
                WHERE po_number = ? AND doc_type = ? AND status = ?
                ORDER BY updated_at DESC, rowid DESC
                LIMIT 1
            """,
                (po_number, DocumentType.PURCHASE_ORDER.value, DocumentStatus.PROCESSED.value),
            ).fetchone()
            return DocumentRecord.from_row(row) if row else None

    # Transaction methods

    def get_transaction(self, transaction_id: str) -> TransactionRecord | None:
        """Get a transaction by ID."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM transactions WHERE id = ?", (transaction_id,)
            ).fetchone()
            return TransactionRecord.from_row(row) if row else None

    def get_transaction_by_key(self, transaction_key: str) -> TransactionRecord | None:
        """Get a transaction by its grouping key."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM transactions WHERE transaction_key = ?", (transaction_key,)
            ).fetchone()
            return TransactionRecord.from_row(row) if row else None

    def upsert_transaction(
        self,
        transaction_key: str,
        po_number: str = "",
        vendor_name: str = "",
        country: str = "",
        currency: str = "",
    ) -> TransactionRecord:
        """
        Create the transaction for a key, or fill its blank representative fields.

        Existing non-blank fields are never overwritten, and a blank input
        never clears a populated field.
        """
        now = _now()

        with self._transaction() as conn:
            existing = conn.execute(
                "SELECT * FROM transactions WHERE transaction_key = ?", (transaction_key,)
            ).fetchone()

            if existing:
                conn.execute(
                    """
                    UPDATE transactions
                    SET po_number = ?, vendor_name = ?, country = ?, currency = ?, updated_at = ?
                    WHERE id = ?
                """,
                    (
                        existing["po_number"] or _or_none(po_number),
                        existing["vendor_name"] or _or_none(vendor_name),
                        existing["country"] or _or_none(country),
                        existing["currency"] or _or_none(currency),
                        now,
                        existing["id"],
                    ),
                )
                transaction_id = existing["id"]
            else:
                transaction_id = _new_id()
                conn.execute(
                    """
                    INSERT INTO transactions
                    (id, transaction_key, po_number, vendor_name, country, currency, state,
                     created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        transaction_id,
                        transaction_key,
                        _or_none(po_number),
                        _or_none(vendor_name),
                        _or_none(country),
                        _or_none(currency),
                        TransactionState.WAITING_FOR_INVOICE_AND_GRN.value,
                        now,
                        now,
                    ),
                )

            row = conn.execute(
                "SELECT * FROM transactions WHERE id = ?", (transaction_id,)
            ).fetchone()
            return TransactionRecord.from_row(row)

    def update_transaction_state(
        self,
        transaction_id: str,
        state: TransactionState,
        po_number: str | None,
        vendor_name: str | None,
        country: str | None,
        currency: str | None,
    ) -> TransactionRecord:
        """Persist a recomputed state and representative fields."""
        now = _now()

        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE transactions
                SET state = ?, po_number = ?, vendor_name = ?, country = ?, currency = ?,
                    last_reconciled_at = ?, updated_at = ?
                WHERE id = ?
            """,
                (state.value, po_number, vendor_name, country, currency, now, now, transaction_id),
            )
            row = conn.execute(
                "SELECT * FROM transactions WHERE id = ?", (transaction_id,)
            ).fetchone()
            return TransactionRecord.from_row(row)

    def count_transactions(self, exclude_state: TransactionState | None = None) -> int:
        """Count transactions, optionally excluding one state."""
        with self._transaction() as conn:
            if exclude_state:
                row = conn.execute(
                    "SELECT COUNT(*) AS n FROM transactions WHERE state <> ?",
                    (exclude_state.value,),
                ).fetchone()
            else:
                row = conn.execute("SELECT COUNT(*) AS n FROM transactions").fetchone()
            return row["n"]

    def get_state_breakdown(self) -> list[tuple[TransactionState, int]]:
        """Transaction count per state, ordered by state name."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT state, COUNT(*) AS n FROM transactions
                GROUP BY state ORDER BY state ASC
            """
            ).fetchall()
            return [(TransactionState(row["state"]), row["n"]) for row in rows]

    def list_transactions(
        self,
        state: TransactionState | None = None,
        exclude_state: TransactionState | None = None,
        vendor: str | None = None,
        country: str | None = None,
        currency: str | None = None,
        q: str | None = None,
        limit: int = 500,
    ) -> list[TransactionRecord]:
        """
        List transactions, most recently updated first.

        Args:
            vendor: Case-insensitive substring of the vendor name
            country: Exact country code
            currency: Exact currency code
            q: Case-insensitive substring of key, PO number or vendor name
        """
        sql = "SELECT * FROM transactions WHERE 1 = 1"
        params: list[Any] = []
        if state:
            sql += " AND state = ?"
            params.append(state.value)
        if exclude_state:
            sql += " AND state <> ?"
            params.append(exclude_state.value)
        if vendor:
            sql += " AND vendor_name LIKE ?"
            params.append(f"%{vendor}%")
        if country:
            sql += " AND country = ?"
            params.append(country)
        if currency:
            sql += " AND currency = ?"
            params.append(currency)
        if q:
            sql += " AND (transaction_key LIKE ? OR po_number LIKE ? OR vendor_name LIKE ?)"
            params.extend([f"%{q}%"] * 3)
        sql += " ORDER BY updated_at DESC, rowid DESC LIMIT ?"
        params.append(limit)

        with self._transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [TransactionRecord.from_row(row) for row in rows]

    # Transaction-document link methods

    def attach_document(self, transaction_id: str, document_id: str, role: DocumentRole) -> bool:
        """
        Attach a document to a transaction.

        Returns:
            True if a new link was created, False if it already existed
            (the original role is kept)
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO transaction_documents
                (transaction_id, document_id, role, created_at)
                VALUES (?, ?, ?, ?)
            """,
                (transaction_id, document_id, role.value, _now()),
            )
            return cursor.rowcount == 1

    def get_transaction_documents(self, transaction_id: str) -> list[LinkedDocument]:
        """Documents attached to a transaction, in attach order."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT d.*, td.role AS link_role, td.created_at AS link_created_at,
                    EXISTS (
                        SELECT 1 FROM manual_review_items mri
                        WHERE mri.document_id = d.id AND mri.status = 'OPEN'
                    ) AS has_open_review
                FROM transaction_documents td
                JOIN documents d ON d.id = td.document_id
                WHERE td.transaction_id = ?
                ORDER BY td.id ASC
            """,
                (transaction_id,),
            ).fetchall()
            return [
                LinkedDocument(
                    document=DocumentRecord.from_row(row),
                    role=DocumentRole(row["link_role"]),
                    attached_at=row["link_created_at"],
                    has_open_review=bool(row["has_open_review"]),
                )
                for row in rows
            ]

    def get_transaction_ids_for_document(self, document_id: str) -> list[str]:
        """IDs of all transactions a document is attached to."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT transaction_id FROM transaction_documents WHERE document_id = ? "
                "ORDER BY id ASC",
                (document_id,),
            ).fetchall()
            return [row["transaction_id"] for row in rows]

    # Reconciliation check methods

    def upsert_checks(self, transaction_id: str, checks: Iterable[dict[str, Any]]) -> None:
        """
        Overwrite the latest check results of a transaction.

        Args:
            checks: Serialized check results ({"checkType", "status", "details"})
        """
        now = _now()

        with self._transaction() as conn:
            for check in checks:
                conn.execute(
                    """
                    INSERT INTO reconciliation_checks
                    (transaction_id, check_type, status, details, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT (transaction_id, check_type) DO UPDATE SET
                        status = excluded.status,
                        details = excluded.details,
                        created_at = excluded.created_at
                """,
                    (
                        transaction_id,
                        check["checkType"],
                        check["status"],
                        json.dumps(check.get("details") or {}),
                        now,
                    ),
                )

    def get_checks(self, transaction_id: str) -> list[CheckRecord]:
        """Latest check results of a transaction, ordered by check type."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM reconciliation_checks WHERE transaction_id = ? "
                "ORDER BY check_type ASC",
                (transaction_id,),
            ).fetchall()
            return [CheckRecord.from_row(row) for row in rows]

    # Audit event methods

    def add_audit_event(
        self,
        event_type: AuditEventType,
        message: str,
        transaction_id: str | None = None,
        document_id: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> AuditEventRecord:
        """Append an audit event. Events are never updated or deleted."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO audit_events
                (transaction_id, document_id, event_type, message, meta, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    transaction_id,
                    document_id,
                    event_type.value,
                    message,
                    json.dumps(meta or {}),
                    _now(),
                ),
            )
            row = conn.execute(
                "SELECT * FROM audit_events WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
            return AuditEventRecord.from_row(row)

    def get_audit_events(
        self,
        transaction_id: str | None = None,
        document_id: str | None = None,
        limit: int = 200,
    ) -> list[AuditEventRecord]:
        """Audit events for a transaction and/or document, newest first."""
        sql = "SELECT * FROM audit_events WHERE 1 = 1"
        params: list[Any] = []
        if transaction_id:
            sql += " AND transaction_id = ?"
            params.append(transaction_id)
        if document_id:
            sql += " AND document_id = ?"
            params.append(document_id)
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        with self._transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [AuditEventRecord.from_row(row) for row in rows]

    # Manual review methods

    def create_manual_review_item(self, document_id: str, reason: str) -> ManualReviewRecord:
        """Open a manual review item for a document."""
        review_id = _new_id()

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO manual_review_items (id, document_id, reason, status, created_at)
                VALUES (?, ?, ?, ?, ?)
            """,
                (review_id, document_id, reason, ManualReviewStatus.OPEN.value, _now()),
            )
            row = conn.execute(
                "SELECT * FROM manual_review_items WHERE id = ?", (review_id,)
            ).fetchone()
            return ManualReviewRecord.from_row(row)

    def get_manual_review_items(
        self,
        document_id: str | None = None,
        status: ManualReviewStatus | None = None,
    ) -> list[ManualReviewRecord]:
        """List manual review items, oldest first."""
        sql = "SELECT * FROM manual_review_items WHERE 1 = 1"
        params: list[Any] = []
        if document_id:
            sql += " AND document_id = ?"
            params.append(document_id)
        if status:
            sql += " AND status = ?"
            params.append(status.value)
        sql += " ORDER BY created_at ASC, rowid ASC"

        with self._transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [ManualReviewRecord.from_row(row) for row in rows]

    def resolve_manual_reviews(
        self,
        transaction_id: str,
        document_id: str | None = None,
        notes: str = "",
    ) -> int:
        """
        Resolve open review items for one attached document or for all
        documents of a transaction.

        A single document does not need to be attached yet: documents that
        fail before routing still carry open items. A document attached only
        to other transactions is left untouched. Empty notes keep any notes
        already stored on the item.

        Returns:
            Number of items resolved
        """
        sql = """
            UPDATE manual_review_items
            SET status = ?, resolved_at = ?, notes = COALESCE(NULLIF(?, ''), notes)
            WHERE status = ?
        """
        params: list[Any] = [
            ManualReviewStatus.RESOLVED.value,
            _now(),
            notes.strip(),
            ManualReviewStatus.OPEN.value,
        ]
        if document_id:
            sql += """
              AND document_id = ?
              AND (
                  document_id IN (
                      SELECT document_id FROM transaction_documents WHERE transaction_id = ?
                  )
                  OR document_id NOT IN (SELECT document_id FROM transaction_documents)
              )
            """
            params.extend([document_id, transaction_id])
        else:
            sql += """
              AND document_id IN (
                  SELECT document_id FROM transaction_documents WHERE transaction_id = ?
              )
            """
            params.append(transaction_id)

        with self._transaction() as conn:
            cursor = conn.execute(sql, params)
            return cursor.rowcount

    def get_latest_review_resolution(self, transaction_id: str) -> ManualReviewRecord | None:
        """Most recently resolved review item among a transaction's documents."""
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT mri.* FROM manual_review_items mri
                JOIN transaction_documents td ON td.document_id = mri.document_id
                WHERE td.transaction_id = ? AND mri.status = ?
                ORDER BY mri.resolved_at DESC, mri.rowid DESC
                LIMIT 1
            """,
                (transaction_id, ManualReviewStatus.RESOLVED.value),
            ).fetchone()
            return ManualReviewRecord.from_row(row) if row else None
