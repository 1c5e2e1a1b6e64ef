"""Ingest pipeline orchestration.

Ties the pipeline together:
- Registers raw files by content hash (idempotent re-discovery)
- Claims pending documents atomically before processing
- Extracts text and canonical fields (two-pass for invoices with a known PO)
- Routes documents into transactions and writes document artifacts
- Recomputes checks and state and writes the transaction rollup
- Converts any per-document failure into a FAILED document plus manual review
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from ..ai import build_completion_client
from ..audit import AuditRecorder
from ..errors import DocumentNotFoundError, ExtractionError, TransactionNotFoundError
from ..extractors import FieldExtractionEngine
from ..ingest import (
    ExtractionMethod,
    ScannedFile,
    TextExtractionResult,
    extract_text_from_file,
    scan_raw_directory,
)
from ..reconciliation import (
    ReconciliationDocument,
    compute_checks_for_transaction,
    compute_state,
    summarize_issue,
)
from ..routing import TransactionRouter
from ..schemas.domain import AuditEventType, DocumentStatus, DocumentType
from ..schemas.extracted_document import ExtractedDocument
from ..state_store import DocumentRecord, LinkedDocument, StateStore, TransactionRecord
from ..storage import ArtifactWriter, build_blob_store

if TYPE_CHECKING:
    from ..config import Config
    from ..storage import BlobStore

logger = logging.getLogger(__name__)

PROCESS_STAGE = "processPendingDocuments"

REPRESENTATIVE_DOC_TYPES = (
    DocumentType.PURCHASE_ORDER,
    DocumentType.INVOICE,
    DocumentType.GOODS_RECEIPT,
)


@dataclass
class ScanSummary:
    """Result of a scan-and-register run."""

    scanned: int = 0
    discovered: int = 0
    already_processed: int = 0
    retriable_existing: int = 0
    unique_documents_in_db: int = 0

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "discovered": self.discovered,
            "alreadyProcessed": self.already_processed,
            "retriableExisting": self.retriable_existing,
            "uniqueDocumentsInDb": self.unique_documents_in_db,
        }


@dataclass
class ProcessSummary:
    """Result of a process-pending run."""

    requested_limit: int
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    scanned_candidates: int = 0

    def to_dict(self) -> dict:
        return {
            "requestedLimit": self.requested_limit,
            "processed": self.processed,
            "failed": self.failed,
            "skipped": self.skipped,
            "scannedCandidates": self.scanned_candidates,
        }


def select_representative(linked: list[LinkedDocument]) -> DocumentRecord | None:
    """First PO, else first invoice, else first GRN, else the first attached document."""
    for doc_type in REPRESENTATIVE_DOC_TYPES:
        for link in linked:
            if link.document.doc_type == doc_type:
                return link.document
    return linked[0].document if linked else None


def build_rollup(
    transaction: TransactionRecord,
    checks: list[dict[str, Any]],
    linked: list[LinkedDocument],
) -> dict[str, Any]:
    """Serialize the transaction rollup snapshot."""
    return {
        "transaction": {
            "id": transaction.id,
            "transactionKey": transaction.transaction_key,
            "state": transaction.state.value,
            "issueSummary": summarize_issue(transaction.state),
            "lastReconciledAt": transaction.last_reconciled_at,
            "updatedAt": transaction.updated_at,
            "poNumber": transaction.po_number,
            "vendorName": transaction.vendor_name,
            "country": transaction.country,
            "currency": transaction.currency,
        },
        "checks": checks,
        "documents": [
            {
                "documentId": link.document.id,
                "fileName": link.document.file_name,
                "role": link.role.value,
                "docType": link.document.doc_type.value,
                "status": link.document.status.value,
                "confidence": link.document.confidence,
                "poNumber": link.document.po_number,
                "invoiceNumber": link.document.invoice_number,
                "grnNumber": link.document.grn_number,
                "updatedAt": link.document.updated_at,
            }
            for link in linked
        ],
    }


class IngestPipeline:
    """Orchestrates scanning, extraction, routing and reconciliation.

    Documents are processed one at a time, in order. A failure while
    processing one document never aborts the batch: the document is
    marked FAILED, a manual review item is opened and the batch moves on.

    Usage:
        pipeline = build_pipeline(config)
        pipeline.scan_and_register()
        summary = pipeline.process_pending()
    """

    def __init__(
        self,
        config: Config,
        store: StateStore,
        engine: FieldExtractionEngine,
        blob_store: BlobStore,
        scanner: Callable[..., list[ScannedFile]] = scan_raw_directory,
        text_extractor: Callable[..., TextExtractionResult] = extract_text_from_file,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Application configuration.
            store: State store for persistence.
            engine: Field extraction engine (AI or heuristic).
            blob_store: Artifact storage backend.
            scanner: Raw file discovery function.
            text_extractor: Extension-keyed text extraction function.
        """
        self.config = config
        self.store = store
        self.engine = engine
        self.scanner = scanner
        self.text_extractor = text_extractor
        self.router = TransactionRouter(store)
        self.artifacts = ArtifactWriter(blob_store)
        self.audit = AuditRecorder(store)

    # Scan

    def scan_and_register(self) -> ScanSummary:
        """Register raw files by content hash.

        Unseen hashes become NEW documents. Known hashes only get their
        location metadata refreshed; their status is never touched.
        """
        scanned_files = self.scanner(self.config.storage.raw_data_dir)
        summary = ScanSummary(scanned=len(scanned_files))

        for scanned in scanned_files:
            existing = self.store.get_document_by_sha256(scanned.sha256)

            if existing is None:
                created = self.store.create_document(
                    source_path=scanned.source_path,
                    file_name=scanned.file_name,
                    sha256=scanned.sha256,
                    mime_type=scanned.mime_type,
                    size_bytes=scanned.size_bytes,
                )
                summary.discovered += 1
                self.audit.record(
                    AuditEventType.DISCOVERED,
                    f"Discovered raw document {scanned.file_name}",
                    document_id=created.id,
                    meta={"sourcePath": scanned.source_path, "sha256": scanned.sha256},
                )
                continue

            self.store.touch_document_metadata(
                existing.id,
                source_path=scanned.source_path,
                file_name=scanned.file_name,
                mime_type=scanned.mime_type,
                size_bytes=scanned.size_bytes,
            )
            if existing.status == DocumentStatus.PROCESSED:
                summary.already_processed += 1
            else:
                summary.retriable_existing += 1

        summary.unique_documents_in_db = self.store.count_unique_documents()
        logger.info(
            "Scan complete: %d scanned, %d discovered, %d already processed, %d retriable",
            summary.scanned,
            summary.discovered,
            summary.already_processed,
            summary.retriable_existing,
        )
        return summary

    # Process

    def process_pending(
        self,
        limit: int | None = None,
        retry_failed: bool = False,
        document_id: str | None = None,
    ) -> ProcessSummary:
        """Process a batch of pending documents, or one forced document.

        Args:
            limit: Maximum batch size (default: processing.batch_size).
            retry_failed: Also pick up FAILED documents.
            document_id: Process exactly this document, whatever its status.

        Raises:
            DocumentNotFoundError: If document_id is given but unknown.
        """
        if limit is None:
            limit = self.config.processing.batch_size
        forced = document_id is not None

        if forced:
            document = self.store.get_document(document_id)
            if document is None:
                raise DocumentNotFoundError(document_id)
            candidates = [document]
            claim_statuses = None
        else:
            candidates = self.store.list_pending_documents(limit, include_failed=retry_failed)
            claim_statuses = [DocumentStatus.NEW]
            if retry_failed:
                claim_statuses.append(DocumentStatus.FAILED)

        summary = ProcessSummary(requested_limit=limit, scanned_candidates=len(candidates))

        for document in candidates:
            if not forced and document.status == DocumentStatus.PROCESSED:
                summary.skipped += 1
                continue

            token = self.store.claim_document(
                document.id,
                expected_version=document.version,
                statuses=claim_statuses,
                stale_after_seconds=self.config.processing.claim_timeout_seconds,
            )
            if token is None:
                logger.info("Document %s is claimed by another run, skipping", document.id)
                summary.skipped += 1
                continue

            try:
                self._process_document(document)
                summary.processed += 1
            except Exception as e:
                summary.failed += 1
                logger.exception("Processing failed for %s: %s", document.file_name, e)
                self._record_failure(document, e)

        logger.info(
            "Processing complete: %d processed, %d failed, %d skipped of %d candidates",
            summary.processed,
            summary.failed,
            summary.skipped,
            summary.scanned_candidates,
        )
        return summary

    def rerun_for_document(self, document_id: str) -> ProcessSummary:
        """Force reprocessing of one document, whatever its status."""
        return self.process_pending(limit=1, retry_failed=True, document_id=document_id)

    def _process_document(self, document: DocumentRecord) -> None:
        self.audit.record(
            AuditEventType.INGESTED,
            f"Processing document {document.file_name}",
            document_id=document.id,
            meta={"sourcePath": document.source_path},
        )

        extraction = self.text_extractor(document.source_path)
        logger.debug("Extracted %d chars from %s", len(extraction.text), document.file_name)
        extracted = self._extract_fields(extraction.text, document.file_name)

        if extraction.method == ExtractionMethod.PDF_STUB and not (
            extracted.po_number or extracted.invoice_number or extracted.grn_number
        ):
            raise ExtractionError(
                f"Critical fields missing from {document.file_name}: "
                "PDF text is not extracted and no PO, invoice or GRN number was found"
            )

        processed = self.store.mark_document_processed(document.id, extraction.text, extracted)
        self.audit.record(
            AuditEventType.EXTRACTED,
            f"Extraction completed for {document.file_name}",
            document_id=processed.id,
            meta={
                "docType": extracted.doc_type.value,
                "confidence": extracted.confidence,
                "poNumber": extracted.po_number,
                "invoiceNumber": extracted.invoice_number,
                "grnNumber": extracted.grn_number,
            },
        )

        routing = self.router.route(processed, extracted)
        self.audit.record(
            AuditEventType.ROUTED,
            f"Document attached to transaction {routing.transaction_key}",
            transaction_id=routing.transaction.id,
            document_id=processed.id,
            meta={"role": routing.role.value},
        )

        self.artifacts.sync_document_artifacts(
            transaction_key=routing.transaction_key,
            source_path=processed.source_path,
            file_name=processed.file_name,
            document_id=processed.id,
            extracted=extracted,
        )

        self.recompute_transaction(routing.transaction.id)

    def _extract_fields(self, raw_text: str, file_name: str) -> ExtractedDocument:
        """Run the engine, re-running invoices against their PO's extracted record."""
        extracted = self.engine.extract(raw_text, file_name)

        if extracted.doc_type == DocumentType.INVOICE and extracted.po_number:
            po_document = self.store.find_latest_processed_po(extracted.po_number)
            po_context = po_document.extracted if po_document else None
            if po_context is not None:
                logger.debug(
                    "Second extraction pass for %s with PO %s as context",
                    file_name,
                    extracted.po_number,
                )
                extracted = self.engine.extract(raw_text, file_name, po_context=po_context)

        return extracted

    def _record_failure(self, document: DocumentRecord, error: Exception) -> None:
        """Mark a document FAILED and open a manual review item."""
        message = str(error) or error.__class__.__name__

        try:
            failed = self.store.mark_document_failed(document.id, message)
            self.store.create_manual_review_item(failed.id, message)
            self.audit.record(
                AuditEventType.MANUAL_REVIEW_REQUIRED,
                f"Manual review required for {document.file_name}",
                document_id=failed.id,
                meta={"reason": message},
            )
            self.audit.record(
                AuditEventType.ERROR,
                message,
                document_id=failed.id,
                meta={"stage": PROCESS_STAGE},
            )
        except Exception as e:
            logger.error("Could not record failure of document %s: %s", document.id, e)
            try:
                self.store.release_claim(document.id)
            except Exception as release_error:
                logger.error(
                    "Document %s stays claimed until the claim timeout: %s",
                    document.id,
                    release_error,
                )
            return

        # A reprocessed document may already belong to transactions
        for transaction_id in self.store.get_transaction_ids_for_document(document.id):
            try:
                self.recompute_transaction(transaction_id)
            except Exception as e:
                logger.error("Recompute of transaction %s failed: %s", transaction_id, e)

    # Recompute

    def recompute_transaction(self, transaction_id: str) -> TransactionRecord:
        """Recompute checks and state of a transaction from its attached documents.

        Raises:
            TransactionNotFoundError: If the transaction does not exist.
        """
        transaction = self.store.get_transaction(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)

        linked = self.store.get_transaction_documents(transaction_id)
        computation = compute_checks_for_transaction(
            [ReconciliationDocument.from_record(link.document) for link in linked],
            confidence_threshold=self.config.reconciliation.confidence_threshold,
            amount_tolerance_pct=self.config.reconciliation.amount_tolerance_pct,
        )
        state = compute_state(computation.flags)

        representative = select_representative(linked)
        if representative is not None:
            po_number = representative.po_number or transaction.po_number
            vendor_name = representative.vendor_name or transaction.vendor_name
            country = representative.country or transaction.country
            currency = representative.currency or transaction.currency
        else:
            po_number = transaction.po_number
            vendor_name = transaction.vendor_name
            country = transaction.country
            currency = transaction.currency

        updated = self.store.update_transaction_state(
            transaction_id,
            state,
            po_number=po_number,
            vendor_name=vendor_name,
            country=country,
            currency=currency,
        )

        checks = [check.to_dict() for check in computation.checks]
        self.store.upsert_checks(transaction_id, checks)
        self.artifacts.write_transaction_rollup(
            transaction.transaction_key, build_rollup(updated, checks, linked)
        )

        self.audit.record(
            AuditEventType.STATE_UPDATED,
            f"State updated to {updated.state.value}",
            transaction_id=transaction_id,
            meta={"state": updated.state.value},
        )
        self.audit.record(
            AuditEventType.RECONCILED,
            "Reconciliation checks recomputed",
            transaction_id=transaction_id,
            meta={"checks": len(checks), "state": updated.state.value},
        )
        return updated


def build_pipeline(config: Config, store: StateStore | None = None) -> IngestPipeline:
    """Wire a pipeline from configuration."""
    if store is None:
        store = StateStore(config.state_db_path)
    engine = FieldExtractionEngine(build_completion_client(config))
    return IngestPipeline(
        config=config,
        store=store,
        engine=engine,
        blob_store=build_blob_store(config),
    )
