"""
CLI main entry point.
"""

import argparse
import json
import logging
import shutil
import sys
from pathlib import Path

from ..config import Config, create_default_config, load_config
from ..errors import BlobStoreError, NotFoundError
from ..reconciliation import summarize_issue
from ..schemas import DocumentStatus, DocumentType, TransactionState
from ..services import TransactionViewService, build_pipeline, get_reports_summary
from ..state_store import StateStore
from ..storage import ArtifactWriter, build_blob_store, bundle_file_name

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="procure-recon",
        description="Reconcile purchase orders, invoices and goods receipts",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # scan command
    subparsers.add_parser("scan", help="Register raw documents from the raw data directory")

    # process command
    process_parser = subparsers.add_parser("process", help="Process pending documents")
    process_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum documents to process (default: processing.batch_size)",
    )
    process_parser.add_argument(
        "--retry-failed",
        action="store_true",
        help="Also retry documents that previously failed",
    )
    process_parser.add_argument(
        "--scan",
        action="store_true",
        help="Scan the raw data directory before processing",
    )

    # rerun command
    rerun_parser = subparsers.add_parser("rerun", help="Force reprocessing of one document")
    rerun_parser.add_argument("document_id", type=str, help="Document ID")

    # recompute command
    recompute_parser = subparsers.add_parser(
        "recompute", help="Recompute checks and state of a transaction"
    )
    recompute_parser.add_argument("transaction_id", type=str, help="Transaction ID")

    # show command
    show_parser = subparsers.add_parser("show", help="Show transaction detail")
    show_parser.add_argument("transaction_id", type=str, help="Transaction ID")
    show_parser.add_argument("--json", action="store_true", help="Print raw JSON")

    # resolve-review command
    resolve_parser = subparsers.add_parser(
        "resolve-review", help="Resolve open manual review items of a transaction"
    )
    resolve_parser.add_argument("transaction_id", type=str, help="Transaction ID")
    resolve_parser.add_argument(
        "--document-id",
        type=str,
        default=None,
        help="Only resolve items of this document",
    )
    resolve_parser.add_argument("--notes", type=str, default="", help="Resolution notes")

    # documents command
    documents_parser = subparsers.add_parser("documents", help="List documents")
    documents_parser.add_argument(
        "--status", choices=[s.value for s in DocumentStatus], help="Filter by status"
    )
    documents_parser.add_argument(
        "--type",
        dest="doc_type",
        choices=[t.value for t in DocumentType],
        help="Filter by document type",
    )
    documents_parser.add_argument(
        "-q",
        "--query",
        type=str,
        default=None,
        help="Search file name, vendor, PO or invoice number",
    )
    confidence_group = documents_parser.add_mutually_exclusive_group()
    confidence_group.add_argument(
        "--low-confidence",
        action="store_true",
        help="Only documents below reconciliation.confidence_threshold",
    )
    confidence_group.add_argument(
        "--confidence-below",
        type=float,
        default=None,
        help="Only documents below this confidence",
    )
    documents_parser.add_argument(
        "--limit", type=int, default=500, help="Maximum rows (default: 500)"
    )
    documents_parser.add_argument("--json", action="store_true", help="Print raw JSON")

    # transactions command
    transactions_parser = subparsers.add_parser("transactions", help="List transactions")
    transactions_parser.add_argument(
        "--state", choices=[s.value for s in TransactionState], help="Filter by state"
    )
    transactions_parser.add_argument(
        "--vendor", type=str, default=None, help="Vendor name contains"
    )
    transactions_parser.add_argument("--country", type=str, default=None, help="Country code")
    transactions_parser.add_argument("--currency", type=str, default=None, help="Currency code")
    transactions_parser.add_argument(
        "-q", "--query", type=str, default=None, help="Search key, PO number or vendor"
    )
    transactions_parser.add_argument(
        "--limit", type=int, default=500, help="Maximum rows (default: 500)"
    )
    transactions_parser.add_argument("--json", action="store_true", help="Print raw JSON")

    # export command
    export_parser = subparsers.add_parser(
        "export", help="Bundle a transaction's stored artifacts into a tar file"
    )
    export_parser.add_argument("transaction_key", type=str, help="Transaction key")
    export_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output file (default: <key>-processed.tar in the current directory)",
    )

    # upload command
    upload_parser = subparsers.add_parser(
        "upload", help="Add raw documents to the raw data directory and raw storage"
    )
    upload_parser.add_argument("paths", type=Path, nargs="+", help="Files to upload")

    # report command
    report_parser = subparsers.add_parser("report", help="Show KPIs and the exception queue")
    report_parser.add_argument("--json", action="store_true", help="Print raw JSON")

    # init-config command
    init_parser = subparsers.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file",
    )

    return parser


def cmd_scan(config: Config) -> int:
    """Register raw documents."""
    print(f"🔍 Scanning {config.storage.raw_data_dir}...")

    pipeline = build_pipeline(config)
    try:
        summary = pipeline.scan_and_register()
    except FileNotFoundError as e:
        print(f"❌ {e}")
        return 1

    print(f"  Scanned:            {summary.scanned}")
    print(f"  Discovered:         {summary.discovered}")
    print(f"  Already processed:  {summary.already_processed}")
    print(f"  Retriable:          {summary.retriable_existing}")
    print(f"\n✓ {summary.unique_documents_in_db} unique document(s) on record")
    return 0


def cmd_process(config: Config, limit: int | None, retry_failed: bool, scan: bool) -> int:
    """Process pending documents."""
    pipeline = build_pipeline(config)

    if scan:
        try:
            scan_summary = pipeline.scan_and_register()
        except FileNotFoundError as e:
            print(f"❌ {e}")
            return 1
        print(f"🔍 Discovered {scan_summary.discovered} new document(s)")

    mode = "AI" if pipeline.engine.uses_ai else "heuristic"
    print(f"📊 Processing pending documents ({mode} extraction)...")

    summary = pipeline.process_pending(limit=limit, retry_failed=retry_failed)

    print(f"  Candidates:  {summary.scanned_candidates}")
    print(f"  Processed:   {summary.processed}")
    print(f"  Failed:      {summary.failed}")
    print(f"  Skipped:     {summary.skipped}")

    if summary.failed:
        print(f"\n⚠️  {summary.failed} document(s) need manual review")
    else:
        print("\n✓ Processing complete")
    return 0


def cmd_rerun(config: Config, document_id: str) -> int:
    """Force reprocessing of one document."""
    pipeline = build_pipeline(config)

    try:
        summary = pipeline.rerun_for_document(document_id)
    except NotFoundError as e:
        print(f"❌ {e}")
        return 1

    if summary.processed:
        print(f"✓ Document {document_id} reprocessed")
    elif summary.failed:
        print(f"⚠️  Document {document_id} failed again; see manual review")
    else:
        print(f"⏭ Document {document_id} is being processed by another run")
    return 0


def cmd_recompute(config: Config, transaction_id: str) -> int:
    """Recompute a transaction."""
    pipeline = build_pipeline(config)

    try:
        transaction = pipeline.recompute_transaction(transaction_id)
    except NotFoundError as e:
        print(f"❌ {e}")
        return 1

    print(f"✓ {transaction.transaction_key}: {transaction.state.value}")
    print(f"  {summarize_issue(transaction.state)}")
    return 0


def cmd_show(config: Config, transaction_id: str, as_json: bool) -> int:
    """Show transaction detail."""
    view = TransactionViewService(StateStore(config.state_db_path))
    detail = view.get_transaction_detail(transaction_id)

    if detail is None:
        print(f"❌ Transaction not found: {transaction_id}")
        return 1

    if as_json:
        print(json.dumps(detail.to_dict(), indent=2))
        return 0

    tx = detail.transaction
    print(f"\n📦 Transaction {tx.transaction_key}")
    print("=" * 40)
    print(f"  State:     {tx.state.value}")
    print(f"  Summary:   {detail.issue_summary}")
    print(f"  PO:        {tx.po_number or '-'}")
    print(f"  Vendor:    {tx.vendor_name or '-'}")
    print(f"  Region:    {tx.country or '-'} / {tx.currency or '-'}")

    print("\n📄 Documents")
    for link in detail.documents:
        doc = link.document
        review = " (open review)" if link.has_open_review else ""
        print(f"  [{link.role.value}] {doc.file_name}: {doc.status.value}{review}")

    print("\n✅ Checks")
    for check in detail.checks:
        print(f"  {check.check_type.value:<20} {check.status.value}")

    if detail.review_resolution:
        resolution = detail.review_resolution
        print(f"\n📝 Last review resolved at {resolution.resolved_at}: {resolution.notes or '-'}")

    print()
    return 0


def cmd_resolve_review(
    config: Config, transaction_id: str, document_id: str | None, notes: str
) -> int:
    """Resolve manual review items."""
    view = TransactionViewService(StateStore(config.state_db_path))

    try:
        resolved = view.resolve_manual_review(transaction_id, document_id, notes)
    except NotFoundError as e:
        print(f"❌ {e}")
        return 1

    print(f"✓ Resolved {resolved} review item(s)")
    return 0


def cmd_documents(config: Config, parsed: argparse.Namespace) -> int:
    """List documents."""
    confidence_below = parsed.confidence_below
    if parsed.low_confidence:
        confidence_below = config.reconciliation.confidence_threshold

    documents = StateStore(config.state_db_path).list_documents(
        status=DocumentStatus(parsed.status) if parsed.status else None,
        doc_type=DocumentType(parsed.doc_type) if parsed.doc_type else None,
        q=parsed.query,
        confidence_below=confidence_below,
        limit=parsed.limit,
    )

    if parsed.json:
        print(json.dumps([doc.to_dict() for doc in documents], indent=2))
        return 0

    print(f"\n📄 {len(documents)} document(s)")
    for doc in documents:
        confidence = f"{doc.confidence:.2f}" if doc.confidence is not None else "-"
        print(
            f"  {doc.id}  {doc.status.value:<9} {doc.doc_type.value:<16} "
            f"{confidence:>4}  {doc.file_name}"
        )
    print()
    return 0


def cmd_transactions(config: Config, parsed: argparse.Namespace) -> int:
    """List transactions."""
    transactions = StateStore(config.state_db_path).list_transactions(
        state=TransactionState(parsed.state) if parsed.state else None,
        vendor=parsed.vendor,
        country=parsed.country,
        currency=parsed.currency,
        q=parsed.query,
        limit=parsed.limit,
    )

    if parsed.json:
        print(json.dumps([tx.to_dict() for tx in transactions], indent=2))
        return 0

    print(f"\n📦 {len(transactions)} transaction(s)")
    for tx in transactions:
        print(
            f"  {tx.id}  {tx.transaction_key:<20} {tx.state.value:<28} {tx.vendor_name or '-'}"
        )
    print()
    return 0


def cmd_export(config: Config, transaction_key: str, output: Path | None) -> int:
    """Write a transaction's artifact bundle to disk."""
    writer = ArtifactWriter(build_blob_store(config))

    try:
        bundle = writer.export_transaction_bundle(transaction_key)
    except NotFoundError as e:
        print(f"❌ {e}")
        return 1
    except BlobStoreError as e:
        print(f"❌ Export failed: {e}")
        return 1

    output = output or Path(bundle_file_name(transaction_key))
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(bundle)
    print(f"📦 Wrote {output} ({len(bundle)} bytes)")
    return 0


def cmd_upload(config: Config, paths: list[Path]) -> int:
    """Copy raw documents into the raw data directory and raw storage."""
    missing = [str(path) for path in paths if not path.is_file()]
    if missing:
        print(f"❌ File(s) not found: {', '.join(missing)}")
        return 1

    raw_dir = config.storage.raw_data_dir
    raw_dir.mkdir(parents=True, exist_ok=True)
    writer = ArtifactWriter(build_blob_store(config))

    for path in paths:
        target = raw_dir / path.name
        if target.resolve() != path.resolve():
            shutil.copy2(path, target)
        try:
            key = writer.upload_raw_file(target)
        except BlobStoreError as e:
            print(f"❌ Upload of {path.name} failed: {e}")
            return 1
        print(f"  ✓ {path.name} -> {key}")

    print(f"\n📦 Uploaded {len(paths)} document(s); run 'process --scan' to ingest them")
    return 0


def cmd_report(config: Config, as_json: bool) -> int:
    """Show the reporting summary."""
    summary = get_reports_summary(StateStore(config.state_db_path))

    if as_json:
        print(json.dumps(summary.to_dict(), indent=2))
        return 0

    print("\n📊 Reconciliation Report")
    print("=" * 40)
    print(f"  Documents:          {summary.total_docs}")
    print(f"  Processed:          {summary.processed_docs}")
    print(f"  Transactions:       {summary.total_transactions}")
    print(f"  Exceptions:         {summary.exceptions}")

    if summary.state_breakdown:
        print("\n  By state:")
        for state, count in summary.state_breakdown:
            print(f"    {state.value:<28} {count}")

    if summary.exception_queue:
        print("\n⚠️  Exception queue")
        for tx in summary.exception_queue:
            print(f"  {tx.transaction_key}: {tx.state.value} ({summarize_issue(tx.state)})")

    print()
    return 0


def cmd_init_config(config_path: Path, force: bool) -> int:
    """Write a default config file."""
    if config_path.exists() and not force:
        print(f"❌ {config_path} already exists (use --force to overwrite)")
        return 1

    create_default_config(config_path)
    print(f"✓ Wrote default config to {config_path}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config, parsed.force)

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    # Route to command
    if parsed.command == "scan":
        return cmd_scan(config)
    elif parsed.command == "process":
        return cmd_process(config, parsed.limit, parsed.retry_failed, parsed.scan)
    elif parsed.command == "rerun":
        return cmd_rerun(config, parsed.document_id)
    elif parsed.command == "recompute":
        return cmd_recompute(config, parsed.transaction_id)
    elif parsed.command == "show":
        return cmd_show(config, parsed.transaction_id, parsed.json)
    elif parsed.command == "resolve-review":
        return cmd_resolve_review(config, parsed.transaction_id, parsed.document_id, parsed.notes)
    elif parsed.command == "documents":
        return cmd_documents(config, parsed)
    elif parsed.command == "transactions":
        return cmd_transactions(config, parsed)
    elif parsed.command == "export":
        return cmd_export(config, parsed.transaction_key, parsed.output)
    elif parsed.command == "upload":
        return cmd_upload(config, parsed.paths)
    elif parsed.command == "report":
        return cmd_report(config, parsed.json)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
