"""Tests for CLI commands.

These tests verify that all CLI commands are registered and that the
command handlers return the expected exit codes.
"""

import json
import tarfile

import pytest

from procure_recon.runner.main import create_cli, main

from conftest import SAMPLE_PO_TEXT, write_raw_file


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Config file pointing every path into tmp_path, LLM disabled."""
    for name in (
        "RAW_DATA_DIR",
        "STORAGE_DIR",
        "STORAGE_PREFIX",
        "STATE_DB_PATH",
        "RECON_LLM_ENABLED",
        "STORAGE_BACKEND",
    ):
        monkeypatch.delenv(name, raising=False)
    raw = tmp_path / "raw"
    raw.mkdir()
    path = tmp_path / "config.yaml"
    path.write_text(
        f"""
storage:
  raw_data_dir: "{raw}"
  storage_dir: "{tmp_path / 'storage'}"
llm:
  enabled: false
state_db_path: "{tmp_path / 'state.db'}"
"""
    )
    return path


def run(config_file, *args) -> int:
    return main(["-c", str(config_file), *args])


class TestCLICommandRegistry:
    """Tests for CLI command registration."""

    def test_all_commands_registered(self):
        """Verify all expected commands are registered."""
        parser = create_cli()
        for command in ("scan", "process", "report", "documents", "transactions", "init-config"):
            assert parser.parse_args([command]).command == command
        for command in ("rerun", "recompute", "show", "resolve-review", "export", "upload"):
            assert parser.parse_args([command, "some-id"]).command == command

    def test_process_options(self):
        args = create_cli().parse_args(["process", "--limit", "5", "--retry-failed", "--scan"])
        assert args.limit == 5
        assert args.retry_failed is True
        assert args.scan is True

    def test_process_defaults(self):
        args = create_cli().parse_args(["process"])
        assert args.limit is None
        assert args.retry_failed is False
        assert args.scan is False

    def test_resolve_review_options(self):
        args = create_cli().parse_args(
            ["resolve-review", "tx-1", "--document-id", "doc-1", "--notes", "checked"]
        )
        assert args.transaction_id == "tx-1"
        assert args.document_id == "doc-1"
        assert args.notes == "checked"

    def test_listing_options(self):
        args = create_cli().parse_args(
            ["documents", "--status", "FAILED", "--type", "INVOICE", "-q", "acme", "--low-confidence"]
        )
        assert args.status == "FAILED"
        assert args.doc_type == "INVOICE"
        assert args.query == "acme"
        assert args.low_confidence is True
        assert args.confidence_below is None

        args = create_cli().parse_args(
            ["transactions", "--state", "MATCHED", "--vendor", "acme", "--country", "IN"]
        )
        assert args.state == "MATCHED"
        assert args.vendor == "acme"
        assert args.country == "IN"
        assert args.currency is None

    def test_confidence_flags_are_exclusive(self):
        with pytest.raises(SystemExit):
            create_cli().parse_args(["documents", "--low-confidence", "--confidence-below", "0.5"])

    def test_export_and_upload_options(self, tmp_path):
        args = create_cli().parse_args(["export", "PO-1", "-o", str(tmp_path / "b.tar")])
        assert args.transaction_key == "PO-1"
        assert args.output == tmp_path / "b.tar"

        args = create_cli().parse_args(["upload", "a.txt", "b.md"])
        assert [p.name for p in args.paths] == ["a.txt", "b.md"]

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out


class TestCLICommands:
    """Tests for command handlers and exit codes."""

    def test_scan_process_report(self, config_file, tmp_path, capsys):
        write_raw_file(tmp_path / "raw", "po.txt", SAMPLE_PO_TEXT)

        assert run(config_file, "scan") == 0
        assert run(config_file, "process") == 0
        capsys.readouterr()

        assert run(config_file, "report", "--json") == 0
        report = json.loads(capsys.readouterr().out)
        assert report["kpis"]["totalDocs"] == 1
        assert report["kpis"]["processedDocs"] == 1
        assert report["kpis"]["totalTransactions"] == 1
        [queued] = report["exceptionQueue"]
        assert queued["transactionKey"] == "PO-1001"

        assert run(config_file, "show", queued["id"], "--json") == 0
        detail = json.loads(capsys.readouterr().out)
        assert detail["documents"][0]["fileName"] == "po.txt"

        assert run(config_file, "show", queued["id"]) == 0
        assert "PO-1001" in capsys.readouterr().out

        assert run(config_file, "recompute", queued["id"]) == 0
        assert run(config_file, "resolve-review", queued["id"]) == 0
        assert "Resolved 0 review item(s)" in capsys.readouterr().out

    def test_process_with_scan(self, config_file, tmp_path, capsys):
        write_raw_file(tmp_path / "raw", "po.txt", SAMPLE_PO_TEXT)

        assert run(config_file, "process", "--scan") == 0
        out = capsys.readouterr().out
        assert "Discovered 1 new document(s)" in out
        assert "Processed:   1" in out

    def test_report_text(self, config_file, capsys):
        assert run(config_file, "report") == 0
        assert "Reconciliation Report" in capsys.readouterr().out

    def test_missing_raw_directory(self, config_file, tmp_path):
        (tmp_path / "raw").rmdir()
        assert run(config_file, "scan") == 1
        assert run(config_file, "process", "--scan") == 1

    def test_unknown_ids(self, config_file):
        assert run(config_file, "rerun", "missing") == 1
        assert run(config_file, "recompute", "missing") == 1
        assert run(config_file, "show", "missing") == 1
        assert run(config_file, "resolve-review", "missing") == 1

    def test_resolve_review_of_foreign_document(self, config_file, tmp_path, capsys):
        """A document routed to another transaction is rejected."""
        write_raw_file(tmp_path / "raw", "po.txt", SAMPLE_PO_TEXT)
        write_raw_file(tmp_path / "raw", "po2.txt", SAMPLE_PO_TEXT.replace("PO-1001", "PO-1002"))
        run(config_file, "process", "--scan")
        capsys.readouterr()

        run(config_file, "transactions", "--json")
        by_key = {tx["transactionKey"]: tx["id"] for tx in json.loads(capsys.readouterr().out)}
        run(config_file, "documents", "-q", "po2", "--json")
        [foreign] = json.loads(capsys.readouterr().out)

        assert (
            run(config_file, "resolve-review", by_key["PO-1001"], "--document-id", foreign["id"])
            == 1
        )
        assert "does not belong to transaction" in capsys.readouterr().out

    def test_invalid_config(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text("storage:\n  backend: ftp\n")

        assert main(["-c", str(path), "report"]) == 1
        assert "Failed to load config" in capsys.readouterr().out


class TestListingCommands:
    """Tests for the documents and transactions listings."""

    @pytest.fixture
    def processed(self, config_file, tmp_path, capsys):
        write_raw_file(tmp_path / "raw", "po.txt", SAMPLE_PO_TEXT)
        write_raw_file(tmp_path / "raw", "sheet.pdf", b"%PDF-1.4 binary")
        assert run(config_file, "process", "--scan") == 0
        capsys.readouterr()

    def test_documents_text_prints_ids(self, config_file, processed, capsys):
        assert run(config_file, "documents", "--json") == 0
        ids = {doc["fileName"]: doc["id"] for doc in json.loads(capsys.readouterr().out)}

        assert run(config_file, "documents") == 0
        out = capsys.readouterr().out
        assert "2 document(s)" in out
        assert ids["po.txt"] in out
        assert ids["sheet.pdf"] in out

    def test_documents_filters(self, config_file, processed, capsys):
        assert run(config_file, "documents", "--status", "FAILED", "--json") == 0
        assert [d["fileName"] for d in json.loads(capsys.readouterr().out)] == ["sheet.pdf"]

        # Heuristic extraction is below the default 0.75 threshold
        assert run(config_file, "documents", "--low-confidence", "--json") == 0
        assert [d["fileName"] for d in json.loads(capsys.readouterr().out)] == ["po.txt"]

        assert run(config_file, "documents", "--confidence-below", "0.1", "--json") == 0
        assert json.loads(capsys.readouterr().out) == []

        assert run(config_file, "documents", "--type", "PURCHASE_ORDER", "-q", "PO-1001") == 0
        assert "1 document(s)" in capsys.readouterr().out

    def test_transactions_text_prints_ids(self, config_file, processed, capsys):
        assert run(config_file, "transactions", "--json") == 0
        [tx] = json.loads(capsys.readouterr().out)
        assert tx["transactionKey"] == "PO-1001"

        assert run(config_file, "transactions") == 0
        out = capsys.readouterr().out
        assert tx["id"] in out
        assert "LOW_CONFIDENCE" in out

        # The printed id is accepted by show
        assert run(config_file, "show", tx["id"]) == 0

    def test_transactions_filters(self, config_file, processed, capsys):
        assert run(config_file, "transactions", "--state", "MATCHED") == 0
        assert "0 transaction(s)" in capsys.readouterr().out

        assert run(config_file, "transactions", "--country", "IN", "--currency", "INR") == 0
        assert "1 transaction(s)" in capsys.readouterr().out

        assert run(config_file, "transactions", "-q", "1001", "--vendor", "acme") == 0
        assert "1 transaction(s)" in capsys.readouterr().out


class TestExportAndUpload:
    """Tests for raw upload and transaction bundle export."""

    def test_upload_then_export(self, config_file, tmp_path, capsys):
        inbox = tmp_path / "inbox"
        inbox.mkdir()
        source = write_raw_file(inbox, "po.txt", SAMPLE_PO_TEXT)

        assert run(config_file, "upload", str(source)) == 0
        assert (tmp_path / "raw" / "po.txt").read_text() == SAMPLE_PO_TEXT
        assert (tmp_path / "storage" / "raw" / "po.txt").read_text() == SAMPLE_PO_TEXT
        assert "Uploaded 1 document(s)" in capsys.readouterr().out

        assert run(config_file, "process", "--scan") == 0
        output = tmp_path / "out" / "bundle.tar"
        assert run(config_file, "export", "PO-1001", "-o", str(output)) == 0
        assert "Wrote" in capsys.readouterr().out

        with tarfile.open(output) as archive:
            names = archive.getnames()
        assert "transactions/PO-1001/docs/po.txt" in names
        assert "transactions/PO-1001/transaction.json" in names

    def test_export_default_file_name(self, config_file, tmp_path, monkeypatch):
        write_raw_file(tmp_path / "raw", "po.txt", SAMPLE_PO_TEXT)
        run(config_file, "process", "--scan")
        monkeypatch.chdir(tmp_path)

        assert run(config_file, "export", "PO-1001") == 0
        assert (tmp_path / "PO-1001-processed.tar").exists()

    def test_export_unknown_transaction(self, config_file, tmp_path, capsys):
        assert run(config_file, "export", "PO-404", "-o", str(tmp_path / "x.tar")) == 1
        assert "No processed files found" in capsys.readouterr().out
        assert not (tmp_path / "x.tar").exists()

    def test_upload_missing_file(self, config_file, tmp_path, capsys):
        assert run(config_file, "upload", str(tmp_path / "gone.txt")) == 1
        assert "not found" in capsys.readouterr().out
        assert list((tmp_path / "raw").iterdir()) == []

    def test_upload_from_raw_directory(self, config_file, tmp_path):
        """A file already in the raw directory is only mirrored to storage."""
        source = write_raw_file(tmp_path / "raw", "po.txt", SAMPLE_PO_TEXT)

        assert run(config_file, "upload", str(source)) == 0
        assert (tmp_path / "storage" / "raw" / "po.txt").exists()


class TestInitConfig:
    """Tests for init-config."""

    def test_writes_default_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        assert main(["-c", str(path), "init-config"]) == 0
        assert "llm:" in path.read_text()

    def test_refuses_to_overwrite(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("# mine\n")

        assert main(["-c", str(path), "init-config"]) == 1
        assert path.read_text() == "# mine\n"

        assert main(["-c", str(path), "init-config", "--force"]) == 0
        assert "llm:" in path.read_text()
