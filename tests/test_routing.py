"""Tests for transaction key derivation and routing."""

from procure_recon.routing import (
    TransactionRouter,
    derive_transaction_key,
    role_for_doc_type,
)
from procure_recon.schemas import (
    DocumentRole,
    DocumentType,
    ExtractedDocument,
    TransactionState,
)


class TestTransactionKey:
    """Tests for derive_transaction_key."""

    def test_po_number_returned_verbatim(self):
        """A non-empty PO number is the key."""
        assert derive_transaction_key("PO-1001", "abcdef1234567890") == "PO-1001"

    def test_po_number_is_trimmed(self):
        """Surrounding whitespace is removed."""
        assert derive_transaction_key("  PO-1001 ", "abcdef1234567890") == "PO-1001"

    def test_empty_po_uses_hash_prefix(self):
        """Empty PO number falls back to the uppercased hash prefix."""
        assert derive_transaction_key("", "abcdef1234567890") == "UNKNOWN-ABCDEF12"

    def test_whitespace_po_uses_hash_prefix(self):
        """Whitespace-only PO numbers count as empty."""
        assert derive_transaction_key("   ", "abcdef1234567890") == "UNKNOWN-ABCDEF12"
        assert derive_transaction_key(None, "abcdef1234567890") == "UNKNOWN-ABCDEF12"

    def test_key_is_stable(self):
        """Same inputs, same key."""
        first = derive_transaction_key("", "0123456789abcdef")
        second = derive_transaction_key("", "0123456789abcdef")
        assert first == second == "UNKNOWN-01234567"


class TestRoleMapping:
    """Tests for document type → role."""

    def test_roles(self):
        assert role_for_doc_type(DocumentType.PURCHASE_ORDER) == DocumentRole.PO
        assert role_for_doc_type(DocumentType.INVOICE) == DocumentRole.INVOICE
        assert role_for_doc_type(DocumentType.GOODS_RECEIPT) == DocumentRole.GRN
        assert role_for_doc_type(DocumentType.OTHER) == DocumentRole.OTHER
        assert role_for_doc_type(DocumentType.UNKNOWN) == DocumentRole.OTHER


class TestTransactionRouter:
    """Tests for transaction resolution and attachment."""

    def _document(self, store, sha256: str, name: str = "doc.txt"):
        return store.create_document(
            source_path=f"/raw/{name}",
            file_name=name,
            sha256=sha256,
            mime_type="text/plain",
            size_bytes=10,
        )

    def test_route_creates_transaction(self, store):
        """First document for a key creates the transaction."""
        router = TransactionRouter(store)
        document = self._document(store, "a" * 64)
        extracted = ExtractedDocument(
            doc_type=DocumentType.PURCHASE_ORDER,
            po_number="PO-1",
            vendor_name="Acme",
            country="IN",
            currency="INR",
        )

        result = router.route(document, extracted)

        assert result.transaction_key == "PO-1"
        assert result.role == DocumentRole.PO
        assert result.attached is True
        assert result.transaction.state == TransactionState.WAITING_FOR_INVOICE_AND_GRN
        assert result.transaction.vendor_name == "Acme"

    def test_documents_with_same_po_share_transaction(self, store):
        """Documents with the same PO number are grouped."""
        router = TransactionRouter(store)
        po = router.route(
            self._document(store, "a" * 64, "po.txt"),
            ExtractedDocument(doc_type=DocumentType.PURCHASE_ORDER, po_number="PO-1"),
        )
        invoice = router.route(
            self._document(store, "b" * 64, "inv.txt"),
            ExtractedDocument(doc_type=DocumentType.INVOICE, po_number="PO-1"),
        )

        assert po.transaction.id == invoice.transaction.id
        assert store.count_transactions() == 1
        assert len(store.get_transaction_documents(po.transaction.id)) == 2

    def test_first_non_blank_wins(self, store):
        """Populated fields are never overwritten; blank fields get filled."""
        router = TransactionRouter(store)
        router.route(
            self._document(store, "a" * 64, "po.txt"),
            ExtractedDocument(doc_type=DocumentType.PURCHASE_ORDER, po_number="PO-1", vendor_name="Acme"),
        )
        result = router.route(
            self._document(store, "b" * 64, "inv.txt"),
            ExtractedDocument(
                doc_type=DocumentType.INVOICE,
                po_number="PO-1",
                vendor_name="Other Vendor",
                currency="INR",
            ),
        )

        assert result.transaction.vendor_name == "Acme"
        assert result.transaction.currency == "INR"

    def test_reattach_keeps_original_role(self, store):
        """Routing the same document twice does not duplicate the link."""
        router = TransactionRouter(store)
        document = self._document(store, "a" * 64)
        first = router.route(
            document, ExtractedDocument(doc_type=DocumentType.PURCHASE_ORDER, po_number="PO-1")
        )
        second = router.route(
            document, ExtractedDocument(doc_type=DocumentType.INVOICE, po_number="PO-1")
        )

        assert first.attached is True
        assert second.attached is False
        links = store.get_transaction_documents(first.transaction.id)
        assert len(links) == 1
        assert links[0].role == DocumentRole.PO

    def test_missing_po_routes_to_unknown_key(self, store):
        """A document without PO number gets its own UNKNOWN transaction."""
        router = TransactionRouter(store)
        result = router.route(
            self._document(store, "deadbeef" + "0" * 56),
            ExtractedDocument(doc_type=DocumentType.INVOICE, invoice_number="INV-1"),
        )
        assert result.transaction_key == "UNKNOWN-DEADBEEF"
        assert result.transaction.po_number is None
