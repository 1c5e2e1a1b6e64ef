"""
Exception hierarchy for the reconciliation pipeline.

Every failure that the orchestrator converts into a per-document FAILED status
derives from ReconError, so callers can tell pipeline failures apart from
programming errors.
"""


class ReconError(Exception):
    """Base exception for all pipeline errors."""

    pass


class ExtractionError(ReconError):
    """Field extraction could not produce a canonical record."""

    pass


class CompletionError(ExtractionError):
    """The AI completion capability failed or returned nothing usable."""

    pass


class ModelResponseError(ExtractionError):
    """The model response was not valid JSON, even after a repair attempt."""

    pass


class SchemaValidationError(ExtractionError):
    """The parsed model response does not match the extraction schema."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Extraction schema validation failed: " + "; ".join(errors))


class UnsupportedFileTypeError(ReconError):
    """Raised by the text extractor for unknown file extensions."""

    pass


class NotFoundError(ReconError):
    """A referenced entity does not exist."""

    pass


class DocumentNotFoundError(NotFoundError):
    """Unknown document id."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class TransactionNotFoundError(NotFoundError):
    """Unknown transaction id."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class BlobStoreError(ReconError):
    """Blob store upload, download or listing failed."""

    pass


class DocumentNotInTransactionError(NotFoundError):
    """The document is attached to other transactions only."""

    def __init__(self, document_id: str, transaction_id: str):
        self.document_id = document_id
        self.transaction_id = transaction_id
        super().__init__(f"Document {document_id} does not belong to transaction {transaction_id}")


class ArtifactsNotFoundError(NotFoundError):
    """No stored artifacts exist for a transaction key."""

    def __init__(self, transaction_key: str):
        self.transaction_key = transaction_key
        super().__init__(f"No processed files found for transaction '{transaction_key}'")
