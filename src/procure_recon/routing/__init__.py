"""Transaction grouping: key derivation and document attachment."""

from .router import RoutingResult, TransactionRouter
from .transaction_key import (
    UNKNOWN_KEY_PREFIX,
    derive_transaction_key,
    role_for_doc_type,
)

__all__ = [
    "RoutingResult",
    "TransactionRouter",
    "UNKNOWN_KEY_PREFIX",
    "derive_transaction_key",
    "role_for_doc_type",
]
