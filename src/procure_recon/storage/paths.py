"""
Artifact object keys.

Layout under the (optional) configured prefix:

    transactions/<sanitized key>/docs/<file name>
    transactions/<sanitized key>/extracted/<document id>.json
    transactions/<sanitized key>/transaction.json
    raw/<file name>
"""

import re

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_-]")

TRANSACTIONS_ROOT = "transactions"
ROLLUP_FILE_NAME = "transaction.json"
RAW_ROOT = "raw"
BUNDLE_SUFFIX = "-processed.tar"


def sanitize_key(value: str) -> str:
    """Replace every character outside [A-Za-z0-9_-] with '_'."""
    return _UNSAFE_KEY_CHARS.sub("_", value)


def join_object_path(*segments: str) -> str:
    """Join key segments with '/', dropping empty segments and stray slashes."""
    cleaned = (segment.strip("/") for segment in segments if segment)
    return "/".join(segment for segment in cleaned if segment)


def transaction_prefix(transaction_key: str) -> str:
    """Object key prefix holding all artifacts of a transaction."""
    return join_object_path(TRANSACTIONS_ROOT, sanitize_key(transaction_key))


def document_object_key(transaction_key: str, file_name: str) -> str:
    return join_object_path(transaction_prefix(transaction_key), "docs", file_name)


def extracted_object_key(transaction_key: str, document_id: str) -> str:
    return join_object_path(transaction_prefix(transaction_key), "extracted", f"{document_id}.json")


def rollup_object_key(transaction_key: str) -> str:
    return join_object_path(transaction_prefix(transaction_key), ROLLUP_FILE_NAME)


def raw_object_key(file_name: str) -> str:
    return join_object_path(RAW_ROOT, file_name)


def bundle_file_name(transaction_key: str) -> str:
    """Download name of a transaction's artifact bundle."""
    return f"{sanitize_key(transaction_key)}{BUNDLE_SUFFIX}"
