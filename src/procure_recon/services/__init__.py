"""
Services: pipeline orchestration, transaction views and reporting.
"""

from .pipeline import (
    IngestPipeline,
    ProcessSummary,
    ScanSummary,
    build_pipeline,
    build_rollup,
    select_representative,
)
from .reports import ReportsSummary, get_reports_summary
from .transaction_view import REVIEW_RESOLVED_MESSAGE, TransactionDetail, TransactionViewService

__all__ = [
    "IngestPipeline",
    "ProcessSummary",
    "ScanSummary",
    "build_pipeline",
    "build_rollup",
    "select_representative",
    "ReportsSummary",
    "get_reports_summary",
    "REVIEW_RESOLVED_MESSAGE",
    "TransactionDetail",
    "TransactionViewService",
]
