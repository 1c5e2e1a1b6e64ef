"""
Procurement document ingestion → Field extraction → Transaction routing → Reconciliation

A deterministic, auditable pipeline that turns purchase orders, invoices and
goods-receipt notes into reconciled procurement transactions with rule-based
checks, a strict state machine and a manual-review queue for failures.
"""

__version__ = "0.1.0"
