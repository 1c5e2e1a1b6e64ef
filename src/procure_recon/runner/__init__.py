"""
CLI runner module.

Provides commands:
- scan: Register raw documents
- process: Extract, route and reconcile pending documents
- rerun / recompute: Manual retries
- show / report: Transaction detail and KPIs
- resolve-review: Close manual review items
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
