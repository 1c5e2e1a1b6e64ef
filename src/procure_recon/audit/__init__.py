"""Append-only audit trail."""

from .recorder import AuditRecorder

__all__ = ["AuditRecorder"]
