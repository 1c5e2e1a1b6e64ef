"""
Audit recorder.

Appends audit events through the state store and mirrors each one to the
application log. Events are never mutated once written.
"""

import logging
from typing import Any

from ..schemas.domain import AuditEventType
from ..state_store import AuditEventRecord, StateStore

logger = logging.getLogger(__name__)


class AuditRecorder:
    """Append-only audit event emitter."""

    def __init__(self, store: StateStore):
        self.store = store

    def record(
        self,
        event_type: AuditEventType,
        message: str,
        transaction_id: str | None = None,
        document_id: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> AuditEventRecord:
        """
        Append one audit event.

        Args:
            event_type: Event taxonomy value
            message: Human-readable message
            transaction_id: Optional owning transaction
            document_id: Optional subject document
            meta: Structured payload (JSON-serializable)
        """
        event = self.store.add_audit_event(
            event_type=event_type,
            message=message,
            transaction_id=transaction_id,
            document_id=document_id,
            meta=meta,
        )

        level = logging.WARNING if event_type == AuditEventType.ERROR else logging.INFO
        logger.log(
            level,
            "[%s] %s (transaction=%s, document=%s)",
            event_type.value,
            message,
            transaction_id or "-",
            document_id or "-",
        )
        return event
