"""Audit subsystem: async JSONL event logging."""

from contextforge.audit.schemas import AuditEvent
from contextforge.audit.schemas import AuditEventType
from contextforge.audit.store import AuditLogger

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
]
