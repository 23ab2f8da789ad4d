"""Audit trail for identity, ledger and review mutations.

Provides:
- AuditEvent: Immutable record of one mutation
- AuditEventType: What happened
- AuditLog: Append-only SQLite persistence
"""

from personnel_ledger.audit.events import AuditEvent, AuditEventType
from personnel_ledger.audit.store import AuditLog

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLog",
]
