"""Append-only audit log stored in SQLite.

Rows are never updated or deleted. Writers pass their open transaction
so the audit row commits or rolls back together with the change it records.
"""

import json
import logging

from personnel_ledger.audit.events import AuditEvent, AuditEventType
from personnel_ledger.db.database import Database, Transaction

logger = logging.getLogger(__name__)


class AuditLog:
    """Append-only audit trail of mutations."""

    def __init__(self, db: Database):
        """Initialize audit log.

        Args:
            db: Database client for persistence
        """
        self._db = db

    async def init_schema(self) -> None:
        """Create the audit table if it doesn't exist."""
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS audit_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id TEXT UNIQUE NOT NULL,
                event_type TEXT NOT NULL,
                aggregate_type TEXT NOT NULL,
                aggregate_id TEXT NOT NULL,
                actor TEXT NOT NULL,
                event_data TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
        """)
        await self._db.execute("""
            CREATE INDEX IF NOT EXISTS idx_audit_aggregate
            ON audit_events(aggregate_type, aggregate_id)
        """)
        logger.info("Audit log schema initialized")

    async def append(self, event: AuditEvent, tx: Transaction | None = None) -> None:
        """Append an event, inside tx when one is given."""
        sql = """INSERT INTO audit_events
                 (event_id, event_type, aggregate_type, aggregate_id,
                  actor, event_data, timestamp)
                 VALUES (?, ?, ?, ?, ?, ?, ?)"""
        params = [
            event.event_id,
            event.event_type.value,
            event.aggregate_type,
            event.aggregate_id,
            event.actor,
            json.dumps(event.data, default=str),
            event.timestamp.isoformat(),
        ]
        if tx is not None:
            await tx.execute(sql, params)
        else:
            await self._db.execute(sql, params)
        logger.debug(f"Audited {event.event_type.value} on {event.aggregate_id}")

    async def events_for(self, aggregate_type: str, aggregate_id: str) -> list[AuditEvent]:
        """All events for one record, oldest first."""
        result = await self._db.execute(
            """SELECT event_id, event_type, aggregate_type, aggregate_id,
                      actor, event_data, timestamp
               FROM audit_events
               WHERE aggregate_type = ? AND aggregate_id = ?
               ORDER BY id ASC""",
            [aggregate_type, aggregate_id],
        )
        return [
            AuditEvent(
                event_id=row[0],
                event_type=AuditEventType(row[1]),
                aggregate_type=row[2],
                aggregate_id=row[3],
                actor=row[4],
                data=json.loads(row[5]),
                timestamp=row[6],
            )
            for row in result.rows
        ]

    async def count_events(self, event_type: AuditEventType | None = None) -> int:
        """Count events, optionally by type."""
        if event_type:
            result = await self._db.execute(
                "SELECT COUNT(*) FROM audit_events WHERE event_type = ?",
                [event_type.value],
            )
        else:
            result = await self._db.execute("SELECT COUNT(*) FROM audit_events")
        return result.rows[0][0]
