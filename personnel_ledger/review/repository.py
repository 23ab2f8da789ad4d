"""Repository for review items.

Review items are never deleted. Each carries a unique dedupe key so that
reprocessing a report reopens nothing that is already queued or decided.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any

from personnel_ledger.audit.events import AuditEvent, AuditEventType
from personnel_ledger.audit.store import AuditLog
from personnel_ledger.db.database import Database, Transaction
from personnel_ledger.errors import ReviewAlreadyResolved, ReviewItemNotFound
from personnel_ledger.review.schemas import (
    ReviewCandidate,
    ReviewItem,
    ReviewStatus,
    ReviewSubject,
)

logger = logging.getLogger(__name__)

_COLUMNS = """id, subject, status, spoken_name, reason, candidates, report_id,
    entry_id, provisional_identity_id, payload, dedupe_key, resolution_action,
    resolved_by, resolved_at, created_at"""


class ReviewRepository:
    """Persistence for ReviewItems."""

    def __init__(self, db: Database, audit: AuditLog):
        """Initialize repository with database client.

        Args:
            db: Database client for persistence
            audit: Audit log for opened/resolved events
        """
        self._db = db
        self._audit = audit

    async def initialize(self) -> None:
        """Create review_items table if not exists."""
        await self._db.execute_batch(
            [
                """
            CREATE TABLE IF NOT EXISTS review_items (
                id TEXT PRIMARY KEY,
                subject TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'open',
                spoken_name TEXT,
                reason TEXT,
                candidates TEXT NOT NULL DEFAULT '[]',
                report_id TEXT,
                entry_id TEXT,
                provisional_identity_id TEXT,
                payload TEXT NOT NULL DEFAULT '{}',
                dedupe_key TEXT NOT NULL UNIQUE,
                resolution_action TEXT,
                resolved_by TEXT,
                resolved_at TEXT,
                created_at TEXT NOT NULL
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_review_status
            ON review_items(status, created_at)
            """,
            ]
        )

    @staticmethod
    def _to_item(row: Any) -> ReviewItem:
        return ReviewItem(
            id=row["id"],
            subject=ReviewSubject(row["subject"]),
            status=ReviewStatus(row["status"]),
            spoken_name=row["spoken_name"],
            reason=row["reason"],
            candidates=[ReviewCandidate(**c) for c in json.loads(row["candidates"])],
            report_id=row["report_id"],
            entry_id=row["entry_id"],
            provisional_identity_id=row["provisional_identity_id"],
            payload=json.loads(row["payload"]),
            dedupe_key=row["dedupe_key"],
            resolution_action=row["resolution_action"],
            resolved_by=row["resolved_by"],
            resolved_at=row["resolved_at"],
            created_at=row["created_at"],
        )

    async def open_item(
        self,
        item: ReviewItem,
        tx: Transaction | None = None,
    ) -> tuple[ReviewItem, bool]:
        """Insert a review item unless its dedupe key is already queued.

        Args:
            item: Item to open
            tx: Optional transaction to join

        Returns:
            (item, True) when inserted, (existing item, False) otherwise
        """
        executor = tx or self._db
        result = await executor.execute(
            f"""INSERT INTO review_items ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(dedupe_key) DO NOTHING""",
            [
                item.id,
                item.subject.value,
                item.status.value,
                item.spoken_name,
                item.reason,
                json.dumps([c.model_dump(mode="json") for c in item.candidates]),
                item.report_id,
                item.entry_id,
                item.provisional_identity_id,
                json.dumps(item.payload, default=str),
                item.dedupe_key,
                item.resolution_action,
                item.resolved_by,
                item.resolved_at.isoformat() if item.resolved_at else None,
                item.created_at.isoformat(),
            ],
        )
        if result.rows_affected == 0:
            existing = await self._find_by_dedupe_key(item.dedupe_key, executor)
            if existing is None:
                msg = f"Review item with dedupe key {item.dedupe_key} vanished"
                raise RuntimeError(msg)
            return existing, False

        event = AuditEvent(
            event_type=AuditEventType.REVIEW_OPENED,
            aggregate_type="review_item",
            aggregate_id=item.id,
            data={"subject": item.subject.value, "dedupe_key": item.dedupe_key},
        )
        await self._audit.append(event, tx)
        logger.info(f"Opened review item {item.id} ({item.subject.value})")
        return item, True

    async def _find_by_dedupe_key(
        self,
        dedupe_key: str,
        executor: Database | Transaction,
    ) -> ReviewItem | None:
        result = await executor.execute(
            f"SELECT {_COLUMNS} FROM review_items WHERE dedupe_key = ?",
            [dedupe_key],
        )
        return self._to_item(result.rows[0]) if result.rows else None

    async def find_by_dedupe_key(self, dedupe_key: str) -> ReviewItem | None:
        return await self._find_by_dedupe_key(dedupe_key, self._db)

    async def get(self, item_id: str) -> ReviewItem | None:
        result = await self._db.execute(
            f"SELECT {_COLUMNS} FROM review_items WHERE id = ?",
            [item_id],
        )
        return self._to_item(result.rows[0]) if result.rows else None

    async def require(self, item_id: str) -> ReviewItem:
        item = await self.get(item_id)
        if item is None:
            raise ReviewItemNotFound(item_id)
        return item

    async def list(
        self,
        open_only: bool = True,
        subject: ReviewSubject | None = None,
    ) -> list[ReviewItem]:
        """List review items, oldest first.

        Args:
            open_only: Only items still awaiting a decision
            subject: Optional subject filter

        Returns:
            Matching review items
        """
        conditions, params = [], []
        if open_only:
            conditions.append("status = ?")
            params.append(ReviewStatus.OPEN.value)
        if subject is not None:
            conditions.append("subject = ?")
            params.append(subject.value)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        result = await self._db.execute(
            f"SELECT {_COLUMNS} FROM review_items {where} ORDER BY created_at, id",
            params,
        )
        return [self._to_item(row) for row in result.rows]

    async def mark_resolved(
        self,
        item_id: str,
        action: str,
        actor: str,
    ) -> ReviewItem:
        """Close an open item, recording the action, actor and time.

        Raises:
            ReviewItemNotFound: If the item is unknown
            ReviewAlreadyResolved: If the item was already closed
        """
        resolved_at = datetime.now(UTC).isoformat()
        async with self._db.transaction() as tx:
            result = await tx.execute(
                """UPDATE review_items
                   SET status = ?, resolution_action = ?, resolved_by = ?, resolved_at = ?
                   WHERE id = ? AND status = ?""",
                [
                    ReviewStatus.RESOLVED.value,
                    action,
                    actor,
                    resolved_at,
                    item_id,
                    ReviewStatus.OPEN.value,
                ],
            )
            if result.rows_affected == 0:
                existing = await tx.execute(
                    "SELECT status FROM review_items WHERE id = ?", [item_id]
                )
                if not existing.rows:
                    raise ReviewItemNotFound(item_id)
                raise ReviewAlreadyResolved(f"Review item {item_id} is already resolved")
            await self._audit.append(
                AuditEvent(
                    event_type=AuditEventType.REVIEW_RESOLVED,
                    aggregate_type="review_item",
                    aggregate_id=item_id,
                    actor=actor,
                    data={"action": action},
                ),
                tx,
            )

        logger.info(f"Resolved review item {item_id} by {actor}: {action}")
        return await self.require(item_id)

    async def close_open(
        self,
        tx: Transaction,
        dedupe_key: str,
        action: str,
        actor: str,
    ) -> bool:
        """Close the open item with dedupe_key, if any, inside tx.

        Used when the subject of an item is settled by another write, such
        as a flagged entry being corrected or rejected directly.

        Returns:
            True if an open item was closed
        """
        existing = await self._find_by_dedupe_key(dedupe_key, tx)
        if existing is None or not existing.is_open:
            return False
        await tx.execute(
            """UPDATE review_items
               SET status = ?, resolution_action = ?, resolved_by = ?, resolved_at = ?
               WHERE id = ? AND status = ?""",
            [
                ReviewStatus.RESOLVED.value,
                action,
                actor,
                datetime.now(UTC).isoformat(),
                existing.id,
                ReviewStatus.OPEN.value,
            ],
        )
        await self._audit.append(
            AuditEvent(
                event_type=AuditEventType.REVIEW_RESOLVED,
                aggregate_type="review_item",
                aggregate_id=existing.id,
                actor=actor,
                data={"action": action},
            ),
            tx,
        )
        logger.info(f"Closed review item {existing.id} by {actor}: {action}")
        return True
