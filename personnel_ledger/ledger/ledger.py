"""PayrollLedger: append-only store of hours and pay per (report, identity).

Each entry freezes the identity's rates at creation. Corrections and
re-attributions never edit an entry: they mark it Superseded and append a
successor that points back at it. Every posting carries an idempotency
key, so a retried extraction pass replays instead of duplicating.
"""

import json
from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

import structlog

from personnel_ledger.audit.events import AuditEvent, AuditEventType
from personnel_ledger.audit.store import AuditLog
from personnel_ledger.db.database import Database, Transaction
from personnel_ledger.errors import (
    AlreadySuperseded,
    EntryNotFound,
    InvalidHours,
    InvalidStatusTransition,
)
from personnel_ledger.identity.index import IdentityIndex
from personnel_ledger.identity.schemas import Identity
from personnel_ledger.ledger.pay import ZERO_RATES, compute_total_pay, snapshot_rates
from personnel_ledger.ledger.schemas import (
    CorrectionRequest,
    EntryStatus,
    FlagReason,
    HoursBreakdown,
    LedgerEntry,
    PostedEntry,
    RateSnapshot,
)
from personnel_ledger.money import to_decimal, to_text
from personnel_ledger.review.repository import ReviewRepository
from personnel_ledger.review.schemas import ReviewItem, ReviewSubject

logger = structlog.get_logger()

_COLUMNS = """id, report_id, identity_id, project_id, project_name, entry_date,
    sequence, regular_hours, overtime_hours, doubletime_hours, activities,
    hourly_rate, overtime_rate, doubletime_rate, total_pay, status,
    needs_review, review_reason, original_entry_id, correction_reason,
    idempotency_key, created_by, reviewed_by, reviewed_at, rejection_reason,
    created_at"""


def entry_key(report_id: str, identity_id: str, sequence: int) -> str:
    """Idempotency key of an original entry."""
    return f"{report_id}:{identity_id}:{sequence}"


def successor_key(entry_id: str) -> str:
    """Idempotency key of the single entry allowed to supersede entry_id."""
    return f"supersede:{entry_id}"


def flagged_entry_key(entry_id: str) -> str:
    """Review dedupe key for a flagged entry."""
    return f"entry:{entry_id}"


# Per-component ceiling; larger figures are rejected, not flagged.
MAX_COMPONENT_HOURS = Decimal("1000")


def validate_hours(hours: HoursBreakdown) -> None:
    """Reject negative or absurdly large hours outright.

    Raises:
        InvalidHours: If any component is negative or above MAX_COMPONENT_HOURS
    """
    for label, value in (
        ("regular", hours.regular),
        ("overtime", hours.overtime),
        ("doubletime", hours.doubletime),
    ):
        if value < 0:
            msg = f"{label} hours must not be negative (got {value})"
            raise InvalidHours(msg)
        if value > MAX_COMPONENT_HOURS:
            msg = f"{label} hours must not exceed {MAX_COMPONENT_HOURS} (got {value})"
            raise InvalidHours(msg)


class PayrollLedger:
    """Append-only payroll ledger with frozen rate snapshots."""

    def __init__(
        self,
        db: Database,
        index: IdentityIndex,
        reviews: ReviewRepository,
        audit: AuditLog,
        max_hours_per_day: Decimal | float = Decimal("24"),
        overtime_multiplier: Decimal | float = Decimal("1.5"),
        doubletime_multiplier: Decimal | float = Decimal("2.0"),
    ):
        """Initialize ledger.

        Args:
            db: Database client
            index: Identity index (rates are read from it at creation)
            reviews: Review repository for flagged entries
            audit: Audit log
            max_hours_per_day: Daily total above which entries are flagged
            overtime_multiplier: Overtime rate default when none is known
            doubletime_multiplier: Doubletime rate = hourly * multiplier
        """
        self._db = db
        self._index = index
        self._reviews = reviews
        self._audit = audit
        self._max_hours = Decimal(str(max_hours_per_day))
        self._overtime_multiplier = Decimal(str(overtime_multiplier))
        self._doubletime_multiplier = Decimal(str(doubletime_multiplier))

    async def initialize(self) -> None:
        """Create ledger_entries table if not exists."""
        await self._db.execute_batch(
            [
                """
            CREATE TABLE IF NOT EXISTS ledger_entries (
                id TEXT PRIMARY KEY,
                report_id TEXT NOT NULL,
                identity_id TEXT NOT NULL REFERENCES identities(id),
                project_id TEXT,
                project_name TEXT,
                entry_date TEXT NOT NULL,
                sequence INTEGER NOT NULL,
                regular_hours TEXT NOT NULL,
                overtime_hours TEXT NOT NULL,
                doubletime_hours TEXT NOT NULL,
                activities TEXT NOT NULL DEFAULT '[]',
                hourly_rate TEXT NOT NULL,
                overtime_rate TEXT NOT NULL,
                doubletime_rate TEXT NOT NULL,
                total_pay TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                needs_review INTEGER NOT NULL DEFAULT 0,
                review_reason TEXT,
                original_entry_id TEXT REFERENCES ledger_entries(id),
                correction_reason TEXT,
                idempotency_key TEXT NOT NULL UNIQUE,
                created_by TEXT NOT NULL,
                reviewed_by TEXT,
                reviewed_at TEXT,
                rejection_reason TEXT,
                created_at TEXT NOT NULL
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_ledger_report
            ON ledger_entries(report_id)
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_ledger_identity_date
            ON ledger_entries(identity_id, entry_date)
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_ledger_project_date
            ON ledger_entries(project_id, entry_date)
            """,
            ]
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _to_entry(row: Any) -> LedgerEntry:
        return LedgerEntry(
            id=row["id"],
            report_id=row["report_id"],
            identity_id=row["identity_id"],
            project_id=row["project_id"],
            project_name=row["project_name"],
            entry_date=row["entry_date"],
            sequence=row["sequence"],
            regular_hours=row["regular_hours"],
            overtime_hours=row["overtime_hours"],
            doubletime_hours=row["doubletime_hours"],
            activities=json.loads(row["activities"]),
            hourly_rate=row["hourly_rate"],
            overtime_rate=row["overtime_rate"],
            doubletime_rate=row["doubletime_rate"],
            total_pay=row["total_pay"],
            status=EntryStatus(row["status"]),
            needs_review=bool(row["needs_review"]),
            review_reason=row["review_reason"],
            original_entry_id=row["original_entry_id"],
            correction_reason=row["correction_reason"],
            idempotency_key=row["idempotency_key"],
            created_by=row["created_by"],
            reviewed_by=row["reviewed_by"],
            reviewed_at=row["reviewed_at"],
            rejection_reason=row["rejection_reason"],
            created_at=row["created_at"],
        )

    async def _select(
        self,
        where: str,
        params: Sequence[Any],
        executor: Database | Transaction | None = None,
    ) -> list[LedgerEntry]:
        executor = executor or self._db
        result = await executor.execute(
            f"""SELECT {_COLUMNS} FROM ledger_entries WHERE {where}
                ORDER BY entry_date, created_at, id""",
            params,
        )
        return [self._to_entry(row) for row in result.rows]

    async def get_entry(self, entry_id: str) -> LedgerEntry | None:
        entries = await self._select("id = ?", [entry_id])
        return entries[0] if entries else None

    async def require_entry(self, entry_id: str) -> LedgerEntry:
        entry = await self.get_entry(entry_id)
        if entry is None:
            raise EntryNotFound(entry_id)
        return entry

    async def successor_of(self, entry_id: str) -> LedgerEntry | None:
        """The entry that superseded entry_id, if any."""
        entries = await self._select("original_entry_id = ?", [entry_id])
        return entries[0] if entries else None

    async def entries_for_report(self, report_id: str) -> list[LedgerEntry]:
        """Every entry of a report, superseded history included."""
        return await self._select("report_id = ?", [report_id])

    @staticmethod
    def _range_filter(
        column: str,
        values: Sequence[str],
        start: date | None,
        end: date | None,
        statuses: Iterable[EntryStatus] | None,
    ) -> tuple[str, list[Any]]:
        placeholders = ", ".join("?" for _ in values)
        conditions = [f"{column} IN ({placeholders})"]
        params: list[Any] = list(values)
        if start is not None:
            conditions.append("entry_date >= ?")
            params.append(start.isoformat())
        if end is not None:
            conditions.append("entry_date <= ?")
            params.append(end.isoformat())
        if statuses is not None:
            wanted = [status.value for status in statuses]
            conditions.append(f"status IN ({', '.join('?' for _ in wanted)})")
            params.extend(wanted)
        return " AND ".join(conditions), params

    async def entries_for_identity(
        self,
        identity_id: str,
        start: date | None = None,
        end: date | None = None,
        statuses: Iterable[EntryStatus] | None = None,
        include_merged: bool = False,
    ) -> list[LedgerEntry]:
        """Entries for one identity in an inclusive date range.

        Args:
            identity_id: Identity id
            start: First date (inclusive), open if None
            end: Last date (inclusive), open if None
            statuses: Only these statuses; all when None
            include_merged: Also include identities merged into this one

        Returns:
            Entries by date, then creation time
        """
        ids = [identity_id]
        if include_merged:
            ids += await self._index.merged_sources(identity_id)
        where, params = self._range_filter("identity_id", ids, start, end, statuses)
        return await self._select(where, params)

    async def entries_for_project(
        self,
        project_id: str,
        start: date | None = None,
        end: date | None = None,
        statuses: Iterable[EntryStatus] | None = None,
    ) -> list[LedgerEntry]:
        where, params = self._range_filter("project_id", [project_id], start, end, statuses)
        return await self._select(where, params)

    async def entries_in_range(
        self,
        start: date | None = None,
        end: date | None = None,
        statuses: Iterable[EntryStatus] | None = None,
    ) -> list[LedgerEntry]:
        conditions, params = ["1 = 1"], []
        if start is not None:
            conditions.append("entry_date >= ?")
            params.append(start.isoformat())
        if end is not None:
            conditions.append("entry_date <= ?")
            params.append(end.isoformat())
        if statuses is not None:
            wanted = [status.value for status in statuses]
            conditions.append(f"status IN ({', '.join('?' for _ in wanted)})")
            params.extend(wanted)
        return await self._select(" AND ".join(conditions), params)

    async def identities_active_on_project(
        self,
        project_id: str,
        since: date,
        until: date | None = None,
    ) -> set[str]:
        """Identities with a non-rejected entry on project_id dated since..until."""
        conditions = ["project_id = ?", "entry_date >= ?", "status != ?"]
        params: list[Any] = [project_id, since.isoformat(), EntryStatus.REJECTED.value]
        if until is not None:
            conditions.append("entry_date <= ?")
            params.append(until.isoformat())
        result = await self._db.execute(
            f"SELECT DISTINCT identity_id FROM ledger_entries WHERE {' AND '.join(conditions)}",
            params,
        )
        return {row[0] for row in result.rows}

    async def next_sequence(self, report_id: str, identity_id: str) -> int:
        result = await self._db.execute(
            """SELECT COALESCE(MAX(sequence), 0) FROM ledger_entries
               WHERE report_id = ? AND identity_id = ?""",
            [report_id, identity_id],
        )
        return result.rows[0][0] + 1

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _rates_for(self, identity: Identity) -> RateSnapshot | None:
        return snapshot_rates(
            identity.hourly_rate,
            identity.overtime_rate,
            self._overtime_multiplier,
            self._doubletime_multiplier,
        )

    def _build_entry(
        self,
        *,
        report_id: str,
        identity_id: str,
        hours: HoursBreakdown,
        rates: RateSnapshot | None,
        activities: list[str],
        project_id: str | None,
        project_name: str | None,
        entry_date: date,
        sequence: int,
        idempotency_key: str,
        actor: str,
        check_daily_total: bool = True,
        original_entry_id: str | None = None,
        correction_reason: str | None = None,
    ) -> LedgerEntry:
        validate_hours(hours)
        hours = HoursBreakdown(
            regular=to_decimal(hours.regular),
            overtime=to_decimal(hours.overtime),
            doubletime=to_decimal(hours.doubletime),
        )
        flags = []
        if rates is None:
            flags.append(FlagReason.MISSING_RATE.value)
            rates = ZERO_RATES
        if check_daily_total and hours.total > self._max_hours:
            flags.append(FlagReason.HOURS_EXCEED_DAY.value)

        return LedgerEntry(
            report_id=report_id,
            identity_id=identity_id,
            project_id=project_id,
            project_name=project_name,
            entry_date=entry_date,
            sequence=sequence,
            regular_hours=hours.regular,
            overtime_hours=hours.overtime,
            doubletime_hours=hours.doubletime,
            activities=activities,
            hourly_rate=rates.hourly_rate,
            overtime_rate=rates.overtime_rate,
            doubletime_rate=rates.doubletime_rate,
            total_pay=compute_total_pay(hours, rates),
            needs_review=bool(flags),
            review_reason=",".join(flags) or None,
            original_entry_id=original_entry_id,
            correction_reason=correction_reason,
            idempotency_key=idempotency_key,
            created_by=actor,
        )

    async def _insert(self, tx: Transaction, entry: LedgerEntry) -> bool:
        """Insert unless the idempotency key exists. Returns True when inserted."""
        result = await tx.execute(
            f"""INSERT INTO ledger_entries ({_COLUMNS})
                VALUES ({', '.join('?' for _ in range(26))})
                ON CONFLICT(idempotency_key) DO NOTHING""",
            [
                entry.id,
                entry.report_id,
                entry.identity_id,
                entry.project_id,
                entry.project_name,
                entry.entry_date.isoformat(),
                entry.sequence,
                to_text(entry.regular_hours),
                to_text(entry.overtime_hours),
                to_text(entry.doubletime_hours),
                json.dumps(entry.activities),
                to_text(entry.hourly_rate),
                to_text(entry.overtime_rate),
                to_text(entry.doubletime_rate),
                to_text(entry.total_pay),
                entry.status.value,
                int(entry.needs_review),
                entry.review_reason,
                entry.original_entry_id,
                entry.correction_reason,
                entry.idempotency_key,
                entry.created_by,
                None,
                None,
                None,
                entry.created_at.isoformat(),
            ],
        )
        return result.rows_affected > 0

    async def _after_insert(
        self,
        tx: Transaction,
        entry: LedgerEntry,
        event_type: AuditEventType,
        data: dict[str, Any],
        spoken_name: str | None = None,
    ) -> None:
        """Activity, audit and review bookkeeping for a newly inserted entry."""
        await self._index.record_activity(tx, entry.identity_id, entry.project_id, entry.created_at)
        await self._audit.append(
            AuditEvent(
                event_type=event_type,
                aggregate_type="ledger_entry",
                aggregate_id=entry.id,
                actor=entry.created_by,
                data={
                    "report_id": entry.report_id,
                    "identity_id": entry.identity_id,
                    "total_pay": to_text(entry.total_pay),
                    "review_reason": entry.review_reason,
                    **data,
                },
            ),
            tx,
        )
        if entry.needs_review:
            await self._reviews.open_item(
                ReviewItem(
                    subject=ReviewSubject.LEDGER_ENTRY_INCOMPLETE,
                    spoken_name=spoken_name,
                    reason=entry.review_reason,
                    report_id=entry.report_id,
                    entry_id=entry.id,
                    provisional_identity_id=entry.identity_id,
                    dedupe_key=flagged_entry_key(entry.id),
                ),
                tx,
            )

    async def _by_key(self, tx: Transaction, key: str) -> LedgerEntry:
        entries = await self._select("idempotency_key = ?", [key], tx)
        return entries[0]

    async def post_entry(
        self,
        report_id: str,
        identity_id: str,
        hours: HoursBreakdown,
        activities: list[str],
        project_id: str | None,
        entry_date: date,
        sequence: int = 1,
        project_name: str | None = None,
        idempotency_key: str | None = None,
        spoken_name: str | None = None,
        actor: str = "system",
    ) -> PostedEntry:
        """Create an entry, or return the existing one for the same key.

        Args:
            report_id: Report the hours came from
            identity_id: Identity that worked them
            hours: Regular/overtime/doubletime hours
            activities: Activities in report order
            project_id: Project the report belongs to
            entry_date: Date worked
            sequence: Occurrence of this identity within the report
            project_name: Project display name (exports)
            idempotency_key: Override for the (report, identity, sequence) key
            spoken_name: Name as spoken, carried onto any review item
            actor: Who posted the entry

        Returns:
            PostedEntry with is_new False for a replay

        Raises:
            InvalidHours: If any hours are negative
            IdentityNotFound: If the identity is unknown
            InvalidStatusTransition: If the identity is merged
        """
        validate_hours(hours)
        identity = await self._index.require(identity_id, fresh=True)
        if not identity.is_live:
            msg = f"Identity {identity_id} is merged into {identity.merged_into_id}"
            raise InvalidStatusTransition(msg)

        # Rates are read once, unlocked, and frozen into the entry.
        entry = self._build_entry(
            report_id=report_id,
            identity_id=identity.id,
            hours=hours,
            rates=self._rates_for(identity),
            activities=list(activities),
            project_id=project_id,
            project_name=project_name,
            entry_date=entry_date,
            sequence=sequence,
            idempotency_key=idempotency_key or entry_key(report_id, identity.id, sequence),
            actor=actor,
        )

        async with self._db.transaction() as tx:
            inserted = await self._insert(tx, entry)
            if not inserted:
                existing = await self._by_key(tx, entry.idempotency_key)
            else:
                await self._after_insert(
                    tx, entry, AuditEventType.ENTRY_CREATED, {}, spoken_name or identity.canonical_name
                )

        if not inserted:
            logger.info(
                "ledger entry replayed",
                entry_id=existing.id,
                idempotency_key=entry.idempotency_key,
            )
            return PostedEntry(entry=existing, is_new=False)

        logger.info(
            "ledger entry created",
            entry_id=entry.id,
            report_id=report_id,
            identity_id=identity.id,
            total_hours=str(entry.total_hours),
            total_pay=str(entry.total_pay),
            review_reason=entry.review_reason,
        )
        return PostedEntry(entry=entry, is_new=True)

    async def create_entry(
        self,
        report_id: str,
        identity_id: str,
        hours: HoursBreakdown,
        activities: list[str],
        project_id: str | None,
        entry_date: date,
        sequence: int = 1,
        project_name: str | None = None,
        actor: str = "system",
    ) -> LedgerEntry:
        """Create (or replay) the entry for (report, identity, sequence)."""
        posted = await self.post_entry(
            report_id,
            identity_id,
            hours,
            activities,
            project_id,
            entry_date,
            sequence=sequence,
            project_name=project_name,
            actor=actor,
        )
        return posted.entry

    async def _require_supersedable(self, entry_id: str) -> LedgerEntry:
        entry = await self.require_entry(entry_id)
        if entry.status == EntryStatus.SUPERSEDED:
            successor = await self.successor_of(entry_id)
            raise AlreadySuperseded(entry_id, successor.id if successor else None)
        if entry.status == EntryStatus.REJECTED:
            msg = f"Ledger entry {entry_id} was rejected and cannot be corrected"
            raise InvalidStatusTransition(msg)
        return entry

    async def _supersede(
        self,
        original: LedgerEntry,
        replacement: LedgerEntry,
        event_type: AuditEventType,
        data: dict[str, Any],
        review_action: str,
    ) -> LedgerEntry:
        """Mark original Superseded and append replacement, atomically.

        An open review item on the original is closed in the same
        transaction with review_action.
        """
        async with self._db.transaction() as tx:
            result = await tx.execute(
                """UPDATE ledger_entries SET status = ?
                   WHERE id = ? AND status IN (?, ?)""",
                [
                    EntryStatus.SUPERSEDED.value,
                    original.id,
                    EntryStatus.PENDING.value,
                    EntryStatus.APPROVED.value,
                ],
            )
            if result.rows_affected == 0 or not await self._insert(tx, replacement):
                raise AlreadySuperseded(original.id)
            await self._after_insert(
                tx, replacement, event_type, {"original_entry_id": original.id, **data}
            )
            await self._reviews.close_open(
                tx, flagged_entry_key(original.id), review_action, replacement.created_by
            )
        return replacement

    async def correct_entry(self, entry_id: str, correction: CorrectionRequest) -> LedgerEntry:
        """Supersede an entry with a corrected Pending copy.

        Unset hours keep the original's values. Pay is recomputed from the
        original's frozen rates; an explicit rate in the correction is only
        honoured for entries that were recorded without one. The daily-total
        flag is not re-raised on a human correction.

        Raises:
            EntryNotFound: If entry_id is unknown
            AlreadySuperseded: If the entry was already corrected
            InvalidStatusTransition: If the entry was rejected
            InvalidHours: If corrected hours are negative
        """
        original = await self._require_supersedable(entry_id)
        hours = HoursBreakdown(
            regular=_pick(correction.regular_hours, original.regular_hours),
            overtime=_pick(correction.overtime_hours, original.overtime_hours),
            doubletime=_pick(correction.doubletime_hours, original.doubletime_hours),
        )

        rates: RateSnapshot | None = original.rates
        if FlagReason.MISSING_RATE.value in original.flags:
            rates = snapshot_rates(
                correction.hourly_rate,
                correction.overtime_rate,
                self._overtime_multiplier,
                self._doubletime_multiplier,
            )

        replacement = self._build_entry(
            report_id=original.report_id,
            identity_id=original.identity_id,
            hours=hours,
            rates=rates,
            activities=original.activities,
            project_id=original.project_id,
            project_name=original.project_name,
            entry_date=original.entry_date,
            sequence=original.sequence,
            idempotency_key=successor_key(original.id),
            actor=correction.actor,
            check_daily_total=False,
            original_entry_id=original.id,
            correction_reason=correction.reason,
        )
        await self._supersede(
            original,
            replacement,
            AuditEventType.ENTRY_CORRECTED,
            {"reason": correction.reason},
            review_action=f"corrected:{replacement.id}",
        )
        logger.info(
            "ledger entry corrected",
            original_entry_id=original.id,
            entry_id=replacement.id,
            actor=correction.actor,
            reason=correction.reason,
            total_pay=str(replacement.total_pay),
        )
        return replacement

    async def reattribute_entry(
        self,
        entry_id: str,
        identity_id: str,
        actor: str,
        reason: str,
    ) -> LedgerEntry:
        """Move an entry to another identity by superseding it.

        The successor is priced at the new identity's current rates.

        Raises:
            EntryNotFound: If entry_id is unknown
            IdentityNotFound: If identity_id is unknown
            AlreadySuperseded: If the entry was already superseded
        """
        original = await self._require_supersedable(entry_id)
        identity = await self._index.resolve_live(identity_id)
        replacement = self._build_entry(
            report_id=original.report_id,
            identity_id=identity.id,
            hours=original.hours,
            rates=self._rates_for(identity),
            activities=original.activities,
            project_id=original.project_id,
            project_name=original.project_name,
            entry_date=original.entry_date,
            sequence=await self.next_sequence(original.report_id, identity.id),
            idempotency_key=successor_key(original.id),
            actor=actor,
            original_entry_id=original.id,
            correction_reason=reason,
        )
        await self._supersede(
            original,
            replacement,
            AuditEventType.ENTRY_REATTRIBUTED,
            {"reason": reason, "from_identity_id": original.identity_id},
            review_action=f"reattributed:{replacement.id}",
        )
        logger.info(
            "ledger entry reattributed",
            original_entry_id=original.id,
            entry_id=replacement.id,
            from_identity_id=original.identity_id,
            to_identity_id=identity.id,
        )
        return replacement

    async def _transition(
        self,
        entry_id: str,
        status: EntryStatus,
        actor: str,
        event_type: AuditEventType,
        rejection_reason: str | None = None,
    ) -> LedgerEntry:
        async with self._db.transaction() as tx:
            result = await tx.execute(
                """UPDATE ledger_entries
                   SET status = ?, reviewed_by = ?, reviewed_at = ?, rejection_reason = ?
                   WHERE id = ? AND status = ?""",
                [
                    status.value,
                    actor,
                    datetime.now(UTC).isoformat(),
                    rejection_reason,
                    entry_id,
                    EntryStatus.PENDING.value,
                ],
            )
            if result.rows_affected == 0:
                current = await self._select("id = ?", [entry_id], tx)
                if not current:
                    raise EntryNotFound(entry_id)
                msg = (
                    f"Ledger entry {entry_id} is {current[0].status.value}; "
                    f"only pending entries can become {status.value}"
                )
                raise InvalidStatusTransition(msg)
            await self._audit.append(
                AuditEvent(
                    event_type=event_type,
                    aggregate_type="ledger_entry",
                    aggregate_id=entry_id,
                    actor=actor,
                    data={"reason": rejection_reason} if rejection_reason else {},
                ),
                tx,
            )
            if status == EntryStatus.REJECTED:
                await self._reviews.close_open(tx, flagged_entry_key(entry_id), "rejected", actor)
        logger.info("ledger entry status changed", entry_id=entry_id, status=status.value, actor=actor)
        return await self.require_entry(entry_id)

    async def approve(self, entry_id: str, actor: str) -> LedgerEntry:
        """Pending -> Approved."""
        return await self._transition(
            entry_id, EntryStatus.APPROVED, actor, AuditEventType.ENTRY_APPROVED
        )

    async def reject(self, entry_id: str, actor: str, reason: str) -> LedgerEntry:
        """Pending -> Rejected. Rejected entries never count towards pay."""
        return await self._transition(
            entry_id, EntryStatus.REJECTED, actor, AuditEventType.ENTRY_REJECTED, reason
        )


def _pick(override: Decimal | None, original: Decimal) -> Decimal:
    return original if override is None else override
