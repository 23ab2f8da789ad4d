"""Tests for PayrollLedger."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from personnel_ledger.audit.events import AuditEventType
from personnel_ledger.audit.store import AuditLog
from personnel_ledger.db.database import Database
from personnel_ledger.errors import (
    AlreadySuperseded,
    EntryNotFound,
    IdentityNotFound,
    InvalidHours,
    InvalidStatusTransition,
)
from personnel_ledger.identity.index import IdentityIndex
from personnel_ledger.identity.schemas import Identity
from personnel_ledger.ledger.ledger import PayrollLedger, flagged_entry_key
from personnel_ledger.ledger.schemas import CorrectionRequest, EntryStatus, HoursBreakdown
from personnel_ledger.reporting.aggregator import Aggregator
from personnel_ledger.review.repository import ReviewRepository
from personnel_ledger.review.schemas import ReviewSubject

DAY = date(2026, 3, 2)


def hours(regular="0", overtime="0", doubletime="0") -> HoursBreakdown:
    return HoursBreakdown(
        regular=Decimal(regular), overtime=Decimal(overtime), doubletime=Decimal(doubletime)
    )


@pytest.fixture
async def ana(make_identity) -> Identity:
    """Active identity at 30.00/45.00."""
    return await make_identity("Ana Perez", employee_number="E-1", hourly_rate="30.00")


async def post(ledger: PayrollLedger, identity: Identity, worked: HoursBreakdown, **kwargs):
    defaults = {
        "report_id": "r-1",
        "activities": ["framing", "cleanup"],
        "project_id": "p-1",
        "entry_date": DAY,
        "project_name": "Main St Tower",
    }
    defaults.update(kwargs)
    return await ledger.post_entry(identity_id=identity.id, hours=worked, **defaults)


@pytest.mark.asyncio
async def test_initialize_creates_table(db: Database, ledger: PayrollLedger):
    result = await db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='ledger_entries'"
    )
    assert len(result.rows) == 1


class TestCreateEntry:
    @pytest.mark.asyncio
    async def test_freezes_rates_and_computes_pay(self, ledger: PayrollLedger, ana: Identity):
        posted = await post(ledger, ana, hours("8", "1"))

        entry = posted.entry
        assert posted.is_new is True
        assert entry.status == EntryStatus.PENDING
        assert entry.hourly_rate == Decimal("30.00")
        assert entry.overtime_rate == Decimal("45.00")
        assert entry.doubletime_rate == Decimal("60.00")
        assert entry.total_hours == Decimal("9.00")
        assert entry.total_pay == Decimal("285.00")
        assert entry.needs_review is False
        assert entry.activities == ["framing", "cleanup"]
        assert entry.idempotency_key == f"r-1:{ana.id}:1"

        stored = await ledger.require_entry(entry.id)
        assert stored == entry

    @pytest.mark.asyncio
    async def test_create_entry_returns_the_entry(self, ledger: PayrollLedger, ana: Identity):
        entry = await ledger.create_entry(
            "r-1", ana.id, hours("8"), ["framing"], "p-1", DAY
        )

        assert entry.total_pay == Decimal("240.00")
        assert await ledger.entries_for_report("r-1") == [entry]

    @pytest.mark.asyncio
    async def test_negative_hours_rejected(self, ledger: PayrollLedger, ana: Identity):
        with pytest.raises(InvalidHours):
            await post(ledger, ana, hours("8", "-1"))

        assert await ledger.entries_for_report("r-1") == []

    @pytest.mark.asyncio
    async def test_oversized_hours_rejected(self, ledger: PayrollLedger, ana: Identity):
        with pytest.raises(InvalidHours, match="exceed"):
            await post(ledger, ana, hours("1e30"))

        assert await ledger.entries_for_report("r-1") == []

    @pytest.mark.asyncio
    async def test_long_day_flagged_not_rejected(
        self, ledger: PayrollLedger, reviews: ReviewRepository, ana: Identity
    ):
        posted = await post(ledger, ana, hours("20", "6"))

        entry = posted.entry
        assert entry.status == EntryStatus.PENDING
        assert entry.needs_review is True
        assert entry.review_reason == "hours_exceed_day"
        assert entry.total_pay == Decimal("870.00")

        item = await reviews.find_by_dedupe_key(flagged_entry_key(entry.id))
        assert item is not None
        assert item.subject == ReviewSubject.LEDGER_ENTRY_INCOMPLETE
        assert item.entry_id == entry.id
        assert item.reason == "hours_exceed_day"

    @pytest.mark.asyncio
    async def test_missing_rate_and_long_day_both_recorded(
        self, ledger: PayrollLedger, make_identity
    ):
        tommy = await make_identity("Tommy Rodriguez")

        posted = await post(ledger, tommy, hours("25"))

        assert posted.entry.flags == ["missing_rate", "hours_exceed_day"]
        assert posted.entry.total_pay == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_unknown_identity(self, ledger: PayrollLedger):
        with pytest.raises(IdentityNotFound):
            await ledger.post_entry("r-1", "missing", hours("8"), [], "p-1", DAY)

    @pytest.mark.asyncio
    async def test_merged_identity_receives_no_entries(
        self, ledger: PayrollLedger, index: IdentityIndex, ana: Identity, make_identity
    ):
        duplicate = await make_identity("Anna Perez")
        await index.merge_identity(duplicate.id, ana.id, actor="admin")

        with pytest.raises(InvalidStatusTransition):
            await post(ledger, duplicate, hours("8"))

    @pytest.mark.asyncio
    async def test_records_activity_and_audit(
        self, ledger: PayrollLedger, index: IdentityIndex, audit: AuditLog, ana: Identity
    ):
        entry = (await post(ledger, ana, hours("8"))).entry

        identity = await index.require(ana.id, fresh=True)
        assert identity.last_project_id == "p-1"
        assert identity.last_active_at is not None
        events = await audit.events_for("ledger_entry", entry.id)
        assert [e.event_type for e in events] == [AuditEventType.ENTRY_CREATED]


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_retried_post_replays_existing_entry(
        self, ledger: PayrollLedger, audit: AuditLog, ana: Identity
    ):
        first = await post(ledger, ana, hours("8"))
        second = await post(ledger, ana, hours("8"))

        assert second.is_new is False
        assert second.entry.id == first.entry.id
        assert len(await ledger.entries_for_report("r-1")) == 1
        assert await audit.count_events(AuditEventType.ENTRY_CREATED) == 1

    @pytest.mark.asyncio
    async def test_new_sequence_is_a_new_entry(self, ledger: PayrollLedger, ana: Identity):
        """A split shift is a genuinely new tuple for the same identity."""
        await post(ledger, ana, hours("4"), sequence=1)
        await post(ledger, ana, hours("4"), sequence=2)

        assert await ledger.next_sequence("r-1", ana.id) == 3
        assert len(await ledger.entries_for_report("r-1")) == 2


class TestCorrection:
    @pytest.mark.asyncio
    async def test_correction_supersedes_and_recomputes_from_frozen_rate(
        self,
        ledger: PayrollLedger,
        index: IdentityIndex,
        aggregator: Aggregator,
        ana: Identity,
    ):
        """8h corrected to 8h + 1h overtime counts as 9h, not 17h."""
        original = (await post(ledger, ana, hours("8"))).entry
        await index.update_rates(ana.id, hourly_rate="40.00")

        corrected = await ledger.correct_entry(
            original.id,
            CorrectionRequest(overtime_hours=Decimal("1"), reason="late shift", actor="pm"),
        )

        assert corrected.id != original.id
        assert corrected.original_entry_id == original.id
        assert corrected.status == EntryStatus.PENDING
        assert corrected.correction_reason == "late shift"
        assert corrected.created_by == "pm"
        assert corrected.regular_hours == Decimal("8.00")
        assert corrected.overtime_hours == Decimal("1.00")
        assert corrected.total_hours == Decimal("9.00")
        assert corrected.hourly_rate == Decimal("30.00")
        assert corrected.total_pay == Decimal("285.00")

        superseded = await ledger.require_entry(original.id)
        assert superseded.status == EntryStatus.SUPERSEDED
        assert superseded.model_dump(exclude={"status"}) == original.model_dump(
            exclude={"status"}
        )
        assert (await ledger.successor_of(original.id)).id == corrected.id

        summary = await aggregator.hours_for_identity(ana.id, DAY, DAY)
        assert summary.total_hours == Decimal("9.00")
        assert summary.total_pay == Decimal("285.00")

    @pytest.mark.asyncio
    async def test_second_correction_of_same_entry_fails(
        self, ledger: PayrollLedger, ana: Identity
    ):
        original = (await post(ledger, ana, hours("8"))).entry
        correction = CorrectionRequest(regular_hours=Decimal("7"), reason="typo", actor="pm")
        corrected = await ledger.correct_entry(original.id, correction)

        with pytest.raises(AlreadySuperseded) as exc_info:
            await ledger.correct_entry(original.id, correction)

        assert exc_info.value.superseded_by == corrected.id
        assert len(await ledger.entries_for_report("r-1")) == 2

    @pytest.mark.asyncio
    async def test_correction_chain(self, ledger: PayrollLedger, ana: Identity):
        original = (await post(ledger, ana, hours("8"))).entry
        first = await ledger.correct_entry(
            original.id, CorrectionRequest(regular_hours=Decimal("7"), reason="a", actor="pm")
        )
        second = await ledger.correct_entry(
            first.id, CorrectionRequest(regular_hours=Decimal("6"), reason="b", actor="pm")
        )

        assert second.original_entry_id == first.id
        statuses = [e.status for e in await ledger.entries_for_report("r-1")]
        assert statuses.count(EntryStatus.SUPERSEDED) == 2
        assert statuses.count(EntryStatus.PENDING) == 1

    @pytest.mark.asyncio
    async def test_unknown_entry(self, ledger: PayrollLedger):
        with pytest.raises(EntryNotFound):
            await ledger.correct_entry(
                "missing", CorrectionRequest(reason="typo", actor="pm")
            )

    @pytest.mark.asyncio
    async def test_negative_correction_rejected(self, ledger: PayrollLedger, ana: Identity):
        original = (await post(ledger, ana, hours("8"))).entry

        with pytest.raises(InvalidHours):
            await ledger.correct_entry(
                original.id,
                CorrectionRequest(regular_hours=Decimal("-8"), reason="typo", actor="pm"),
            )

        assert (await ledger.require_entry(original.id)).status == EntryStatus.PENDING

    @pytest.mark.asyncio
    async def test_rejected_entry_cannot_be_corrected(
        self, ledger: PayrollLedger, ana: Identity
    ):
        original = (await post(ledger, ana, hours("8"))).entry
        await ledger.reject(original.id, actor="pm", reason="not on site")

        with pytest.raises(InvalidStatusTransition):
            await ledger.correct_entry(
                original.id, CorrectionRequest(reason="typo", actor="pm")
            )

    @pytest.mark.asyncio
    async def test_explicit_rate_only_used_for_unrated_entries(
        self, ledger: PayrollLedger, ana: Identity, make_identity
    ):
        rated = (await post(ledger, ana, hours("8"))).entry
        tommy = await make_identity("Tommy Rodriguez")
        unrated = (await post(ledger, tommy, hours("8"))).entry
        correction = CorrectionRequest(
            hourly_rate=Decimal("25.00"), reason="rate on file", actor="payroll"
        )

        rated_fix = await ledger.correct_entry(rated.id, correction)
        unrated_fix = await ledger.correct_entry(unrated.id, correction)

        assert rated_fix.hourly_rate == Decimal("30.00")
        assert unrated_fix.hourly_rate == Decimal("25.00")
        assert unrated_fix.overtime_rate == Decimal("37.50")
        assert unrated_fix.total_pay == Decimal("200.00")
        assert unrated_fix.needs_review is False


class TestRateSnapshots:
    @pytest.mark.asyncio
    async def test_rate_change_does_not_touch_earlier_entries(
        self, ledger: PayrollLedger, index: IdentityIndex, ana: Identity
    ):
        yesterday = (
            await post(ledger, ana, hours("8"), report_id="r-1", entry_date=DAY - timedelta(days=1))
        ).entry

        await index.update_rates(ana.id, hourly_rate="35.00", actor="payroll")
        today = (await post(ledger, ana, hours("8"), report_id="r-2", entry_date=DAY)).entry

        reloaded = await ledger.require_entry(yesterday.id)
        assert reloaded.hourly_rate == Decimal("30.00")
        assert reloaded.total_pay == Decimal("240.00")
        assert today.hourly_rate == Decimal("35.00")
        assert today.total_pay == Decimal("280.00")


class TestReattribution:
    @pytest.mark.asyncio
    async def test_reattribute_moves_entry_at_new_rate(
        self, ledger: PayrollLedger, ana: Identity, make_identity
    ):
        bob = await make_identity("Robert Smith", employee_number="E-2", hourly_rate="32.00")
        original = (await post(ledger, ana, hours("8"))).entry

        moved = await ledger.reattribute_entry(original.id, bob.id, actor="pm", reason="wrong Ana")

        assert moved.identity_id == bob.id
        assert moved.original_entry_id == original.id
        assert moved.hourly_rate == Decimal("32.00")
        assert moved.total_pay == Decimal("256.00")
        assert (await ledger.require_entry(original.id)).status == EntryStatus.SUPERSEDED
        assert await ledger.entries_for_identity(ana.id, statuses=[EntryStatus.PENDING]) == []


class TestStatusTransitions:
    @pytest.mark.asyncio
    async def test_approve_pending(self, ledger: PayrollLedger, audit: AuditLog, ana: Identity):
        entry = (await post(ledger, ana, hours("8"))).entry

        approved = await ledger.approve(entry.id, actor="pm")

        assert approved.status == EntryStatus.APPROVED
        assert approved.reviewed_by == "pm"
        assert approved.reviewed_at is not None
        assert await audit.count_events(AuditEventType.ENTRY_APPROVED) == 1

    @pytest.mark.asyncio
    async def test_only_pending_entries_transition(self, ledger: PayrollLedger, ana: Identity):
        entry = (await post(ledger, ana, hours("8"))).entry
        await ledger.approve(entry.id, actor="pm")

        with pytest.raises(InvalidStatusTransition):
            await ledger.approve(entry.id, actor="pm")
        with pytest.raises(InvalidStatusTransition):
            await ledger.reject(entry.id, actor="pm", reason="late")

    @pytest.mark.asyncio
    async def test_reject_records_reason(self, ledger: PayrollLedger, ana: Identity):
        entry = (await post(ledger, ana, hours("8"))).entry

        rejected = await ledger.reject(entry.id, actor="pm", reason="not on site")

        assert rejected.status == EntryStatus.REJECTED
        assert rejected.rejection_reason == "not on site"
        assert rejected.total_pay == entry.total_pay

    @pytest.mark.asyncio
    async def test_approved_entry_can_still_be_corrected(
        self, ledger: PayrollLedger, ana: Identity
    ):
        entry = (await post(ledger, ana, hours("8"))).entry
        await ledger.approve(entry.id, actor="pm")

        corrected = await ledger.correct_entry(
            entry.id, CorrectionRequest(regular_hours=Decimal("9"), reason="timesheet", actor="pm")
        )

        assert corrected.status == EntryStatus.PENDING
        assert (await ledger.require_entry(entry.id)).status == EntryStatus.SUPERSEDED

    @pytest.mark.asyncio
    async def test_unknown_entry(self, ledger: PayrollLedger):
        with pytest.raises(EntryNotFound):
            await ledger.approve("missing", actor="pm")


class TestQueries:
    @pytest.mark.asyncio
    async def test_date_range_and_project_filters(
        self, ledger: PayrollLedger, ana: Identity
    ):
        await post(ledger, ana, hours("8"), report_id="r-1", entry_date=DAY)
        await post(ledger, ana, hours("8"), report_id="r-2", entry_date=DAY + timedelta(days=1))
        await post(ledger, ana, hours("8"), report_id="r-3", entry_date=DAY, project_id="p-2")

        in_range = await ledger.entries_for_identity(ana.id, DAY, DAY)
        on_project = await ledger.entries_for_project("p-1")

        assert sorted(e.report_id for e in in_range) == ["r-1", "r-3"]
        assert [e.report_id for e in on_project] == ["r-1", "r-2"]
        assert await ledger.identities_active_on_project("p-2", DAY) == {ana.id}
        assert await ledger.identities_active_on_project("p-2", DAY + timedelta(days=1)) == set()
        assert await ledger.identities_active_on_project("p-1", DAY, until=DAY) == {ana.id}
        week_before = DAY - timedelta(days=7)
        day_before = DAY - timedelta(days=1)
        assert await ledger.identities_active_on_project("p-1", week_before, day_before) == set()

    @pytest.mark.asyncio
    async def test_rejected_entries_do_not_count_as_activity(
        self, ledger: PayrollLedger, ana: Identity
    ):
        entry = (await post(ledger, ana, hours("8"))).entry
        await ledger.reject(entry.id, actor="pm", reason="duplicate")

        assert await ledger.identities_active_on_project("p-1", DAY) == set()
