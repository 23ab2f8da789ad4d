"""Payroll ledger schemas."""

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from personnel_ledger.money import ZERO


class EntryStatus(str, Enum):
    """Ledger entry status. Superseded and Rejected are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    SUPERSEDED = "superseded"
    REJECTED = "rejected"


# Entries that count towards hours, pay and exports.
COUNTED_STATUSES = (EntryStatus.PENDING, EntryStatus.APPROVED)


class FlagReason(str, Enum):
    MISSING_RATE = "missing_rate"
    HOURS_EXCEED_DAY = "hours_exceed_day"


class HoursBreakdown(BaseModel):
    """Hours worked, split by pay class.

    Negative values are accepted here and rejected by the ledger, so the
    caller gets InvalidHours rather than a schema error.
    """

    regular: Decimal = Field(default=ZERO)
    overtime: Decimal = Field(default=ZERO)
    doubletime: Decimal = Field(default=ZERO)

    @property
    def total(self) -> Decimal:
        return self.regular + self.overtime + self.doubletime


class RateSnapshot(BaseModel):
    """Rates frozen into an entry when it is created."""

    hourly_rate: Decimal = Field(ge=0)
    overtime_rate: Decimal = Field(ge=0)
    doubletime_rate: Decimal = Field(ge=0)


class LedgerEntry(BaseModel):
    """One append-only record of hours and pay for one identity on one report.

    Entries are never deleted. After creation only the status moves
    (Pending -> Approved / Rejected / Superseded); a correction is a new
    entry pointing at the one it supersedes.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    report_id: str
    identity_id: str
    project_id: str | None = None
    project_name: str | None = None
    entry_date: date
    sequence: int = Field(default=1, ge=1, description="Occurrence of this identity within the report")
    regular_hours: Decimal
    overtime_hours: Decimal
    doubletime_hours: Decimal
    activities: list[str] = Field(default_factory=list)
    hourly_rate: Decimal
    overtime_rate: Decimal
    doubletime_rate: Decimal
    total_pay: Decimal
    status: EntryStatus = Field(default=EntryStatus.PENDING)
    needs_review: bool = False
    review_reason: str | None = Field(
        default=None, description="Comma-separated flag reasons"
    )
    original_entry_id: str | None = Field(
        default=None, description="Entry this one supersedes (corrections only)"
    )
    correction_reason: str | None = None
    idempotency_key: str
    created_by: str = "system"
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def hours(self) -> HoursBreakdown:
        return HoursBreakdown(
            regular=self.regular_hours,
            overtime=self.overtime_hours,
            doubletime=self.doubletime_hours,
        )

    @property
    def rates(self) -> RateSnapshot:
        return RateSnapshot(
            hourly_rate=self.hourly_rate,
            overtime_rate=self.overtime_rate,
            doubletime_rate=self.doubletime_rate,
        )

    @property
    def total_hours(self) -> Decimal:
        return self.regular_hours + self.overtime_hours + self.doubletime_hours

    @property
    def flags(self) -> list[str]:
        return self.review_reason.split(",") if self.review_reason else []


class PostedEntry(BaseModel):
    """Result of posting an entry; is_new is False for an idempotent replay."""

    entry: LedgerEntry
    is_new: bool


class CorrectionRequest(BaseModel):
    """Human-supplied fix for a ledger entry.

    Hours left unset keep the original's values. Rates are only used for
    entries that were recorded without one.
    """

    regular_hours: Decimal | None = Field(default=None)
    overtime_hours: Decimal | None = Field(default=None)
    doubletime_hours: Decimal | None = Field(default=None)
    hourly_rate: Decimal | None = Field(
        default=None, ge=0, description="Explicit rate for entries recorded without one"
    )
    overtime_rate: Decimal | None = Field(default=None, ge=0)
    reason: str = Field(min_length=1)
    actor: str = Field(min_length=1)
