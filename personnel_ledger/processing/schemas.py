"""Input contract from the extraction step and batch results."""

import re
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from personnel_ledger.money import ZERO

_CLOCK = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class ExtractedTuple(BaseModel):
    """One employee's time and activities as extracted from a report.

    Accepts the extractor's camelCase field names or snake_case.
    Hours are not range-checked here; negative or oversized hours reach
    the ledger and are rejected there as InvalidHours for that tuple alone.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, description="Name as spoken in the report")
    arrival: str | None = Field(default=None, description="Arrival time HH:MM")
    departure: str | None = Field(default=None, description="Departure time HH:MM")
    regular_hours: Decimal = Field(default=ZERO, alias="regularHours")
    overtime_hours: Decimal = Field(default=ZERO, alias="overtimeHours")
    doubletime_hours: Decimal = Field(default=ZERO, alias="doubletimeHours")
    activities: list[str] = Field(default_factory=list)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)

    @field_validator("name")
    @classmethod
    def _spoken_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "Spoken name must not be blank"
            raise ValueError(msg)
        return value

    @field_validator("arrival", "departure")
    @classmethod
    def _clock_time(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not _CLOCK.match(value):
            msg = f"Expected HH:MM, got '{value}'"
            raise ValueError(msg)
        return value


class ReportContext(BaseModel):
    """The submitted report a batch belongs to."""

    report_id: str = Field(min_length=1)
    project_id: str | None = None
    project_name: str | None = None
    report_date: date
    submitted_by: str = Field(default="system")


class TupleOutcome(BaseModel):
    """What happened to one extracted tuple."""

    index: int
    spoken_name: str
    outcome: str = Field(description="resolved, resolved_fuzzy, created, needs_review or rejected")
    identity_id: str | None = None
    confidence: float = 0.0
    entry_id: str | None = None
    entry_replayed: bool = False
    review_item_id: str | None = None
    error: str | None = None


class BatchResult(BaseModel):
    """Summary of one report's resolution and ledger pass."""

    report_id: str
    outcomes: list[TupleOutcome] = Field(default_factory=list)

    @property
    def entries_created(self) -> int:
        return sum(1 for o in self.outcomes if o.entry_id and not o.entry_replayed)

    @property
    def entries_replayed(self) -> int:
        return sum(1 for o in self.outcomes if o.entry_id and o.entry_replayed)

    @property
    def review_item_ids(self) -> list[str]:
        ids = [o.review_item_id for o in self.outcomes if o.review_item_id]
        return list(dict.fromkeys(ids))

    @property
    def rejected(self) -> list[TupleOutcome]:
        return [o for o in self.outcomes if o.outcome == "rejected"]
