"""Aggregation result schemas."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, computed_field

from personnel_ledger.money import ZERO


class HoursSummary(BaseModel):
    """Summed hours and pay over a set of ledger entries."""

    regular_hours: Decimal = Field(default=ZERO)
    overtime_hours: Decimal = Field(default=ZERO)
    doubletime_hours: Decimal = Field(default=ZERO)
    total_pay: Decimal = Field(default=ZERO)
    entry_count: int = 0

    @computed_field
    @property
    def total_hours(self) -> Decimal:
        return self.regular_hours + self.overtime_hours + self.doubletime_hours


class IdentityLaborCost(HoursSummary):
    identity_id: str
    canonical_name: str
    employee_number: str | None = None


class DailyLaborCost(HoursSummary):
    entry_date: date
    employee_count: int = 0


class ProjectLaborCost(BaseModel):
    """Labor cost of one project, per identity and per day, with totals."""

    project_id: str
    start: date | None = None
    end: date | None = None
    by_identity: list[IdentityLaborCost] = Field(default_factory=list)
    by_date: list[DailyLaborCost] = Field(default_factory=list)
    totals: HoursSummary = Field(default_factory=HoursSummary)
