"""Read-side aggregation over the payroll ledger.

Only Pending and Approved entries count. Superseded entries are history
and Rejected entries were never owed, so a correction takes effect in
every total without touching the entry it replaced.
"""

from collections import defaultdict
from datetime import date

import structlog

from personnel_ledger.identity.index import IdentityIndex
from personnel_ledger.identity.schemas import Identity
from personnel_ledger.ledger.ledger import PayrollLedger
from personnel_ledger.ledger.schemas import COUNTED_STATUSES, LedgerEntry
from personnel_ledger.reporting.schemas import (
    DailyLaborCost,
    HoursSummary,
    IdentityLaborCost,
    ProjectLaborCost,
)

logger = structlog.get_logger()


def summarize(entries: list[LedgerEntry]) -> HoursSummary:
    """Sum hours and pay over entries (callers pre-filter statuses)."""
    summary = HoursSummary()
    for entry in entries:
        summary.regular_hours += entry.regular_hours
        summary.overtime_hours += entry.overtime_hours
        summary.doubletime_hours += entry.doubletime_hours
        summary.total_pay += entry.total_pay
        summary.entry_count += 1
    return summary


class Aggregator:
    """Sums counted ledger entries by identity or by project."""

    def __init__(self, ledger: PayrollLedger, index: IdentityIndex):
        self._ledger = ledger
        self._index = index

    async def hours_for_identity(
        self,
        identity_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> HoursSummary:
        """Hours and pay for one identity in an inclusive date range.

        Entries of identities merged into this one are included.

        Raises:
            IdentityNotFound: If the identity is unknown
        """
        await self._index.require(identity_id)
        entries = await self._ledger.entries_for_identity(
            identity_id, start, end, statuses=COUNTED_STATUSES, include_merged=True
        )
        return summarize(entries)

    async def labor_cost_for_project(
        self,
        project_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> ProjectLaborCost:
        """Project labor cost grouped by identity and by date, plus totals.

        Entries of merged identities are grouped under the surviving identity.
        """
        entries = await self._ledger.entries_for_project(
            project_id, start, end, statuses=COUNTED_STATUSES
        )

        survivors: dict[str, Identity] = {}
        by_identity: dict[str, list[LedgerEntry]] = defaultdict(list)
        for entry in entries:
            if entry.identity_id not in survivors:
                survivors[entry.identity_id] = await self._index.resolve_live(entry.identity_id)
            by_identity[survivors[entry.identity_id].id].append(entry)

        identities = {identity.id: identity for identity in survivors.values()}
        identity_costs = []
        for identity_id, grouped in by_identity.items():
            identity = identities[identity_id]
            identity_costs.append(
                IdentityLaborCost(
                    identity_id=identity.id,
                    canonical_name=identity.canonical_name,
                    employee_number=identity.employee_number,
                    **summarize(grouped).model_dump(exclude={"total_hours"}),
                )
            )
        identity_costs.sort(key=lambda cost: (cost.canonical_name, cost.identity_id))

        by_date: dict[date, list[LedgerEntry]] = defaultdict(list)
        for entry in entries:
            by_date[entry.entry_date].append(entry)
        daily_costs = [
            DailyLaborCost(
                entry_date=day,
                employee_count=len({survivors[e.identity_id].id for e in day_entries}),
                **summarize(day_entries).model_dump(exclude={"total_hours"}),
            )
            for day, day_entries in sorted(by_date.items())
        ]

        logger.debug(
            "project labor cost computed",
            project_id=project_id,
            entry_count=len(entries),
            identity_count=len(identity_costs),
        )
        return ProjectLaborCost(
            project_id=project_id,
            start=start,
            end=end,
            by_identity=identity_costs,
            by_date=daily_costs,
            totals=summarize(entries),
        )
