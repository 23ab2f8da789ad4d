"""Payroll CSV export.

One row per counted (Pending or Approved) ledger entry, in a fixed column
order that downstream payroll imports depend on.
"""

import csv
import io
from datetime import date

from personnel_ledger.identity.index import IdentityIndex
from personnel_ledger.identity.schemas import Identity
from personnel_ledger.ledger.ledger import PayrollLedger
from personnel_ledger.ledger.schemas import COUNTED_STATUSES, LedgerEntry

CSV_COLUMNS = (
    "employee_number",
    "employee_name",
    "project_name",
    "report_date",
    "regular_hours",
    "overtime_hours",
    "doubletime_hours",
    "total_hours",
    "hourly_rate",
    "overtime_rate",
    "total_pay",
)


def _amount(value) -> str:
    return f"{value:.2f}"


def entry_row(entry: LedgerEntry, identity: Identity) -> list[str]:
    """CSV cells for one entry, attributed to its surviving identity."""
    return [
        identity.employee_number or "",
        identity.canonical_name,
        entry.project_name or "",
        entry.entry_date.isoformat(),
        _amount(entry.regular_hours),
        _amount(entry.overtime_hours),
        _amount(entry.doubletime_hours),
        _amount(entry.total_hours),
        _amount(entry.hourly_rate),
        _amount(entry.overtime_rate),
        _amount(entry.total_pay),
    ]


class PayrollCsvExporter:
    """Renders counted ledger entries as payroll CSV."""

    def __init__(self, ledger: PayrollLedger, index: IdentityIndex):
        self._ledger = ledger
        self._index = index

    async def export(
        self,
        start: date | None = None,
        end: date | None = None,
        project_id: str | None = None,
    ) -> str:
        """Render entries in an inclusive date range, optionally for one project.

        Rows are ordered by date, then employee name.
        """
        if project_id is not None:
            entries = await self._ledger.entries_for_project(
                project_id, start, end, statuses=COUNTED_STATUSES
            )
        else:
            entries = await self._ledger.entries_in_range(start, end, statuses=COUNTED_STATUSES)

        identities: dict[str, Identity] = {}
        rows = []
        for entry in entries:
            if entry.identity_id not in identities:
                identities[entry.identity_id] = await self._index.resolve_live(entry.identity_id)
            rows.append((entry, entry_row(entry, identities[entry.identity_id])))
        rows.sort(key=lambda pair: (pair[0].entry_date, pair[1][1], pair[0].created_at))

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        writer.writerows(row for _, row in rows)
        return buffer.getvalue()
