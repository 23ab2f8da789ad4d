"""Read-side hours and labor cost aggregation, and payroll CSV export."""

from personnel_ledger.reporting.aggregator import Aggregator
from personnel_ledger.reporting.csv_export import CSV_COLUMNS, PayrollCsvExporter
from personnel_ledger.reporting.schemas import (
    DailyLaborCost,
    HoursSummary,
    IdentityLaborCost,
    ProjectLaborCost,
)

__all__ = [
    "CSV_COLUMNS",
    "Aggregator",
    "DailyLaborCost",
    "HoursSummary",
    "IdentityLaborCost",
    "PayrollCsvExporter",
    "ProjectLaborCost",
]
