"""Append-only payroll ledger.

Provides:
- PayrollLedger: Entries with frozen rate snapshots, corrections by supersession
- Pay computation against a rate snapshot
- Schemas for entries, hours and corrections
"""

from personnel_ledger.ledger.ledger import PayrollLedger
from personnel_ledger.ledger.pay import compute_total_pay, snapshot_rates
from personnel_ledger.ledger.schemas import (
    COUNTED_STATUSES,
    CorrectionRequest,
    EntryStatus,
    FlagReason,
    HoursBreakdown,
    LedgerEntry,
    PostedEntry,
    RateSnapshot,
)

__all__ = [
    "COUNTED_STATUSES",
    "CorrectionRequest",
    "EntryStatus",
    "FlagReason",
    "HoursBreakdown",
    "LedgerEntry",
    "PayrollLedger",
    "PostedEntry",
    "RateSnapshot",
    "compute_total_pay",
    "snapshot_rates",
]
