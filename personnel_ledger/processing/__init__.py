"""Per-report batch processing of extracted employee tuples."""

from personnel_ledger.processing.batch import ReportProcessor
from personnel_ledger.processing.schemas import (
    BatchResult,
    ExtractedTuple,
    ReportContext,
    TupleOutcome,
)

__all__ = [
    "BatchResult",
    "ExtractedTuple",
    "ReportContext",
    "ReportProcessor",
    "TupleOutcome",
]
