"""Report payroll extraction endpoint.

The external extractor posts the per-employee tuples of one report here;
the whole report is processed as one batch.
"""

from datetime import date

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from personnel_ledger.processing.batch import ReportProcessor
from personnel_ledger.processing.schemas import ExtractedTuple, ReportContext, TupleOutcome

router = APIRouter(prefix="/reports", tags=["reports"])


class PayrollExtractionRequest(BaseModel):
    """Extracted tuples of one submitted report."""

    project_id: str | None = None
    project_name: str | None = None
    report_date: date
    submitted_by: str = Field(default="system")
    tuples: list[ExtractedTuple] = Field(description="Per-employee extraction results")


class PayrollExtractionResponse(BaseModel):
    report_id: str
    entries_created: int
    entries_replayed: int
    review_item_ids: list[str]
    rejected_count: int
    outcomes: list[TupleOutcome]


def get_report_processor(request: Request) -> ReportProcessor:
    """Dependency to get ReportProcessor from app state."""
    return request.app.state.report_processor


@router.post("/{report_id}/payroll", response_model=PayrollExtractionResponse)
async def process_report_payroll(
    report_id: str,
    body: PayrollExtractionRequest,
    processor: ReportProcessor = Depends(get_report_processor),
) -> PayrollExtractionResponse:
    """Resolve every name in the report and post its hours.

    Safe to retry: a repeated submission replays existing entries and
    review items.
    """
    result = await processor.process_report(
        ReportContext(
            report_id=report_id,
            project_id=body.project_id,
            project_name=body.project_name,
            report_date=body.report_date,
            submitted_by=body.submitted_by,
        ),
        body.tuples,
    )
    return PayrollExtractionResponse(
        report_id=result.report_id,
        entries_created=result.entries_created,
        entries_replayed=result.entries_replayed,
        review_item_ids=result.review_item_ids,
        rejected_count=len(result.rejected),
        outcomes=result.outcomes,
    )
