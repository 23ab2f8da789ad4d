"""Aggregation and payroll export endpoints."""

from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from personnel_ledger.reporting.aggregator import Aggregator
from personnel_ledger.reporting.csv_export import PayrollCsvExporter
from personnel_ledger.reporting.schemas import HoursSummary, ProjectLaborCost

router = APIRouter(tags=["aggregates"])


def get_aggregator(request: Request) -> Aggregator:
    """Dependency to get Aggregator from app state."""
    return request.app.state.aggregator


def get_csv_exporter(request: Request) -> PayrollCsvExporter:
    """Dependency to get PayrollCsvExporter from app state."""
    return request.app.state.csv_exporter


@router.get("/aggregates/identities/{identity_id}", response_model=HoursSummary)
async def hours_for_identity(
    identity_id: str,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    aggregator: Aggregator = Depends(get_aggregator),
) -> HoursSummary:
    return await aggregator.hours_for_identity(identity_id, start, end)


@router.get("/aggregates/projects/{project_id}", response_model=ProjectLaborCost)
async def labor_cost_for_project(
    project_id: str,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    aggregator: Aggregator = Depends(get_aggregator),
) -> ProjectLaborCost:
    return await aggregator.labor_cost_for_project(project_id, start, end)


@router.get("/exports/payroll.csv", response_class=PlainTextResponse)
async def export_payroll_csv(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    project_id: str | None = Query(default=None),
    exporter: PayrollCsvExporter = Depends(get_csv_exporter),
) -> PlainTextResponse:
    """Payroll CSV of counted entries in the range."""
    body = await exporter.export(start, end, project_id)
    return PlainTextResponse(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="payroll.csv"'},
    )
