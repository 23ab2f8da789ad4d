"""Ledger API endpoints: entry queries, corrections and status changes."""

from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from personnel_ledger.ledger.ledger import PayrollLedger
from personnel_ledger.ledger.schemas import CorrectionRequest, LedgerEntry

router = APIRouter(prefix="/ledger", tags=["ledger"])


class ApproveRequest(BaseModel):
    actor: str = Field(min_length=1)


class RejectRequest(BaseModel):
    actor: str = Field(min_length=1)
    reason: str = Field(min_length=1)


class ReattributeRequest(BaseModel):
    """Move an entry to another identity."""

    identity_id: str
    actor: str = Field(min_length=1)
    reason: str = Field(min_length=1)


def get_ledger(request: Request) -> PayrollLedger:
    """Dependency to get PayrollLedger from app state."""
    return request.app.state.ledger


@router.get("/reports/{report_id}", response_model=list[LedgerEntry])
async def entries_for_report(
    report_id: str,
    ledger: PayrollLedger = Depends(get_ledger),
) -> list[LedgerEntry]:
    """All entries of a report, superseded history included."""
    return await ledger.entries_for_report(report_id)


@router.get("/identities/{identity_id}", response_model=list[LedgerEntry])
async def entries_for_identity(
    identity_id: str,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    ledger: PayrollLedger = Depends(get_ledger),
) -> list[LedgerEntry]:
    return await ledger.entries_for_identity(identity_id, start, end)


@router.get("/projects/{project_id}", response_model=list[LedgerEntry])
async def entries_for_project(
    project_id: str,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    ledger: PayrollLedger = Depends(get_ledger),
) -> list[LedgerEntry]:
    return await ledger.entries_for_project(project_id, start, end)


@router.get("/entries/{entry_id}", response_model=LedgerEntry)
async def get_entry(entry_id: str, ledger: PayrollLedger = Depends(get_ledger)) -> LedgerEntry:
    return await ledger.require_entry(entry_id)


@router.post("/entries/{entry_id}/correct", response_model=LedgerEntry)
async def correct_entry(
    entry_id: str,
    correction: CorrectionRequest,
    ledger: PayrollLedger = Depends(get_ledger),
) -> LedgerEntry:
    """Supersede an entry with a corrected copy and return the new entry."""
    return await ledger.correct_entry(entry_id, correction)


@router.post("/entries/{entry_id}/approve", response_model=LedgerEntry)
async def approve_entry(
    entry_id: str,
    body: ApproveRequest,
    ledger: PayrollLedger = Depends(get_ledger),
) -> LedgerEntry:
    return await ledger.approve(entry_id, actor=body.actor)


@router.post("/entries/{entry_id}/reject", response_model=LedgerEntry)
async def reject_entry(
    entry_id: str,
    body: RejectRequest,
    ledger: PayrollLedger = Depends(get_ledger),
) -> LedgerEntry:
    return await ledger.reject(entry_id, actor=body.actor, reason=body.reason)


@router.post("/entries/{entry_id}/reattribute", response_model=LedgerEntry)
async def reattribute_entry(
    entry_id: str,
    body: ReattributeRequest,
    ledger: PayrollLedger = Depends(get_ledger),
) -> LedgerEntry:
    return await ledger.reattribute_entry(
        entry_id, body.identity_id, actor=body.actor, reason=body.reason
    )
