"""Review API endpoints: list open items and resolve them."""

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from personnel_ledger.ledger.schemas import CorrectionRequest
from personnel_ledger.review.queue import ReviewQueue, ReviewResolution
from personnel_ledger.review.schemas import ReviewItem

router = APIRouter(prefix="/review", tags=["review"])


class ResolveAmbiguousRequest(BaseModel):
    """Pick an identity for an ambiguous name."""

    choice: str = Field(
        min_length=1, description='Identity id, or "create-new" for a new identity'
    )
    actor: str = Field(min_length=1)


def get_review_queue(request: Request) -> ReviewQueue:
    """Dependency to get ReviewQueue from app state."""
    return request.app.state.review_queue


@router.get("", response_model=list[ReviewItem])
async def list_items(
    open_only: bool = Query(default=True),
    queue: ReviewQueue = Depends(get_review_queue),
) -> list[ReviewItem]:
    return await queue.list(open_only=open_only)


@router.post("/{item_id}/resolve-ambiguous", response_model=ReviewResolution)
async def resolve_ambiguous(
    item_id: str,
    body: ResolveAmbiguousRequest,
    queue: ReviewQueue = Depends(get_review_queue),
) -> ReviewResolution:
    return await queue.resolve_ambiguous(item_id, body.choice, actor=body.actor)


@router.post("/{item_id}/resolve-incomplete-entry", response_model=ReviewResolution)
async def resolve_incomplete_entry(
    item_id: str,
    correction: CorrectionRequest,
    queue: ReviewQueue = Depends(get_review_queue),
) -> ReviewResolution:
    return await queue.resolve_incomplete_entry(item_id, correction)
