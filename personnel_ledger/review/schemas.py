"""Review queue schemas."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class ReviewSubject(str, Enum):
    """Why a human decision is needed."""

    NEW_ALIAS_COLLISION = "new-alias-collision"
    AMBIGUOUS_IDENTITY = "ambiguous-identity"
    LEDGER_ENTRY_INCOMPLETE = "ledger-entry-incomplete"


class ReviewStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class ReviewCandidate(BaseModel):
    """A ranked identity suggestion on an ambiguous review item."""

    identity_id: str
    canonical_name: str
    score: float = Field(ge=0.0, le=1.0)


class ReviewItem(BaseModel):
    """A pending human decision raised by the resolver or the ledger.

    Review items are never deleted. Resolution records the action taken,
    the actor and the time, and is final.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    subject: ReviewSubject
    status: ReviewStatus = Field(default=ReviewStatus.OPEN)
    spoken_name: str | None = Field(
        default=None, description="Name as spoken in the report"
    )
    reason: str | None = Field(default=None, description="Flag reason, if any")
    candidates: list[ReviewCandidate] = Field(default_factory=list)
    report_id: str | None = None
    entry_id: str | None = None
    provisional_identity_id: str | None = Field(
        default=None,
        description="Identity an entry was recorded against before review",
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Deferred work (report context and hours) to apply on resolution",
    )
    dedupe_key: str = Field(description="Stable key so reprocessing opens no duplicates")
    resolution_action: str | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_open(self) -> bool:
        return self.status == ReviewStatus.OPEN

