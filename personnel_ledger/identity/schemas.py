"""Identity resolution schemas.

Defines canonical identities, fuzzy candidates and resolution outcomes.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from personnel_ledger.review.schemas import ReviewItem


def _now() -> datetime:
    return datetime.now(UTC)


class IdentityStatus(str, Enum):
    """Lifecycle status of a canonical identity."""

    INCOMPLETE = "incomplete"
    ACTIVE = "active"
    INACTIVE = "inactive"
    MERGED = "merged"


class Identity(BaseModel):
    """A canonical employee.

    Identities are created Incomplete by the resolver, become Active once
    a human supplies the employee number and rates, and are never deleted.
    A Merged identity stays readable as a tombstone pointing at the
    surviving identity.
    """

    model_config = ConfigDict(str_strip_whitespace=True, from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    canonical_name: str = Field(min_length=1, description="Full canonical name")
    employee_number: str | None = Field(default=None)
    hourly_rate: Decimal | None = Field(default=None, ge=0)
    overtime_rate: Decimal | None = Field(default=None, ge=0)
    status: IdentityStatus = Field(default=IdentityStatus.INCOMPLETE)
    merged_into_id: str | None = Field(
        default=None, description="Surviving identity when status is merged"
    )
    aliases: list[str] = Field(default_factory=list, description="Bound alias keys")
    version: int = Field(default=0, description="Optimistic concurrency counter")
    last_active_at: datetime | None = Field(default=None)
    last_project_id: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @model_validator(mode="after")
    def _active_requires_rates(self) -> "Identity":
        if self.status == IdentityStatus.ACTIVE and (
            self.hourly_rate is None or self.overtime_rate is None
        ):
            msg = "Active identities must carry hourly and overtime rates"
            raise ValueError(msg)
        return self

    @property
    def is_live(self) -> bool:
        """Live identities can own aliases and receive new entries."""
        return self.status != IdentityStatus.MERGED

    @property
    def has_rate(self) -> bool:
        return self.hourly_rate is not None and self.overtime_rate is not None

    @property
    def is_profile_complete(self) -> bool:
        return self.employee_number is not None and self.has_rate


class FuzzyCandidate(BaseModel):
    """An identity scoring at or above a fuzzy threshold."""

    identity: Identity
    score: float = Field(ge=0.0, le=1.0)
    matched_on: str = Field(description="Canonical name or alias that scored best")


class OutcomeKind(str, Enum):
    """The four possible results of resolving a spoken name."""

    RESOLVED = "resolved"
    RESOLVED_FUZZY = "resolved_fuzzy"
    CREATED = "created"
    NEEDS_REVIEW = "needs_review"


class ResolutionSource(str, Enum):
    """Which resolver step produced the outcome."""

    EXACT = "exact"
    ALIAS = "alias"
    FUZZY = "fuzzy"
    CONTEXT = "context"
    CREATED = "created"
    AMBIGUOUS = "ambiguous"
    COLLISION = "collision"


class ResolutionOutcome(BaseModel):
    """Result of resolving one spoken name."""

    spoken_name: str
    kind: OutcomeKind
    source: ResolutionSource
    identity: Identity | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    candidates: list[FuzzyCandidate] = Field(default_factory=list)
    review_item: ReviewItem | None = None

    @property
    def identity_id(self) -> str | None:
        return self.identity.id if self.identity else None

    @property
    def requires_review(self) -> bool:
        return self.kind == OutcomeKind.NEEDS_REVIEW


class FieldConflict(BaseModel):
    """A field set differently on both sides of a merge."""

    field: str
    source_value: str | None
    target_value: str | None


class MergePreview(BaseModel):
    """What a merge would change, computed without writing."""

    source: Identity
    target: Identity
    conflicts: list[FieldConflict] = Field(default_factory=list)
    aliases_to_move: list[str] = Field(default_factory=list)
