"""ReviewQueue: human decisions on ambiguous names and incomplete entries.

Every resolution is final. The item records the action, actor and time,
and the underlying change goes through the identity index or the ledger
so it lands in the audit log like any other write.
"""

from datetime import date
from decimal import Decimal

import structlog
from pydantic import BaseModel

from personnel_ledger.db.retry import retry_on_conflict
from personnel_ledger.errors import (
    InvalidStatusTransition,
    MissingRate,
    ReviewAlreadyResolved,
)
from personnel_ledger.identity.index import IdentityIndex
from personnel_ledger.identity.resolver import IdentityResolver
from personnel_ledger.identity.schemas import Identity
from personnel_ledger.ledger.ledger import PayrollLedger
from personnel_ledger.ledger.schemas import (
    CorrectionRequest,
    FlagReason,
    HoursBreakdown,
    LedgerEntry,
)
from personnel_ledger.review.repository import ReviewRepository
from personnel_ledger.review.schemas import ReviewItem, ReviewSubject

logger = structlog.get_logger()

CREATE_NEW = "create-new"

_IDENTITY_SUBJECTS = (ReviewSubject.AMBIGUOUS_IDENTITY, ReviewSubject.NEW_ALIAS_COLLISION)


class ReviewResolution(BaseModel):
    """Outcome of resolving a review item."""

    item: ReviewItem
    identity: Identity | None = None
    entry: LedgerEntry | None = None


class ReviewQueue:
    """Lists and resolves review items."""

    def __init__(
        self,
        reviews: ReviewRepository,
        index: IdentityIndex,
        resolver: IdentityResolver,
        ledger: PayrollLedger,
    ):
        self._reviews = reviews
        self._index = index
        self._resolver = resolver
        self._ledger = ledger

    async def list(self, open_only: bool = True) -> list[ReviewItem]:
        return await self._reviews.list(open_only=open_only)

    async def _require_open(self, item_id: str, subjects: tuple[ReviewSubject, ...]) -> ReviewItem:
        item = await self._reviews.require(item_id)
        if not item.is_open:
            msg = f"Review item {item_id} was resolved by {item.resolved_by}"
            raise ReviewAlreadyResolved(msg)
        if item.subject not in subjects:
            msg = f"Review item {item_id} is {item.subject.value}, not {', '.join(s.value for s in subjects)}"
            raise InvalidStatusTransition(msg)
        return item

    @retry_on_conflict
    async def _bind_spoken_name(self, identity_id: str, spoken_name: str, actor: str) -> Identity:
        identity = await self._index.require(identity_id, fresh=True)
        return await self._index.bind_alias(
            identity.id, spoken_name, expected_version=identity.version, actor=actor
        )

    async def resolve_ambiguous(
        self,
        item_id: str,
        choice: str,
        actor: str,
    ) -> ReviewResolution:
        """Attribute an ambiguous name to an identity, or create a new one.

        Choosing an existing identity binds the spoken name as its alias,
        so the same name resolves directly next time. Hours deferred on the
        item are then posted for that identity, and an entry recorded
        against a provisional identity is re-attributed to it.

        Args:
            item_id: Review item id
            choice: Identity id, or "create-new"
            actor: Who made the decision

        Returns:
            The closed item with the identity and any ledger entry

        Raises:
            ReviewItemNotFound: If the item is unknown
            ReviewAlreadyResolved: If the item was already decided
            IdentityNotFound: If the chosen identity is unknown
            AliasCollision: If the spoken name is bound to another identity
            ConcurrentModification: If the identity kept changing underneath
        """
        item = await self._require_open(item_id, _IDENTITY_SUBJECTS)
        spoken_name = item.spoken_name or ""

        if choice == CREATE_NEW:
            identity = await self._index.create_identity(
                spoken_name, await self._resolver.seed_aliases(spoken_name), actor=actor
            )
            action = f"created:{identity.id}"
        else:
            chosen = await self._index.resolve_live(choice)
            identity = await self._bind_spoken_name(chosen.id, spoken_name, actor)
            action = f"bound:{identity.id}"

        entry = await self._attribute(item, identity, actor)
        closed = await self._reviews.mark_resolved(item.id, action, actor)
        logger.info(
            "ambiguous name resolved",
            review_item_id=item.id,
            spoken_name=spoken_name,
            identity_id=identity.id,
            entry_id=entry.id if entry else None,
            actor=actor,
        )
        return ReviewResolution(item=closed, identity=identity, entry=entry)

    async def _attribute(
        self,
        item: ReviewItem,
        identity: Identity,
        actor: str,
    ) -> LedgerEntry | None:
        """Move or post the hours attached to an identity review item."""
        if item.entry_id:
            entry = await self._ledger.require_entry(item.entry_id)
            if entry.identity_id == identity.id:
                return entry
            return await self._ledger.reattribute_entry(
                entry.id, identity.id, actor, reason=f"review {item.id}"
            )

        payload = item.payload
        if not payload.get("report_id"):
            return None
        posted = await self._ledger.post_entry(
            report_id=payload["report_id"],
            identity_id=identity.id,
            hours=HoursBreakdown(
                regular=Decimal(str(payload.get("regular_hours", "0"))),
                overtime=Decimal(str(payload.get("overtime_hours", "0"))),
                doubletime=Decimal(str(payload.get("doubletime_hours", "0"))),
            ),
            activities=list(payload.get("activities", [])),
            project_id=payload.get("project_id"),
            entry_date=date.fromisoformat(payload["entry_date"]),
            sequence=await self._ledger.next_sequence(payload["report_id"], identity.id),
            project_name=payload.get("project_name"),
            idempotency_key=f"review:{item.id}",
            spoken_name=item.spoken_name,
            actor=actor,
        )
        return posted.entry

    async def resolve_incomplete_entry(
        self,
        item_id: str,
        correction: CorrectionRequest,
    ) -> ReviewResolution:
        """Apply a correction to a flagged entry and close the item.

        For an entry recorded without a rate, the correction's explicit
        rate is used, else the identity's current rate.

        Raises:
            ReviewItemNotFound: If the item is unknown
            ReviewAlreadyResolved: If the item was already decided
            MissingRate: If no rate is supplied and the identity still has none
            AlreadySuperseded: If the entry was corrected elsewhere
        """
        item = await self._require_open(item_id, (ReviewSubject.LEDGER_ENTRY_INCOMPLETE,))
        if not item.entry_id:
            msg = f"Review item {item_id} is not linked to a ledger entry"
            raise InvalidStatusTransition(msg)
        entry = await self._ledger.require_entry(item.entry_id)

        if FlagReason.MISSING_RATE.value in entry.flags and correction.hourly_rate is None:
            identity = await self._index.require(entry.identity_id, fresh=True)
            if identity.hourly_rate is None:
                msg = (
                    f"Identity {identity.id} still has no rate; supply hourly_rate "
                    "or complete the profile first"
                )
                raise MissingRate(msg)
            correction = correction.model_copy(
                update={
                    "hourly_rate": identity.hourly_rate,
                    "overtime_rate": (
                        identity.overtime_rate
                        if correction.overtime_rate is None
                        else correction.overtime_rate
                    ),
                }
            )

        # The ledger closes the item in the same transaction as the correction.
        corrected = await self._ledger.correct_entry(entry.id, correction)
        closed = await self._reviews.require(item.id)
        logger.info(
            "incomplete entry resolved",
            review_item_id=item.id,
            original_entry_id=entry.id,
            entry_id=corrected.id,
            actor=correction.actor,
        )
        return ReviewResolution(item=closed, entry=corrected)
