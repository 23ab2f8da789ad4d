"""IdentityResolver maps a spoken name to a canonical identity.

Resolution cascade (in order, first success wins):
1. Exact canonical name (case-insensitive)
2. Exact alias
3. Fuzzy match over every live identity
4. Fuzzy match over identities recently active on the project
   (only when step 3 found nobody)
5. Create a new Incomplete identity

Two or more fuzzy candidates always produce a review item; the resolver
never guesses between them.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Protocol
from uuid import uuid4

import structlog

from personnel_ledger.errors import AliasCollision
from personnel_ledger.identity.index import IdentityIndex
from personnel_ledger.identity.schemas import (
    FuzzyCandidate,
    Identity,
    OutcomeKind,
    ResolutionOutcome,
    ResolutionSource,
)
from personnel_ledger.identity.similarity import first_token, normalize_name
from personnel_ledger.review.repository import ReviewRepository
from personnel_ledger.review.schemas import ReviewCandidate, ReviewItem, ReviewSubject

logger = structlog.get_logger()


@dataclass(frozen=True)
class _Context:
    """Per-call inputs threaded through the cascade."""

    project_id: str | None
    since: date
    until: date
    report_id: str | None
    review_key: str | None
    payload: dict[str, Any]


class ProjectActivity(Protocol):
    """Who has worked on a project recently (the payroll ledger)."""

    async def identities_active_on_project(
        self, project_id: str, since: date, until: date | None = None
    ) -> set[str]: ...


class IdentityResolver:
    """Orchestrates the resolution cascade.

    Only step 5 and review items write; steps 1-4 are read-only.
    """

    def __init__(
        self,
        index: IdentityIndex,
        reviews: ReviewRepository,
        activity: ProjectActivity | None = None,
        fuzzy_threshold: float = 0.7,
        context_threshold: float = 0.6,
        recent_window_days: int = 14,
    ):
        """Initialize resolver with required components.

        Args:
            index: Identity index
            reviews: Review repository for NeedsReview outcomes
            activity: Source of recent project activity for step 4
            fuzzy_threshold: Minimum score over the full pool (step 3)
            context_threshold: Minimum score over the project pool (step 4)
            recent_window_days: Default look-back for step 4
        """
        self._index = index
        self._reviews = reviews
        self._activity = activity
        self._fuzzy_threshold = fuzzy_threshold
        self._context_threshold = context_threshold
        self._recent_window_days = recent_window_days

    async def resolve(
        self,
        spoken_name: str,
        project_context: str | None = None,
        recent_window_days: int | None = None,
        *,
        as_of: date | None = None,
        report_id: str | None = None,
        review_key: str | None = None,
        payload: dict[str, Any] | None = None,
        actor: str = "system",
    ) -> ResolutionOutcome:
        """Resolve a spoken name.

        Args:
            spoken_name: Name as it appeared in the report
            project_context: Project id used to narrow step 4
            recent_window_days: Look-back for step 4 (default from construction)
            as_of: Date the window ends on (default today)
            report_id: Report the name came from, linked on review items
            review_key: Dedupe key for a review item; reprocessing with the
                same key returns the existing item instead of a new one
            payload: Deferred work stored on a review item
            actor: Who triggered resolution

        Returns:
            Resolved, ResolvedFuzzy, Created or NeedsReview outcome
        """
        name = " ".join(spoken_name.split())
        if not name:
            raise ValueError("Spoken name must not be blank")

        window = self._recent_window_days if recent_window_days is None else recent_window_days
        until = as_of or date.today()
        context = _Context(
            project_id=project_context,
            since=until - timedelta(days=window),
            until=until,
            report_id=report_id,
            review_key=review_key,
            payload=payload or {},
        )

        outcome = await self._match(name, context)
        if outcome is not None:
            return outcome
        return await self._create(name, context, actor)

    async def _match(self, name: str, context: _Context) -> ResolutionOutcome | None:
        """Steps 1-4. Returns None when nothing matched."""
        # Step 1: exact canonical name
        identity = await self._index.lookup_by_canonical_name(name)
        if identity:
            return _resolved(name, identity, ResolutionSource.EXACT)

        # Step 2: exact alias
        identity = await self._index.lookup_by_alias(name)
        if identity:
            return _resolved(name, identity, ResolutionSource.ALIAS)

        # Step 3: fuzzy over the full pool
        candidates = await self._index.candidates_by_fuzzy(name, self._fuzzy_threshold)
        if candidates:
            return await self._pick(name, candidates, ResolutionSource.FUZZY, context)

        # Step 4: fuzzy over identities recently active on the project
        if context.project_id and self._activity is not None:
            recent = await self._activity.identities_active_on_project(
                context.project_id, context.since, context.until
            )
            if recent:
                candidates = await self._index.candidates_by_fuzzy(
                    name, self._context_threshold, restrict_to=recent
                )
                if candidates:
                    return await self._pick(name, candidates, ResolutionSource.CONTEXT, context)

        return None

    async def _pick(
        self,
        name: str,
        candidates: list[FuzzyCandidate],
        source: ResolutionSource,
        context: _Context,
    ) -> ResolutionOutcome:
        if len(candidates) == 1:
            best = candidates[0]
            logger.info(
                "name resolved by fuzzy match",
                spoken_name=name,
                identity_id=best.identity.id,
                matched_on=best.matched_on,
                score=round(best.score, 4),
                source=source.value,
            )
            return ResolutionOutcome(
                spoken_name=name,
                kind=OutcomeKind.RESOLVED_FUZZY,
                source=source,
                identity=best.identity,
                confidence=best.score,
                candidates=candidates,
            )

        item = await self._open_review(
            name,
            ReviewSubject.AMBIGUOUS_IDENTITY,
            f"{len(candidates)} identities match '{name}'",
            candidates,
            context,
        )
        return ResolutionOutcome(
            spoken_name=name,
            kind=OutcomeKind.NEEDS_REVIEW,
            source=ResolutionSource.AMBIGUOUS,
            confidence=candidates[0].score,
            candidates=candidates,
            review_item=item,
        )

    async def seed_aliases(self, name: str) -> list[str]:
        """Aliases to bind on creation: the full name, plus the first name if free.

        A first name already bound to someone else (two "Tommy"s) is left
        unbound rather than failing the create.
        """
        seeds = [normalize_name(name)]
        token = first_token(name)
        if token and token not in seeds and await self._index.lookup_by_alias(token) is None:
            seeds.append(token)
        return seeds

    async def _create(self, name: str, context: _Context, actor: str) -> ResolutionOutcome:
        """Step 5, with retry-once on an alias collision."""
        collision: AliasCollision | None = None
        for attempt in (1, 2):
            try:
                identity = await self._index.create_identity(
                    name, await self.seed_aliases(name), actor=actor
                )
            except AliasCollision as e:
                collision = e
                logger.warning(
                    "alias collision creating identity",
                    spoken_name=name,
                    alias_key=e.alias_key,
                    existing_identity_id=e.existing_identity_id,
                    attempt=attempt,
                )
                if attempt == 1:
                    # Another report created this person first; resolve against it.
                    outcome = await self._match(name, context)
                    if outcome is not None:
                        return outcome
                continue

            logger.info(
                "identity created",
                spoken_name=name,
                identity_id=identity.id,
                aliases=identity.aliases,
            )
            return ResolutionOutcome(
                spoken_name=name,
                kind=OutcomeKind.CREATED,
                source=ResolutionSource.CREATED,
                identity=identity,
                confidence=1.0,
            )

        existing = (
            await self._index.get(collision.existing_identity_id)
            if collision is not None
            else None
        )
        candidates = (
            [FuzzyCandidate(identity=existing, score=1.0, matched_on=collision.alias_key)]
            if existing is not None and collision is not None
            else []
        )
        item = await self._open_review(
            name,
            ReviewSubject.NEW_ALIAS_COLLISION,
            f"alias '{collision.alias_key}' collided twice" if collision else None,
            candidates,
            context,
        )
        return ResolutionOutcome(
            spoken_name=name,
            kind=OutcomeKind.NEEDS_REVIEW,
            source=ResolutionSource.COLLISION,
            candidates=candidates,
            review_item=item,
        )

    async def _open_review(
        self,
        name: str,
        subject: ReviewSubject,
        reason: str | None,
        candidates: Iterable[FuzzyCandidate],
        context: _Context,
    ) -> ReviewItem:
        item, created = await self._reviews.open_item(
            ReviewItem(
                subject=subject,
                spoken_name=name,
                reason=reason,
                candidates=[
                    ReviewCandidate(
                        identity_id=c.identity.id,
                        canonical_name=c.identity.canonical_name,
                        score=c.score,
                    )
                    for c in candidates
                ],
                report_id=context.report_id,
                payload=context.payload,
                dedupe_key=context.review_key or f"adhoc:{uuid4()}",
            )
        )
        logger.info(
            "name needs review",
            spoken_name=name,
            subject=subject.value,
            review_item_id=item.id,
            candidate_count=len(item.candidates),
            replayed=not created,
        )
        return item


def _resolved(name: str, identity: Identity, source: ResolutionSource) -> ResolutionOutcome:
    logger.debug("name resolved", spoken_name=name, identity_id=identity.id, source=source.value)
    return ResolutionOutcome(
        spoken_name=name,
        kind=OutcomeKind.RESOLVED,
        source=source,
        identity=identity,
        confidence=1.0,
    )
