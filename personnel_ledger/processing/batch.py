"""Per-report batch entry point: resolve every tuple and post its hours.

One submitted report is processed as one batch. Tuples are independent:
an ambiguous name or invalid hours on one tuple is recorded in the result
and never stops the others. Reprocessing the same input replays the same
entries and review items instead of creating new ones.
"""

from collections import Counter

import structlog

from personnel_ledger.errors import PersonnelLedgerError
from personnel_ledger.identity.resolver import IdentityResolver
from personnel_ledger.identity.similarity import normalize_name
from personnel_ledger.ledger.ledger import PayrollLedger, flagged_entry_key, validate_hours
from personnel_ledger.ledger.schemas import HoursBreakdown
from personnel_ledger.processing.schemas import (
    BatchResult,
    ExtractedTuple,
    ReportContext,
    TupleOutcome,
)
from personnel_ledger.review.repository import ReviewRepository

logger = structlog.get_logger()

# Failures confined to one tuple; anything else aborts the batch.
_TUPLE_ERRORS = (PersonnelLedgerError, ValueError, ArithmeticError)


def review_key(report_id: str, spoken_name: str, occurrence: int) -> str:
    """Stable review dedupe key for the n-th mention of a name in a report."""
    return f"report:{report_id}:{normalize_name(spoken_name)}:{occurrence}"


class ReportProcessor:
    """Runs the resolution + ledger pass for one report."""

    def __init__(
        self,
        resolver: IdentityResolver,
        ledger: PayrollLedger,
        reviews: ReviewRepository,
    ):
        self._resolver = resolver
        self._ledger = ledger
        self._reviews = reviews

    async def process_report(
        self,
        context: ReportContext,
        tuples: list[ExtractedTuple],
    ) -> BatchResult:
        """Resolve and ledger every extracted tuple of a report.

        Args:
            context: Report id, project and date
            tuples: Extracted per-employee tuples, in report order

        Returns:
            BatchResult with one outcome per tuple
        """
        log = logger.bind(report_id=context.report_id, project_id=context.project_id)
        log.info("processing report", tuple_count=len(tuples))

        result = BatchResult(report_id=context.report_id)
        mentions: Counter[str] = Counter()
        sequences: Counter[str] = Counter()

        for index, extracted in enumerate(tuples):
            name_key = normalize_name(extracted.name)
            mentions[name_key] += 1
            key = review_key(context.report_id, extracted.name, mentions[name_key])
            outcome = TupleOutcome(index=index, spoken_name=extracted.name, outcome="rejected")
            result.outcomes.append(outcome)

            hours = HoursBreakdown(
                regular=extracted.regular_hours,
                overtime=extracted.overtime_hours,
                doubletime=extracted.doubletime_hours,
            )
            try:
                validate_hours(hours)
            except _TUPLE_ERRORS as e:
                outcome.error = str(e)
                log.warning("tuple rejected", index=index, spoken_name=extracted.name, error=str(e))
                continue

            # Already routed to review on an earlier pass (open or decided).
            queued = await self._reviews.find_by_dedupe_key(key)
            if queued is not None:
                outcome.outcome = "needs_review"
                outcome.review_item_id = queued.id
                continue

            try:
                resolution = await self._resolver.resolve(
                    extracted.name,
                    context.project_id,
                    as_of=context.report_date,
                    report_id=context.report_id,
                    review_key=key,
                    payload={
                        "report_id": context.report_id,
                        "project_id": context.project_id,
                        "project_name": context.project_name,
                        "entry_date": context.report_date.isoformat(),
                        "regular_hours": str(hours.regular),
                        "overtime_hours": str(hours.overtime),
                        "doubletime_hours": str(hours.doubletime),
                        "activities": extracted.activities,
                        "arrival": extracted.arrival,
                        "departure": extracted.departure,
                        "extraction_confidence": extracted.confidence,
                    },
                    actor=context.submitted_by,
                )
                outcome.outcome = resolution.kind.value
                outcome.confidence = resolution.confidence
                if resolution.requires_review:
                    outcome.review_item_id = resolution.review_item.id if resolution.review_item else None
                    continue

                identity_id = resolution.identity_id
                sequences[identity_id] += 1
                posted = await self._ledger.post_entry(
                    report_id=context.report_id,
                    identity_id=identity_id,
                    hours=hours,
                    activities=extracted.activities,
                    project_id=context.project_id,
                    entry_date=context.report_date,
                    sequence=sequences[identity_id],
                    project_name=context.project_name,
                    spoken_name=extracted.name,
                    actor=context.submitted_by,
                )
            except _TUPLE_ERRORS as e:
                outcome.outcome = "rejected"
                outcome.error = str(e)
                log.warning("tuple failed", index=index, spoken_name=extracted.name, error=str(e))
                continue

            outcome.identity_id = identity_id
            outcome.entry_id = posted.entry.id
            outcome.entry_replayed = not posted.is_new
            if posted.entry.needs_review:
                flagged = await self._reviews.find_by_dedupe_key(flagged_entry_key(posted.entry.id))
                outcome.review_item_id = flagged.id if flagged else None

        log.info(
            "report processed",
            entries_created=result.entries_created,
            entries_replayed=result.entries_replayed,
            review_items=len(result.review_item_ids),
            rejected=len(result.rejected),
        )
        return result
