"""Review items raised by the resolver and the ledger.

ReviewQueue lives in personnel_ledger.review.queue; it depends on the
identity and ledger packages, which themselves open review items.
"""

from personnel_ledger.review.repository import ReviewRepository
from personnel_ledger.review.schemas import (
    ReviewCandidate,
    ReviewItem,
    ReviewStatus,
    ReviewSubject,
)

__all__ = [
    "ReviewCandidate",
    "ReviewItem",
    "ReviewRepository",
    "ReviewStatus",
    "ReviewSubject",
]
