"""Identity resolution module for mapping spoken names to canonical employees.

This module provides:
- IdentityResolver: Resolution cascade (exact -> alias -> fuzzy -> project context -> create)
- IdentityIndex: Durable identities and alias bindings with optimistic versioning
- Name similarity scorers using RapidFuzz (Levenshtein, token sort)
- TTLCache: Bounded read-through cache for identity reads
- Schemas for identities, candidates and resolution outcomes
"""

from personnel_ledger.identity.cache import TTLCache
from personnel_ledger.identity.index import IdentityIndex
from personnel_ledger.identity.resolver import IdentityResolver, ProjectActivity
from personnel_ledger.identity.schemas import (
    FuzzyCandidate,
    Identity,
    IdentityStatus,
    MergePreview,
    OutcomeKind,
    ResolutionOutcome,
    ResolutionSource,
)
from personnel_ledger.identity.similarity import (
    LevenshteinScorer,
    SimilarityScorer,
    TokenSortScorer,
    normalize_name,
)

__all__ = [
    "FuzzyCandidate",
    "Identity",
    "IdentityIndex",
    "IdentityResolver",
    "IdentityStatus",
    "LevenshteinScorer",
    "MergePreview",
    "OutcomeKind",
    "ProjectActivity",
    "ResolutionOutcome",
    "ResolutionSource",
    "SimilarityScorer",
    "TTLCache",
    "TokenSortScorer",
    "normalize_name",
]
