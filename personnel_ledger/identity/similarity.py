"""Name similarity scoring using RapidFuzz.

Scorers are interchangeable: the resolver only depends on the
SimilarityScorer protocol, never on a concrete algorithm.
"""

import re
from typing import Protocol

from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Case-fold, trim and collapse whitespace.

    This is also the alias key format.

    Example:
        normalize_name("  Bobby   SMITH ") -> "bobby smith"
    """
    return _WHITESPACE.sub(" ", name.strip()).casefold()


def first_token(name: str) -> str:
    """First whitespace-separated token of a name (empty if none)."""
    parts = normalize_name(name).split(" ")
    return parts[0] if parts else ""


class SimilarityScorer(Protocol):
    """Score two names in [0, 1].

    Implementations must be symmetric, deterministic and return 1.0
    only when both names normalize to the same string.
    """

    def score(self, a: str, b: str) -> float: ...


class LevenshteinScorer:
    """Normalized Levenshtein similarity over normalized names.

    score = 1 - distance / max(len(a), len(b)), so "smith" vs "smyth"
    scores 0.8.
    """

    def score(self, a: str, b: str) -> float:
        left, right = normalize_name(a), normalize_name(b)
        if left == right:
            return 1.0
        return float(Levenshtein.normalized_similarity(left, right))


class TokenSortScorer:
    """Word-order independent similarity ("Smith John" ~ "John Smith").

    token_sort_ratio reaches 100 for reordered names, so non-identical
    names are capped just below 1.0 to keep exact matches distinguishable.
    """

    NON_IDENTICAL_CAP = 0.99

    def score(self, a: str, b: str) -> float:
        left, right = normalize_name(a), normalize_name(b)
        if left == right:
            return 1.0
        value = fuzz.token_sort_ratio(left, right) / 100
        return min(value, self.NON_IDENTICAL_CAP)


def display_name(spoken_name: str) -> str:
    """Canonical display form of a spoken name.

    All-lowercase transcriptions are title-cased ("tommy rodriguez" ->
    "Tommy Rodriguez"); anything else keeps its casing ("McDonald").
    """
    collapsed = _WHITESPACE.sub(" ", spoken_name.strip())
    if collapsed == collapsed.lower():
        return collapsed.title()
    return collapsed
