"""Score primitives shared by the ranking engine: lexical overlap and blending."""
from __future__ import annotations

import math
import re

# Whitespace plus the ASCII and CJK punctuation users type between terms.
_TERM_SEPARATORS = re.compile(r"[\s,，。！？!?;；:：]+")


def tokenize_query(query: str) -> list[str]:
    """Lower-case a query and split it into non-empty terms."""
    if not query:
        return []
    return [term for term in _TERM_SEPARATORS.split(query.lower()) if term]


def keyword_overlap(terms: list[str], text: str) -> float:
    """Fraction of ``terms`` that occur as substrings of ``text``.

    Matching is case-insensitive; ``terms`` are expected to come from
    :func:`tokenize_query` (already lower-cased).
    """
    if not terms:
        return 0.0
    haystack = (text or "").lower()
    hits = sum(1 for term in terms if term in haystack)
    return hits / len(terms)


def clamp_unit(score: float) -> float:
    """Clamp a raw score into ``[0, 1]``; NaN counts as zero."""
    if score is None or math.isnan(score):
        return 0.0
    return max(0.0, min(1.0, float(score)))


def blend_scores(semantic: float, keyword: float, alpha: float) -> float:
    """Convex combination of a (clamped) semantic score and a keyword score."""
    return alpha * clamp_unit(semantic) + (1.0 - alpha) * keyword
