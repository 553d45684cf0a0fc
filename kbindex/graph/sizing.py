"""Size control for triple extraction requests."""
from __future__ import annotations

import math

from ..settings import KnowledgeGraphSettings

# Rough characters-per-token ratio for mixed prose.
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count from character length (at least 1)."""
    return max(1, math.ceil(len(text or "") / CHARS_PER_TOKEN))


def compute_target_triples(text: str, settings: KnowledgeGraphSettings) -> int:
    """Number of triples to request for ``text``.

    Grows with the text size at ``triples_per_k_tokens`` and is clamped
    into ``[min_triples, max_triples]``; never decreases as text grows.
    """
    approx_tokens = estimate_tokens(text)
    per_k = max(1.0, settings.triples_per_k_tokens)
    target = math.ceil((approx_tokens / 1000) * per_k)
    return max(settings.min_triples, min(settings.max_triples, target))
