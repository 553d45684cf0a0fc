"""Score fusion across retrieval modes."""
from .models import (
    RankingRequest,
    RetrievalMode,
    ScoredResult,
    SearchResult,
)
from .scoring import (
    blend_scores,
    clamp_unit,
    keyword_overlap,
    tokenize_query,
)
from .engine import rank, rank_results, rank_with_scores

__all__ = [
    "RankingRequest",
    "RetrievalMode",
    "ScoredResult",
    "SearchResult",
    "blend_scores",
    "clamp_unit",
    "keyword_overlap",
    "tokenize_query",
    "rank",
    "rank_results",
    "rank_with_scores",
]
