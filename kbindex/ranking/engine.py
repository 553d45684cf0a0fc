"""Retrieval-mode ranking over flat search hits (semantic / keyword / hybrid)."""
from __future__ import annotations

import logging
import math
from typing import Iterable, Union

from .models import RankingRequest, RetrievalMode, ScoredResult, SearchResult
from .scoring import blend_scores, keyword_overlap, tokenize_query

logger = logging.getLogger("kbindex.ranking")


def _composite_score(
    result: SearchResult,
    mode: RetrievalMode,
    keyword: float,
    alpha: float,
) -> float:
    if mode is RetrievalMode.KEYWORD:
        return keyword
    if mode is RetrievalMode.HYBRID:
        return blend_scores(result.score, keyword, alpha)
    return result.score


def rank_with_scores(request: RankingRequest) -> list[ScoredResult]:
    """Score, filter, sort and truncate the candidates of a request.

    Keyword mode never surfaces a candidate without lexical overlap, even
    when ``min_score`` would let it through. Ties keep input order.
    """
    if not request.results:
        return []

    terms = tokenize_query(request.query)
    mode = RetrievalMode(request.retrieval_mode)
    scored: list[ScoredResult] = []

    for result in request.results:
        keyword = keyword_overlap(terms, result.snippet)
        if mode is RetrievalMode.KEYWORD and keyword <= 0:
            continue
        score = _composite_score(result, mode, keyword, request.hybrid_alpha)
        if math.isnan(score) or score < request.min_score:
            continue
        scored.append(
            ScoredResult(
                result=result,
                score=score,
                semantic_score=result.score,
                keyword_score=keyword,
            )
        )

    # list.sort is stable, also with reverse=True
    scored.sort(key=lambda item: item.score, reverse=True)
    ranked = scored[: request.max_results]
    logger.debug(
        "Ranked %d/%d candidates in %s mode",
        len(ranked),
        len(request.results),
        mode.value,
    )
    return ranked


def rank(request: RankingRequest) -> list[SearchResult]:
    """Return the surviving candidates, best first, in their original shape."""
    return [item.result for item in rank_with_scores(request)]


def rank_results(
    results: Iterable[Union[SearchResult, dict]],
    query: str,
    retrieval_mode: Union[RetrievalMode, str] = RetrievalMode.HYBRID,
    min_score: float = 0.0,
    hybrid_alpha: float = 0.5,
    max_results: int = 5,
) -> list[SearchResult]:
    """Keyword-argument front door to :func:`rank`."""
    request = RankingRequest(
        results=[
            r if isinstance(r, SearchResult) else SearchResult.model_validate(r)
            for r in results
        ],
        query=query,
        retrieval_mode=retrieval_mode,
        min_score=min_score,
        hybrid_alpha=hybrid_alpha,
        max_results=max_results,
    )
    return rank(request)
