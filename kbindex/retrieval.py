"""Unified retrieval: ranked vector hits merged with PageIndex tree search."""
from __future__ import annotations

import asyncio
from pathlib import PurePosixPath
from typing import Optional, Sequence

from navconfig.logging import logging

from .llm.adapter import LLMAdapter
from .pageindex.schemas import (
    PageIndexSearchResult,
    PageIndexTree,
    RetrievalMetadata,
    RetrievalResult,
)
from .pageindex.search import search_page_index
from .pageindex.storage import PageIndexStore
from .pageindex.strategies import LLMRelevanceEvaluator, SearchStrategy, get_strategy
from .ranking.engine import rank_with_scores
from .ranking.models import RankingRequest, ScoredResult, SearchResult
from .settings import EngineSettings, RetrievalSettings


class KnowledgeRetriever:
    """Answers a query from both flat search hits and document trees.

    Vector/lexical hits are ranked with the retrieval settings; each
    PageIndex tree is searched with the configured strategy. Both are merged
    into :class:`RetrievalResult` items, highest score first.
    """

    def __init__(
        self,
        adapter: Optional[LLMAdapter] = None,
        settings: Optional[EngineSettings] = None,
        store: Optional[PageIndexStore] = None,
    ):
        self.adapter = adapter
        self.settings = settings or EngineSettings()
        self.store = store
        self.logger = logging.getLogger("kbindex.retrieval")

    def _strategy(self) -> Optional[SearchStrategy]:
        if self.adapter is None:
            return None
        return get_strategy(
            self.settings.pageindex.strategy,
            LLMRelevanceEvaluator(self.adapter),
            self.settings.pageindex,
        )

    @staticmethod
    def _from_scored(scored: ScoredResult) -> RetrievalResult:
        hit = scored.result
        return RetrievalResult(
            source="knowledge",
            document_id=hit.path,
            filename=PurePosixPath(hit.path).name or hit.path,
            content=hit.snippet,
            score=scored.score,
            metadata=RetrievalMetadata(
                chunk_id=f"{hit.path}#L{hit.start_line}-{hit.end_line}",
                path=hit.path,
            ),
        )

    @staticmethod
    def _from_pageindex(result: PageIndexSearchResult) -> RetrievalResult:
        return RetrievalResult(
            source="pageindex",
            document_id=result.document_id,
            filename=result.filename,
            content=result.content,
            score=result.score,
            metadata=RetrievalMetadata(
                page_number=result.page_number,
                section=result.section,
                path=result.path,
            ),
        )

    async def _search_tree(
        self,
        tree: PageIndexTree,
        query: str,
        strategy: SearchStrategy,
        limit: int,
    ) -> list[PageIndexSearchResult]:
        try:
            return await search_page_index(tree, query, limit=limit, strategy=strategy)
        except Exception as exc:
            self.logger.error("PageIndex search failed for %s: %s", tree.doc_name, exc)
            return []

    async def retrieve(
        self,
        query: str,
        results: Sequence[SearchResult] = (),
        trees: Sequence[PageIndexTree] = (),
        settings: Optional[RetrievalSettings] = None,
        limit: Optional[int] = None,
    ) -> list[RetrievalResult]:
        """Rank ``results``, search ``trees`` and merge both.

        Args:
            query: The user query.
            results: Candidates from the vector/lexical backend.
            trees: Document trees to search (needs an adapter).
            settings: Ranking policy; defaults to the engine settings.
            limit: Maximum merged results, capped by ``top_k``.
        """
        retrieval = settings or self.settings.retrieval
        max_results = max(1, min(limit or retrieval.top_k, retrieval.top_k))

        ranked = rank_with_scores(
            RankingRequest(
                results=list(results),
                query=query,
                retrieval_mode=retrieval.mode,
                min_score=retrieval.min_score,
                hybrid_alpha=retrieval.hybrid_alpha,
                max_results=max_results,
            )
        )
        merged = [self._from_scored(scored) for scored in ranked]

        strategy = self._strategy()
        if trees and strategy is None:
            self.logger.warning("No LLM adapter configured, skipping %d tree(s)", len(trees))
        elif trees:
            per_tree = await asyncio.gather(
                *(self._search_tree(tree, query, strategy, max_results) for tree in trees)
            )
            for tree_results in per_tree:
                merged.extend(self._from_pageindex(r) for r in tree_results)

        merged = [r for r in merged if r.score > 0]
        merged.sort(key=lambda r: r.score, reverse=True)
        self.logger.debug(
            "Retrieved %d result(s) for %r (%d hit(s), %d tree(s))",
            len(merged[:max_results]),
            query[:80],
            len(results),
            len(trees),
        )
        return merged[:max_results]

    async def retrieve_session(
        self,
        query: str,
        session_key: str,
        results: Sequence[SearchResult] = (),
        limit: Optional[int] = None,
    ) -> list[RetrievalResult]:
        """Like :meth:`retrieve`, over every index built for ``session_key``."""
        trees: list[PageIndexTree] = []
        if self.store is not None:
            meta = await self.store.get_session_meta(session_key)
            for document in meta.documents if meta else []:
                if not document.index_path:
                    continue
                tree = await self.store.load_index(document.index_path)
                if tree is not None:
                    trees.append(tree)
        return await self.retrieve(query, results=results, trees=trees, limit=limit)
