"""Reasoning-style retrieval over PageIndex trees."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional, Union

from ..conf import KB_PAGEINDEX_MAX_CONCURRENCY
from ..exceptions import LLMError
from ..llm.adapter import LLMAdapter
from ..settings import PageIndexSettings
from .schemas import PageIndexSearchResult, PageIndexTree, PageNode
from .strategies import (
    LeafScanStrategy,
    LLMRelevanceEvaluator,
    NodeScore,
    SearchStrategy,
    get_strategy,
)
from .tree import iter_nodes

logger = logging.getLogger("kbindex.pageindex")

# Estimated lines per page when slicing plain text by page range.
LINES_PER_PAGE = 50
SUMMARY_MAX_CHARS = 100
SUMMARY_EXCERPT_CHARS = 2000
CONTEXT_CONDENSE_THRESHOLD = 2000
CONTEXT_FALLBACK_CHARS = 1000


def node_content(node: PageNode) -> str:
    return node.summary or f"{node.title} (Page {node.start_page}-{node.end_page})"


def page_slice(full_text: str, start_page: int, end_page: int) -> str:
    """Text of ``start_page``..``end_page`` using the lines-per-page estimate."""
    lines = (full_text or "").split("\n")
    start_line = max(0, (start_page - 1) * LINES_PER_PAGE)
    end_line = max(start_line, end_page * LINES_PER_PAGE)
    return "\n".join(lines[start_line:end_line])


async def rank_nodes(
    tree: PageIndexTree,
    query: str,
    strategy: SearchStrategy,
    limit: int = 5,
) -> list[NodeScore]:
    """Top ``limit`` nodes by relevance (ties keep document order), zeros dropped."""
    scored = await strategy.score_nodes(query, tree.structure)
    ranked = sorted(scored, key=lambda s: s.relevance, reverse=True)
    return [s for s in ranked[: max(0, limit)] if s.relevance > 0]


async def search_page_index(
    tree: PageIndexTree,
    query: str,
    adapter: Optional[LLMAdapter] = None,
    limit: int = 5,
    strategy: Optional[SearchStrategy] = None,
) -> list[PageIndexSearchResult]:
    """Search one document tree for sections relevant to ``query``.

    Uses the leaf-scan strategy over ``adapter`` unless a strategy is given.
    Failed evaluations count as relevance 0 and never appear in the output.
    """
    if strategy is None:
        if adapter is None:
            raise ValueError("search_page_index needs an adapter or a strategy")
        strategy = LeafScanStrategy(LLMRelevanceEvaluator(adapter))
    top = await rank_nodes(tree, query, strategy, limit=limit)
    logger.debug("PageIndex search on %s: %d result(s)", tree.doc_name, len(top))
    return [
        PageIndexSearchResult(
            document_id=tree.doc_name,
            filename=tree.doc_name,
            content=node_content(s.node),
            page_number=s.node.start_page,
            section=s.node.title,
            score=s.relevance,
        )
        for s in top
    ]


async def generate_node_summary(
    node: PageNode,
    full_text: str,
    adapter: LLMAdapter,
) -> str:
    """Short (at most 100 characters) summary of a node's text."""
    excerpt = page_slice(full_text, node.start_page, node.end_page) or full_text or ""
    excerpt = excerpt[:SUMMARY_EXCERPT_CHARS]
    prompt = f"""Write a concise summary (at most {SUMMARY_MAX_CHARS} characters) of the section below.

Section title: {node.title}
Pages: {node.start_page}-{node.end_page}

Section excerpt:
{excerpt}

Return only the summary text, nothing else."""
    try:
        summary = await adapter.call_model(
            prompt, "Generate a summary.", temperature=0.5, max_tokens=200
        )
    except LLMError as exc:
        logger.warning("Failed to generate summary for %r: %s", node.title, exc)
        summary = ""
    summary = " ".join((summary or "").split())
    if not summary:
        summary = " ".join(excerpt.split())
    return summary[:SUMMARY_MAX_CHARS]


def _with_summaries(node: PageNode, summaries: dict[int, str]) -> PageNode:
    update: dict = {"nodes": [_with_summaries(child, summaries) for child in node.nodes]}
    if id(node) in summaries:
        update["summary"] = summaries[id(node)]
    return node.model_copy(update=update)


async def add_node_summaries(
    tree: PageIndexTree,
    full_text: str,
    adapter: LLMAdapter,
    max_concurrency: int = KB_PAGEINDEX_MAX_CONCURRENCY,
) -> PageIndexTree:
    """Return a copy of ``tree`` where every section lacking a summary has one."""
    pending = [
        node for node in iter_nodes(tree.structure)
        if node is not tree.structure and not node.summary
    ]
    if not pending:
        return tree
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _summarize(node: PageNode) -> str:
        async with semaphore:
            return await generate_node_summary(node, full_text, adapter)

    summaries = await asyncio.gather(*(_summarize(node) for node in pending))
    by_node = {id(node): summary for node, summary in zip(pending, summaries)}
    return tree.model_copy(
        update={"structure": _with_summaries(tree.structure, by_node)}
    )


async def extract_context(
    query: str,
    full_text: str,
    page_range: tuple[int, int],
    adapter: LLMAdapter,
) -> str:
    """Text of a page range, condensed by the model when it is long."""
    start_page, end_page = page_range
    page_text = page_slice(full_text, start_page, end_page)
    if len(page_text) <= CONTEXT_CONDENSE_THRESHOLD:
        return page_text
    prompt = f"""Extract the content relevant to the user's question from the text below.

User question: {query}

Text:
{page_text}

Return only the relevant passages, keeping the key information."""
    try:
        return await adapter.call_model(
            prompt, "Extract the relevant content.", max_tokens=1000
        )
    except LLMError as exc:
        logger.warning("Context extraction failed, using raw text: %s", exc)
        return page_text[:CONTEXT_FALLBACK_CHARS]


class PageIndexRetriever:
    """Tree-search retriever over one PageIndex tree.

    The strategy decides which sections are evaluated; the adapter is used
    for relevance judgements and, when ``full_text`` is known, to condense
    the text of the matching sections.
    """

    def __init__(
        self,
        tree: PageIndexTree,
        adapter: LLMAdapter,
        strategy: Union[SearchStrategy, str, None] = None,
        settings: Optional[PageIndexSettings] = None,
        full_text: Optional[str] = None,
    ):
        self.tree = tree
        self.adapter = adapter
        self.settings = settings or PageIndexSettings()
        self.full_text = full_text
        if isinstance(strategy, SearchStrategy):
            self.strategy = strategy
        else:
            self.strategy = get_strategy(
                strategy or self.settings.strategy,
                LLMRelevanceEvaluator(adapter),
                self.settings,
            )

    async def search(self, query: str, limit: int = 5) -> list[PageIndexSearchResult]:
        return await search_page_index(
            self.tree, query, limit=limit, strategy=self.strategy
        )

    async def retrieve(self, query: str, limit: int = 5) -> str:
        """Search the tree and return the text of the matching sections."""
        top = await rank_nodes(self.tree, query, self.strategy, limit=limit)
        if not top:
            logger.info("No relevant nodes found for query: %s", query[:100])
            return ""
        context_parts: list[str] = []
        for scored in top:
            node = scored.node
            if self.full_text:
                text = await extract_context(
                    query,
                    self.full_text,
                    (node.start_page, node.end_page),
                    self.adapter,
                )
            else:
                text = node_content(node)
            context_parts.append(f"## {node.title}\n{text}")
        return "\n\n".join(context_parts)

    def get_tree_context(self, include_summaries: bool = True) -> str:
        """The tree as context for system prompts.

        Args:
            include_summaries: If True, one ``[id] title (pages a-b)`` line
                per node with its summary; otherwise the JSON structure.
        """
        if not include_summaries:
            return json.dumps(
                self.tree.structure.model_dump(by_alias=True, exclude_none=True),
                indent=2,
                ensure_ascii=False,
            )
        lines: list[str] = []
        for node in iter_nodes(self.tree.structure):
            line = f"[{node.node_id}] {node.title} (pages {node.start_page}-{node.end_page})"
            if node.summary:
                line += f"\n    Summary: {node.summary}"
            lines.append(line)
        return "\n".join(lines)

    def get_tree_json(self) -> dict:
        return self.tree.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(
        cls,
        json_data: Union[dict, str],
        adapter: LLMAdapter,
        **kwargs,
    ) -> PageIndexRetriever:
        """Create a retriever from a JSON file path or dict."""
        if isinstance(json_data, str):
            with open(json_data, "r", encoding="utf-8") as f:
                data = json.load(f)
        else:
            data = json_data
        return cls(tree=PageIndexTree.model_validate(data), adapter=adapter, **kwargs)
