"""Relevance evaluation and tree-search strategies for PageIndex trees."""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from pydantic import ValidationError

from ..conf import KB_PAGEINDEX_MAX_CONCURRENCY
from ..exceptions import ConfigError
from ..llm.adapter import LLMAdapter
from ..llm.parsing import Parsed, parse_json_value
from ..settings import PageIndexSettings
from .schemas import PageNode, RelevanceJudgement
from .tree import get_leaf_nodes

logger = logging.getLogger("kbindex.pageindex")


@runtime_checkable
class RelevanceEvaluator(Protocol):
    """Scores one node against a query, in ``[0, 1]``."""

    async def evaluate(self, query: str, node: PageNode) -> float:
        ...


class LLMRelevanceEvaluator:
    """Asks the model for a ``{"relevance", "reason"}`` judgement per node."""

    temperature: float = 0.3

    def __init__(self, adapter: LLMAdapter):
        self.adapter = adapter

    def _build_prompt(self, query: str, node: PageNode) -> str:
        summary = f"Section summary: {node.summary}\n" if node.summary else ""
        return f"""Judge how relevant the following section is to the user's question.

User question: {query}

Section title: {node.title}
{summary}
Return a JSON object with:
- relevance: a score between 0 and 1 (1 means highly relevant)
- reason: a short explanation

Return only the JSON, nothing else."""

    async def evaluate(self, query: str, node: PageNode) -> float:
        try:
            raw = await self.adapter.call_model(
                self._build_prompt(query, node),
                "Evaluate relevance.",
                temperature=self.temperature,
            )
        except Exception as exc:
            logger.warning("Failed to evaluate relevance of %r: %s", node.title, exc)
            return 0.0
        outcome = parse_json_value(raw, expect=dict, start_chars="{")
        if not isinstance(outcome, Parsed):
            logger.debug("Unusable relevance reply for %r: %s", node.title, outcome.reason)
            return 0.0
        try:
            judgement = RelevanceJudgement.model_validate(outcome.value)
        except ValidationError:
            return 0.0
        return judgement.relevance


@dataclass(frozen=True)
class NodeScore:
    node: PageNode
    relevance: float


class SearchStrategy(ABC):
    """Decides which nodes of a tree get evaluated, and evaluates them.

    Evaluations fan out concurrently behind a semaphore; every evaluation
    is awaited, and a failed one scores ``0.0``.
    """

    name: str = ""

    def __init__(
        self,
        evaluator: RelevanceEvaluator,
        max_concurrency: int = KB_PAGEINDEX_MAX_CONCURRENCY,
    ):
        self.evaluator = evaluator
        self.max_concurrency = max(1, max_concurrency)

    async def _evaluate(
        self,
        query: str,
        node: PageNode,
        semaphore: asyncio.Semaphore,
    ) -> NodeScore:
        async with semaphore:
            try:
                relevance = await self.evaluator.evaluate(query, node)
            except Exception as exc:
                logger.warning("Relevance evaluation failed for %r: %s", node.title, exc)
                relevance = 0.0
        return NodeScore(node=node, relevance=relevance)

    async def evaluate_all(self, query: str, nodes: list[PageNode]) -> list[NodeScore]:
        """Evaluate ``nodes`` concurrently; results keep the input order."""
        if not nodes:
            return []
        semaphore = asyncio.Semaphore(self.max_concurrency)
        return list(
            await asyncio.gather(
                *(self._evaluate(query, node, semaphore) for node in nodes)
            )
        )

    @abstractmethod
    async def score_nodes(self, query: str, root: PageNode) -> list[NodeScore]:
        """Return candidate nodes with their relevance, in document order."""


class LeafScanStrategy(SearchStrategy):
    """Evaluate every leaf of the tree."""

    name = "leaf_scan"

    async def score_nodes(self, query: str, root: PageNode) -> list[NodeScore]:
        return await self.evaluate_all(query, get_leaf_nodes(root))


class TopDownStrategy(SearchStrategy):
    """Evaluate level by level, descending only into relevant branches.

    A branch whose relevance is below ``relevance_threshold`` is not
    expanded; it is reported as a candidate with its own score. Nodes at
    ``max_depth`` are reported without descending further.
    """

    name = "top_down"

    def __init__(
        self,
        evaluator: RelevanceEvaluator,
        max_concurrency: int = KB_PAGEINDEX_MAX_CONCURRENCY,
        relevance_threshold: float = 0.5,
        max_depth: int = 4,
    ):
        super().__init__(evaluator, max_concurrency=max_concurrency)
        self.relevance_threshold = relevance_threshold
        self.max_depth = max(1, max_depth)

    async def score_nodes(self, query: str, root: PageNode) -> list[NodeScore]:
        frontier = list(root.nodes) or [root]
        candidates: list[NodeScore] = []
        depth = 1
        while frontier:
            scores = await self.evaluate_all(query, frontier)
            next_frontier: list[PageNode] = []
            for scored in scores:
                if (
                    scored.node.is_leaf
                    or depth >= self.max_depth
                    or scored.relevance < self.relevance_threshold
                ):
                    candidates.append(scored)
                else:
                    next_frontier.extend(scored.node.nodes)
            logger.debug(
                "Depth %d: %d evaluated, %d expanded", depth, len(scores), len(next_frontier)
            )
            frontier = next_frontier
            depth += 1
        return candidates


STRATEGIES: dict[str, type[SearchStrategy]] = {
    LeafScanStrategy.name: LeafScanStrategy,
    TopDownStrategy.name: TopDownStrategy,
}


def get_strategy(
    name: str,
    evaluator: RelevanceEvaluator,
    settings: Optional[PageIndexSettings] = None,
) -> SearchStrategy:
    """Build the strategy registered under ``name``.

    Raises:
        ConfigError: for an unknown strategy name.
    """
    settings = settings or PageIndexSettings()
    try:
        strategy_cls = STRATEGIES[name]
    except KeyError as exc:
        raise ConfigError(
            f"Unknown PageIndex search strategy: {name!r}",
            payload=sorted(STRATEGIES),
        ) from exc
    if strategy_cls is TopDownStrategy:
        return TopDownStrategy(
            evaluator,
            max_concurrency=settings.max_concurrency,
            relevance_threshold=settings.relevance_threshold,
            max_depth=settings.max_depth,
        )
    return strategy_cls(evaluator, max_concurrency=settings.max_concurrency)
