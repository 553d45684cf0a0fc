"""Shared fixtures for the kbindex test-suite."""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Iterable
from unittest.mock import AsyncMock, MagicMock

import pytest

# Make ``kbindex`` importable from the source tree without installing it.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# navconfig locates ``env/.env`` relative to SITE_ROOT; point it at the repo.
os.environ.setdefault("SITE_ROOT", str(PROJECT_ROOT))

from kbindex.pageindex.schemas import PageIndexTree, PageNode  # noqa: E402
from kbindex.ranking.models import SearchResult  # noqa: E402


def make_adapter(*replies: Any) -> MagicMock:
    """Mock LLMAdapter whose ``call_model`` returns (or raises) each reply in turn.

    A single reply is returned (or raised) for every call.
    """
    adapter = MagicMock()
    if len(replies) == 1 and isinstance(replies[0], BaseException):
        adapter.call_model = AsyncMock(side_effect=replies[0])
    elif len(replies) == 1:
        adapter.call_model = AsyncMock(return_value=replies[0])
    else:
        adapter.call_model = AsyncMock(side_effect=list(replies))
    adapter.model = "test-model"
    return adapter


def make_tree(leaves: Iterable[tuple[str, int, int]], doc_name: str = "manual.pdf") -> PageIndexTree:
    nodes = [
        PageNode(title=title, node_id=str(i + 1).zfill(4), start_page=start, end_page=end)
        for i, (title, start, end) in enumerate(leaves)
    ]
    root = PageNode(
        title="Document",
        node_id="0000",
        start_page=1,
        end_page=max((n.end_page for n in nodes), default=1),
        nodes=nodes,
    )
    return PageIndexTree(doc_name=doc_name, structure=root)


@pytest.fixture
def search_hits() -> list[SearchResult]:
    return [
        SearchResult(path="doc-a.md", snippet="Alpha and beta release notes", score=0.2),
        SearchResult(path="doc-b.md", snippet="Gamma rays and delta waves", score=0.9),
        SearchResult(path="doc-c.md", snippet="Only alpha here", score=0.5),
    ]


@pytest.fixture
def nested_tree() -> PageIndexTree:
    return PageIndexTree.model_validate(
        {
            "docName": "guide.pdf",
            "structure": {
                "title": "Document",
                "nodeId": "0000",
                "startPage": 1,
                "endPage": 12,
                "nodes": [
                    {
                        "title": "Introduction",
                        "nodeId": "0001",
                        "startPage": 1,
                        "endPage": 3,
                        "summary": "Overview of the guide",
                    },
                    {
                        "title": "Installation",
                        "nodeId": "0002",
                        "startPage": 4,
                        "endPage": 8,
                        "nodes": [
                            {
                                "title": "Linux",
                                "nodeId": "0003",
                                "startPage": 4,
                                "endPage": 5,
                            },
                            {
                                "title": "Windows",
                                "nodeId": "0004",
                                "startPage": 6,
                                "endPage": 8,
                            },
                        ],
                    },
                    {
                        "title": "Troubleshooting",
                        "nodeId": "0005",
                        "startPage": 9,
                        "endPage": 12,
                    },
                ],
            },
        }
    )


@pytest.fixture
def adapter_factory():
    return make_adapter


@pytest.fixture
def tree_factory():
    return make_tree
