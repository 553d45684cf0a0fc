"""Tests for outline discovery and PageIndex tree assembly."""
import pytest

from kbindex.exceptions import LLMError
from kbindex.pageindex.builder import build_page_index, discover_toc
from kbindex.pageindex.schemas import TocItem
from kbindex.pageindex.tree import get_leaf_nodes, iter_nodes
from kbindex.settings import PageIndexSettings

TOC_TEXT = """Table of Contents
Introduction ........ 1
Setup ........ 3
"""

BODY_TEXT = """Getting started

Install the package and run the first command.

Advanced usage

Tune the configuration for larger workloads.
"""


class TestDiscoverToc:

    @pytest.mark.asyncio
    async def test_structures_detected_toc(self, adapter_factory):
        adapter = adapter_factory(
            '[{"title": "Introduction", "page": 1, "level": 1},'
            ' {"title": "Setup", "page": 3, "level": 1}]'
        )

        items = await discover_toc(TOC_TEXT, adapter)

        assert [(i.title, i.page) for i in items] == [("Introduction", 1), ("Setup", 3)]
        assert adapter.call_model.await_count == 1
        prompt, context = adapter.call_model.await_args.args
        assert "Title: page" in prompt
        assert "Introduction :  1" in context

    @pytest.mark.asyncio
    async def test_generates_without_toc(self, adapter_factory):
        adapter = adapter_factory(
            '[{"title": "Getting started", "level": 1}, {"title": "Advanced usage", "level": 1}]'
        )

        items = await discover_toc(BODY_TEXT, adapter, max_items=5)

        assert [i.title for i in items] == ["Getting started", "Advanced usage"]
        prompt, context = adapter.call_model.await_args.args
        assert "at most 5" in prompt
        assert context == "Extract the table of contents."

    @pytest.mark.asyncio
    async def test_falls_back_when_toc_is_unusable(self, adapter_factory):
        adapter = adapter_factory("no json here", '[{"title": "Setup", "level": 1}]')

        items = await discover_toc(TOC_TEXT, adapter)

        assert [i.title for i in items] == ["Setup"]
        assert adapter.call_model.await_count == 2

    @pytest.mark.asyncio
    async def test_model_failure_gives_no_items(self, adapter_factory):
        items = await discover_toc(BODY_TEXT, adapter_factory(LLMError("down")))
        assert items == []


class TestBuildPageIndex:

    @pytest.mark.asyncio
    async def test_supplied_outline_skips_the_model(self, adapter_factory):
        adapter = adapter_factory("unused")
        toc = [
            TocItem(title="Intro", level=1, page=1),
            TocItem(title="Body", level=1, page=3),
            TocItem(title="Details", level=2, page=4),
            TocItem(title="Appendix", level=1, page=40),
        ]

        tree = await build_page_index("text", 10, "report.pdf", adapter, toc_items=toc)

        adapter.call_model.assert_not_awaited()
        assert tree.doc_name == "report.pdf"
        root = tree.structure
        assert (root.title, root.start_page, root.end_page) == ("Document", 1, 10)
        assert [(n.title, n.start_page, n.end_page) for n in root.nodes] == [
            ("Intro", 1, 2),
            ("Body", 3, 9),
            ("Appendix", 10, 10),
        ]
        assert root.nodes[1].nodes[0].title == "Details"
        assert [n.node_id for n in iter_nodes(root)] == ["0000", "0001", "0002", "0003", "0004"]

    @pytest.mark.asyncio
    async def test_large_sections_are_split(self, adapter_factory):
        toc = [TocItem(title="Only", level=1, page=1)]
        settings = PageIndexSettings(max_pages_per_node=4)

        tree = await build_page_index(
            "text", 10, "big.pdf", adapter_factory("unused"), toc_items=toc, settings=settings
        )

        leaves = get_leaf_nodes(tree.structure)
        assert len(leaves) == 3
        assert all(leaf.page_span <= 4 for leaf in leaves)
        assert leaves[0].title == "Only (Part 1)"
        assert leaves[-1].end_page == 10

    @pytest.mark.asyncio
    async def test_discovers_outline(self, adapter_factory):
        adapter = adapter_factory('[{"title": "Getting started", "level": 1}]')

        tree = await build_page_index(
            BODY_TEXT, 2, "notes.md", adapter, doc_description="Usage notes"
        )

        assert tree.doc_description == "Usage notes"
        assert [n.title for n in tree.structure.nodes] == ["Getting started"]
        assert tree.structure.nodes[0].end_page == 2

    @pytest.mark.asyncio
    async def test_empty_outline(self, adapter_factory):
        tree = await build_page_index(BODY_TEXT, 3, "notes.md", adapter_factory("[]"))
        assert tree.structure.is_leaf
        assert tree.structure.end_page == 3

    @pytest.mark.asyncio
    async def test_with_summaries(self, adapter_factory):
        adapter = adapter_factory("Section summary")
        toc = [TocItem(title="A", page=1), TocItem(title="B", page=2)]

        tree = await build_page_index(
            "page one\npage two", 2, "doc.txt", adapter, toc_items=toc, add_summaries=True
        )

        assert [n.summary for n in tree.structure.nodes] == ["Section summary"] * 2
        assert tree.structure.summary is None
