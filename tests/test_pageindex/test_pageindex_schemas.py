"""Tests for PageIndex models and their coercions."""
import math

import pytest
from pydantic import ValidationError

from kbindex.pageindex.schemas import (
    PageIndexTree,
    PageNode,
    RelevanceJudgement,
    RetrievalResult,
    TocItem,
    parse_page_number,
)


class TestParsePageNumber:

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("12", 12),
            ("p. 12", 12),
            (" 7 ", 7),
            (3, 3),
            (4.9, 4),
            ("0", None),
            (-2, None),
            ("", None),
            ("iv", None),
            (None, None),
            (True, None),
            ([1], None),
        ],
    )
    def test_values(self, value, expected):
        assert parse_page_number(value) == expected


class TestTocItem:

    def test_coercions(self):
        item = TocItem.model_validate(
            {"title": "  Setup  ", "level": "2", "page": "p. 4", "physicalIndex": 6.0}
        )
        assert item.title == "Setup"
        assert item.level == 2
        assert item.page == 4
        assert item.physical_index == 6

    @pytest.mark.parametrize("level", [0, -1, "deep", None])
    def test_invalid_level_defaults_to_one(self, level):
        assert TocItem(title="A", level=level).level == 1

    def test_numeric_pages_are_kept_for_clamping(self):
        assert TocItem(title="A", page=-3).page == -3
        assert TocItem(title="A", page="abc").page is None

    @pytest.mark.parametrize("title", ["", "   ", None])
    def test_title_is_required(self, title):
        with pytest.raises(ValidationError):
            TocItem(title=title)


class TestPageNode:

    def test_aliases_and_properties(self):
        node = PageNode.model_validate(
            {"title": "Root", "nodeId": "0000", "startPage": 2, "endPage": 5}
        )
        assert node.node_id == "0000"
        assert node.page_span == 4
        assert node.is_leaf
        dumped = node.model_dump(by_alias=True, exclude_none=True)
        assert dumped == {
            "title": "Root",
            "nodeId": "0000",
            "startPage": 2,
            "endPage": 5,
            "nodes": [],
        }

    def test_frozen(self):
        node = PageNode(title="A")
        with pytest.raises(ValidationError):
            node.title = "B"

    def test_tree_round_trip(self, nested_tree):
        data = nested_tree.model_dump(by_alias=True)
        assert PageIndexTree.model_validate(data) == nested_tree
        assert not nested_tree.structure.is_leaf


class TestRelevanceJudgement:

    @pytest.mark.parametrize(
        "value, expected",
        [
            (0.25, 0.25),
            ("0.75", 0.75),
            (3, 1.0),
            (-1, 0.0),
            ("high", 0.0),
            (None, 0.0),
            (math.nan, 0.0),
        ],
    )
    def test_relevance(self, value, expected):
        assert RelevanceJudgement(relevance=value).relevance == expected


class TestRetrievalResult:

    def test_source_is_restricted(self):
        with pytest.raises(ValidationError):
            RetrievalResult(source="web", document_id="d", filename="f", content="c", score=1)

    def test_alias_dump(self):
        result = RetrievalResult(
            source="pageindex", document_id="d", filename="f", content="c", score=0.5
        )
        data = result.model_dump(by_alias=True)
        assert data["documentId"] == "d"
        assert data["metadata"]["pageNumber"] is None
