"""Tests for LLM-assisted triple extraction."""
import hashlib
import json

import pytest

from kbindex.exceptions import LLMError
from kbindex.graph import (
    KnowledgeTriple,
    extract_document_triples,
    extract_triples_via_llm,
    hash_triple_key,
    normalize_triple,
    parse_triples,
    write_triples_jsonl,
)
from kbindex.settings import KnowledgeGraphSettings

VALID_JSONL = "\n".join(
    [
        '{"h": {"name": "Marie Curie"}, "r": {"type": "discovered"}, "t": {"name": "Polonium"}}',
        '{"h": {"name": "Marie Curie", "r": broken',
        '{"h": {"name": "Pierre Curie"}, "r": {"type": "married"}, "t": {"name": "Marie Curie"}}',
        '{"h": {"name": "Radium"}, "r": {"type": "is_a"}}',
        '{"h": "Polonium", "r": "named_after", "t": "Poland"}',
    ]
)


def _keys(triples):
    return [t.key for t in triples]


class TestKnowledgeTriple:

    def test_string_forms_are_normalised(self):
        triple = KnowledgeTriple.model_validate({"h": "A", "r": "rel", "t": "B"})
        assert triple.model_dump() == {
            "h": {"name": "A"},
            "r": {"type": "rel"},
            "t": {"name": "B"},
        }

    def test_extra_attributes_are_kept(self):
        triple = KnowledgeTriple.model_validate(
            {"h": {"name": "A", "type": "Person"}, "r": {"type": "knows"}, "t": {"name": "B"}}
        )
        assert triple.model_dump()["h"]["type"] == "Person"

    def test_normalize_triple(self):
        assert normalize_triple({"h": " A ", "r": "rel", "t": "B"}).key == "A::rel::B"
        assert normalize_triple({"h": "A", "r": "rel"}) is None
        assert normalize_triple({"h": "  ", "r": "rel", "t": "B"}) is None
        assert normalize_triple("not an object") is None


class TestParseTriples:

    def test_malformed_lines_skipped_in_order(self):
        triples = parse_triples(VALID_JSONL)
        assert _keys(triples) == [
            "Marie Curie::discovered::Polonium",
            "Pierre Curie::married::Marie Curie",
            "Polonium::named_after::Poland",
        ]

    def test_fenced_payload(self):
        payload = "```jsonl\n" + VALID_JSONL + "\n```"
        assert len(parse_triples(payload)) == 3

    def test_whole_array(self):
        payload = json.dumps(
            [
                {"h": "A", "r": "r1", "t": "B"},
                {"h": "C", "r": "r2"},
                {"h": "D", "r": "r3", "t": "E"},
            ]
        )
        assert _keys(parse_triples(payload)) == ["A::r1::B", "D::r3::E"]

    def test_broken_array_falls_back_to_lines(self):
        payload = '[\n{"h": "A", "r": "r1", "t": "B"},\n{"h": "C", "r": \n]'
        assert _keys(parse_triples(payload)) == ["A::r1::B"]

    def test_several_payloads(self):
        triples = parse_triples(
            ['{"h": "A", "r": "r", "t": "B"}', "", '{"h": "C", "r": "r", "t": "D"}']
        )
        assert _keys(triples) == ["A::r::B", "C::r::D"]

    def test_garbage(self):
        assert parse_triples("I could not find any facts.") == []


class TestExtractTriplesViaLlm:

    @pytest.mark.asyncio
    async def test_returns_valid_triples(self, adapter_factory):
        adapter = adapter_factory(VALID_JSONL)
        settings = KnowledgeGraphSettings(model="graph-model")

        result = await extract_triples_via_llm("Some text about the Curies.", settings, adapter)

        assert result.target_triples == 20
        assert len(result.triples) == 3
        assert result.raw_text == VALID_JSONL
        prompt, context = adapter.call_model.await_args.args
        assert "up to 20 triples" in prompt
        assert "Some text about the Curies." in context
        assert adapter.call_model.await_args.kwargs["model"] == "graph-model"

    @pytest.mark.asyncio
    async def test_truncates_to_target(self, adapter_factory):
        adapter = adapter_factory(VALID_JSONL)
        settings = KnowledgeGraphSettings(min_triples=1, max_triples=2)

        result = await extract_triples_via_llm("tiny", settings, adapter)

        assert result.target_triples == 2
        assert _keys(result.triples) == [
            "Marie Curie::discovered::Polonium",
            "Pierre Curie::married::Marie Curie",
        ]

    @pytest.mark.asyncio
    async def test_long_text_is_capped_in_context(self, adapter_factory):
        adapter = adapter_factory("")
        await extract_triples_via_llm("z" * 20000, KnowledgeGraphSettings(), adapter)
        _, context = adapter.call_model.await_args.args
        assert context.count("z") == 16000

    @pytest.mark.asyncio
    async def test_model_failure_raises(self, adapter_factory):
        adapter = adapter_factory(LLMError("provider down"))
        with pytest.raises(LLMError):
            await extract_triples_via_llm("text", KnowledgeGraphSettings(), adapter)


class TestExtractDocumentTriples:

    @pytest.mark.asyncio
    async def test_failed_chunk_contributes_nothing(self, adapter_factory):
        adapter = adapter_factory(
            '{"h": "A", "r": "r", "t": "B"}',
            LLMError("timeout"),
            '{"h": "C", "r": "r", "t": "D"}',
        )
        results = await extract_document_triples(
            ["chunk one", "chunk two", "chunk three"],
            KnowledgeGraphSettings(),
            adapter,
        )
        assert [len(r.triples) for r in results] == [1, 0, 1]
        assert adapter.call_model.await_count == 3


class TestPersistence:

    def test_hash_triple_key(self):
        triple = KnowledgeTriple.model_validate({"h": "A", "r": "rel", "t": "B"})
        same = KnowledgeTriple.model_validate(
            {"h": {"name": "A"}, "r": {"type": "rel"}, "t": {"name": "B"}}
        )
        expected = hashlib.sha256("A::rel::B".encode("utf-8")).hexdigest()
        assert hash_triple_key(triple) == expected
        assert hash_triple_key(same) == expected

    @pytest.mark.asyncio
    async def test_write_triples_jsonl(self, tmp_path):
        triples = parse_triples(VALID_JSONL)
        path = await write_triples_jsonl(tmp_path / "graph" / "triples.jsonl", triples)

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 3
        assert json.loads(lines[0]) == triples[0].model_dump()

    @pytest.mark.asyncio
    async def test_write_empty(self, tmp_path):
        path = await write_triples_jsonl(tmp_path / "empty.jsonl", [])
        assert path.read_text(encoding="utf-8") == ""
