"""Tests for engine settings and the YAML settings loader."""
import pytest
from pydantic import ValidationError

from kbindex.exceptions import ConfigError
from kbindex.ranking.models import RetrievalMode
from kbindex.settings import (
    ConfigLoader,
    EngineSettings,
    KnowledgeGraphSettings,
    PageIndexSettings,
    RetrievalSettings,
)


class TestSettingsModels:

    def test_defaults(self):
        settings = EngineSettings()
        assert settings.retrieval.mode is RetrievalMode.HYBRID
        assert settings.retrieval.top_k == 5
        assert settings.graph.min_triples == 20
        assert settings.graph.max_triples == 400
        assert settings.graph.triples_per_k_tokens == 20
        assert settings.pageindex.max_pages_per_node == 10
        assert settings.pageindex.strategy in ("leaf_scan", "top_down")

    def test_aliases(self):
        graph = KnowledgeGraphSettings.model_validate({"minTriples": 5, "maxTriples": 50})
        assert (graph.min_triples, graph.max_triples) == (5, 50)
        retrieval = RetrievalSettings.model_validate({"topK": 3, "hybridAlpha": 0.2})
        assert (retrieval.top_k, retrieval.hybrid_alpha) == (3, 0.2)

    def test_bounds_are_checked(self):
        with pytest.raises(ValidationError):
            KnowledgeGraphSettings(min_triples=10, max_triples=5)
        with pytest.raises(ValidationError):
            RetrievalSettings(hybrid_alpha=1.5)
        with pytest.raises(ValidationError):
            PageIndexSettings(strategy="beam")

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ValidationError):
            PageIndexSettings(max_pages=3)


class TestConfigLoader:

    def test_without_file(self):
        assert ConfigLoader().load() == EngineSettings()
        assert ConfigLoader("/does/not/exist.yaml").load() == EngineSettings()

    def test_file_and_overrides(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "retrieval:\n"
            "  mode: keyword\n"
            "  topK: 8\n"
            "pageindex:\n"
            "  strategy: top_down\n"
            "  max_depth: 2\n",
            encoding="utf-8",
        )

        settings = ConfigLoader(str(path)).load(
            {"retrieval": {"topK": 3}, "graph": {"maxTriples": 100}}
        )

        assert settings.retrieval.mode is RetrievalMode.KEYWORD
        assert settings.retrieval.top_k == 3
        assert settings.graph.max_triples == 100
        assert settings.pageindex.strategy == "top_down"
        assert settings.pageindex.max_depth == 2

    def test_settings_object_override(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("retrieval:\n  topK: 8\n", encoding="utf-8")
        override = EngineSettings(pageindex=PageIndexSettings(max_pages_per_node=3))

        settings = ConfigLoader(str(path)).load(override)

        assert settings.retrieval.top_k == 8
        assert settings.pageindex.max_pages_per_node == 3

    def test_unknown_section(self, tmp_path):
        with pytest.raises(ConfigError):
            ConfigLoader().load({"ranking": {}})
        path = tmp_path / "settings.yaml"
        path.write_text("storage:\n  dir: /tmp\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            ConfigLoader(str(path)).load()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("retrieval: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            ConfigLoader(str(path))

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            ConfigLoader(str(path))

    def test_invalid_values(self):
        with pytest.raises(ConfigError) as excinfo:
            ConfigLoader().load({"graph": {"minTriples": 500, "maxTriples": 10}})
        assert excinfo.value.payload

    def test_bad_option_type(self):
        with pytest.raises(TypeError):
            ConfigLoader().load(["retrieval"])
