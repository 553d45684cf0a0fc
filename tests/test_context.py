"""Tests for the engine context and converter detection."""
from unittest.mock import MagicMock

import pytest

from kbindex.context import Capabilities, EngineContext
from kbindex.exceptions import ConfigError
from kbindex.llm.adapter import LLMAdapter
from kbindex.pageindex.storage import PageIndexStore


class TestCapabilities:

    def test_detect(self, monkeypatch):
        paths = {"pandoc": "/usr/bin/pandoc", "soffice": "/opt/office/soffice"}
        monkeypatch.setattr("kbindex.context.shutil.which", paths.get)

        caps = Capabilities.detect()

        assert caps.pandoc == "/usr/bin/pandoc"
        assert caps.libreoffice == "/opt/office/soffice"
        assert caps.can_convert_markup
        assert caps.can_convert_office

    def test_nothing_installed(self, monkeypatch):
        monkeypatch.setattr("kbindex.context.shutil.which", lambda name: None)
        caps = Capabilities.detect()
        assert not caps.can_convert_markup
        assert not caps.can_convert_office


class TestEngineContext:

    def test_from_config(self, tmp_path):
        settings_file = tmp_path / "settings.yaml"
        settings_file.write_text("graph:\n  model: small-model\n", encoding="utf-8")
        client = MagicMock()

        ctx = EngineContext.from_config(
            client=client,
            settings_file=str(settings_file),
            overrides={"pageindex": {"strategy": "top_down"}},
            detect_capabilities=False,
        )

        assert isinstance(ctx.adapter, LLMAdapter)
        assert ctx.adapter.client is client
        assert ctx.adapter.model == "small-model"
        assert ctx.settings.pageindex.strategy == "top_down"
        assert isinstance(ctx.store, PageIndexStore)
        assert ctx.capabilities == Capabilities()

    def test_invalid_settings(self):
        with pytest.raises(ConfigError):
            EngineContext.from_config(
                client=MagicMock(), overrides={"unknown": {}}, detect_capabilities=False
            )
