"""Engine context: shared collaborators, resolved once at start-up."""
from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from typing import Optional

from navconfig.logging import logging
from pydantic import BaseModel, ConfigDict

from .conf import KB_INDEX_DIR, KB_SETTINGS_FILE
from .llm.adapter import LLMAdapter
from .llm.client import AbstractClient, OpenAIClient
from .pageindex.storage import PageIndexStore
from .settings import ConfigLoader, EngineSettings


class Capabilities(BaseModel):
    """External document converters available on this host."""
    model_config = ConfigDict(frozen=True)

    pandoc: Optional[str] = None
    libreoffice: Optional[str] = None

    @property
    def can_convert_office(self) -> bool:
        return self.libreoffice is not None

    @property
    def can_convert_markup(self) -> bool:
        return self.pandoc is not None

    @classmethod
    def detect(cls) -> Capabilities:
        """Look the converters up on ``PATH``."""
        return cls(
            pandoc=shutil.which("pandoc"),
            libreoffice=shutil.which("libreoffice") or shutil.which("soffice"),
        )


@dataclass
class EngineContext:
    """Adapter, settings, store and host capabilities, passed by reference."""

    adapter: LLMAdapter
    settings: EngineSettings = field(default_factory=EngineSettings)
    store: Optional[PageIndexStore] = None
    capabilities: Capabilities = field(default_factory=Capabilities)

    @classmethod
    def from_config(
        cls,
        client: Optional[AbstractClient] = None,
        settings_file: Optional[str] = None,
        overrides: Optional[dict] = None,
        detect_capabilities: bool = True,
    ) -> EngineContext:
        """Build a context from navconfig values and the optional YAML file."""
        logger = logging.getLogger("kbindex.context")
        settings = ConfigLoader(settings_file or KB_SETTINGS_FILE).load(overrides)
        capabilities = Capabilities.detect() if detect_capabilities else Capabilities()
        logger.debug(
            "Engine context: strategy=%s, pandoc=%s, libreoffice=%s",
            settings.pageindex.strategy,
            capabilities.pandoc,
            capabilities.libreoffice,
        )
        client = client or OpenAIClient()
        return cls(
            adapter=LLMAdapter(client, model=settings.graph.model),
            settings=settings,
            store=PageIndexStore(KB_INDEX_DIR),
            capabilities=capabilities,
        )
