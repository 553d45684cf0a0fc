"""Engine settings: validated configuration objects and the YAML loader.

Settings are validated here, at the configuration boundary; the ranking,
extraction and search engines take them as given.
"""
from __future__ import annotations

import os
from typing import Any, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .conf import (
    KB_PAGEINDEX_MAX_CONCURRENCY,
    KB_PAGEINDEX_STRATEGY,
)
from .exceptions import ConfigError
from .ranking.models import RetrievalMode


class KnowledgeGraphSettings(BaseModel):
    """Triple extraction settings, fixed for the duration of one call."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    enabled: bool = False
    extractor: Literal["llm"] = "llm"
    provider: Optional[str] = None
    model: Optional[str] = None
    min_triples: int = Field(default=20, ge=0, alias="minTriples")
    max_triples: int = Field(default=400, ge=1, alias="maxTriples")
    triples_per_k_tokens: float = Field(default=20, gt=0, alias="triplesPerKTokens")
    max_depth: int = Field(default=2, ge=1, alias="maxDepth")

    @model_validator(mode="after")
    def _check_bounds(self) -> "KnowledgeGraphSettings":
        if self.min_triples > self.max_triples:
            raise ValueError(
                f"minTriples ({self.min_triples}) exceeds maxTriples ({self.max_triples})"
            )
        return self


class RetrievalSettings(BaseModel):
    """Ranking policy for flat search hits."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    mode: RetrievalMode = RetrievalMode.HYBRID
    min_score: float = Field(default=0.0, alias="minScore")
    hybrid_alpha: float = Field(default=0.5, ge=0.0, le=1.0, alias="hybridAlpha")
    top_k: int = Field(default=5, ge=1, alias="topK")


class PageIndexSettings(BaseModel):
    """PageIndex construction and tree-search settings."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    strategy: Literal["leaf_scan", "top_down"] = KB_PAGEINDEX_STRATEGY
    max_concurrency: int = Field(default=KB_PAGEINDEX_MAX_CONCURRENCY, ge=1)
    relevance_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    max_depth: int = Field(default=4, ge=1)
    max_pages_per_node: int = Field(default=10, ge=1)
    max_toc_items: int = Field(default=20, ge=1)


class EngineSettings(BaseModel):
    """All engine settings, as loaded from YAML and user overrides."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    graph: KnowledgeGraphSettings = Field(default_factory=KnowledgeGraphSettings)
    pageindex: PageIndexSettings = Field(default_factory=PageIndexSettings)


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Load engine settings from YAML with user overrides."""

    def __init__(self, default_path: Optional[str] = None):
        if default_path and os.path.exists(default_path):
            self._default_dict = self._load_yaml(default_path)
        else:
            self._default_dict = {}

    @staticmethod
    def _load_yaml(path: str) -> dict:
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Settings file {path} must contain a mapping")
        return data

    def _validate_keys(self, user_dict: dict) -> None:
        unknown_keys = set(user_dict) - set(EngineSettings.model_fields)
        if unknown_keys:
            raise ConfigError(f"Unknown config keys: {sorted(unknown_keys)}")

    def load(self, user_opt: Union[dict, EngineSettings, None] = None) -> EngineSettings:
        """Merge user options over the file defaults and validate."""
        if user_opt is None:
            user_dict: dict[str, Any] = {}
        elif isinstance(user_opt, EngineSettings):
            user_dict = user_opt.model_dump(exclude_unset=True)
        elif isinstance(user_opt, dict):
            user_dict = user_opt
        else:
            raise TypeError("user_opt must be dict, EngineSettings or None")

        self._validate_keys(self._default_dict)
        self._validate_keys(user_dict)
        merged = _deep_merge(self._default_dict, user_dict)
        try:
            return EngineSettings.model_validate(merged)
        except ValidationError as exc:
            raise ConfigError(
                f"Invalid engine settings: {exc.error_count()} error(s)",
                payload=exc.errors(),
            ) from exc
