from typing import Any, List
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


class EntityRef(BaseModel):
    """Head or tail entity of a triple; extra attributes are kept."""
    model_config = ConfigDict(frozen=True, extra="allow")

    name: str = Field(..., min_length=1)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        return _as_text(value)


class RelationRef(BaseModel):
    """Relation of a triple; extra attributes are kept."""
    model_config = ConfigDict(frozen=True, extra="allow")

    type: str = Field(..., min_length=1)

    @field_validator("type", mode="before")
    @classmethod
    def _strip_type(cls, value: Any) -> str:
        return _as_text(value)


class KnowledgeTriple(BaseModel):
    """
    A head-entity / relation / tail-entity fact.

    Plain strings are accepted for ``h``, ``r`` and ``t`` and normalised
    into ``{"name": ...}`` / ``{"type": ...}`` objects.
    """
    model_config = ConfigDict(frozen=True)

    h: EntityRef
    r: RelationRef
    t: EntityRef

    @field_validator("h", "t", mode="before")
    @classmethod
    def _entity_from_str(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"name": value}
        return value

    @field_validator("r", mode="before")
    @classmethod
    def _relation_from_str(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"type": value}
        return value

    @property
    def key(self) -> str:
        return f"{self.h.name}::{self.r.type}::{self.t.name}"


class TripleExtractionResult(BaseModel):
    """Outcome of one extraction call over a text chunk."""
    triples: List[KnowledgeTriple] = Field(default_factory=list)
    raw_text: str = ""
    target_triples: int = 0
