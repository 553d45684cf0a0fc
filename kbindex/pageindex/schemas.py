"""Pydantic models for PageIndex structures."""
from __future__ import annotations

import math
import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_NON_DIGIT_RE = re.compile(r"[^\d]")


def parse_page_number(value: Any) -> Optional[int]:
    """Coerce a page label (``"12"``, ``"p. 12"``, ``12.0``) into a positive int."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        number = int(value)
    elif isinstance(value, str):
        cleaned = _NON_DIGIT_RE.sub("", value)
        if not cleaned:
            return None
        number = int(cleaned)
    else:
        return None
    return number if number > 0 else None


def _coerce_page(value: Any) -> Optional[int]:
    # Numbers are kept as given (bounds are enforced by validate_toc_items),
    # labels are parsed.
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    return parse_page_number(value)


# --- Tree ---

class PageNode(BaseModel):
    """A section of a document spanning ``start_page``..``end_page``."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    node_id: str = Field(default="", alias="nodeId")
    start_page: int = Field(default=1, alias="startPage")
    end_page: int = Field(default=1, alias="endPage")
    summary: Optional[str] = None
    nodes: list[PageNode] = Field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.nodes

    @property
    def page_span(self) -> int:
        return self.end_page - self.start_page + 1


class PageIndexTree(BaseModel):
    """One indexed document: its name and its section tree."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    doc_name: str = Field(alias="docName")
    doc_description: Optional[str] = Field(default=None, alias="docDescription")
    structure: PageNode


# --- TOC ---

class TocItem(BaseModel):
    """One outline entry; ``level`` starts at 1."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = Field(..., min_length=1)
    level: int = 1
    page: Optional[int] = None
    physical_index: Optional[int] = Field(default=None, alias="physicalIndex")

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("level", mode="before")
    @classmethod
    def _coerce_level(cls, value: Any) -> int:
        try:
            level = int(value)
        except (TypeError, ValueError, OverflowError):
            return 1
        return max(1, level)

    @field_validator("page", "physical_index", mode="before")
    @classmethod
    def _coerce_pages(cls, value: Any) -> Optional[int]:
        return _coerce_page(value)


class TocDetectionResult(BaseModel):
    """Whether raw text carries a table of contents."""
    model_config = ConfigDict(populate_by_name=True)

    has_toc: bool = Field(default=False, alias="hasToc")
    content: Optional[str] = None
    page_numbers: Optional[list[int]] = Field(default=None, alias="pageNumbers")
    has_page_numbers: Optional[bool] = Field(default=None, alias="hasPageNumbers")


class TocTransformResult(BaseModel):
    """Structured outline produced from a TOC or from body text."""
    items: list[TocItem] = Field(default_factory=list)
    accuracy: Optional[float] = None


# --- Search ---

class RelevanceJudgement(BaseModel):
    """Model reply when asked how relevant a section is to a query."""
    relevance: float = 0.0
    reason: Optional[str] = None

    @field_validator("relevance", mode="before")
    @classmethod
    def _coerce_relevance(cls, value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.0
        if score != score:
            return 0.0
        return max(0.0, min(1.0, score))


class PageIndexSearchResult(BaseModel):
    """A section judged relevant to a query."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    document_id: str = Field(alias="documentId")
    filename: str
    content: str
    page_number: int = Field(alias="pageNumber")
    section: str
    score: float
    path: Optional[str] = None


class RetrievalMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    page_number: Optional[int] = Field(default=None, alias="pageNumber")
    section: Optional[str] = None
    chunk_id: Optional[str] = Field(default=None, alias="chunkId")
    path: Optional[str] = None


class RetrievalResult(BaseModel):
    """A merged hit from either the PageIndex or the knowledge search."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: Literal["pageindex", "knowledge"]
    document_id: str = Field(alias="documentId")
    filename: str
    content: str
    score: float
    metadata: RetrievalMetadata = Field(default_factory=RetrievalMetadata)


# --- Persistence ---

class SessionDocumentMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(alias="documentId")
    filename: str
    mime_type: str = Field(default="application/octet-stream", alias="mimeType")
    index_path: Optional[str] = Field(default=None, alias="indexPath")
    built_at: int = Field(default=0, alias="builtAt")


class SessionPageIndexMeta(BaseModel):
    """Per-session index of built documents (``meta.json``)."""
    model_config = ConfigDict(populate_by_name=True)

    session_key: str = Field(alias="sessionKey")
    documents: list[SessionDocumentMeta] = Field(default_factory=list)
    updated_at: int = Field(default=0, alias="updatedAt")


class BuildIndexResult(BaseModel):
    """Outcome of building and persisting one document index."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    document_id: str = Field(alias="documentId")
    index_path: Optional[str] = Field(default=None, alias="indexPath")
    error: Optional[str] = None
