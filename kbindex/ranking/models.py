from typing import List, Literal
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class RetrievalMode(str, Enum):
    """How a candidate's composite score is computed."""

    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    HYBRID = "hybrid"


class SearchResult(BaseModel):
    """
    A single candidate returned by the embedding or lexical backend.

    Scores are whatever the backend produced (usually cosine similarity in
    0..1, but unbounded values are tolerated).
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str
    snippet: str
    score: float
    source: Literal["memory", "sessions"] = "memory"
    start_line: int = Field(default=1, alias="startLine")
    end_line: int = Field(default=1, alias="endLine")


class RankingRequest(BaseModel):
    """One retrieval call: candidates plus the ranking policy to apply."""
    model_config = ConfigDict(populate_by_name=True)

    results: List[SearchResult] = Field(default_factory=list)
    query: str = ""
    retrieval_mode: RetrievalMode = Field(
        default=RetrievalMode.HYBRID,
        alias="retrievalMode"
    )
    min_score: float = Field(default=0.0, alias="minScore")
    hybrid_alpha: float = Field(default=0.5, ge=0.0, le=1.0, alias="hybridAlpha")
    max_results: int = Field(default=5, ge=1, alias="maxResults")


class ScoredResult(BaseModel):
    """A surviving candidate annotated with its composite score."""
    model_config = ConfigDict(frozen=True)

    result: SearchResult
    score: float
    semantic_score: float = 0.0
    keyword_score: float = 0.0
