"""KBIndex: hybrid knowledge retrieval and graph construction.

Ranks heterogeneous search hits, structures documents into PageIndex trees
searched with LLM reasoning, and extracts knowledge-graph triples.
"""
from .version import (
    __author__,
    __description__,
    __title__,
    __version__,
)

__all__ = (
    "__author__",
    "__description__",
    "__title__",
    "__version__",
)
