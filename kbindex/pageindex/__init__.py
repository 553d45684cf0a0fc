"""PageIndex: hierarchical document indexing and reasoning-based retrieval.

Documents are indexed as a tree of sections (built from a table of
contents, or from an outline inferred by the model) and searched by asking
the model how relevant each section is to a query.
"""
from .schemas import (
    BuildIndexResult,
    PageIndexSearchResult,
    PageIndexTree,
    PageNode,
    RelevanceJudgement,
    RetrievalMetadata,
    RetrievalResult,
    SessionDocumentMeta,
    SessionPageIndexMeta,
    TocDetectionResult,
    TocItem,
    TocTransformResult,
)
from .toc import (
    detect_toc,
    generate_toc_from_text,
    parse_page_number,
    transform_toc,
    validate_toc_items,
)
from .tree import (
    build_tree,
    find_node_by_id,
    get_leaf_nodes,
    iter_nodes,
    print_tree,
    process_large_nodes,
)
from .strategies import (
    LeafScanStrategy,
    LLMRelevanceEvaluator,
    RelevanceEvaluator,
    SearchStrategy,
    TopDownStrategy,
    get_strategy,
)
from .search import (
    PageIndexRetriever,
    add_node_summaries,
    extract_context,
    generate_node_summary,
    search_page_index,
)
from .builder import build_page_index
from .storage import PageIndexStore

__all__ = [
    "BuildIndexResult",
    "PageIndexSearchResult",
    "PageIndexTree",
    "PageNode",
    "RelevanceJudgement",
    "RetrievalMetadata",
    "RetrievalResult",
    "SessionDocumentMeta",
    "SessionPageIndexMeta",
    "TocDetectionResult",
    "TocItem",
    "TocTransformResult",
    "detect_toc",
    "generate_toc_from_text",
    "parse_page_number",
    "transform_toc",
    "validate_toc_items",
    "build_tree",
    "find_node_by_id",
    "get_leaf_nodes",
    "iter_nodes",
    "print_tree",
    "process_large_nodes",
    "LeafScanStrategy",
    "LLMRelevanceEvaluator",
    "RelevanceEvaluator",
    "SearchStrategy",
    "TopDownStrategy",
    "get_strategy",
    "PageIndexRetriever",
    "add_node_summaries",
    "extract_context",
    "generate_node_summary",
    "search_page_index",
    "build_page_index",
    "PageIndexStore",
]
