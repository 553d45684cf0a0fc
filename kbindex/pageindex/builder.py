"""PageIndex tree builder: outline discovery, validation and tree assembly."""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..llm.adapter import LLMAdapter
from ..settings import PageIndexSettings
from .schemas import PageIndexTree, TocItem
from .search import add_node_summaries
from .toc import (
    MAX_OUTLINE_CHARS,
    detect_toc,
    generate_toc_from_text,
    transform_toc,
    validate_toc_items,
)
from .tree import build_tree, process_large_nodes

logger = logging.getLogger("kbindex.pageindex")


async def discover_toc(
    text: str,
    adapter: LLMAdapter,
    max_items: int = 20,
) -> list[TocItem]:
    """Outline of ``text``: a structured TOC when one is found, else a generated one."""
    detection = detect_toc(text[:MAX_OUTLINE_CHARS])
    items: list[TocItem] = []
    if detection.has_toc and detection.content:
        result = await transform_toc(
            detection.content,
            adapter,
            has_page_numbers=bool(detection.has_page_numbers),
        )
        items = result.items
        logger.info("TOC detected, %d item(s) structured", len(items))
    if not items:
        logger.info("No usable TOC found, generating from text...")
        result = await generate_toc_from_text(text, adapter, max_items=max_items)
        items = result.items
    return items


async def build_page_index(
    text: str,
    page_count: int,
    doc_name: str,
    adapter: LLMAdapter,
    toc_items: Optional[Sequence[TocItem]] = None,
    settings: Optional[PageIndexSettings] = None,
    add_summaries: bool = False,
    doc_description: Optional[str] = None,
) -> PageIndexTree:
    """Build a PageIndex tree for one document.

    Args:
        text: Full document text.
        page_count: Number of pages in the document.
        doc_name: Name stored on the tree (usually the file name).
        adapter: LLM adapter used for outline discovery and summaries.
        toc_items: Outline supplied by the document parser (e.g. PDF
            bookmarks); when empty the outline is discovered from ``text``.
        settings: PageIndex settings (node size, TOC size, concurrency).
        add_summaries: Generate a summary for every section.
        doc_description: Optional one-line description stored on the tree.

    Returns:
        The validated, split tree.
    """
    settings = settings or PageIndexSettings()
    items = list(toc_items or [])
    if not items:
        items = await discover_toc(text, adapter, max_items=settings.max_toc_items)

    items = validate_toc_items(items, page_count)
    structure = build_tree(items, page_count=page_count)
    structure = process_large_nodes(structure, settings.max_pages_per_node)
    logger.info(
        "Built PageIndex for %s: %d TOC item(s), %d page(s)",
        doc_name,
        len(items),
        page_count,
    )

    tree = PageIndexTree(
        doc_name=doc_name,
        doc_description=doc_description,
        structure=structure,
    )
    if add_summaries:
        tree = await add_node_summaries(
            tree, text, adapter, max_concurrency=settings.max_concurrency
        )
    return tree
