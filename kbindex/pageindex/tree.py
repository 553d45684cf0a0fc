"""Tree utilities for PageIndex: construction, splitting and traversal."""
from __future__ import annotations

import math
from typing import Any, Iterator, Optional, Sequence

from .schemas import PageNode, TocItem

ROOT_TITLE = "Document"


def write_node_id(data: Any, node_id: int = 0) -> int:
    """Assign sequential 4-digit node ids, pre-order, to a dict tree."""
    if isinstance(data, dict):
        data["node_id"] = str(node_id).zfill(4)
        node_id += 1
        for child in data.get("nodes", []):
            node_id = write_node_id(child, node_id)
    elif isinstance(data, list):
        for item in data:
            node_id = write_node_id(item, node_id)
    return node_id


def _start_pages(items: Sequence[TocItem]) -> list[int]:
    starts: list[int] = []
    previous = 1
    for item in items:
        start = item.page or item.physical_index or previous
        starts.append(start)
        previous = start
    return starts


def build_tree(items: Sequence[TocItem], page_count: Optional[int] = None) -> PageNode:
    """Nest a flat, leveled TOC under a ``Document`` root.

    Each entry ends one page before the next entry at the same or a
    shallower level (never before its own start); trailing entries end at
    ``page_count`` (or the last known start page).
    """
    if not items:
        return PageNode(
            title=ROOT_TITLE,
            node_id="0000",
            start_page=1,
            end_page=max(1, page_count or 1),
        )

    starts = _start_pages(items)
    last_page = max(page_count or 0, max(starts))

    root: dict[str, Any] = {
        "title": ROOT_TITLE,
        "start_page": 1,
        "end_page": last_page,
        "nodes": [],
    }
    stack: list[tuple[int, dict[str, Any]]] = [(0, root)]

    for idx, item in enumerate(items):
        end_page = last_page
        for nxt in range(idx + 1, len(items)):
            if items[nxt].level <= item.level:
                end_page = starts[nxt] - 1
                break
        node: dict[str, Any] = {
            "title": item.title,
            "start_page": starts[idx],
            "end_page": max(starts[idx], end_page),
            "nodes": [],
        }
        while len(stack) > 1 and stack[-1][0] >= item.level:
            stack.pop()
        parent = stack[-1][1]
        parent["nodes"].append(node)
        stack.append((item.level, node))

    write_node_id(root)
    return PageNode.model_validate(root)


def _split_node(node: PageNode, max_pages: int) -> list[PageNode]:
    parts = math.ceil(node.page_span / max_pages)
    split: list[PageNode] = []
    for i in range(parts):
        start_page = node.start_page + i * max_pages
        split.append(
            PageNode(
                title=f"{node.title} (Part {i + 1})",
                node_id=f"{node.node_id}_{i}",
                start_page=start_page,
                end_page=min(start_page + max_pages - 1, node.end_page),
                summary=node.summary,
            )
        )
    return split


def process_large_nodes(node: PageNode, max_pages_per_node: int = 10) -> PageNode:
    """Return a copy of ``node`` whose oversized leaves are split into parts."""
    if node.is_leaf:
        return node
    processed: list[PageNode] = []
    for child in node.nodes:
        if not child.is_leaf:
            processed.append(process_large_nodes(child, max_pages_per_node))
        elif child.page_span > max_pages_per_node:
            processed.extend(_split_node(child, max_pages_per_node))
        else:
            processed.append(child)
    return node.model_copy(update={"nodes": processed})


def iter_nodes(node: PageNode) -> Iterator[PageNode]:
    """Pre-order traversal."""
    yield node
    for child in node.nodes:
        yield from iter_nodes(child)


def get_leaf_nodes(node: PageNode) -> list[PageNode]:
    """Leaves in document order; a childless root is its own leaf."""
    if node.is_leaf:
        return [node]
    leaves: list[PageNode] = []
    for child in node.nodes:
        leaves.extend(get_leaf_nodes(child))
    return leaves


def find_node_by_id(node: PageNode, node_id: str) -> Optional[PageNode]:
    for candidate in iter_nodes(node):
        if candidate.node_id == node_id:
            return candidate
    return None


def print_tree(node: PageNode, indent: int = 0) -> str:
    """Indented outline, one ``- title (start-end)`` line per node."""
    result = f"{'  ' * indent}- {node.title} ({node.start_page}-{node.end_page})\n"
    for child in node.nodes:
        result += print_tree(child, indent + 1)
    return result
