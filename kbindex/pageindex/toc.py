"""Table-of-contents detection and structuring."""
from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Optional

from ..exceptions import LLMError
from ..llm.adapter import LLMAdapter
from ..llm.parsing import Parsed, collect, parse_json_value, validate_each
from .schemas import (
    TocDetectionResult,
    TocItem,
    TocTransformResult,
    parse_page_number,
)

logger = logging.getLogger("kbindex.pageindex")

TOC_KEYWORDS = (
    "table of contents",
    "contents",
    "目录",
    "目 录",
    "table des matières",
    "inhaltsverzeichnis",
    "índice",
    "indice",
    "sommaire",
)

# Characters of body text used to infer an outline.
MAX_OUTLINE_CHARS = 10000

_LEADER_PAGE_RE = re.compile(r"(?:\.{3,}|(?:\. ){3,}|…+|·{3,})\s*(\d+)\s*$", re.MULTILINE)
_SPACED_PAGE_RE = re.compile(r"\S\s{2,}(\d+)\s*$", re.MULTILINE)


def transform_dots_to_colon(text: str) -> str:
    """Normalise leader dots (``Intro ..... 3``) into ``Intro: 3``."""
    text = re.sub(r"\.{5,}", ": ", text)
    text = re.sub(r"(?:\. ){5,}\.?", ": ", text)
    return text


def _find_page_numbers(text: str) -> list[int]:
    numbers = [int(m) for m in _LEADER_PAGE_RE.findall(text)]
    if not numbers:
        numbers = [int(m) for m in _SPACED_PAGE_RE.findall(text)]
    return numbers


def detect_toc(text: str) -> TocDetectionResult:
    """Cheap keyword scan for a table of contents; no model call."""
    lower_text = (text or "").lower()
    for keyword in TOC_KEYWORDS:
        if keyword in lower_text:
            page_numbers = _find_page_numbers(text)
            logger.debug("TOC keyword %r found", keyword)
            return TocDetectionResult(
                has_toc=True,
                content=text,
                page_numbers=page_numbers or None,
                has_page_numbers=bool(page_numbers),
            )
    return TocDetectionResult(has_toc=False)


def _parse_toc_items(raw: str, limit: Optional[int] = None) -> list[TocItem]:
    outcome = parse_json_value(raw)
    if not isinstance(outcome, Parsed):
        logger.warning("TOC reply held no JSON: %s", outcome.reason)
        return []
    value: Any = outcome.value
    if isinstance(value, dict):
        for key in ("items", "table_of_contents", "toc"):
            if isinstance(value.get(key), list):
                value = value[key]
                break
    if not isinstance(value, list):
        logger.warning("TOC reply is not an array (%s)", type(value).__name__)
        return []
    items = collect(validate_each(value, TocItem), label="toc item")
    if limit is not None:
        items = items[:limit]
    return items


def _page_aware_prompt() -> str:
    return """Convert the table of contents below into a JSON array.
Each element must contain: title, page (page number) and level (hierarchy level, starting at 1).

Entries look like: Title: page

Example:
[
  {"title": "Chapter 1 Overview", "page": 1, "level": 1},
  {"title": "1.1 Background", "page": 2, "level": 2}
]

Return only the JSON array, nothing else."""


def _indentation_prompt(toc_text: str) -> str:
    return f"""Convert the table of contents below into a JSON array.
Each element must contain: title and level (hierarchy level, starting at 1).

Infer the level from indentation: entries without indentation are level 1,
indented entries are level 2, and so on.

Table of contents:
{toc_text}

Return only the JSON array, nothing else."""


async def transform_toc(
    toc_text: str,
    adapter: LLMAdapter,
    has_page_numbers: bool = False,
) -> TocTransformResult:
    """Turn raw TOC text into leveled items.

    Returns an empty item list when the model fails or replies with
    anything but an array; invalid entries are skipped.
    """
    if has_page_numbers:
        toc_text = transform_dots_to_colon(toc_text)
        prompt = _page_aware_prompt()
    else:
        prompt = _indentation_prompt(toc_text)
    try:
        raw = await adapter.call_model(prompt, toc_text)
    except LLMError as exc:
        logger.warning("Failed to transform TOC: %s", exc)
        return TocTransformResult()
    return TocTransformResult(items=_parse_toc_items(raw))


async def generate_toc_from_text(
    text: str,
    adapter: LLMAdapter,
    max_items: int = 20,
) -> TocTransformResult:
    """Infer a chapter outline from body text when no TOC exists."""
    prompt = f"""Extract the main section headings from the document below and build a table of contents.
Each element must contain: title (section heading) and level (hierarchy level, starting at 1).

Requirements:
1. Only extract main sections (at most {max_items}).
2. Set level according to the heading hierarchy.
3. Return headings only, no body content.

Document:
{text[:MAX_OUTLINE_CHARS]}

Return only the JSON array, nothing else."""
    try:
        raw = await adapter.call_model(prompt, "Extract the table of contents.")
    except LLMError as exc:
        logger.warning("Failed to generate TOC: %s", exc)
        return TocTransformResult()
    return TocTransformResult(items=_parse_toc_items(raw, limit=max_items))


def _clamp_page(value: Optional[int], page_count: int) -> Optional[int]:
    # page 0 means "no page", like a missing one
    if not value:
        return None
    return max(1, min(value, page_count))


def validate_toc_items(items: Iterable[TocItem], page_count: int) -> list[TocItem]:
    """Clamp ``page`` and ``physical_index`` into ``[1, page_count]``.

    Items without a page (or with page 0) get ``None``. New items are returned.
    """
    page_count = max(1, page_count)
    return [
        item.model_copy(
            update={
                "page": _clamp_page(item.page, page_count),
                "physical_index": _clamp_page(item.physical_index, page_count),
            }
        )
        for item in items
    ]


__all__ = [
    "TOC_KEYWORDS",
    "detect_toc",
    "generate_toc_from_text",
    "parse_page_number",
    "transform_dots_to_colon",
    "transform_toc",
    "validate_toc_items",
]
