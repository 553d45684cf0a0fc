"""LLM-assisted triple extraction for knowledge-graph construction."""
from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import aiofiles
from pydantic import ValidationError

from ..exceptions import KBError
from ..llm.adapter import LLMAdapter
from ..llm.parsing import (
    Parsed,
    collect,
    iter_json_lines,
    parse_json_value,
    strip_code_fences,
    validate_each,
)
from ..settings import KnowledgeGraphSettings
from .models import KnowledgeTriple, TripleExtractionResult
from .prompts import build_triple_extraction_context, build_triple_extraction_prompt
from .sizing import compute_target_triples

logger = logging.getLogger("kbindex.graph")


def normalize_triple(data: Any) -> Optional[KnowledgeTriple]:
    """Validate one raw object into a triple, or None when it is unusable."""
    if isinstance(data, KnowledgeTriple):
        return data
    try:
        return KnowledgeTriple.model_validate(data)
    except ValidationError:
        return None


def parse_triples(payloads: Union[str, Iterable[str]]) -> list[KnowledgeTriple]:
    """Recover every valid triple from one or more model payloads.

    A payload that is a whole JSON array is read as such; anything else is
    read as JSON-Lines. Malformed lines and objects lacking ``h``/``r``/``t``
    are skipped. Source order is preserved.
    """
    if isinstance(payloads, str):
        payloads = [payloads]
    triples: list[KnowledgeTriple] = []
    for payload in payloads:
        cleaned = strip_code_fences(payload or "")
        if not cleaned:
            continue
        if cleaned.startswith("[") and cleaned.endswith("]"):
            outcome = parse_json_value(cleaned, expect=list, start_chars="[")
            if isinstance(outcome, Parsed):
                triples.extend(
                    collect(validate_each(outcome.value, KnowledgeTriple), label="triple")
                )
                continue
        triples.extend(
            collect(validate_each(iter_json_lines(cleaned), KnowledgeTriple), label="triple")
        )
    return triples


async def extract_triples_via_llm(
    text: str,
    settings: KnowledgeGraphSettings,
    adapter: LLMAdapter,
    agent_id: str = "default",
) -> TripleExtractionResult:
    """Ask the model for triples over ``text`` and parse its JSON-Lines reply.

    Args:
        text: Source text (one chunk of a document).
        settings: Graph settings; sizes the request and picks the model.
        adapter: Model-call boundary.
        agent_id: Agent on whose behalf the extraction runs (for logs).

    Returns:
        The recovered triples (at most the target count), the raw reply and
        the target count.

    Raises:
        LLMError: only when the model call itself fails.
    """
    target_triples = compute_target_triples(text, settings)
    prompt = build_triple_extraction_prompt(target_triples)
    logger.debug(
        "Extracting up to %d triples for agent %s (%d chars)",
        target_triples,
        agent_id,
        len(text),
    )
    raw_text = await adapter.call_model(
        prompt,
        build_triple_extraction_context(text),
        model=settings.model,
    )
    triples = parse_triples(raw_text)[:target_triples]
    return TripleExtractionResult(
        triples=triples,
        raw_text=(raw_text or "").strip(),
        target_triples=target_triples,
    )


async def extract_document_triples(
    chunks: Iterable[str],
    settings: KnowledgeGraphSettings,
    adapter: LLMAdapter,
    agent_id: str = "default",
) -> list[TripleExtractionResult]:
    """Extract triples chunk by chunk.

    A chunk whose extraction fails yields an empty result; the remaining
    chunks are still processed.
    """
    results: list[TripleExtractionResult] = []
    for idx, chunk in enumerate(chunks):
        try:
            result = await extract_triples_via_llm(chunk, settings, adapter, agent_id=agent_id)
        except KBError as exc:
            logger.warning("Triple extraction failed for chunk %d: %s", idx, exc)
            result = TripleExtractionResult()
        results.append(result)
    return results


def hash_triple_key(triple: KnowledgeTriple) -> str:
    """Stable dedup key for a triple (sha256 of ``h::r::t``)."""
    return hashlib.sha256(triple.key.encode("utf-8")).hexdigest()


async def write_triples_jsonl(
    file_path: Union[str, Path],
    triples: Iterable[KnowledgeTriple],
) -> Path:
    """Write triples as JSON-Lines, creating parent directories."""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [
        json.dumps(triple.model_dump(), ensure_ascii=False) for triple in triples
    ]
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write("\n".join(lines) + ("\n" if lines else ""))
    return path
