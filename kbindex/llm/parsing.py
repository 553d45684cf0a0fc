"""Best-effort structured extraction from free-form model output.

Every unit (a JSON-Lines row, an array element, a whole reply) is turned
into either a :class:`Parsed` value or a :class:`Skipped` marker carrying the
reason, so callers compose plain filtered lists instead of wrapping ad hoc
parsing in try/except blocks.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Generic, Iterable, Iterator, Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..exceptions import ParserError

logger = logging.getLogger("kbindex.llm")

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:jsonl|json)?", re.IGNORECASE)
_FENCED_BLOCK_RE = re.compile(r"```(?:jsonl|json)?\s*(.*?)\s*```", re.IGNORECASE | re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")
_decoder = json.JSONDecoder()


@dataclass(frozen=True)
class Parsed(Generic[T]):
    """A unit that was recovered from model output."""
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Skipped:
    """A unit that could not be recovered, and why."""
    reason: str
    raw: str = ""

    @property
    def ok(self) -> bool:
        return False


ParseOutcome = Union[Parsed[T], Skipped]


def strip_code_fences(text: str) -> str:
    """Remove ```json / ```jsonl / ``` markers, keeping their content."""
    if not text:
        return ""
    return _FENCE_RE.sub("", text).replace("```", "").strip()


def _loads_lenient(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        cleaned = _TRAILING_COMMA_RE.sub(r"\1", text.replace("None", "null"))
        return json.loads(cleaned)


def find_json(content: str, start_chars: str = "{[") -> Any:
    """Return the first well-formed JSON value found in ``content``.

    Tries, in order: the whole (fence-stripped) text, the first fenced
    block, and finally every position where a value of the requested kind
    could start.

    Raises:
        ParserError: when no JSON value can be decoded.
    """
    if not content or not content.strip():
        raise ParserError("Empty model response")
    candidates = [strip_code_fences(content)]
    match = _FENCED_BLOCK_RE.search(content)
    if match:
        candidates.append(match.group(1))
    for candidate in candidates:
        try:
            value = _loads_lenient(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, (dict, list)) and _kind(value) in start_chars:
            return value
    text = candidates[0]
    for idx, char in enumerate(text):
        if char not in start_chars:
            continue
        try:
            value, _ = _decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            continue
        return value
    raise ParserError(
        "No JSON value found in model response",
        payload=content[:200]
    )


def _kind(value: Any) -> str:
    return "[" if isinstance(value, list) else "{"


def extract_json(content: str) -> Any:
    """Extract JSON from LLM text that may contain ```json fences.

    Returns an empty dict when nothing can be parsed.
    """
    try:
        return find_json(content)
    except ParserError as exc:
        logger.error("Failed to parse JSON from model response: %s", exc.message)
        return {}


def parse_json_value(
    content: str,
    expect: Optional[type] = None,
    start_chars: str = "{[",
) -> ParseOutcome[Any]:
    """Parse a whole reply into one JSON value, optionally type-checked."""
    try:
        value = find_json(content, start_chars=start_chars)
    except ParserError as exc:
        return Skipped(exc.message, (content or "")[:200])
    if expect is not None and not isinstance(value, expect):
        return Skipped(
            f"expected {expect.__name__}, got {type(value).__name__}",
            (content or "")[:200],
        )
    return Parsed(value)


def iter_json_lines(content: str) -> Iterator[ParseOutcome[Any]]:
    """Yield one outcome per non-empty line of a JSON-Lines payload."""
    for line in strip_code_fences(content).splitlines():
        row = line.strip().rstrip(",")
        if not row:
            continue
        try:
            yield Parsed(json.loads(row))
        except json.JSONDecodeError as exc:
            yield Skipped(f"invalid JSON: {exc.msg}", row)


def validate_each(
    values: Iterable[Any],
    model: type[M],
) -> Iterator[ParseOutcome[M]]:
    """Validate raw values against a pydantic model, one outcome each."""
    for value in values:
        if isinstance(value, Skipped):
            yield value
            continue
        raw = value.value if isinstance(value, Parsed) else value
        try:
            yield Parsed(model.model_validate(raw))
        except ValidationError as exc:
            yield Skipped(
                f"invalid {model.__name__}: {exc.error_count()} error(s)",
                str(raw)[:200],
            )


def collect(outcomes: Iterable[ParseOutcome[T]], label: str = "unit") -> list[T]:
    """Keep the recovered values, logging every skipped unit at debug level."""
    values: list[T] = []
    skipped = 0
    for outcome in outcomes:
        if isinstance(outcome, Parsed):
            values.append(outcome.value)
        else:
            skipped += 1
            logger.debug("Skipped %s: %s (%r)", label, outcome.reason, outcome.raw[:80])
    if skipped:
        logger.info("Recovered %d %s(s), skipped %d", len(values), label, skipped)
    return values
