"""Model-call boundary: clients, adapter and defensive output parsing."""
from .client import AbstractClient, LLMResponse, OpenAIClient
from .adapter import LLMAdapter
from .parsing import (
    Parsed,
    Skipped,
    collect,
    extract_json,
    find_json,
    iter_json_lines,
    parse_json_value,
    strip_code_fences,
    validate_each,
)

__all__ = [
    "AbstractClient",
    "LLMResponse",
    "OpenAIClient",
    "LLMAdapter",
    "Parsed",
    "Skipped",
    "collect",
    "extract_json",
    "find_json",
    "iter_json_lines",
    "parse_json_value",
    "strip_code_fences",
    "validate_each",
]
