"""Knowledge-graph triple extraction."""
from .models import EntityRef, KnowledgeTriple, RelationRef, TripleExtractionResult
from .sizing import compute_target_triples, estimate_tokens
from .extractor import (
    extract_document_triples,
    extract_triples_via_llm,
    hash_triple_key,
    normalize_triple,
    parse_triples,
    write_triples_jsonl,
)

__all__ = [
    "EntityRef",
    "KnowledgeTriple",
    "RelationRef",
    "TripleExtractionResult",
    "compute_target_triples",
    "estimate_tokens",
    "extract_document_triples",
    "extract_triples_via_llm",
    "hash_triple_key",
    "normalize_triple",
    "parse_triples",
    "write_triples_jsonl",
]
