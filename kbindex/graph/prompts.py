"""Prompt templates for knowledge-graph triple extraction."""

# Characters of source text sent with a single extraction request.
MAX_EXTRACTION_CHARS = 16000

TRIPLE_EXTRACTION_PROMPT = """Extract knowledge graph triples from the text below.
Return up to {target_triples} triples in JSONL format.
Each line must be a JSON object with keys: h, r, t.
h and t must include a name field. r must include a type field.
Example line: {{"h": {{"name": "Marie Curie"}}, "r": {{"type": "discovered"}}, "t": {{"name": "Polonium"}}}}
Do not include explanations, code fences, or markdown. JSONL only."""


def build_triple_extraction_prompt(target_triples: int) -> str:
    return TRIPLE_EXTRACTION_PROMPT.format(target_triples=target_triples)


def build_triple_extraction_context(text: str) -> str:
    return f"Text:\n{text[:MAX_EXTRACTION_CHARS]}"
