"""Top-level CLI entrypoint for KBIndex utilities."""
import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import click
from navconfig.logging import logging

from .exceptions import KBError
from .ranking.engine import rank_with_scores
from .ranking.models import RankingRequest, RetrievalMode


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def _context(settings_file: Optional[str] = None, overrides: Optional[dict] = None):
    from .context import EngineContext

    try:
        return EngineContext.from_config(settings_file=settings_file, overrides=overrides)
    except KBError as exc:
        click.secho(str(exc), fg="red", err=True)
        raise click.Abort() from exc


@click.group()
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging.")
def cli(debug: bool) -> None:
    """KBIndex command-line interface."""
    if debug:
        logging.getLogger("kbindex").setLevel(logging.DEBUG)


@cli.command()
@click.argument("results_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--query", "-q", default="", help="Query the hits were retrieved for.")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in RetrievalMode]),
    default=RetrievalMode.HYBRID.value,
    show_default=True,
)
@click.option("--min-score", type=float, default=0.0, show_default=True)
@click.option("--alpha", type=float, default=0.5, show_default=True, help="Hybrid weight.")
@click.option("--max-results", type=int, default=5, show_default=True)
def rank(
    results_file: str,
    query: str,
    mode: str,
    min_score: float,
    alpha: float,
    max_results: int,
) -> None:
    """Rank search hits read from a JSON file (a list of results)."""
    data = json.loads(_read_text(results_file))
    if isinstance(data, dict):
        data = data.get("results", [])
    request = RankingRequest(
        results=data,
        query=query,
        retrieval_mode=RetrievalMode(mode),
        min_score=min_score,
        hybrid_alpha=alpha,
        max_results=max_results,
    )
    _echo_json(
        [
            {**s.result.model_dump(by_alias=True), "score": s.score}
            for s in rank_with_scores(request)
        ]
    )


@cli.command()
@click.argument("text_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--page-count", type=int, default=None, help="Clamp pages to this count.")
@click.option("--max-items", type=int, default=20, show_default=True)
@click.option("--settings", "settings_file", default=None, help="YAML settings file.")
def toc(
    text_file: str,
    page_count: Optional[int],
    max_items: int,
    settings_file: Optional[str],
) -> None:
    """Detect and structure the table of contents of a text file."""
    from .pageindex.toc import (
        detect_toc,
        generate_toc_from_text,
        transform_toc,
        validate_toc_items,
    )

    text = _read_text(text_file)
    ctx = _context(settings_file)

    async def _run():
        detection = detect_toc(text)
        if detection.has_toc and detection.content:
            result = await transform_toc(
                detection.content,
                ctx.adapter,
                has_page_numbers=bool(detection.has_page_numbers),
            )
            if result.items:
                return result.items
        result = await generate_toc_from_text(text, ctx.adapter, max_items=max_items)
        return result.items

    items = asyncio.run(_run())
    if page_count:
        items = validate_toc_items(items, page_count)
    _echo_json([item.model_dump(by_alias=True, exclude_none=True) for item in items])


@cli.command()
@click.argument("text_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output", "-o", default=None, type=click.Path(dir_okay=False),
    help="Write triples as JSON-Lines to this file.",
)
@click.option("--agent", "agent_id", default="default", show_default=True)
@click.option("--settings", "settings_file", default=None, help="YAML settings file.")
def triples(
    text_file: str,
    output: Optional[str],
    agent_id: str,
    settings_file: Optional[str],
) -> None:
    """Extract knowledge-graph triples from a text file."""
    from .graph.extractor import extract_triples_via_llm, write_triples_jsonl

    text = _read_text(text_file)
    ctx = _context(settings_file)

    async def _run():
        result = await extract_triples_via_llm(
            text, ctx.settings.graph, ctx.adapter, agent_id=agent_id
        )
        if output:
            await write_triples_jsonl(output, result.triples)
        return result

    try:
        result = asyncio.run(_run())
    except KBError as exc:
        click.secho(str(exc), fg="red", err=True)
        raise click.Abort() from exc
    if output:
        click.echo(
            f"Wrote {len(result.triples)} triple(s) (target {result.target_triples}) to {output}"
        )
    else:
        _echo_json([t.model_dump() for t in result.triples])


@cli.command()
@click.argument("index_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("query")
@click.option("--limit", type=int, default=5, show_default=True)
@click.option(
    "--strategy",
    type=click.Choice(["leaf_scan", "top_down"]),
    default=None,
    help="Tree-search strategy (defaults to the configured one).",
)
@click.option("--settings", "settings_file", default=None, help="YAML settings file.")
def search(
    index_path: str,
    query: str,
    limit: int,
    strategy: Optional[str],
    settings_file: Optional[str],
) -> None:
    """Search a saved PageIndex tree."""
    from .pageindex.strategies import LLMRelevanceEvaluator, get_strategy

    overrides = {"pageindex": {"strategy": strategy}} if strategy else None
    ctx = _context(settings_file, overrides)
    search_strategy = get_strategy(
        ctx.settings.pageindex.strategy,
        LLMRelevanceEvaluator(ctx.adapter),
        ctx.settings.pageindex,
    )
    results = asyncio.run(
        ctx.store.search(index_path, query, limit=limit, strategy=search_strategy)
    )
    _echo_json([r.model_dump(by_alias=True, exclude_none=True) for r in results])


@cli.command()
@click.argument("text_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--session", "session_key", required=True, help="Session key.")
@click.option("--document-id", default=None, help="Defaults to the file stem.")
@click.option("--page-count", type=int, required=True)
@click.option("--settings", "settings_file", default=None, help="YAML settings file.")
def build(
    text_file: str,
    session_key: str,
    document_id: Optional[str],
    page_count: int,
    settings_file: Optional[str],
) -> None:
    """Build and save the PageIndex tree of a text file."""
    ctx = _context(settings_file)
    result = asyncio.run(
        ctx.store.build_index(
            _read_text(text_file),
            page_count,
            session_key,
            document_id or Path(text_file).stem,
            Path(text_file).name,
            ctx.adapter,
            settings=ctx.settings.pageindex,
        )
    )
    _echo_json(result.model_dump(by_alias=True, exclude_none=True))
    if not result.success:
        raise click.Abort()


@cli.command()
@click.option("--settings", "settings_file", default=None, help="YAML settings file.")
def info(settings_file: Optional[str]) -> None:
    """Show effective settings and detected converters."""
    from .conf import KB_INDEX_DIR, KB_LLM_MODEL, KB_SETTINGS_FILE
    from .context import Capabilities
    from .settings import ConfigLoader
    from .version import __version__

    try:
        settings = ConfigLoader(settings_file or KB_SETTINGS_FILE).load()
    except KBError as exc:
        click.secho(str(exc), fg="red", err=True)
        raise click.Abort() from exc
    _echo_json(
        {
            "version": __version__,
            "model": KB_LLM_MODEL,
            "index_dir": str(KB_INDEX_DIR),
            "capabilities": Capabilities.detect().model_dump(),
            "settings": settings.model_dump(mode="json", by_alias=True),
        }
    )


if __name__ == "__main__":
    cli()
