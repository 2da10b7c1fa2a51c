"""dpl query command - search the document index."""

import asyncio
import json
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.markup import escape

from docplane.cli.utils import load_cli_config, open_index
from docplane.core.errors import DocPlaneError
from docplane.index.models import DocumentType, FanOutResult, SearchResult
from docplane.search import fan_out_search, search_fulltext, search_metadata

SNIPPET_PREVIEW_CHARS = 100


def parse_filters(values: tuple[str, ...]) -> dict[str, Any]:
    """Parse repeated KEY=VALUE options into a metadata filter mapping.

    Values are read as YAML scalars, so ``true`` is a boolean and ``3`` a
    number. A ``+`` suffix on the key means "array contains".
    """
    filters: dict[str, Any] = {}
    for item in values:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--filter")
        value = yaml.safe_load(raw) if raw else ""
        if key.endswith("+"):
            filters[key[:-1]] = {"contains": value}
        else:
            filters[key] = value
    return filters


def format_results(console: Console, results: list[SearchResult], snippets: bool) -> None:
    """Print search results for humans."""
    if not results:
        console.print("[yellow]No results found.[/yellow]")
        return

    console.print(f"[blue]Found {len(results)} result(s):[/blue]\n")
    for result in results:
        console.print(f"  {escape(result.path)}")
        console.print(f"[dim]    Type: {result.document_type}[/dim]")
        if isinstance(result, FanOutResult):
            strategies = ", ".join(result.matched_strategies)
            console.print(
                f"[dim]    Score: {result.relevance_score:.3f} ({strategies})[/dim]"
            )
        description = result.frontmatter.get("description")
        if isinstance(description, str):
            console.print(f"[dim]    {escape(description)}[/dim]")
        if snippets and result.snippet:
            preview = " ".join(result.snippet.split())[:SNIPPET_PREVIEW_CHARS]
            console.print(f"[dim]    {escape(preview)}[/dim]")
        console.print()


@click.command()
@click.argument("query")
@click.option(
    "-r",
    "--root",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Indexed root directory",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Database path (default: .docplane/index.db under the root)",
)
@click.option(
    "-t",
    "--type",
    "doc_type",
    type=click.Choice([t.value for t in DocumentType]),
    help="Filter by document type",
)
@click.option("-l", "--limit", type=click.IntRange(min=1), help="Maximum results")
@click.option(
    "-f",
    "--filter",
    "filter_values",
    multiple=True,
    metavar="KEY=VALUE",
    help="Metadata filter, e.g. frontmatter.status=active or frontmatter.tags+=auth",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--snippets", is_flag=True, help="Include content snippets")
@click.option("--fts-only", is_flag=True, help="Use only full-text search")
@click.option("--metadata-only", is_flag=True, help="Use only metadata search")
@click.option("--strict", is_flag=True, help="Fail on malformed full-text query syntax")
def query_command(
    query: str,
    root: Path,
    db_path: Path | None,
    doc_type: str | None,
    limit: int | None,
    filter_values: tuple[str, ...],
    as_json: bool,
    snippets: bool,
    fts_only: bool,
    metadata_only: bool,
    strict: bool,
) -> None:
    """Search the index for QUERY.

    By default full-text and metadata strategies run together and their
    results are merged by relevance.
    """
    if fts_only and metadata_only:
        raise click.UsageError("--fts-only and --metadata-only are mutually exclusive")

    root = root.resolve()
    config = load_cli_config(root)
    limit = limit or config.search.default_limit
    filters = parse_filters(filter_values)

    results: list[SearchResult]
    try:
        with open_index(root, config, db_path) as db:
            if fts_only:
                results = search_fulltext(
                    db,
                    query,
                    document_type=doc_type,
                    limit=limit,
                    strict=strict,
                    context_chars=config.search.snippet_context_chars,
                )
            elif metadata_only:
                if doc_type:
                    filters["type"] = doc_type
                results = search_metadata(db, filters, limit=limit)
            else:
                results = list(
                    asyncio.run(
                        fan_out_search(
                            db,
                            query,
                            filters=filters,
                            document_type=doc_type,
                            limit=limit,
                            weights=config.search.weights.as_dict(),
                            timeout=config.search.strategy_timeout_sec,
                            candidate_multiplier=config.search.candidate_multiplier,
                        )
                    )
                )
    except DocPlaneError as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
        return
    format_results(Console(highlight=False), results, snippets)
