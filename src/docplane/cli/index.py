"""dpl index command - build or refresh the document index."""

import time
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from docplane.cli.utils import format_duration, load_cli_config, open_index
from docplane.core.errors import DocPlaneError
from docplane.index import DocumentIndexer, index_all_dependencies
from docplane.index.models import DependencyResult, IncrementalResult, IndexResult

MAX_ERRORS_SHOWN = 5


def _print_errors(console: Console, errors: list[str]) -> None:
    console.print(f"\n  [red]Errors ({len(errors)}):[/red]")
    for error in errors[:MAX_ERRORS_SHOWN]:
        console.print(f"    [red]{escape(error)}[/red]")
    if len(errors) > MAX_ERRORS_SHOWN:
        console.print(f"    [red]... and {len(errors) - MAX_ERRORS_SHOWN} more[/red]")


def _print_stats(
    console: Console,
    result: IndexResult | IncrementalResult,
    dep_result: DependencyResult | None,
    duration: str,
) -> None:
    console.print("\nStatistics:")
    if isinstance(result, IndexResult):
        console.print(f"  Documents indexed: {result.indexed}")
    else:
        console.print(f"  Documents updated: {result.updated}")
        console.print(f"  Documents deleted: {result.deleted}")
        console.print(f"  Documents unchanged: {result.unchanged}")
    if dep_result is not None:
        console.print(f"  Dependencies indexed: {dep_result.indexed}")
        console.print(f"  Files scanned for deps: {dep_result.files}")
    console.print(f"  Duration: {duration}")


@click.command()
@click.argument(
    "root", default=".", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Database path (default: .docplane/index.db under ROOT)",
)
@click.option("--full", is_flag=True, help="Full reindex (default is incremental)")
@click.option("--deps", is_flag=True, help="Also index dependencies")
@click.option("-s", "--stats", is_flag=True, help="Show detailed statistics")
@click.option("-q", "--quiet", is_flag=True, help="Suppress output")
def index_command(
    root: Path,
    db_path: Path | None,
    full: bool,
    deps: bool,
    stats: bool,
    quiet: bool,
) -> None:
    """Index documents under ROOT (default: current directory).

    Incremental by default: only changed files are rewritten and documents
    whose file was removed are dropped.
    """
    console = Console(quiet=quiet, highlight=False)
    root = root.resolve()
    config = load_cli_config(root)
    start = time.monotonic()

    console.print("[blue]Indexing documents...[/blue]")
    console.print(f"[dim]  Root: {escape(str(root))}[/dim]")

    result: IndexResult | IncrementalResult
    dep_result = DependencyResult()
    try:
        with open_index(root, config, db_path, create=True) as db:
            console.print(f"[dim]  Database: {escape(str(db.db_path))}[/dim]")
            indexer = DocumentIndexer(db, root, config.index)
            if full:
                console.print("\n[yellow]Performing full reindex...[/yellow]")
                result = indexer.index_directory()
            else:
                console.print("\n[yellow]Performing incremental index...[/yellow]")
                result = indexer.index_incremental()

            if deps:
                console.print("\n[yellow]Indexing dependencies...[/yellow]")
                dep_result = index_all_dependencies(
                    db, root, retain_external=config.index.retain_external
                )
    except DocPlaneError as e:
        raise click.ClickException(str(e)) from e

    duration = format_duration(time.monotonic() - start)
    console.print("\n[green]✓[/green] Indexing complete")

    if stats:
        _print_stats(console, result, dep_result if deps else None, duration)
    elif isinstance(result, IndexResult):
        console.print(f"[dim]  {result.indexed} documents indexed in {duration}[/dim]")
    else:
        console.print(
            f"[dim]  {result.updated} updated, {result.deleted} deleted in {duration}[/dim]"
        )

    errors = [*result.errors, *dep_result.errors]
    if errors:
        _print_errors(console, errors)
