"""dpl related command - trace files through the dependency graph."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from docplane.cli.utils import load_cli_config, open_index, to_repo_path
from docplane.core.errors import DocPlaneError
from docplane.index import find_related
from docplane.index.models import Direction, RelatedFile

_SECTIONS = (
    (Direction.FORWARD, "Dependencies (imports):", "→"),
    (Direction.REVERSE, "Dependents (imported by):", "←"),
)


def format_related(console: Console, related: list[RelatedFile]) -> None:
    """Print related files grouped by direction."""
    if not related:
        console.print("[yellow]No related files found.[/yellow]")
        return

    console.print(f"[blue]Found {len(related)} related file(s):[/blue]\n")
    for direction, title, arrow in _SECTIONS:
        group = [r for r in related if r.direction == direction]
        if not group:
            continue
        console.print(f"  {title}")
        for item in group:
            indent = "  " * item.depth
            line = f"{indent}{arrow} {escape(item.path)} (depth: {item.depth})"
            console.print(f"[dim]    {line}[/dim]")
        console.print()


@click.command()
@click.argument("file")
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
    "--direction",
    type=click.Choice([d.value for d in Direction]),
    default=Direction.BOTH.value,
    show_default=True,
    help="Traversal direction",
)
@click.option("--depth", type=click.IntRange(min=1), help="Maximum traversal depth")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def related_command(
    file: str,
    root: Path,
    db_path: Path | None,
    direction: str,
    depth: int | None,
    as_json: bool,
) -> None:
    """Find files related to FILE through references.

    FILE is a path relative to the root (or absolute inside it).
    """
    root = root.resolve()
    config = load_cli_config(root)
    path = to_repo_path(root, file)

    try:
        with open_index(root, config, db_path) as db:
            related = find_related(
                db,
                path,
                direction,
                depth or config.graph.default_max_depth,
                include_external=config.graph.include_external,
            )
    except DocPlaneError as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in related], indent=2))
        return
    format_related(Console(highlight=False), related)
