"""CLI utilities."""

import posixpath
from pathlib import Path

import click

from docplane.config import DocPlaneConfig, load_config, resolve_db_path
from docplane.core.errors import DocPlaneError
from docplane.index import Database, initialize_schema


def load_cli_config(root: Path) -> DocPlaneConfig:
    """Load config for root, reporting config errors as click errors."""
    try:
        return load_config(root)
    except DocPlaneError as e:
        raise click.ClickException(str(e)) from e


def open_index(
    root: Path,
    config: DocPlaneConfig,
    db_path: Path | None = None,
    *,
    create: bool = False,
) -> Database:
    """Open (and with create, initialize) the index database for root.

    Args:
        root: Indexed root directory
        config: Resolved configuration
        db_path: Explicit database path; relative paths resolve against root
        create: Create the database and its directory if missing

    Raises:
        click.ClickException: The database does not exist and create is False
    """
    if db_path is None:
        path = resolve_db_path(root, config)
    else:
        path = db_path if db_path.is_absolute() else root / db_path

    if not path.exists():
        if not create:
            raise click.ClickException(
                f"Index database not found at {path}\nRun 'dpl index' first to create the index."
            )
        path.parent.mkdir(parents=True, exist_ok=True)

    db = Database(
        path,
        busy_timeout_ms=config.database.busy_timeout_ms,
        max_retries=config.database.max_retries,
    )
    initialize_schema(db)
    return db


def to_repo_path(root: Path, file: str) -> str:
    """Normalize a user-supplied file argument to a repo-relative posix path."""
    path = Path(file)
    if path.is_absolute():
        try:
            return path.resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            return path.as_posix()
    return posixpath.normpath(file.replace("\\", "/"))


def format_duration(seconds: float) -> str:
    """Format duration for display."""
    ms = int(seconds * 1000)
    if ms < 1000:
        return f"{ms}ms"
    return f"{seconds:.2f}s"
