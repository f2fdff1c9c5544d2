"""
CLI: ``indexer-spine config`` — inspect the indexer configuration document.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from indexer_spine.cli.utils import cli_settings, console, fail
from indexer_spine.core.config import load_indexer_config
from indexer_spine.core.errors import ConfigurationError

app = typer.Typer(no_args_is_help=True)


@app.command()
def check(
    path: Path | None = typer.Option(None, "--path", help="Document path (default CONFIG_PATH)"),
    max_name_length: int | None = typer.Option(None, "--max-name-length"),
) -> None:
    """Validate rindexer.yaml the same way the service does at startup."""
    if path is None or max_name_length is None:
        settings = cli_settings()
        path = path or settings.config_path
        max_name_length = max_name_length or settings.project_name_max_length

    try:
        config = load_indexer_config(path, max_name_length=max_name_length)
    except ConfigurationError as e:
        raise fail(e) from e

    table = Table(title="rindexer.yaml", show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("path", str(config.path))
    table.add_row("project", config.project_name)
    table.add_row("postgres storage", "enabled")
    table.add_row("contracts", str(len(config.contracts)))
    console.print(table)
    console.print("[green]Configuration OK[/green]")
