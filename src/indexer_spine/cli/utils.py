"""
CLI utility helpers — consoles and settings loading.
"""

from __future__ import annotations

import typer
from rich.console import Console

from indexer_spine.core.errors import IndexerSpineError
from indexer_spine.core.settings import IndexerSettings, load_settings

console = Console()
err_console = Console(stderr=True)


def fail(error: IndexerSpineError) -> typer.Exit:
    """Print ``error`` and return the exit to raise."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    return typer.Exit(code=1)


def cli_settings() -> IndexerSettings:
    """Settings from the environment; exits with status 1 when invalid."""
    try:
        return load_settings()
    except IndexerSpineError as e:
        raise fail(e) from e
