"""
CLI: ``indexer-spine db`` — mapping table management.
"""

from __future__ import annotations

import asyncio

import typer

from indexer_spine.cli.utils import cli_settings, console, fail
from indexer_spine.core.database import close_pool, create_pool, open_pool
from indexer_spine.core.errors import StorageError
from indexer_spine.core.settings import IndexerSettings
from indexer_spine.registry.mapping import MAPPING_TABLE, PostgresMappingStore

app = typer.Typer(no_args_is_help=True)


async def _init(settings: IndexerSettings) -> None:
    pool = create_pool(settings)
    await open_pool(pool)
    try:
        await PostgresMappingStore(pool).ensure_schema()
    finally:
        await close_pool(pool)


@app.command()
def init() -> None:
    """Create the identifier mapping table if it does not exist."""
    settings = cli_settings()
    try:
        asyncio.run(_init(settings))
    except StorageError as e:
        raise fail(e) from e
    console.print(f"[green]Table {MAPPING_TABLE} ready[/green] on {settings.postgres_host}")
