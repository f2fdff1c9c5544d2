"""
CLI: ``indexer-spine serve`` — start the control plane.
"""

from __future__ import annotations

import typer
import uvicorn

from indexer_spine.cli.utils import cli_settings, console, fail
from indexer_spine.core.config import load_indexer_config
from indexer_spine.core.errors import ConfigurationError


def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address (default SERVER_HOST)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port (default SERVER_PORT)"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Validate the configuration, then run the REST API and the indexer."""
    settings = cli_settings()
    try:
        config = load_indexer_config(
            settings.config_path, max_name_length=settings.project_name_max_length
        )
    except ConfigurationError as e:
        raise fail(e) from e

    bind_host = host or settings.server_host
    bind_port = port or settings.server_port
    console.print(
        f"[bold green]Starting indexer-spine[/bold green] for project "
        f"[cyan]{config.project_name}[/cyan] on {bind_host}:{bind_port}"
    )
    uvicorn.run(
        "indexer_spine.api.app:create_app",
        factory=True,
        host=bind_host,
        port=bind_port,
        log_level=log_level,
    )
