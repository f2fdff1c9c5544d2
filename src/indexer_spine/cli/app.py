"""
Root Typer application for the indexer-spine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from indexer_spine import __version__

app = Typer(
    name="indexer-spine",
    help="indexer-spine — control plane for a rindexer blockchain indexer.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"indexer-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """indexer-spine CLI — serve the API, check configuration, prepare the database."""


from indexer_spine.cli.config import app as config_app  # noqa: E402
from indexer_spine.cli.db import app as db_app  # noqa: E402
from indexer_spine.cli.serve import serve  # noqa: E402

app.command("serve")(serve)
app.add_typer(config_app, name="config", help="Configuration document checks.")
app.add_typer(db_app, name="db", help="Database operations.")


if __name__ == "__main__":
    app()
