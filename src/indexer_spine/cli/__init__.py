"""indexer-spine command line interface (typer + rich)."""
