"""CLI commands for Civilyst.

Provides command-line interface using Typer:
- civilyst serve: Run the API server
- civilyst cache purge: Sweep cache namespaces

Usage:
    civilyst --help
    civilyst serve --port 8080
    civilyst cache purge --namespace geo
"""

import typer

from civilyst.cli.cache_cmd import app as cache_app
from civilyst.cli.serve import app as serve_app

app = typer.Typer(
    name="civilyst",
    help="Civilyst: civic campaigns with geo-aware cached search",
    no_args_is_help=True,
)

app.add_typer(serve_app, name="serve")
app.add_typer(cache_app, name="cache")


@app.callback()
def callback() -> None:
    """Civilyst: civic campaigns with geo-aware cached search."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
