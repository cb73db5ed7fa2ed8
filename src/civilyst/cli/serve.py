"""`civilyst serve`: run the API under uvicorn.

Usage:
    civilyst serve
    civilyst serve --port 9000 --reload
    CACHE_BACKEND=memory DATABASE_URL=sqlite+aiosqlite:///civilyst.db civilyst serve
"""

from __future__ import annotations

import typer

from civilyst.config import settings

app = typer.Typer(help="Run the Civilyst API server")


@app.callback(invoke_without_command=True)
def serve(
    host: str = typer.Option(settings.host, "--host", help="Interface to bind"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
    workers: int = typer.Option(1, "--workers", "-w", min=1, help="Worker processes"),
    log_level: str = typer.Option(
        settings.log_level.lower(), "--log-level", help="uvicorn log level"
    ),
) -> None:
    """Serve the campaign API."""
    import uvicorn

    if reload and workers > 1:
        typer.echo("--reload runs a single worker; ignoring --workers", err=True)
        workers = 1

    typer.echo(
        f"Civilyst on http://{host}:{port} "
        f"(db={settings.database_url.split('://', 1)[0]}, cache={settings.cache_backend})"
    )

    uvicorn.run(
        "civilyst.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level=log_level.lower(),
    )
