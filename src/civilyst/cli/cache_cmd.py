"""CLI commands for cache operations.

Usage:
    civilyst cache purge --namespace search --namespace geo
    civilyst cache purge --all
"""

from __future__ import annotations

import asyncio

import typer

from civilyst.cache import CacheInvalidator, InvalidationScope, InvalidationTrigger
from civilyst.cache.keys import NAMESPACES, CacheKeys
from civilyst.cache.store import create_cache_store

app = typer.Typer(help="Inspect and sweep the campaign cache")


async def _purge(patterns: frozenset[str], backend: str | None) -> tuple[int, list[str]]:
    store = create_cache_store(backend)
    try:
        report = await CacheInvalidator(store).apply(
            InvalidationScope(patterns=patterns), InvalidationTrigger.MANUAL
        )
    finally:
        await store.close()
    return report.deleted, report.failures


@app.command("purge")
def purge(
    namespace: list[str] = typer.Option(
        [],
        "--namespace",
        "-n",
        help=f"Namespace to sweep: {', '.join(NAMESPACES)}",
    ),
    all_namespaces: bool = typer.Option(False, "--all", help="Sweep every namespace"),
    backend: str | None = typer.Option(
        None,
        "--backend",
        help="Cache backend override (redis, memory)",
    ),
) -> None:
    """Delete every cache entry in the given namespaces."""
    selected = list(NAMESPACES) if all_namespaces else namespace
    if not selected:
        typer.echo("Nothing to purge: pass --namespace or --all", err=True)
        raise typer.Exit(code=2)

    unknown = [ns for ns in selected if ns not in NAMESPACES]
    if unknown:
        typer.echo(f"Unknown namespace(s): {', '.join(unknown)}", err=True)
        raise typer.Exit(code=2)

    patterns = frozenset(CacheKeys.namespace_pattern(ns) for ns in selected)  # type: ignore[arg-type]
    deleted, failures = asyncio.run(_purge(patterns, backend))

    typer.echo(f"Deleted {deleted} cache entries ({', '.join(sorted(patterns))})")
    if failures:
        typer.echo(f"Failed to sweep: {', '.join(failures)}", err=True)
        raise typer.Exit(code=1)
