"""CLI entry-point: python -m radar [list|run|dynamic|sweep|prune|sync-sheets|serve]."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import typer
import uvicorn

import radar.sources  # noqa: F401
from radar.base import get_sources
from radar.config import get_settings
from radar.errors import RadarError
from radar.logs import setup_logging
from radar.pipeline import run_all_sources
from radar.services import Services
from radar.sheets import sync_events
from radar.sweep import prune_past_events, sweep_duplicates

app = typer.Typer(help="KINN RADAR – event extraction CLI")

T = TypeVar("T")


@app.callback()
def main() -> None:
    setup_logging(get_settings().log_level)


def _with_services(fn: Callable[[Services], Awaitable[T]]) -> T:
    async def _run() -> T:
        services = Services.from_settings()
        try:
            return await fn(services)
        finally:
            await services.aclose()

    try:
        return asyncio.run(_run())
    except RadarError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc


def _echo(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


@app.command(name="list")
def list_sources() -> None:
    """List registered sources."""
    registry = get_sources()
    if not registry:
        typer.echo("No sources registered.")
        raise typer.Exit()
    for name in sorted(registry):
        cls = registry[name]
        flag = "" if cls.active else "  (inactive)"
        typer.echo(f"  {name:<24} {cls.url}{flag}")


@app.command()
def run(
    source: list[str] | None = typer.Option(
        None, "--source", "-s", help="Source name(s) to run. Omit for all active sources."
    ),
    test: bool = typer.Option(False, "--test", help="Preview only, store nothing."),
) -> None:
    """Extract events from registered sources."""

    async def _go(services: Services):
        return await run_all_sources(
            services.fixed, services.notifier, names=source or None, test_mode=test
        )

    results = _with_services(_go)
    _echo([r.model_dump() for r in results])
    if not all(r.success for r in results):
        raise typer.Exit(1)


@app.command()
def dynamic(
    name: str = typer.Argument(help="Source name as listed in the Sources sheet"),
    test: bool = typer.Option(False, "--test", help="Preview only, store nothing."),
) -> None:
    """Extract events from a source configured in the spreadsheet."""
    result = _with_services(lambda s: s.dynamic.run(name, test_mode=test))
    _echo(result.model_dump())


@app.command()
def sweep(
    dry_run: bool = typer.Option(False, "--dry-run", help="Report without deleting."),
    resync: bool = typer.Option(False, "--sync-sheets", help="Refresh the spreadsheet afterwards."),
) -> None:
    """Merge duplicate events and drop unreadable records."""

    async def _go(services: Services):
        result = await sweep_duplicates(services.store, services.metrics, dry_run=dry_run)
        sheets = await services.resync_sheets() if resync and not dry_run else None
        return {**result.model_dump(), "sheets": sheets.model_dump() if sheets else None}

    _echo(_with_services(_go))


@app.command()
def prune(
    dry_run: bool = typer.Option(False, "--dry-run", help="Report without deleting."),
    resync: bool = typer.Option(False, "--sync-sheets", help="Refresh the spreadsheet afterwards."),
) -> None:
    """Delete events dated before today."""

    async def _go(services: Services):
        result = await prune_past_events(services.store, services.metrics, dry_run=dry_run)
        sheets = await services.resync_sheets() if resync and not dry_run else None
        return {**result.model_dump(), "sheets": sheets.model_dump() if sheets else None}

    _echo(_with_services(_go))


@app.command(name="sync-sheets")
def sync_sheets() -> None:
    """Rewrite the Events, Archive and Statistics tabs from the store."""

    async def _go(services: Services):
        if services.sheets is None:
            typer.echo("Google Sheets is not configured.", err=True)
            raise typer.Exit(1)
        return await sync_events(services.store, services.sheets, services.metrics)

    _echo(_with_services(_go).model_dump())


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Interface to bind."),
    port: int = typer.Option(8000, help="Port to listen on."),
) -> None:
    """Run the HTTP API."""
    uvicorn.run("api.main:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
