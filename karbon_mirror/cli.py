"""Karbon mirror CLI - run syncs and inspect mirror state from a shell."""

from __future__ import annotations

import asyncio
import json
import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .api.client import KarbonClient, KarbonError
from .config import settings
from .startup import validate_startup
from .sync.registry import UnknownEntityKind

app = typer.Typer(
    name="karbon-mirror",
    help="Karbon mirror - keep a local copy of Karbon practice data",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _prepare_db():
    from .database import engine
    from .models import Base

    if settings.auto_create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)


def _startup_or_exit() -> None:
    try:
        validate_startup()
    except (KarbonError, ValueError) as e:
        console.print(f"[red]Startup check failed: {e}[/red]")
        raise typer.Exit(1)


def _status_style(status: str) -> str:
    return {
        "completed": "green",
        "healthy": "green",
        "completed_with_errors": "yellow",
        "warning": "yellow",
        "running": "cyan",
    }.get(status, "red")


@app.command("sync")
def sync_command(
    full: bool = typer.Option(False, "--full", help="Ignore watermarks and fetch everything"),
    entities: str = typer.Option("", "--entities", "-e", help="Comma-separated entity kinds"),
    manual: bool = typer.Option(True, "--manual/--scheduled", help="Record the run as manual"),
    json_output: bool = typer.Option(False, "--json", help="Print the raw JSON summary"),
):
    """Run an inbound sync from Karbon."""
    _startup_or_exit()
    names = [n.strip() for n in entities.split(",") if n.strip()] or None

    async def _run():
        from .database import async_session_factory
        from .sync.sync_engine import run_sync

        await _prepare_db()
        async with KarbonClient.from_settings() as client:
            async with async_session_factory() as db:
                return await run_sync(
                    db, client, entities=names, incremental=not full, manual=manual
                )

    try:
        summary = asyncio.run(_run())
    except UnknownEntityKind as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)
    except KarbonError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)

    body = summary.to_response()
    if json_output:
        console.print_json(json.dumps(body, default=str))
        return

    table = Table(title=f"Sync {summary.sync_type} ({body['duration']})")
    table.add_column("Entity", style="cyan")
    table.add_column("Fetched", justify="right")
    table.add_column("Synced", justify="right")
    table.add_column("Created", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Notes", style="dim")
    for name, result in summary.results.items():
        table.add_row(
            name,
            str(result.fetched),
            str(result.synced),
            str(result.created),
            f"[red]{result.errors}[/red]" if result.errors else "0",
            result.error or result.skipped or result.warning or "",
        )
    console.print(table)
    style = _status_style(summary.status)
    console.print(f"Status: [{style}]{summary.status}[/{style}]  run {summary.run_id}")
    if summary.errors:
        raise typer.Exit(1)


@app.command("reap")
def reap_command():
    """Fail sync runs whose lease expired without finishing."""

    async def _run():
        from .database import async_session_factory
        from .sync.sync_engine import reap_stale_runs

        await _prepare_db()
        async with async_session_factory() as db:
            return await reap_stale_runs(db)

    reaped = asyncio.run(_run())
    console.print(f"[green]Reaped {reaped} abandoned run(s)[/green]")


@app.command("followups")
def followups_command(
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum jobs to process"),
):
    """Process pending follow-up jobs queued by webhooks."""
    _startup_or_exit()

    async def _run():
        from .database import async_session_factory
        from .services.followup_svc import run_pending_followups

        await _prepare_db()
        async with KarbonClient.from_settings() as client:
            async with async_session_factory() as db:
                return await run_pending_followups(db, client, limit=limit)

    try:
        stats = asyncio.run(_run())
    except KarbonError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)

    console.print(
        f"Processed {stats.processed}: [green]{stats.succeeded} succeeded[/green], "
        f"[yellow]{stats.retrying} retrying[/yellow], [red]{stats.failed} failed[/red]"
    )


@app.command("health")
def health_command(
    json_output: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Show per-entity freshness of the mirror."""

    async def _run():
        from .database import async_session_factory
        from .services.audit_svc import sync_health

        await _prepare_db()
        async with async_session_factory() as db:
            return await sync_health(db)

    report = asyncio.run(_run())
    if json_output:
        console.print_json(json.dumps(report, default=str))
        return

    style = _status_style(report["status"])
    console.print(Panel(f"[bold {style}]{report['status'].upper()}[/bold {style}]", title="Sync health", expand=False))
    table = Table()
    table.add_column("Entity", style="cyan")
    table.add_column("Records", justify="right")
    table.add_column("Last sync")
    table.add_column("Last modified")
    for name, info in report["entities"].items():
        last_sync = info["last_sync"] or "never"
        table.add_row(
            name,
            str(info["record_count"]),
            f"[red]{last_sync}[/red]" if info["stale"] else last_sync,
            info["last_modified"] or "-",
        )
    console.print(table)


@app.command("runs")
def runs_command(
    limit: int = typer.Option(10, "--limit", "-n", help="Number of runs to show"),
):
    """List recent sync runs."""

    async def _run():
        from .database import async_session_factory
        from .services.audit_svc import list_sync_runs, sync_run_to_dict

        await _prepare_db()
        async with async_session_factory() as db:
            return [sync_run_to_dict(run) for run in await list_sync_runs(db, limit=limit)]

    runs = asyncio.run(_run())
    if not runs:
        console.print("[dim]No sync runs recorded[/dim]")
        return

    table = Table(title="Recent sync runs")
    table.add_column("Started")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Fetched", justify="right")
    table.add_column("Created", justify="right")
    table.add_column("Failed", justify="right")
    for run in runs:
        style = _status_style(run["status"])
        table.add_row(
            run["startedAt"] or "-",
            run["syncType"] + (" (manual)" if run["isManual"] else ""),
            f"[{style}]{run['status']}[/{style}]",
            str(run["recordsFetched"]),
            str(run["recordsCreated"]),
            str(run["recordsFailed"]),
        )
    console.print(table)


@app.command("serve")
def serve_command(
    port: int = typer.Option(8030, "--port", "-p", help="Port to run on"),
    host: str = typer.Option("127.0.0.1", "--host", help="Host to bind to"),
):
    """Launch the webhook receiver and sync API."""
    import uvicorn

    console.print(f"[bold cyan]Starting Karbon mirror at http://{host}:{port}[/bold cyan]")
    uvicorn.run("karbon_mirror.app:app", host=host, port=port)


if __name__ == "__main__":
    app()
