"""Sync CLI commands for manual queue control."""

import typer
from rich.table import Table

from petwatch.cli.client import create_client, get_server_url, is_reachable
from petwatch.cli.session import (
    CliState,
    console,
    create_orchestrator,
    get_state,
    open_session,
    print_json,
    require_token,
    run_async,
)

sync_app = typer.Typer(name="sync", help="Manage queued operations")


@sync_app.callback(invoke_without_command=True)
def sync(ctx: typer.Context) -> None:
    """Replay queued operations now."""
    if ctx.invoked_subcommand is None:
        state = get_state(ctx)
        token = require_token(state)
        run_async(_sync_async, state, token)


async def _sync_async(state: CliState, token: str) -> None:
    async with open_session(token, auto_sync=False) as orchestrator:
        pending = (await orchestrator.queue_status()).count
        summary = await orchestrator.synchronize(token)

    if state.json_output:
        print_json(
            {
                "pending": pending,
                "total": summary.total if summary else 0,
                "succeeded": summary.succeeded if summary else 0,
                "failed": summary.failed if summary else 0,
                "retried": summary.retried if summary else 0,
                "attempted": summary is not None,
            }
        )
        return

    if pending == 0:
        console.print("[green]No queued operations.[/green]")
        return
    if summary is None:
        console.print(f"[red]Unable to reach server at {get_server_url()}.[/red]")
        console.print(f"{pending} operation(s) remain queued.")
        raise typer.Exit(code=1)

    console.print("[green]✓ Sync complete.[/green]")
    console.print(f"  Succeeded: {summary.succeeded}")
    if summary.failed:
        console.print(f"  [red]Failed: {summary.failed}[/red]")
    if summary.retried:
        console.print(f"  [yellow]Will retry: {summary.retried}[/yellow]")


@sync_app.command("status")
def sync_status(ctx: typer.Context) -> None:
    """Show connectivity and queued operations."""
    run_async(_sync_status_async, get_state(ctx))


async def _sync_status_async(state: CliState) -> None:
    online = await is_reachable(get_server_url())
    async with create_client() as client:
        status = await create_orchestrator(client).queue_status()

    if state.json_output:
        print_json(
            {"online": online, "pending": status.count, "operations": status.descriptions}
        )
        return

    if online:
        console.print(f"[green]Server: {get_server_url()}[/green]")
        console.print("[green]Status: Online[/green]\n")
    else:
        console.print(f"[red]Unable to reach server at {get_server_url()}.[/red]")
        console.print("[yellow]Status: Offline[/yellow]\n")

    if status.count == 0:
        console.print("[green]No pending operations.[/green]")
        return

    table = Table(title="Pending Operations", show_header=True, header_style="bold yellow")
    table.add_column("#", style="cyan", no_wrap=True)
    table.add_column("Operation", style="white")
    for index, description in enumerate(status.descriptions, start=1):
        table.add_row(str(index), description)
    console.print(table)
    console.print(f"\n[yellow]Total pending operations: {status.count}[/yellow]")


@sync_app.command("clear")
def sync_clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete all cached responses and queued operations."""
    if not yes:
        typer.confirm("Discard all cached data and queued operations?", abort=True)
    run_async(_sync_clear_async)
    console.print("[green]✓ Cache and queue cleared.[/green]")


async def _sync_clear_async() -> None:
    async with create_client() as client:
        await create_orchestrator(client).clear_all()
