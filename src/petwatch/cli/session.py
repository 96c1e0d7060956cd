"""Shared wiring for CLI commands: global options, client setup, error reporting."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

import anyio
import typer
from rich.console import Console

from petwatch.api.client import PetHubClient
from petwatch.cli.cache.store import CacheStore
from petwatch.cli.client import create_client, get_server_url, get_token
from petwatch.cli.config import get_config_value, get_queue_file, get_responses_dir
from petwatch.cli.sync.orchestrator import MutationOutcome, SyncOrchestrator
from petwatch.cli.sync.queue import MutationQueue
from petwatch.errors import PetwatchError

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


@dataclass
class CliState:
    """Options given before the sub-command."""

    json_output: bool = False
    token: str | None = None
    verbose: bool = False


def get_state(ctx: typer.Context) -> CliState:
    """Return the global options attached to the root context."""
    if isinstance(ctx.obj, CliState):
        return ctx.obj
    return CliState()


def require_token(state: CliState) -> str:
    """Return the bearer token or exit with instructions."""
    token = state.token or get_token()
    if not token:
        err_console.print("[red]API token not configured.[/red] Set it with:")
        err_console.print("  petwatch config set token <token>")
        raise typer.Exit(code=1)
    return token


def create_cache() -> CacheStore:
    """Cache store rooted at the configured cache directory."""
    ttl = timedelta(hours=float(get_config_value("cache_ttl_hours")))
    return CacheStore(get_responses_dir(), ttl=ttl)


def create_queue() -> MutationQueue:
    """Mutation queue at the configured location."""
    return MutationQueue(get_queue_file(), max_retries=int(get_config_value("max_retries")))


def create_orchestrator(client: PetHubClient) -> SyncOrchestrator:
    """Orchestrator wired to the configured cache, queue and base URL."""
    return SyncOrchestrator(client, create_cache(), create_queue(), get_server_url())


@asynccontextmanager
async def open_session(token: str, auto_sync: bool = True) -> AsyncIterator[SyncOrchestrator]:
    """Open a remote client and yield an orchestrator around it.

    When ``auto_sync`` is enabled in the config, queued operations are
    replayed first. A failed replay is logged and does not stop the command.
    """
    async with create_client() as client:
        orchestrator = create_orchestrator(client)
        if auto_sync and get_config_value("auto_sync"):
            try:
                summary = await orchestrator.synchronize(token)
            except PetwatchError as exc:
                logger.warning("Background sync failed: %s", exc.message)
            else:
                if summary is not None and summary.succeeded:
                    err_console.print(
                        f"[dim]Synced {summary.succeeded} queued operation(s).[/dim]"
                    )
        yield orchestrator


def report_error(exc: PetwatchError) -> None:
    """Print an error and its hint."""
    err_console.print(f"[red]Error:[/red] {exc.message}")
    if exc.hint:
        err_console.print(f"[dim]{exc.hint}[/dim]")


def run_async(func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
    """Run a coroutine function, turning petwatch errors into exit code 1."""
    try:
        return anyio.run(func, *args)
    except PetwatchError as exc:
        report_error(exc)
        raise typer.Exit(code=1) from exc


def print_json(data: Any) -> None:
    """Print plain data as JSON on stdout."""
    console.print_json(data=data)


def print_cache_notice(from_cache: bool) -> None:
    """Tell the user the data shown came from the local cache."""
    if from_cache:
        err_console.print("[yellow]Showing cached data.[/yellow]")


def report_mutation(state: CliState, outcome: MutationOutcome, action: str) -> None:
    """Print the result of a write, exiting with code 1 if nothing was applied."""
    if state.json_output:
        print_json(
            {
                "status": outcome.status.value,
                "operation_id": outcome.operation_id,
                "batch": outcome.batch.model_dump(mode="json") if outcome.batch else None,
            }
        )
        if outcome.failed:
            raise typer.Exit(code=1)
        return

    if outcome.batch is not None:
        batch = outcome.batch
        console.print(
            f"{action}: {len(batch.successful)}/{batch.total_processed} applied"
        )
        for failure in batch.failed:
            marker = "[yellow]queued[/yellow]" if failure.transient else "[red]failed[/red]"
            console.print(f"  {marker} {failure.id}: {failure.error}")

    if outcome.deferred:
        console.print(
            f"[yellow]⏳ {action} queued for later sync (id {outcome.operation_id}).[/yellow]"
        )
    elif outcome.failed:
        err_console.print(f"[red]{action} rejected; nothing was applied.[/red]")
        raise typer.Exit(code=1)
    elif outcome.batch is None:
        console.print(f"[green]✓ {action} applied.[/green]")


def parse_ids(value: str) -> list[int]:
    """Parse a comma-separated list of numeric ids."""
    try:
        ids = [int(part) for part in value.split(",") if part.strip()]
    except ValueError as exc:
        raise typer.BadParameter(f"'{value}' is not a comma-separated list of ids") from exc
    if not ids:
        raise typer.BadParameter("At least one id is required")
    return ids


async def resolve_pet_id(orchestrator: SyncOrchestrator, token: str, ref: str) -> int:
    """Turn a numeric id or a pet name into a pet id."""
    if ref.isdigit():
        return int(ref)
    pets = (await orchestrator.get_pets(token)).data
    for pet in pets:
        if pet.name.lower() == ref.lower():
            return pet.id
    raise PetwatchError(f"No pet named '{ref}'", hint="Run 'petwatch pets list' to see your pets.")


async def resolve_device_id(orchestrator: SyncOrchestrator, token: str, ref: str) -> int:
    """Turn a numeric id or a device name into a device id."""
    if ref.isdigit():
        return int(ref)
    devices = (await orchestrator.get_devices(token)).data
    for device in devices:
        if device.name.lower() == ref.lower():
            return device.id
    raise PetwatchError(
        f"No device named '{ref}'", hint="Run 'petwatch devices list' to see your devices."
    )
