"""Device commands."""

import typer
from rich.table import Table

from petwatch.api.models import CurfewTime, Device, LockState
from petwatch.cli.session import (
    CliState,
    console,
    get_state,
    open_session,
    print_cache_notice,
    print_json,
    report_mutation,
    require_token,
    resolve_device_id,
    run_async,
)

devices_app = typer.Typer(name="devices", help="View and control devices")


def _lock_label(device: Device) -> str:
    locking = device.status.locking if device.status else None
    if locking is None:
        return "-"
    try:
        return LockState(locking.mode).label
    except ValueError:
        return f"unknown ({locking.mode})"


def _render_devices(devices: list[Device]) -> None:
    if not devices:
        console.print("[yellow]No devices found.[/yellow]")
        return

    table = Table(title="Devices", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="green")
    table.add_column("Lock", style="white")
    table.add_column("Online", style="white")
    table.add_column("Battery", style="dim", justify="right")

    for device in devices:
        status = device.status
        online = "-" if status is None or status.online is None else ("yes" if status.online else "no")
        battery = "-" if status is None or status.battery is None else f"{status.battery:.2f}"
        table.add_row(str(device.id), device.name, _lock_label(device), online, battery)

    console.print(table)


@devices_app.command("list")
def list_devices(
    ctx: typer.Context,
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Bypass the cache"),
) -> None:
    """List hubs, flaps and feeders."""
    state = get_state(ctx)
    token = require_token(state)
    run_async(_list_devices_async, state, token, refresh)


async def _list_devices_async(state: CliState, token: str, refresh: bool) -> None:
    async with open_session(token) as orchestrator:
        devices, from_cache, _ = await orchestrator.get_devices(token, force_refresh=refresh)

    if state.json_output:
        print_json(
            {
                "from_cache": from_cache,
                "devices": [device.model_dump(mode="json") for device in devices],
            }
        )
        return
    print_cache_notice(from_cache)
    _render_devices(devices)


def _set_lock(ctx: typer.Context, device: str, lock_state: LockState) -> None:
    state = get_state(ctx)
    token = require_token(state)
    run_async(_set_lock_async, state, token, device, lock_state)


async def _set_lock_async(
    state: CliState, token: str, device: str, lock_state: LockState
) -> None:
    async with open_session(token) as orchestrator:
        device_id = await resolve_device_id(orchestrator, token, device)
        outcome = await orchestrator.set_device_lock_state(token, device_id, lock_state)
    report_mutation(state, outcome, f"Set {device} to {lock_state.label}")


@devices_app.command("lock")
def lock(ctx: typer.Context, device: str = typer.Argument(..., help="Device id or name")) -> None:
    """Lock a flap in both directions."""
    _set_lock(ctx, device, LockState.LOCKED)


@devices_app.command("lock-in")
def lock_in(ctx: typer.Context, device: str = typer.Argument(..., help="Device id or name")) -> None:
    """Keep pets inside."""
    _set_lock(ctx, device, LockState.KEEP_IN)


@devices_app.command("lock-out")
def lock_out(ctx: typer.Context, device: str = typer.Argument(..., help="Device id or name")) -> None:
    """Keep pets outside."""
    _set_lock(ctx, device, LockState.KEEP_OUT)


@devices_app.command("unlock")
def unlock(ctx: typer.Context, device: str = typer.Argument(..., help="Device id or name")) -> None:
    """Unlock a flap."""
    _set_lock(ctx, device, LockState.UNLOCKED)


@devices_app.command("curfew")
def curfew(
    ctx: typer.Context,
    device: str = typer.Argument(..., help="Device id or name"),
    lock_time: str = typer.Argument(..., help="Lock time as HH:MM"),
    unlock_time: str = typer.Argument(..., help="Unlock time as HH:MM"),
    disable: bool = typer.Option(False, "--disable", help="Store the window disabled"),
) -> None:
    """Set a flap's curfew window."""
    try:
        window = CurfewTime(enabled=not disable, lock_time=lock_time, unlock_time=unlock_time)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    state = get_state(ctx)
    token = require_token(state)
    run_async(_curfew_async, state, token, device, window)


async def _curfew_async(state: CliState, token: str, device: str, window: CurfewTime) -> None:
    async with open_session(token) as orchestrator:
        device_id = await resolve_device_id(orchestrator, token, device)
        outcome = await orchestrator.set_device_curfew(token, device_id, [window])
    report_mutation(
        state, outcome, f"Curfew {window.lock_time}-{window.unlock_time} on {device}"
    )
