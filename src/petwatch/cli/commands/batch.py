"""Batch commands acting on several pets or devices at once."""

import typer

from petwatch.api.models import (
    DeviceCommand,
    LockState,
    Location,
    PetLocationUpdate,
    SetLockStateCommand,
)
from petwatch.cli.session import (
    CliState,
    get_state,
    open_session,
    parse_ids,
    report_mutation,
    require_token,
    run_async,
)

batch_app = typer.Typer(name="batch", help="Apply a change to several pets or devices")


@batch_app.command("set-location")
def batch_set_location(
    ctx: typer.Context,
    ids: str = typer.Argument(..., help="Comma-separated pet ids"),
    location: str = typer.Option(..., "--location", "-l", help="inside or outside"),
) -> None:
    """Set the location of several pets."""
    pet_ids = parse_ids(ids)
    try:
        parsed = Location.parse(location)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--location") from e
    updates = [PetLocationUpdate(pet_id=pet_id, location=parsed) for pet_id in pet_ids]
    state = get_state(ctx)
    token = require_token(state)
    run_async(_batch_set_location_async, state, token, updates)


async def _batch_set_location_async(
    state: CliState, token: str, updates: list[PetLocationUpdate]
) -> None:
    async with open_session(token) as orchestrator:
        outcome = await orchestrator.batch_set_pet_locations(token, updates)
    report_mutation(state, outcome, f"Set location for {len(updates)} pets")


@batch_app.command("lock-state")
def batch_lock_state(
    ctx: typer.Context,
    ids: str = typer.Argument(..., help="Comma-separated device ids"),
    lock_state: str = typer.Option(
        ..., "--state", "-s", help="unlocked, keep-in, keep-out or locked"
    ),
) -> None:
    """Set the lock mode of several flaps."""
    device_ids = parse_ids(ids)
    try:
        parsed = LockState.parse(lock_state)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--state") from e
    commands = [
        DeviceCommand(device_id=device_id, command=SetLockStateCommand(lock_state=parsed))
        for device_id in device_ids
    ]
    state = get_state(ctx)
    token = require_token(state)
    run_async(_batch_lock_state_async, state, token, commands)


async def _batch_lock_state_async(
    state: CliState, token: str, commands: list[DeviceCommand]
) -> None:
    async with open_session(token) as orchestrator:
        outcome = await orchestrator.batch_device_control(token, commands)
    report_mutation(state, outcome, f"Set lock state for {len(commands)} devices")
