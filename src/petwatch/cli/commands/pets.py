"""Pet commands."""

import typer
from rich.table import Table

from petwatch.api.models import DateRange, HistoryKind, Location, Pet, PetHistory
from petwatch.cli.session import (
    CliState,
    console,
    get_state,
    open_session,
    print_cache_notice,
    print_json,
    report_mutation,
    require_token,
    resolve_pet_id,
    run_async,
)

pets_app = typer.Typer(name="pets", help="View and update pets")


def _location_label(pet: Pet) -> str:
    code = pet.location
    if code is None:
        return "-"
    try:
        return Location(code).label
    except ValueError:
        return f"unknown ({code})"


def _render_pets(pets: list[Pet]) -> None:
    if not pets:
        console.print("[yellow]No pets found.[/yellow]")
        return

    table = Table(title="Pets", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="green")
    table.add_column("Location", style="white")
    table.add_column("Since", style="dim")

    for pet in pets:
        since = pet.position.since if pet.position and pet.position.since else "-"
        table.add_row(str(pet.id), pet.name, _location_label(pet), since)

    console.print(table)


def _format_amount(kind: HistoryKind, amount: float) -> str:
    if kind is HistoryKind.ACTIVITY:
        minutes = int(amount) // 60
        return f"{minutes // 60}h {minutes % 60:02d}m"
    unit = "g" if kind is HistoryKind.FEEDING else "ml"
    return f"{amount:.1f}{unit}"


def _render_history(name: str, history: PetHistory) -> None:
    kind = history.kind
    if not history.days:
        console.print(f"[yellow]No {kind.value} data for {name} in this range.[/yellow]")
        return

    table = Table(
        title=f"{kind.value.capitalize()} history for {name}",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Date", style="cyan", no_wrap=True)
    table.add_column("Amount", style="green", justify="right")

    for day in history.days:
        table.add_row(day.date.strftime("%Y-%m-%d"), _format_amount(kind, day.amount))

    console.print(table)
    console.print(f"Total: {_format_amount(kind, history.total)}")
    console.print(f"Daily average: {_format_amount(kind, history.daily_average)}")
    if history.visits is not None:
        label = "Trips outside" if kind is HistoryKind.ACTIVITY else "Visits"
        console.print(f"{label}: {history.visits}")


@pets_app.command("list")
def list_pets(
    ctx: typer.Context,
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Bypass the cache"),
) -> None:
    """List pets and where they are."""
    state = get_state(ctx)
    token = require_token(state)
    run_async(_list_pets_async, state, token, refresh)


async def _list_pets_async(state: CliState, token: str, refresh: bool) -> None:
    async with open_session(token) as orchestrator:
        pets, from_cache, _ = await orchestrator.get_pets(token, force_refresh=refresh)

    if state.json_output:
        print_json(
            {"from_cache": from_cache, "pets": [pet.model_dump(mode="json") for pet in pets]}
        )
        return
    print_cache_notice(from_cache)
    _render_pets(pets)


@pets_app.command("set-location")
def set_location(
    ctx: typer.Context,
    pet: str = typer.Argument(..., help="Pet id or name"),
    location: str = typer.Argument(..., help="inside or outside"),
) -> None:
    """Record a pet as inside or outside."""
    try:
        parsed = Location.parse(location)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="LOCATION") from e
    state = get_state(ctx)
    token = require_token(state)
    run_async(_set_location_async, state, token, pet, parsed)


async def _set_location_async(
    state: CliState, token: str, pet: str, location: Location
) -> None:
    async with open_session(token) as orchestrator:
        pet_id = await resolve_pet_id(orchestrator, token, pet)
        outcome = await orchestrator.set_pet_location(token, pet_id, location)
    report_mutation(state, outcome, f"Set {pet} {location.label}")


@pets_app.command("history")
def history(
    ctx: typer.Context,
    pet: str = typer.Argument(..., help="Pet id or name"),
    kind: HistoryKind = typer.Option(HistoryKind.FEEDING, "--kind", "-k", help="History kind"),
    date_range: str = typer.Option(
        "week",
        "--range",
        help="today, week, month or YYYY-MM-DD,YYYY-MM-DD",
    ),
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Bypass the cache"),
) -> None:
    """Show daily feeding, drinking or activity totals."""
    try:
        parsed = DateRange.parse(date_range)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--range") from e
    state = get_state(ctx)
    token = require_token(state)
    run_async(_history_async, state, token, pet, kind, parsed, refresh)


async def _history_async(
    state: CliState,
    token: str,
    pet: str,
    kind: HistoryKind,
    date_range: DateRange,
    refresh: bool,
) -> None:
    async with open_session(token) as orchestrator:
        pet_id = await resolve_pet_id(orchestrator, token, pet)
        result = await orchestrator.get_history(
            token, pet_id, date_range, kind, force_refresh=refresh
        )

    if state.json_output:
        print_json({"from_cache": result.from_cache, **result.data.model_dump(mode="json")})
        return
    print_cache_notice(result.from_cache)
    _render_history(pet, result.data)
