"""Configuration management commands."""

import typer
from rich.table import Table

from petwatch.cli.config import (
    DEFAULTS,
    coerce_value,
    get_config_file,
    load_config,
    set_config_value,
)
from petwatch.cli.session import console

config_app = typer.Typer(
    name="config",
    help="Manage CLI configuration",
)

KNOWN_KEYS = (*DEFAULTS, "token", "cache_dir")


def _mask(value: object) -> str:
    text = str(value)
    if len(text) <= 8:
        return "****"
    return f"{text[:4]}…{text[-4:]}"


@config_app.command("show")
def config_show() -> None:
    """Display current configuration, including defaults."""
    config = load_config()

    table = Table(title="Petwatch Configuration", show_header=True, header_style="bold magenta")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_column("Source", style="dim")

    for key in sorted({*DEFAULTS, *config}):
        if key in config:
            value = _mask(config[key]) if key == "token" else str(config[key])
            table.add_row(key, value, "config")
        else:
            table.add_row(key, str(DEFAULTS[key]), "default")

    console.print(table)
    console.print(f"\nConfig file: [dim]{get_config_file()}[/dim]")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Configuration key to set"),
    value: str = typer.Argument(..., help="Value to set"),
) -> None:
    """Set a configuration value.

    Examples:
        petwatch config set token abc123
        petwatch config set cache_ttl_hours 6
    """
    if key not in KNOWN_KEYS:
        console.print(f"[red]Unknown configuration key '{key}'.[/red]")
        console.print(f"Known keys: {', '.join(sorted(KNOWN_KEYS))}")
        raise typer.Exit(code=1)
    try:
        coerced = coerce_value(key, value)
    except ValueError as e:
        console.print(f"[red]Invalid value for {key}: {e}[/red]")
        raise typer.Exit(code=1) from e

    set_config_value(key, coerced)
    shown = _mask(coerced) if key == "token" else coerced
    console.print(f"[green]✓[/green] Set [cyan]{key}[/cyan] = [green]{shown}[/green]")
    console.print(f"Config file: [dim]{get_config_file()}[/dim]")
