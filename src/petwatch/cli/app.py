"""Main CLI application using Typer."""

import typer
from rich.console import Console

from petwatch import __version__
from petwatch.cli.commands.batch import batch_app
from petwatch.cli.commands.cache import cache_app
from petwatch.cli.commands.config import config_app
from petwatch.cli.commands.devices import devices_app
from petwatch.cli.commands.pets import pets_app
from petwatch.cli.commands.sync import sync_app
from petwatch.cli.logging_config import setup_logging
from petwatch.cli.session import CliState

app = typer.Typer(
    name="petwatch",
    help="Petwatch - Monitor and control your pet flaps and feeders, online or off",
    add_completion=False,
)
console = Console()

# Register subcommands
app.add_typer(pets_app, name="pets")
app.add_typer(devices_app, name="devices")
app.add_typer(batch_app, name="batch")
app.add_typer(sync_app, name="sync")
app.add_typer(cache_app, name="cache")
app.add_typer(config_app, name="config")


def version_callback(value: bool) -> None:
    """Show version information."""
    if value:
        console.print(f"Petwatch version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    json_output: bool = typer.Option(False, "--json", help="Print JSON instead of tables"),
    token: str | None = typer.Option(
        None, "--token", "-t", help="API token (overrides the configured one)"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Petwatch CLI - Keep working when the pet hub is out of reach."""
    setup_logging(verbose)
    ctx.obj = CliState(json_output=json_output, token=token, verbose=verbose)


if __name__ == "__main__":
    app()
