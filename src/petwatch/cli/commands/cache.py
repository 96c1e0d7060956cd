"""Cache maintenance commands."""

import typer
from rich.table import Table

from petwatch.cli.cache.store import CacheStats
from petwatch.cli.config import get_responses_dir
from petwatch.cli.session import console, create_cache, get_state, print_json, run_async

cache_app = typer.Typer(name="cache", help="Inspect and purge cached responses")


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show how many responses are cached and how many are stale."""
    stats: CacheStats = run_async(create_cache().stats)

    if get_state(ctx).json_output:
        print_json(
            {
                "directory": str(get_responses_dir()),
                "total_entries": stats.total_entries,
                "expired_entries": stats.expired_entries,
                "total_bytes": stats.total_bytes,
            }
        )
        return

    table = Table(title="Response Cache", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Entries", str(stats.total_entries))
    table.add_row("Expired", str(stats.expired_entries))
    table.add_row("Size", _format_size(stats.total_bytes))
    console.print(table)
    console.print(f"\nCache directory: [dim]{get_responses_dir()}[/dim]")


@cache_app.command("purge")
def cache_purge(
    purge_all: bool = typer.Option(False, "--all", help="Remove fresh entries too"),
) -> None:
    """Remove expired cached responses. Queued operations are kept."""
    cache = create_cache()
    removed: int = run_async(cache.purge_all if purge_all else cache.purge_expired)
    console.print(f"[green]✓ Removed {removed} cached response(s).[/green]")
