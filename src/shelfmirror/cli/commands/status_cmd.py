# ABOUTME: The `shelfmirror status` command for a summary of local state.
# ABOUTME: Shows mirror stats, sync state, scan-cache status counts, and shelf cache stats.

import json as json_lib
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfmirror.cli.options import data_dir_option, json_option, open_services

console = Console()


@click.command("status")
@data_dir_option
@json_option
def status(data_dir: Path | None, json_output: bool) -> None:
    """Show what has been mirrored and scanned."""
    services = open_services(data_dir)
    try:
        stats = services.mirror.get_stats()
        state = services.mirror.get_sync_state()
        cache_counts = services.list_cache.status_counts()
        want_stats = services.want_cache.get_stats()
        suggestions = len(services.suggested.get_all())
        wanted = len(services.wanted.get_all())
    finally:
        services.close()

    data = {
        "books": stats.count,
        "last_updated": stats.last_updated,
        "source_path": state.source_path,
        "last_snapshot": state.last_snapshot,
        "scan_status": cache_counts,
        "suggestions": suggestions,
        "wanted": wanted,
        "want_to_read_cached": want_stats.count,
    }
    if json_output:
        click.echo(json_lib.dumps(data, indent=2))
        return

    table = Table(show_header=False)
    table.add_row("Books mirrored", str(stats.count))
    table.add_row("Last snapshot", state.last_snapshot or "[dim]never[/dim]")
    table.add_row("Calibre database", state.source_path or "[dim]unknown[/dim]")
    for name, count in sorted(cache_counts.items()):
        table.add_row(f"Scan: {name or 'unset'}", str(count))
    table.add_row("Suggestions", str(suggestions))
    table.add_row("Wanted", str(wanted))
    table.add_row("Want-to-read cached", str(want_stats.count))
    console.print(table)
