# ABOUTME: The `shelfmirror logs` command for the activity trail.
# ABOUTME: Shows recent sync activity or clears it.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfmirror.cli.options import data_dir_option, open_services

console = Console()

LEVEL_STYLES = {"info": "cyan", "success": "green", "warning": "yellow", "error": "red"}


@click.command("logs")
@data_dir_option
@click.option("--take", type=int, default=50, show_default=True, help="Entries to show.")
@click.option("--clear", is_flag=True, default=False, help="Delete all entries.")
def logs(data_dir: Path | None, take: int, clear: bool) -> None:
    """Show recent sync activity."""
    services = open_services(data_dir)
    try:
        if clear:
            removed = services.activity.clear()
            console.print(f"Cleared {removed} entr{'y' if removed == 1 else 'ies'}.")
            return
        entries = services.activity.recent(take)
    finally:
        services.close()

    if not entries:
        console.print("[yellow]No activity yet.[/yellow]")
        return

    table = Table()
    table.add_column("When", style="dim")
    table.add_column("Source")
    table.add_column("Level")
    table.add_column("Message")
    for entry in entries:
        style = LEVEL_STYLES.get(entry.level, "")
        table.add_row(
            entry.created_at[:19],
            entry.source,
            f"[{style}]{entry.level}[/{style}]" if style else entry.level,
            entry.message,
        )
    console.print(table)
