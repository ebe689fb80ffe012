# ABOUTME: The `shelfmirror books` command for listing mirrored books.
# ABOUTME: Displays a Rich table of the local mirror, newest first.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfmirror.cli.options import data_dir_option, open_services

console = Console()


@click.command("books")
@data_dir_option
@click.option("--limit", type=int, default=50, show_default=True, help="Rows to show (0 = all).")
def books(data_dir: Path | None, limit: int) -> None:
    """List books in the local mirror."""
    services = open_services(data_dir)
    try:
        records = services.mirror.get_all(limit)
    finally:
        services.close()

    if not records:
        console.print("[yellow]The mirror is empty. Run `shelfmirror sync` first.[/yellow]")
        return

    table = Table()
    table.add_column("ID", style="dim", width=5)
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("ISBN")
    table.add_column("Hardcover", style="dim")

    for record in records:
        table.add_row(
            str(record.id),
            record.title,
            ", ".join(record.authors) or "[dim]unknown[/dim]",
            record.isbn or "",
            record.external_id or "",
        )

    console.print(table)
    console.print(f"\n[dim]{len(records)} book(s)[/dim]")
