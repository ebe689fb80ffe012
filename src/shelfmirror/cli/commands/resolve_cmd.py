# ABOUTME: The `shelfmirror resolve` command for matching mirrored books to Hardcover.
# ABOUTME: Runs the identity resolver over the whole mirror and prints its counts.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfmirror.cli.options import data_dir_option, open_services

console = Console()


@click.command("resolve")
@data_dir_option
def resolve(data_dir: Path | None) -> None:
    """Resolve Hardcover ids for every mirrored book."""
    services = open_services(data_dir)
    try:
        if services.resolver is None:
            console.print("[yellow]Hardcover API key not configured.[/yellow]")
            raise SystemExit(1)
        result = services.resolver.resolve()
    finally:
        services.close()

    table = Table(show_header=False)
    for label, value in (
        ("Attempted", result.attempted),
        ("Resolved", result.resolved),
        ("Already mapped", result.already_mapped),
        ("Missing ISBN", result.missing_key),
        ("Title fallback", result.fallback_used),
        ("Failed", result.failed),
        ("Added to list", result.pushed),
    ):
        table.add_row(label, str(value))
    console.print(table)
