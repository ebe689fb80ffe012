# ABOUTME: The `shelfmirror sync` command for running one library sync cycle.
# ABOUTME: Mirrors Calibre, scans pending books, prunes wanted books, and prints a summary.

import json as json_lib
from dataclasses import asdict
from pathlib import Path

import click
from rich.console import Console

from shelfmirror.cli.options import data_dir_option, json_option, open_services

console = Console()


@click.command("sync")
@data_dir_option
@json_option
def sync(data_dir: Path | None, json_output: bool) -> None:
    """Run one library sync cycle now."""
    services = open_services(data_dir)
    try:
        result = services.library_sync.sync()
    finally:
        services.close()

    if json_output:
        click.echo(json_lib.dumps(asdict(result), indent=2, default=str))
        if not result.success:
            raise SystemExit(1)
        return

    if not result.success:
        console.print(f"[red]Sync failed:[/red] {result.error}")
        raise SystemExit(1)

    console.print(
        f"[green]Mirrored {result.count} book(s)[/green] "
        f"({len(result.added_ids)} added, {len(result.removed_ids)} removed)"
    )
    if result.scan is not None and result.scan.scanned:
        scan = result.scan
        console.print(
            f"Scanned {scan.scanned} pending book(s): {scan.matched} matched, "
            f"{scan.not_matched} not matched, {scan.failed} failed, "
            f"{scan.suggestions_added} new suggestion(s)"
        )
    if result.prune is not None and result.prune.matched:
        console.print(f"Pruned {result.prune.removed_local} wanted book(s) now in the library")
