# ABOUTME: The `shelfmirror config` command group for viewing and editing settings.
# ABOUTME: Persists the Calibre path and Hardcover list id in user-settings.json.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfmirror.cli.options import data_dir_option
from shelfmirror.config import UserSettingsStore, load_settings

console = Console()


@click.group("config")
def config() -> None:
    """View or change settings."""


@config.command("show")
@data_dir_option
def show(data_dir: Path | None) -> None:
    """Show effective settings."""
    settings = load_settings(data_dir)
    table = Table(show_header=False)
    table.add_row("Data directory", str(settings.data_dir))
    table.add_row("Calibre database", str(settings.calibre_db_path or "[dim]not set[/dim]"))
    table.add_row("Hardcover endpoint", settings.hardcover_endpoint)
    table.add_row("Hardcover API key", "set" if settings.hardcover_configured else "[dim]not set[/dim]")
    table.add_row("Hardcover list id", str(settings.hardcover_list_id or "[dim]not set[/dim]"))
    table.add_row("Library sync (min)", str(settings.library_sync_minutes))
    table.add_row("Bookshelf sync (min)", str(settings.bookshelf_sync_minutes))
    table.add_row("Want sync (min)", str(settings.want_sync_minutes))
    console.print(table)


@config.command("set-calibre-path")
@data_dir_option
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
def set_calibre_path(data_dir: Path | None, path: Path) -> None:
    """Point shelfmirror at a Calibre metadata.db file."""
    settings = load_settings(data_dir)
    resolved = path.expanduser().resolve()
    if not resolved.is_file():
        console.print(f"[yellow]Warning: {resolved} does not exist yet.[/yellow]")
    UserSettingsStore(settings.user_settings_path).set("calibre_db_path", str(resolved))
    console.print(f"Calibre database set to {resolved}")


@config.command("set-list-id")
@data_dir_option
@click.argument("list_id", type=int)
def set_list_id(data_dir: Path | None, list_id: int) -> None:
    """Set the Hardcover list that newly matched books are added to."""
    settings = load_settings(data_dir)
    UserSettingsStore(settings.user_settings_path).set("hardcover_list_id", list_id)
    console.print(f"Hardcover list id set to {list_id}")
