# ABOUTME: The `shelfmirror wanted` command group for books the user wants.
# ABOUTME: Lists, adds, and removes wanted books, and mirrors the Hardcover shelf.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfmirror.catalog.payload import extract_authors, extract_isbns, extract_title
from shelfmirror.cli.options import data_dir_option, open_services

console = Console()


@click.group("wanted")
def wanted() -> None:
    """Manage books you want to acquire."""


@wanted.command("list")
@data_dir_option
def list_wanted(data_dir: Path | None) -> None:
    """List wanted books, newest first."""
    services = open_services(data_dir)
    try:
        entries = services.wanted.get_all()
    finally:
        services.close()

    if not entries:
        console.print("[yellow]No wanted books.[/yellow]")
        return

    table = Table()
    table.add_column("Key", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("ISBN")
    for entry in entries:
        table.add_row(
            entry.key,
            extract_title(entry.book),
            ", ".join(extract_authors(entry.book)[:2]),
            ", ".join(extract_isbns(entry.book)[:1]),
        )
    console.print(table)
    console.print(f"\n[dim]{len(entries)} wanted book(s)[/dim]")


@wanted.command("add")
@data_dir_option
@click.argument("key")
@click.option("--title", required=True, help="Book title.")
@click.option("--author", "authors", multiple=True, help="Author name (repeatable).")
@click.option("--isbn", default=None, help="ISBN used to detect when the book arrives.")
def add(
    data_dir: Path | None, key: str, title: str, authors: tuple[str, ...], isbn: str | None
) -> None:
    """Add or update a wanted book under KEY."""
    book: dict[str, object] = {"title": title}
    if authors:
        book["authors"] = list(authors)
    if isbn:
        book["isbn"] = isbn
    services = open_services(data_dir)
    try:
        services.wanted.upsert(key, book)
    finally:
        services.close()
    console.print(f"[green]Wanted:[/green] {title}")


@wanted.command("remove")
@data_dir_option
@click.argument("key")
def remove(data_dir: Path | None, key: str) -> None:
    """Remove the wanted book stored under KEY."""
    services = open_services(data_dir)
    try:
        removed = services.wanted.delete(key)
    finally:
        services.close()
    if not removed:
        console.print(f"[red]No wanted book with key '{key}'.[/red]")
        raise SystemExit(1)
    console.print(f"Removed {key}.")


@wanted.command("sync")
@data_dir_option
def sync_shelf(data_dir: Path | None) -> None:
    """Mirror the Hardcover want-to-read shelf now."""
    services = open_services(data_dir)
    try:
        if services.want_sync is None:
            console.print("[yellow]Hardcover API key not configured.[/yellow]")
            raise SystemExit(1)
        result = services.want_sync.run()
    finally:
        services.close()

    if result.error:
        console.print(f"[red]Want-to-read sync failed:[/red] {result.error}")
        raise SystemExit(1)
    if result.kept_existing:
        console.print("[yellow]Shelf came back empty; kept the cached copy.[/yellow]")
        return
    console.print(f"Cached {result.cached} book(s), removed {result.removed}.")
