# ABOUTME: The `shelfmirror suggest` command group for ranked suggestions.
# ABOUTME: Lists, scans, hides, unhides, deletes, and de-duplicates suggested books.

import json as json_lib
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfmirror.catalog.payload import book_genres, extract_authors, extract_title
from shelfmirror.cli.options import data_dir_option, json_option, open_services
from shelfmirror.core.ranking import LibraryProfile, rank
from shelfmirror.db.mapping import SuggestedCandidate

console = Console()


@click.group("suggest")
def suggest() -> None:
    """Work with books suggested from Hardcover lists."""


@suggest.command("list")
@data_dir_option
@json_option
@click.option("--limit", type=int, default=25, show_default=True, help="Rows to show (0 = all).")
@click.option("--debug", is_flag=True, default=False, help="Show the score breakdown.")
def list_suggestions(data_dir: Path | None, json_output: bool, limit: int, debug: bool) -> None:
    """Show suggestions ranked against the library."""
    services = open_services(data_dir)
    try:
        profile = LibraryProfile.build(services.mirror.get_all(), services.list_cache.get_all())
        ranked = rank(services.suggested.get_all(), profile)
    finally:
        services.close()

    if limit > 0:
        ranked = ranked[:limit]

    if json_output:
        data = [
            {
                "id": item.candidate.id,
                "source_key": item.candidate.source_key,
                "title": extract_title(item.candidate.book),
                "score": item.score,
                "author_match": item.author_match,
                "genre_match_count": item.genre_match_count,
                "title_word_match_count": item.title_word_match_count,
                "already_in_library": item.already_in_library,
                "matched_by_isbn": item.matched_by_isbn,
                "reasons": len(item.candidate.reasons),
                "debug": item.debug,
            }
            for item in ranked
        ]
        click.echo(json_lib.dumps(data, indent=2))
        return

    if not ranked:
        console.print("[yellow]No suggestions yet.[/yellow]")
        return

    table = Table()
    table.add_column("ID", style="dim", width=5)
    table.add_column("Score", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("Owned")
    if debug:
        table.add_column("Breakdown", style="dim")

    for item in ranked:
        owned = ""
        if item.already_in_library:
            owned = "ISBN" if item.matched_by_isbn else "title"
        row = [
            str(item.candidate.id),
            str(item.score),
            extract_title(item.candidate.book),
            ", ".join(extract_authors(item.candidate.book)[:2]),
            owned,
        ]
        if debug:
            row.append(json_lib.dumps(item.debug))
        table.add_row(*row)
    console.print(table)


@suggest.command("scan")
@data_dir_option
@click.option("--take", type=int, default=10, show_default=True, help="Library books to scan.")
@click.option("--min-rating", type=float, default=None, help="Skip rated books below this.")
def scan(data_dir: Path | None, take: int, min_rating: float | None) -> None:
    """Scan lists for the most recently added library books and store suggestions."""
    services = open_services(data_dir)
    try:
        if services.aggregator is None:
            console.print("[yellow]Hardcover API key not configured.[/yellow]")
            raise SystemExit(1)
        settings = services.settings
        report = services.aggregator.recommend(
            services.mirror.get_all(),
            take=take,
            lists_per_book=settings.lists_per_book,
            items_per_list=settings.items_per_list,
            min_rating=min_rating,
            delay=settings.request_delay_seconds,
        )
        added = services.suggested.upsert_missing(
            [
                SuggestedCandidate(
                    source_key=rec.key,
                    book=rec.book,
                    base_genres=book_genres(rec.book),
                    reasons=rec.reasons,
                )
                for rec in report.recommendations
            ]
        )
    finally:
        services.close()

    console.print(
        f"Scanned {report.inspected} book(s), matched {report.matched}; "
        f"{len(report.recommendations)} recommendation(s), {added} new."
    )


def _parse_ids(ids: tuple[int, ...]) -> list[int]:
    if not ids:
        raise click.UsageError("Give at least one suggestion ID.")
    return list(ids)


@suggest.command("hide")
@data_dir_option
@click.argument("ids", nargs=-1, type=int)
def hide(data_dir: Path | None, ids: tuple[int, ...]) -> None:
    """Hide suggestions by ID."""
    services = open_services(data_dir)
    try:
        changed = services.suggested.hide_by_ids(_parse_ids(ids))
    finally:
        services.close()
    console.print(f"Hid {changed} suggestion(s).")


@suggest.command("unhide")
@data_dir_option
@click.argument("ids", nargs=-1, type=int)
def unhide(data_dir: Path | None, ids: tuple[int, ...]) -> None:
    """Restore hidden suggestions by ID."""
    services = open_services(data_dir)
    try:
        changed = services.suggested.unhide_by_ids(_parse_ids(ids))
    finally:
        services.close()
    console.print(f"Restored {changed} suggestion(s).")


@suggest.command("delete")
@data_dir_option
@click.argument("ids", nargs=-1, type=int)
def delete(data_dir: Path | None, ids: tuple[int, ...]) -> None:
    """Delete suggestions by ID."""
    services = open_services(data_dir)
    try:
        deleted = services.suggested.delete_by_ids(_parse_ids(ids))
    finally:
        services.close()
    console.print(f"Deleted {deleted} suggestion(s).")


@suggest.command("hidden")
@data_dir_option
def hidden(data_dir: Path | None) -> None:
    """List hidden suggestions."""
    services = open_services(data_dir)
    try:
        rows = services.suggested.get_hidden()
    finally:
        services.close()
    if not rows:
        console.print("[yellow]No hidden suggestions.[/yellow]")
        return
    table = Table()
    table.add_column("ID", style="dim", width=5)
    table.add_column("Title", style="bold")
    for row in rows:
        table.add_row(str(row.id), extract_title(row.book))
    console.print(table)


@suggest.command("dedup")
@data_dir_option
def dedup(data_dir: Path | None) -> None:
    """Hide duplicate suggestions now."""
    services = open_services(data_dir)
    try:
        hidden_count = services.dedup.run()
    finally:
        services.close()
    console.print(f"Hid {hidden_count} duplicate suggestion(s).")
