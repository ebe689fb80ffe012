# ABOUTME: CLI package for shelfmirror, built on Click.
# ABOUTME: Defines the root command group, logging setup, and registers subcommands.

import logging

import click
from rich.logging import RichHandler

from shelfmirror.cli.commands import (
    books_cmd,
    config_cmd,
    logs_cmd,
    resolve_cmd,
    serve_cmd,
    status_cmd,
    suggest_cmd,
    sync_cmd,
    wanted_cmd,
)


@click.group()
@click.version_option(package_name="shelfmirror")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """Shelfmirror - mirror a Calibre library and find Hardcover recommendations."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


cli.add_command(sync_cmd.sync)
cli.add_command(resolve_cmd.resolve)
cli.add_command(books_cmd.books)
cli.add_command(status_cmd.status)
cli.add_command(suggest_cmd.suggest)
cli.add_command(wanted_cmd.wanted)
cli.add_command(logs_cmd.logs)
cli.add_command(config_cmd.config)
cli.add_command(serve_cmd.serve)
