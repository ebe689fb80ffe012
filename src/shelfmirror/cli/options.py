# ABOUTME: Shared Click options and helpers for shelfmirror CLI commands.
# ABOUTME: Provides --data-dir and --json flags and opens the service graph.

from pathlib import Path

import click

from shelfmirror.app import Services, build_services
from shelfmirror.config import load_settings
from shelfmirror.db.connection import DEFAULT_DATA_DIR

data_dir_option = click.option(
    "--data-dir",
    "data_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    envvar="SHELFMIRROR_DATA_DIR",
    help=f"Directory holding the database, covers, and user settings (default: {DEFAULT_DATA_DIR})",
)

json_option = click.option(
    "--json",
    "json_output",
    is_flag=True,
    default=False,
    help="Output results as JSON.",
)


def open_services(data_dir: Path | None) -> Services:
    return build_services(load_settings(data_dir))
