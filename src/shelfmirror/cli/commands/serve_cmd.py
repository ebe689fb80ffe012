# ABOUTME: The `shelfmirror serve` command for running the background jobs.
# ABOUTME: Starts the scheduler and blocks until interrupted.

import logging
import threading
from pathlib import Path

import click
from rich.console import Console

from shelfmirror.cli.options import data_dir_option, open_services
from shelfmirror.core.scheduler import build_scheduler

console = Console()
logger = logging.getLogger(__name__)


@click.command("serve")
@data_dir_option
def serve(data_dir: Path | None) -> None:
    """Run scheduled syncs until interrupted with Ctrl+C."""
    services = open_services(data_dir)
    stop = threading.Event()
    scheduler = build_scheduler(services, cancel=stop)
    scheduler.start()
    jobs = ", ".join(job.id for job in scheduler.get_jobs())
    console.print(f"[green]Scheduler running:[/green] {jobs}")
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        console.print("Stopping...")
    finally:
        stop.set()
        scheduler.shutdown(wait=True)
        services.close()
        logger.info("Scheduler stopped")
