# ABOUTME: Periodic background jobs on an APScheduler BackgroundScheduler.
# ABOUTME: Library sync, identity resolution, want-to-read mirroring, and the dedup sweep.

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from shelfmirror.app import Services

logger = logging.getLogger(__name__)

DEDUP_MINUTES = "8,38"


def add_interval_job(
    scheduler: BaseScheduler,
    job_id: str,
    func: Callable[..., Any],
    minutes: int,
    first_run: datetime,
    kwargs: dict[str, Any] | None = None,
) -> bool:
    """Schedule ``func`` every ``minutes`` starting at ``first_run``.

    Returns:
        False when ``minutes`` is zero or negative and nothing was scheduled.
    """
    if minutes <= 0:
        logger.info("Job %s disabled (interval %d)", job_id, minutes)
        return False
    scheduler.add_job(
        func,
        trigger=IntervalTrigger(minutes=minutes),
        kwargs=kwargs,
        id=job_id,
        name=job_id,
        next_run_time=first_run,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return True


def build_scheduler(
    services: Services,
    scheduler: BaseScheduler | None = None,
    cancel: threading.Event | None = None,
) -> BaseScheduler:
    """Register every periodic job; each job also runs immediately.

    Setting ``cancel`` stops in-flight sync and resolution loops between books.
    """
    cancel_kwargs = {"cancel": cancel} if cancel is not None else None
    scheduler = scheduler or BackgroundScheduler(timezone=UTC)
    settings = services.settings
    now = datetime.now(UTC)

    add_interval_job(
        scheduler,
        "library-sync",
        services.library_sync.sync,
        settings.library_sync_minutes,
        now,
        cancel_kwargs,
    )
    if services.resolver is not None:
        add_interval_job(
            scheduler,
            "bookshelf-resolve",
            services.resolver.resolve,
            settings.bookshelf_sync_minutes,
            now,
            cancel_kwargs,
        )
    if services.want_sync is not None:
        add_interval_job(
            scheduler, "want-sync", services.want_sync.run, settings.want_sync_minutes, now
        )

    scheduler.add_job(
        services.dedup.run,
        trigger=CronTrigger(minute=DEDUP_MINUTES),
        id="suggestion-dedup",
        name="suggestion-dedup",
        next_run_time=now,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return scheduler
