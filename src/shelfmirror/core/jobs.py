# ABOUTME: Background jobs other than the library sync, plus the single-flight guard.
# ABOUTME: Want-to-read shelf mirroring and the suggestion duplicate sweep.

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from shelfmirror.catalog.http import CatalogFetchError
from shelfmirror.catalog.payload import extract_external_id
from shelfmirror.catalog.shelf import WantToReadShelf
from shelfmirror.db.activity import ActivityLog
from shelfmirror.db.suggested import SuggestedStore
from shelfmirror.db.want_cache import WantCacheStore
from shelfmirror.db.wanted import WantedStore

logger = logging.getLogger(__name__)

SHELF_KEY_PREFIX = "hardcover:"


class SingleFlight:
    """Non-blocking guard that lets at most one run of a job proceed."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def claim(self) -> Iterator[bool]:
        """Yield True if this caller holds the guard, False if a run is in flight."""
        acquired = self._lock.acquire(blocking=False)
        if not acquired:
            logger.info("%s already running; skipping", self.name)
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()


def shelf_key(external_id: str) -> str:
    return f"{SHELF_KEY_PREFIX}{external_id}"


@dataclass
class WantSyncResult:
    fetched: int = 0
    cached: int = 0
    removed: int = 0
    kept_existing: bool = False
    skipped: bool = False
    error: str | None = None


class WantSyncJob:
    """Mirrors the Hardcover want-to-read shelf into the local cache and wanted list."""

    def __init__(
        self,
        shelf: WantToReadShelf,
        want_cache: WantCacheStore,
        wanted: WantedStore,
        activity: ActivityLog | None = None,
    ) -> None:
        self._shelf = shelf
        self._want_cache = want_cache
        self._wanted = wanted
        self._activity = activity
        self._flight = SingleFlight("want-to-read sync")

    def run(self) -> WantSyncResult:
        with self._flight.claim() as acquired:
            if not acquired:
                return WantSyncResult(skipped=True)
            return self._run()

    def _run(self) -> WantSyncResult:
        result = WantSyncResult()
        try:
            books = self._shelf.fetch()
        except CatalogFetchError as exc:
            logger.warning("Want-to-read fetch failed: %s", exc)
            result.error = str(exc)
            self._log("error", f"Want-to-read sync failed: {exc}")
            return result

        result.fetched = len(books)
        if not books and self._want_cache.get_stats().count > 0:
            # An empty response never wipes a populated cache.
            result.kept_existing = True
            self._log("warning", "Want-to-read returned no books; keeping cached shelf")
            return result

        try:
            result.cached, result.removed = self._want_cache.replace_all(books)
            for book in books:
                external_id = extract_external_id(book)
                if external_id:
                    self._wanted.upsert(shelf_key(external_id), book)
        except sqlite3.Error as exc:
            logger.warning("Storing want-to-read shelf failed: %s", exc)
            result.error = str(exc)
            self._log("error", f"Storing want-to-read shelf failed: {exc}")
            return result

        self._log(
            "success",
            f"Want-to-read synced: {result.cached} cached, {result.removed} removed",
        )
        return result

    def _log(self, level: str, message: str) -> None:
        if self._activity is not None:
            self._activity.add("want sync", level, message)


class DedupJob:
    """Hides duplicate suggestions left behind by overlapping scans."""

    def __init__(self, suggested: SuggestedStore, activity: ActivityLog | None = None) -> None:
        self._suggested = suggested
        self._activity = activity
        self._flight = SingleFlight("suggestion dedup")

    def run(self) -> int:
        with self._flight.claim() as acquired:
            if not acquired:
                return 0
            hidden = self._suggested.hide_duplicates()
        if hidden and self._activity is not None:
            self._activity.add("suggested", "info", f"Hid {hidden} duplicate suggestion(s)")
        return hidden
