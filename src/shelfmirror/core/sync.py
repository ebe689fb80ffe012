# ABOUTME: One full library sync cycle, guarded against concurrent runs.
# ABOUTME: Snapshot Calibre, replace the mirror, scan pending books, and prune wanted books.

import logging
import sqlite3
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from shelfmirror.catalog.http import CatalogFetchError
from shelfmirror.catalog.lists import ListAggregator
from shelfmirror.catalog.payload import (
    book_genres,
    extract_external_id,
    extract_isbns,
    extract_slug,
    normalize_isbn,
)
from shelfmirror.catalog.shelf import WantToReadShelf
from shelfmirror.core.jobs import SHELF_KEY_PREFIX, SingleFlight
from shelfmirror.core.resolver import IdentityResolver, ResolveResult
from shelfmirror.db.activity import ActivityLog
from shelfmirror.db.list_cache import CacheSyncResult, ListCacheStore
from shelfmirror.db.mapping import (
    NOT_MATCHED,
    OK,
    LibraryRecord,
    ListCacheEntry,
    SuggestedCandidate,
    WantedEntry,
    utc_now,
)
from shelfmirror.db.mirror import MirrorStore
from shelfmirror.db.suggested import SuggestedStore
from shelfmirror.db.want_cache import WantCacheStore
from shelfmirror.db.wanted import WantedStore
from shelfmirror.source.calibre import CalibreSource, SourceBook, SourceNotConfiguredError
from shelfmirror.source.covers import CoverCache

logger = logging.getLogger(__name__)

ACTIVITY_SOURCE = "library sync"
ALREADY_RUNNING = "Sync already in progress."


@dataclass
class ScanSummary:
    """Outcome of scanning pending books for list recommendations."""

    scanned: int = 0
    matched: int = 0
    not_matched: int = 0
    failed: int = 0
    suggestions_added: int = 0
    cancelled: bool = False
    resolve: ResolveResult | None = None


@dataclass
class PruneSummary:
    """Outcome of dropping wanted books that are now in the library."""

    matched: int = 0
    removed_local: int = 0
    removed_remote: int = 0
    cache_removed: int = 0
    failures: list[str] = field(default_factory=list)


@dataclass
class SyncResult:
    success: bool
    count: int = 0
    snapshot: str | None = None
    error: str | None = None
    added_ids: list[int] = field(default_factory=list)
    removed_ids: list[int] = field(default_factory=list)
    cache: CacheSyncResult | None = None
    scan: ScanSummary | None = None
    prune: PruneSummary | None = None


def to_library_record(book: SourceBook, cover_url: str | None) -> LibraryRecord:
    return LibraryRecord(
        id=book.id,
        title=book.title,
        authors=list(book.authors),
        isbn=book.isbn,
        rating=book.rating,
        added_at=book.added_at,
        published_at=book.published_at,
        path=book.path,
        has_cover=book.has_cover,
        formats=list(book.formats),
        tags=list(book.tags),
        publisher=book.publisher,
        series=book.series,
        file_size_mb=book.file_size_mb,
        description=book.description,
        cover_url=cover_url,
    )


class LibrarySync:
    """Runs the library sync cycle; only one cycle may run at a time."""

    def __init__(
        self,
        source: CalibreSource,
        covers: CoverCache,
        mirror: MirrorStore,
        list_cache: ListCacheStore,
        suggested: SuggestedStore,
        wanted: WantedStore,
        want_cache: WantCacheStore,
        *,
        resolver: IdentityResolver | None = None,
        aggregator: ListAggregator | None = None,
        shelf: WantToReadShelf | None = None,
        activity: ActivityLog | None = None,
        lists_per_book: int = 12,
        items_per_list: int = 20,
        pending_batch_size: int = 25,
        min_rating: float | None = None,
        request_delay: float = 0.0,
    ) -> None:
        self._source = source
        self._covers = covers
        self._mirror = mirror
        self._list_cache = list_cache
        self._suggested = suggested
        self._wanted = wanted
        self._want_cache = want_cache
        self._resolver = resolver
        self._aggregator = aggregator
        self._shelf = shelf
        self._activity = activity
        self._lists_per_book = lists_per_book
        self._items_per_list = items_per_list
        self._pending_batch_size = pending_batch_size
        self._min_rating = min_rating
        self._request_delay = request_delay
        self._flight = SingleFlight("library sync")

    @property
    def is_running(self) -> bool:
        return self._flight.running

    def sync(self, cancel: threading.Event | None = None) -> SyncResult:
        """Run one cycle.

        A call made while another cycle is in flight returns at once with
        ``success=False``. Source and storage failures end the cycle with an
        error result; failures after the mirror is replaced are logged and
        leave the cycle successful.
        """
        with self._flight.claim() as acquired:
            if not acquired:
                return SyncResult(success=False, error=ALREADY_RUNNING)
            try:
                result = self._run(cancel)
            except (SourceNotConfiguredError, FileNotFoundError) as exc:
                logger.warning("Library sync skipped: %s", exc)
                self._log("warning", str(exc))
                return SyncResult(success=False, error=str(exc))
            except (sqlite3.Error, OSError) as exc:
                logger.error("Library sync failed: %s", exc)
                self._log("error", f"Library sync failed: {exc}")
                return SyncResult(success=False, error=str(exc))
        return result

    def _run(self, cancel: threading.Event | None) -> SyncResult:
        if not self._source.is_configured:
            if self._source.metadata_path is None:
                raise SourceNotConfiguredError("Calibre path not configured.")
            raise FileNotFoundError(f"Metadata file not found at {self._source.metadata_path}.")

        records = self._snapshot()
        replaced = self._mirror.replace_all(records, str(self._source.metadata_path))
        result = SyncResult(
            success=True,
            count=replaced.total,
            snapshot=replaced.snapshot,
            added_ids=replaced.added_ids,
            removed_ids=replaced.removed_ids,
        )
        self._log(
            "success",
            f"Mirrored {replaced.total} book(s)",
            {"added": len(replaced.added_ids), "removed": len(replaced.removed_ids)},
        )

        try:
            mirrored = self._mirror.get_all()
            result.cache = self._list_cache.sync_with_library(mirrored)
            result.scan = self.scan_pending(mirrored, cancel)
        except (sqlite3.Error, CatalogFetchError) as exc:
            logger.warning("Post-sync scan failed: %s", exc)
            self._log("warning", f"Post-sync scan failed: {exc}")

        added = set(replaced.added_ids)
        try:
            result.prune = self.prune_wanted([r for r in records if r.id in added])
        except sqlite3.Error as exc:
            logger.warning("Pruning wanted books failed: %s", exc)
            self._log("warning", f"Pruning wanted books failed: {exc}")
        return result

    def _snapshot(self) -> list[LibraryRecord]:
        root = self._source.library_root
        records = []
        for book in self._source.read_books():
            cover_url = None
            if book.has_cover:
                try:
                    cover_url = self._covers.ensure_cover(book.id, root, book.path)
                except OSError as exc:
                    logger.warning("Cover copy failed for book %d: %s", book.id, exc)
                    self._log(
                        "warning",
                        f"Cover copy failed for book {book.id}",
                        {"book_id": book.id, "error": str(exc)},
                    )
            records.append(to_library_record(book, cover_url))
        return records

    def scan_pending(
        self, records: list[LibraryRecord], cancel: threading.Event | None = None
    ) -> ScanSummary:
        """Resolve and list-scan books whose scan state is still pending.

        Each book's result is committed before moving on. A book whose
        catalog calls fail stays pending for the next cycle.
        """
        summary = ScanSummary()
        if self._aggregator is None:
            return summary
        pending_ids = {entry.local_id for entry in self._list_cache.get_pending()}
        pending = [record for record in records if record.id in pending_ids]
        if self._pending_batch_size > 0:
            pending = pending[: self._pending_batch_size]
        if not pending:
            return summary

        if self._resolver is not None:
            summary.resolve = self._resolver.resolve(pending, cancel)
            for record in pending:
                if external_id := summary.resolve.mappings.get(record.id):
                    record.external_id = external_id

        for index, record in enumerate(pending):
            if cancel is not None and cancel.is_set():
                summary.cancelled = True
                logger.info("Pending scan cancelled after %d book(s)", summary.scanned)
                break
            if index and self._request_delay > 0:
                time.sleep(self._request_delay)
            summary.scanned += 1
            try:
                found = self._aggregator.find_neighbors(
                    record, self._lists_per_book, self._items_per_list, self._min_rating
                )
            except CatalogFetchError as exc:
                summary.failed += 1
                logger.warning("List scan failed for book %d (%s): %s", record.id, record.title, exc)
                self._log("warning", f"List scan failed for '{record.title}'", {"error": str(exc)})
                continue

            if found.matched:
                summary.matched += 1
            else:
                summary.not_matched += 1
            self._list_cache.upsert(
                ListCacheEntry(
                    local_id=record.id,
                    local_title=record.title,
                    external_id=found.external_id,
                    external_title=found.external_title,
                    list_count=len(found.lists),
                    recommendation_count=len(found.recommendations),
                    last_checked=utc_now(),
                    status=OK if found.matched else NOT_MATCHED,
                    base_genres=found.base_genres,
                    lists=[hit.to_dict() for hit in found.lists],
                    recommendations=[rec.to_dict() for rec in found.recommendations],
                )
            )
            summary.suggestions_added += self._suggested.upsert_missing(
                [
                    SuggestedCandidate(
                        source_key=rec.key,
                        book=rec.book,
                        base_genres=book_genres(rec.book),
                        reasons=rec.reasons,
                    )
                    for rec in found.recommendations
                ]
            )

        if summary.scanned:
            self._log(
                "info",
                f"Scanned {summary.scanned} pending book(s)",
                {
                    "matched": summary.matched,
                    "not_matched": summary.not_matched,
                    "failed": summary.failed,
                    "suggestions_added": summary.suggestions_added,
                },
            )
        return summary

    def prune_wanted(self, added_records: list[LibraryRecord]) -> PruneSummary:
        """Drop wanted books whose ISBN now appears among newly added library books.

        For each match, the shelf removal, the local delete, and the shelf
        cache delete are attempted independently; failures are collected.
        """
        summary = PruneSummary()
        isbns = {normalize_isbn(r.isbn) for r in added_records if normalize_isbn(r.isbn)}
        if not isbns:
            return summary

        for entry in self._wanted.get_all():
            if not isbns.intersection(extract_isbns(entry.book)):
                continue
            summary.matched += 1
            if self._shelf is not None and self._attempt(
                summary, entry, "remove from want-to-read", lambda: self._shelf.remove(entry.book)
            ):
                summary.removed_remote += 1
            if self._attempt(summary, entry, "delete wanted", lambda: self._wanted.delete(entry.key)):
                summary.removed_local += 1
            summary.cache_removed += (
                self._attempt(summary, entry, "delete shelf cache", lambda: self._forget(entry)) or 0
            )

        if summary.matched:
            self._log(
                "warning" if summary.failures else "success",
                f"Pruned {summary.removed_local} wanted book(s) now in the library",
                {"failures": summary.failures} if summary.failures else None,
            )
        return summary

    def _attempt(
        self, summary: PruneSummary, entry: WantedEntry, label: str, task: Callable[[], Any]
    ) -> Any:
        try:
            return task()
        except (CatalogFetchError, sqlite3.Error) as exc:
            logger.warning("Prune step '%s' failed for %s: %s", label, entry.key, exc)
            summary.failures.append(f"{entry.key}: {label}: {exc}")
            return None

    def _forget(self, entry: WantedEntry) -> int:
        external_id = extract_external_id(entry.book)
        if external_id is None and entry.key.startswith(SHELF_KEY_PREFIX):
            external_id = extract_external_id({"id": entry.key[len(SHELF_KEY_PREFIX):]})
        if external_id is not None:
            removed = self._want_cache.delete_by_external_id(external_id)
            if removed:
                return removed
        slug = extract_slug(entry.book)
        return self._want_cache.delete_by_slug(slug) if slug else 0

    def _log(self, level: str, message: str, details: dict[str, Any] | None = None) -> None:
        if self._activity is not None:
            self._activity.add(ACTIVITY_SOURCE, level, message, details)
