# ABOUTME: Resolves library books to Hardcover book ids by ISBN, then by title.
# ABOUTME: Persists every attempt and optionally pushes new matches onto a Hardcover list.

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

from shelfmirror.catalog.http import CatalogClient, CatalogFetchError
from shelfmirror.catalog.payload import extract_external_id, normalize_isbn, normalize_title
from shelfmirror.catalog.queries import BOOKS_BY_TITLE, INSERT_LIST_BOOK, SEARCH_BY_ISBN
from shelfmirror.db.activity import ActivityLog
from shelfmirror.db.identity import FAILED, NOT_FOUND, RESOLVED, IdentityMapStore
from shelfmirror.db.mapping import IdentityMapping, LibraryRecord, utc_now
from shelfmirror.db.mirror import MirrorStore

logger = logging.getLogger(__name__)

ACTIVITY_SOURCE = "bookshelf"
PUSH_ATTEMPTS = 3


@dataclass
class ResolveResult:
    """Counts from one resolver run, plus the id each attempted book ended up with."""

    attempted: int = 0
    resolved: int = 0
    missing_key: int = 0
    fallback_used: int = 0
    already_mapped: int = 0
    failed: int = 0
    pushed: int = 0
    mappings: dict[int, str | None] = field(default_factory=dict)


def is_numeric_id(value: Any) -> bool:
    return extract_external_id({"id": value}) is not None


def titles_match(target: str, document: dict[str, Any]) -> bool:
    """True when the document's title or an alternative title equals ``target``.

    An empty target matches any document.
    """
    wanted = normalize_title(target)
    if not wanted:
        return True
    titles = [document.get("title")]
    alternatives = document.get("alternative_titles")
    if isinstance(alternatives, list):
        titles.extend(alternatives)
    return any(isinstance(t, str) and normalize_title(t) == wanted for t in titles)


def _first_search_document(data: dict[str, Any]) -> dict[str, Any] | None:
    search = data.get("search")
    results = search.get("results") if isinstance(search, dict) else None
    if isinstance(results, str):
        try:
            results = json.loads(results)
        except json.JSONDecodeError:
            return None
    hits = results.get("hits") if isinstance(results, dict) else None
    if not isinstance(hits, list) or not hits:
        return None
    document = hits[0].get("document") if isinstance(hits[0], dict) else None
    return document if isinstance(document, dict) else None


class IdentityResolver:
    """Maps library books to catalog ids, retrying unresolved books on every run."""

    def __init__(
        self,
        client: CatalogClient,
        mirror: MirrorStore,
        identity_map: IdentityMapStore,
        *,
        list_id: int | None = None,
        request_delay: float = 0.0,
        activity: ActivityLog | None = None,
    ) -> None:
        self._client = client
        self._mirror = mirror
        self._identity_map = identity_map
        self._list_id = list_id
        self._request_delay = request_delay
        self._activity = activity
        self._lock = threading.Lock()

    def lookup_by_isbn(self, isbn: str, title: str) -> str | None:
        """Search by ISBN and accept the top hit only if its title agrees."""
        data = self._client.execute(SEARCH_BY_ISBN, {"query": isbn})
        document = _first_search_document(data)
        if document is None or not titles_match(title, document):
            return None
        return extract_external_id(document)

    def lookup_by_title(self, title: str) -> str | None:
        """Substring title search; accept the first exact normalized match."""
        wanted = normalize_title(title)
        data = self._client.execute(BOOKS_BY_TITLE, {"title": f"%{title.strip()}%"})
        for book in data.get("books") or []:
            if isinstance(book, dict) and normalize_title(book.get("title")) == wanted:
                if external_id := extract_external_id(book):
                    return external_id
        return None

    def resolve(
        self,
        records: list[LibraryRecord] | None = None,
        cancel: threading.Event | None = None,
    ) -> ResolveResult:
        """Resolve catalog ids for ``records`` (default: the whole mirror).

        Books already mapped to a numeric id are trusted without a lookup.
        Every attempt is persisted, whether it found a match, found nothing,
        or failed on the network. Progress is committed per book, so a
        cancelled run keeps what it already resolved.

        Concurrent calls run one after another; a waiting run reads the
        mappings only once it starts, so it never repeats a lookup or list
        push the previous run made.
        """
        with self._lock:
            return self._resolve(records, cancel)

    def _resolve(
        self, records: list[LibraryRecord] | None, cancel: threading.Event | None
    ) -> ResolveResult:
        result = ResolveResult()
        if records is None:
            records = self._mirror.get_all()
        existing = self._identity_map.get_all()
        newly_resolved: list[int] = []
        looked_up = False

        for record in records:
            if cancel is not None and cancel.is_set():
                logger.info("Identity resolution cancelled")
                break

            prior = existing.get(record.id)
            known = prior.external_id if prior and is_numeric_id(prior.external_id) else None
            known = known or (record.external_id if is_numeric_id(record.external_id) else None)
            if known:
                result.already_mapped += 1
                result.mappings[record.id] = known
                self._record(record.id, known, RESOLVED)
                if record.external_id != known:
                    self._mirror.update_external_id(record.id, known)
                continue

            if looked_up and self._request_delay > 0:
                time.sleep(self._request_delay)
            looked_up = True
            result.attempted += 1

            try:
                external_id = self._lookup(record, result)
            except CatalogFetchError as exc:
                logger.warning("Lookup failed for book %d (%s): %s", record.id, record.title, exc)
                result.failed += 1
                result.mappings[record.id] = None
                self._record(record.id, None, FAILED)
                continue

            result.mappings[record.id] = external_id
            self._record(record.id, external_id, RESOLVED if external_id else NOT_FOUND)
            if external_id:
                result.resolved += 1
                self._mirror.update_external_id(record.id, external_id)
                newly_resolved.append(int(external_id))

        if newly_resolved and self._list_id is not None:
            result.pushed = self.push_to_list(newly_resolved)

        logger.info(
            "Identity resolution: %d attempted, %d resolved, %d already mapped, %d failed",
            result.attempted,
            result.resolved,
            result.already_mapped,
            result.failed,
        )
        if self._activity is not None and result.attempted:
            self._activity.add(
                ACTIVITY_SOURCE,
                "warning" if result.failed else "success",
                f"Resolved {result.resolved} of {result.attempted} book(s)",
                {
                    "missing_key": result.missing_key,
                    "fallback_used": result.fallback_used,
                    "already_mapped": result.already_mapped,
                    "failed": result.failed,
                    "pushed": result.pushed,
                },
            )
        return result

    def _lookup(self, record: LibraryRecord, result: ResolveResult) -> str | None:
        external_id = None
        isbn = normalize_isbn(record.isbn)
        if isbn:
            external_id = self.lookup_by_isbn(isbn, record.title)
        else:
            result.missing_key += 1
        if external_id is None and record.title and record.title.strip():
            result.fallback_used += 1
            external_id = self.lookup_by_title(record.title)
        return external_id

    def _record(self, local_id: int, external_id: str | None, status: str) -> None:
        self._identity_map.upsert(
            IdentityMapping(
                local_id=local_id,
                external_id=external_id,
                status=status,
                last_checked=utc_now(),
            )
        )

    def push_to_list(self, book_ids: list[int]) -> int:
        """Add books to the configured list; returns how many were added.

        Rate-limited calls are retried with backoff; any other failure
        abandons that book.
        """
        if self._list_id is None:
            return 0
        pushed = 0
        for book_id in book_ids:
            try:
                self._client.execute(
                    INSERT_LIST_BOOK,
                    {"bookId": book_id, "listId": self._list_id},
                    attempts=PUSH_ATTEMPTS,
                )
            except CatalogFetchError as exc:
                logger.warning("Could not add book %d to list %d: %s", book_id, self._list_id, exc)
                continue
            pushed += 1
        return pushed
