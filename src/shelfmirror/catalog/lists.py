# ABOUTME: Aggregates list-neighbour recommendations from Hardcover lists.
# ABOUTME: Finds lists containing a book, tallies co-listed books, and records provenance.

import copy
import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from shelfmirror.catalog.http import CatalogClient, CatalogFetchError
from shelfmirror.catalog.payload import (
    extract_external_id,
    extract_genres,
    extract_rating,
    extract_title,
    normalize_isbn,
    source_key,
)
from shelfmirror.catalog.queries import (
    BOOK_TAGS,
    FIND_BOOK_BY_ISBN,
    FIND_BOOK_BY_TITLE,
    LISTS_CONTAINING_BOOK,
)
from shelfmirror.db.mapping import LibraryRecord, ListReason

logger = logging.getLogger(__name__)

SOURCE_NAME = "hardcover"


@dataclass
class CatalogMatch:
    external_id: str
    title: str | None


@dataclass
class Neighbor:
    """A book sharing a list with the book being scanned."""

    key: str
    title: str
    rating: float | None
    book: dict[str, Any]


@dataclass
class ListHit:
    list_id: str | None
    list_name: str | None
    list_slug: str | None
    owner_name: str | None
    neighbors: list[Neighbor] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Recommendation:
    key: str
    book: dict[str, Any]
    occurrences: int = 0
    reasons: list[ListReason] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NeighborResult:
    """Lists and recommendations found for one local book."""

    local_id: int
    local_title: str
    external_id: str | None = None
    external_title: str | None = None
    base_genres: list[str] = field(default_factory=list)
    lists: list[ListHit] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.external_id is not None


@dataclass
class RecommendationReport:
    inspected: int = 0
    matched: int = 0
    recommendations: list[Recommendation] = field(default_factory=list)
    results: list[NeighborResult] = field(default_factory=list)


class RecommendationAccumulator:
    """Tallies neighbours by key, keeping the first payload seen as canonical."""

    def __init__(self) -> None:
        self._items: dict[str, Recommendation] = {}

    def add(self, neighbor: Neighbor, reason: ListReason) -> None:
        slot = neighbor.key.casefold()
        item = self._items.get(slot)
        if item is None:
            item = Recommendation(key=neighbor.key, book=copy.deepcopy(neighbor.book))
            self._items[slot] = item
        item.occurrences += 1
        item.reasons.append(reason)

    def __len__(self) -> int:
        return len(self._items)

    def results(self) -> list[Recommendation]:
        return sorted(self._items.values(), key=lambda item: item.occurrences, reverse=True)


def passes_rating(neighbor: Neighbor, min_rating: float | None) -> bool:
    """Unrated neighbours always pass; rated ones must reach the threshold."""
    if min_rating is None or neighbor.rating is None:
        return True
    return neighbor.rating >= min_rating


def _books(data: dict[str, Any]) -> list[dict[str, Any]]:
    books = data.get("books")
    return [book for book in books if isinstance(book, dict)] if isinstance(books, list) else []


def _parse_list(entry: Any) -> ListHit | None:
    if not isinstance(entry, dict) or not isinstance(entry.get("list"), dict):
        return None
    raw = entry["list"]
    user = raw.get("user") if isinstance(raw.get("user"), dict) else {}
    hit = ListHit(
        list_id=str(raw["id"]) if raw.get("id") is not None else None,
        list_name=raw.get("name"),
        list_slug=raw.get("slug"),
        owner_name=user.get("name") or user.get("username"),
    )
    for item in raw.get("list_books") or []:
        book = item.get("book") if isinstance(item, dict) else None
        if not isinstance(book, dict):
            continue
        key = source_key(book)
        if not key:
            continue
        payload = dict(book)
        payload["source"] = SOURCE_NAME
        hit.neighbors.append(
            Neighbor(key=key, title=extract_title(book), rating=extract_rating(book), book=payload)
        )
    return hit


class ListAggregator:
    """Collects "people also listed" neighbours for library books."""

    def __init__(self, client: CatalogClient) -> None:
        self._client = client

    def find_book(self, isbn: str | None, title: str | None) -> CatalogMatch | None:
        """Find a catalog book by default-edition ISBN, falling back to title."""
        candidates: list[dict[str, Any]] = []
        isbn = normalize_isbn(isbn)
        if isbn:
            candidates = _books(self._client.execute(FIND_BOOK_BY_ISBN, {"isbn": isbn}))
        if not candidates and title and title.strip():
            variables = {"pattern": f"%{title.strip()}%", "title": title.strip()}
            candidates = _books(self._client.execute(FIND_BOOK_BY_TITLE, variables))
        for book in candidates:
            external_id = extract_external_id(book)
            if external_id:
                return CatalogMatch(external_id=external_id, title=extract_title(book) or None)
        return None

    def fetch_base_genres(self, external_id: str) -> tuple[str | None, list[str]]:
        """Return the catalog title and genre names of a book."""
        books = _books(self._client.execute(BOOK_TAGS, {"id": int(external_id)}))
        if not books:
            return None, []
        return extract_title(books[0]) or None, extract_genres(books[0].get("cached_tags"))

    def fetch_lists(
        self, external_id: str, lists_per_book: int, items_per_list: int
    ) -> list[ListHit]:
        """Fetch recent lists containing a book, with the other books on each."""
        data = self._client.execute(
            LISTS_CONTAINING_BOOK,
            {"id": int(external_id), "listLimit": lists_per_book, "itemLimit": items_per_list},
        )
        hits = []
        for entry in data.get("list_books") or []:
            hit = _parse_list(entry)
            if hit is not None:
                hits.append(hit)
        return hits

    def find_neighbors(
        self,
        record: LibraryRecord,
        lists_per_book: int = 12,
        items_per_list: int = 20,
        min_rating: float | None = None,
        accumulator: RecommendationAccumulator | None = None,
    ) -> NeighborResult:
        """Scan the lists containing one library book.

        Uses the record's resolved external id when it has one, otherwise
        looks the book up by ISBN and title. An unmatched book yields an
        empty result.

        Raises:
            CatalogFetchError: When any catalog call fails.
        """
        result = NeighborResult(local_id=record.id, local_title=record.title)
        external_id = extract_external_id({"id": record.external_id})
        if external_id is None:
            match = self.find_book(record.isbn, record.title)
            if match is None:
                return result
            external_id = match.external_id
            result.external_title = match.title

        result.external_id = external_id
        catalog_title, result.base_genres = self.fetch_base_genres(external_id)
        result.external_title = result.external_title or catalog_title
        result.lists = self.fetch_lists(external_id, lists_per_book, items_per_list)

        mine = RecommendationAccumulator()
        for hit in result.lists:
            reason = ListReason(
                list_id=hit.list_id,
                list_name=hit.list_name,
                list_slug=hit.list_slug,
                owner_name=hit.owner_name,
                local_id=record.id,
                local_title=record.title,
            )
            for neighbor in hit.neighbors:
                if not passes_rating(neighbor, min_rating):
                    continue
                mine.add(neighbor, reason)
                if accumulator is not None:
                    accumulator.add(neighbor, reason)
        result.recommendations = mine.results()
        return result

    def recommend(
        self,
        records: list[LibraryRecord],
        take: int = 0,
        lists_per_book: int = 12,
        items_per_list: int = 20,
        min_rating: float | None = None,
        delay: float = 0.0,
        cancel: threading.Event | None = None,
    ) -> RecommendationReport:
        """Aggregate neighbours across several library books.

        Books whose lookup fails are logged and skipped. ``take <= 0`` scans
        every record.
        """
        report = RecommendationReport()
        combined = RecommendationAccumulator()
        selected = records if take <= 0 else records[:take]
        for index, record in enumerate(selected):
            if cancel is not None and cancel.is_set():
                logger.info("Recommendation scan cancelled after %d book(s)", report.inspected)
                break
            if index and delay > 0:
                time.sleep(delay)
            report.inspected += 1
            try:
                result = self.find_neighbors(
                    record, lists_per_book, items_per_list, min_rating, accumulator=combined
                )
            except CatalogFetchError as exc:
                logger.warning("List scan failed for book %d (%s): %s", record.id, record.title, exc)
                continue
            if result.matched:
                report.matched += 1
            report.results.append(result)
        report.recommendations = combined.results()
        return report
