# ABOUTME: Dataclasses for stored rows and conversion to and from SQLite rows.
# ABOUTME: Handles tolerant JSON serialization for list and payload blobs.

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

PENDING = "pending"
OK = "ok"
NOT_MATCHED = "not_matched"


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a stored ISO timestamp, returning None when absent or malformed."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None


def dump_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def fingerprint(payload: dict[str, Any]) -> str:
    """Canonical serialization of a payload, used for exact-match dedup."""
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def load_json(text: str | None, default: Any) -> Any:
    """Deserialize a JSON blob, returning ``default`` on absence or corruption."""
    if not text:
        return default
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Malformed JSON blob %r", text[:80])
        return default
    if type(value) is not type(default):
        return default
    return value


def load_string_list(text: str | None) -> list[str]:
    """Deserialize a JSON array of strings.

    Falls back to splitting on commas when the blob is not valid JSON, since
    early mirrors stored plain comma-joined values.
    """
    if not text:
        return []
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return [part.strip() for part in text.split(",") if part.strip()]
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


@dataclass
class LibraryRecord:
    """A book mirrored from the local Calibre library."""

    id: int
    title: str
    authors: list[str] = field(default_factory=list)
    isbn: str | None = None
    rating: float | None = None
    added_at: datetime | None = None
    published_at: datetime | None = None
    path: str | None = None
    has_cover: bool = False
    formats: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    publisher: str | None = None
    series: str | None = None
    file_size_mb: float | None = None
    description: str | None = None
    cover_url: str | None = None
    external_id: str | None = None
    updated_at: str | None = None


def record_to_row(record: LibraryRecord, updated_at: str) -> dict[str, Any]:
    """Convert a LibraryRecord to a dict suitable for INSERT."""
    return {
        "id": record.id,
        "title": record.title,
        "authors_json": dump_json(record.authors),
        "isbn": record.isbn,
        "rating": record.rating,
        "added_at": format_timestamp(record.added_at),
        "published_at": format_timestamp(record.published_at),
        "path": record.path,
        "has_cover": 1 if record.has_cover else 0,
        "formats_json": dump_json(record.formats),
        "tags_json": dump_json(record.tags),
        "publisher": record.publisher,
        "series": record.series,
        "file_size_mb": record.file_size_mb,
        "description": record.description,
        "cover_url": record.cover_url,
        "external_id": record.external_id,
        "updated_at": updated_at,
    }


def row_to_record(row: Any) -> LibraryRecord:
    return LibraryRecord(
        id=row["id"],
        title=row["title"],
        authors=load_string_list(row["authors_json"]),
        isbn=row["isbn"],
        rating=row["rating"],
        added_at=parse_timestamp(row["added_at"]),
        published_at=parse_timestamp(row["published_at"]),
        path=row["path"],
        has_cover=bool(row["has_cover"]),
        formats=load_string_list(row["formats_json"]),
        tags=load_string_list(row["tags_json"]),
        publisher=row["publisher"],
        series=row["series"],
        file_size_mb=row["file_size_mb"],
        description=row["description"],
        cover_url=row["cover_url"],
        external_id=row["external_id"],
        updated_at=row["updated_at"],
    )


@dataclass
class IdentityMapping:
    """Outcome of the latest attempt to resolve a local book externally.

    ``external_id`` is None when the book was looked up and not found, or when
    the lookup failed; ``status`` tells those apart.
    """

    local_id: int
    external_id: str | None
    status: str
    last_checked: str


@dataclass
class ListReason:
    """Why a book was suggested: the list it sits on and the local book that led there."""

    list_id: str | None
    list_name: str | None
    list_slug: str | None
    owner_name: str | None
    local_id: int
    local_title: str


def reason_from_dict(data: dict[str, Any]) -> ListReason | None:
    try:
        return ListReason(
            list_id=data.get("list_id"),
            list_name=data.get("list_name"),
            list_slug=data.get("list_slug"),
            owner_name=data.get("owner_name"),
            local_id=int(data["local_id"]),
            local_title=str(data.get("local_title") or ""),
        )
    except (KeyError, TypeError, ValueError):
        return None


def load_reasons(text: str | None) -> list[ListReason]:
    reasons = []
    for item in load_json(text, []):
        if isinstance(item, dict):
            reason = reason_from_dict(item)
            if reason is not None:
                reasons.append(reason)
    return reasons


def dump_reasons(reasons: list[ListReason]) -> str:
    return dump_json([asdict(reason) for reason in reasons])


@dataclass
class ListCacheEntry:
    """Per-book list scan state."""

    local_id: int
    local_title: str
    external_id: str | None = None
    external_title: str | None = None
    list_count: int = 0
    recommendation_count: int = 0
    last_checked: str | None = None
    status: str = PENDING
    base_genres: list[str] = field(default_factory=list)
    lists: list[dict[str, Any]] = field(default_factory=list)
    recommendations: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_pending(self) -> bool:
        """True when no scan has run, or the last one produced no signal."""
        if self.status == PENDING:
            return True
        return not self.status and self.list_count == 0 and self.recommendation_count == 0


def entry_to_row(entry: ListCacheEntry) -> dict[str, Any]:
    return {
        "local_id": entry.local_id,
        "local_title": entry.local_title,
        "external_id": entry.external_id,
        "external_title": entry.external_title,
        "list_count": entry.list_count,
        "recommendation_count": entry.recommendation_count,
        "last_checked": entry.last_checked,
        "status": entry.status,
        "base_genres_json": dump_json(entry.base_genres),
        "lists_json": dump_json(entry.lists),
        "recommendations_json": dump_json(entry.recommendations),
    }


def row_to_entry(row: Any) -> ListCacheEntry:
    return ListCacheEntry(
        local_id=row["local_id"],
        local_title=row["local_title"] or "",
        external_id=row["external_id"],
        external_title=row["external_title"],
        list_count=row["list_count"] or 0,
        recommendation_count=row["recommendation_count"] or 0,
        last_checked=row["last_checked"],
        status=row["status"] or "",
        base_genres=load_string_list(row["base_genres_json"]),
        lists=load_json(row["lists_json"], []),
        recommendations=load_json(row["recommendations_json"], []),
    )


@dataclass
class SuggestedCandidate:
    """A stored suggestion: an opaque catalog payload plus its provenance."""

    source_key: str
    book: dict[str, Any]
    base_genres: list[str] = field(default_factory=list)
    reasons: list[ListReason] = field(default_factory=list)
    id: int | None = None
    hidden: bool = False
    created_at: str | None = None
    updated_at: str | None = None


def row_to_candidate(row: Any) -> SuggestedCandidate:
    return SuggestedCandidate(
        id=row["id"],
        source_key=row["source_key"],
        book=load_json(row["book_json"], {}),
        base_genres=load_string_list(row["base_genres_json"]),
        reasons=load_reasons(row["reasons_json"]),
        hidden=bool(row["hidden"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


@dataclass
class WantedEntry:
    """A book the user wants to acquire."""

    key: str
    book: dict[str, Any]
    created_at: str | None = None
    updated_at: str | None = None


def row_to_wanted(row: Any) -> WantedEntry:
    return WantedEntry(
        key=row["book_key"],
        book=load_json(row["payload"], {}),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


@dataclass
class ActivityEntry:
    id: int
    created_at: str
    source: str
    level: str
    message: str
    details: dict[str, Any] | None = None
