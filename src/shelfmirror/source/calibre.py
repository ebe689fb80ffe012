# ABOUTME: Read-only reader for a Calibre metadata.db library database.
# ABOUTME: Probes optional tables and columns once, then reads books with a fixed query plan.

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from shelfmirror.db.connection import table_columns

logger = logging.getLogger(__name__)

ISBN_IDENTIFIER_TYPES = ("isbn", "isbn10", "isbn-10", "isbn13", "isbn-13", "isbn_10", "isbn_13")
CONCAT_SEPARATOR = "|||"
BYTES_PER_MB = 1024 * 1024


class SourceNotConfiguredError(Exception):
    """Raised when no Calibre database path has been configured."""


@dataclass
class SourceBook:
    """A book as read from the Calibre library."""

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


@dataclass(frozen=True)
class SourceCapabilities:
    """Optional parts of the Calibre schema present in a given database."""

    book_columns: frozenset[str]
    inline_rating: bool = False
    rating_link: bool = False
    comments_column: str | None = None
    size_expression: str | None = None
    has_authors: bool = False
    has_formats: bool = False
    has_identifiers: bool = False
    has_tags: bool = False
    has_publishers: bool = False
    has_series: bool = False


def _has(conn: sqlite3.Connection, table: str, *columns: str) -> bool:
    present = table_columns(conn, table)
    return bool(present) and all(col in present for col in columns)


def probe_capabilities(conn: sqlite3.Connection) -> SourceCapabilities:
    """Inspect the schema once and record which optional parts exist."""
    book_columns = frozenset(table_columns(conn, "books"))

    comments = table_columns(conn, "comments")
    comments_column = next((col for col in ("text", "value") if col in comments), None)

    data = table_columns(conn, "data")
    sizes = [f"d.{col}" for col in ("uncompressed_size", "size") if col in data]
    if len(sizes) == 2:
        size_expression = f"COALESCE({sizes[0]}, {sizes[1]})"
    else:
        size_expression = sizes[0] if sizes else None

    return SourceCapabilities(
        book_columns=book_columns,
        inline_rating="rating" in book_columns,
        rating_link=_has(conn, "books_ratings_link", "book", "rating")
        and _has(conn, "ratings", "id", "rating"),
        comments_column=comments_column if "book" in comments else None,
        size_expression=size_expression if "book" in data else None,
        has_authors=_has(conn, "books_authors_link", "book", "author")
        and _has(conn, "authors", "id", "name"),
        has_formats=_has(conn, "data", "book", "format"),
        has_identifiers=_has(conn, "identifiers", "book", "type", "val"),
        has_tags=_has(conn, "books_tags_link", "book", "tag") and _has(conn, "tags", "id", "name"),
        has_publishers=_has(conn, "books_publishers_link", "book", "publisher")
        and _has(conn, "publishers", "id", "name"),
        has_series=_has(conn, "books_series_link", "book", "series")
        and _has(conn, "series", "id", "name"),
    )


def _concat(expr: str, source: str) -> str:
    return f"(SELECT GROUP_CONCAT({expr}, '{CONCAT_SEPARATOR}') FROM {source})"


def build_query(caps: SourceCapabilities) -> str:
    """Build the book query for a database with the given capabilities."""

    def book_col(name: str) -> str:
        return f"b.{name}" if name in caps.book_columns else "NULL"

    if caps.inline_rating:
        rating = "b.rating"
    elif caps.rating_link:
        rating = (
            "(SELECT r.rating / 2.0 FROM books_ratings_link l JOIN ratings r ON r.id = l.rating"
            " WHERE l.book = b.id LIMIT 1)"
        )
    else:
        rating = "NULL"

    isbn_types = ", ".join(f"'{kind}'" for kind in ISBN_IDENTIFIER_TYPES)
    columns = {
        "inline_isbn": book_col("isbn"),
        "rating_value": rating,
        "added": book_col("timestamp"),
        "published": book_col("pubdate"),
        "path": book_col("path"),
        "has_cover": book_col("has_cover"),
        "comments": (
            f"(SELECT c.{caps.comments_column} FROM comments c WHERE c.book = b.id LIMIT 1)"
            if caps.comments_column
            else "NULL"
        ),
        "authors": (
            _concat("a.name", "books_authors_link l JOIN authors a ON a.id = l.author"
                    " WHERE l.book = b.id")
            if caps.has_authors
            else "NULL"
        ),
        "formats": (
            _concat("d.format", "data d WHERE d.book = b.id") if caps.has_formats else "NULL"
        ),
        "publisher": (
            "(SELECT p.name FROM books_publishers_link l JOIN publishers p ON p.id = l.publisher"
            " WHERE l.book = b.id LIMIT 1)"
            if caps.has_publishers
            else "NULL"
        ),
        "series": (
            "(SELECT s.name FROM books_series_link l JOIN series s ON s.id = l.series"
            " WHERE l.book = b.id LIMIT 1)"
            if caps.has_series
            else "NULL"
        ),
        "total_bytes": (
            f"(SELECT SUM({caps.size_expression}) FROM data d WHERE d.book = b.id)"
            if caps.size_expression
            else "NULL"
        ),
        "identifier_values": (
            _concat("i.val", "identifiers i WHERE i.book = b.id"
                    f" AND LOWER(i.type) IN ({isbn_types})")
            if caps.has_identifiers
            else "NULL"
        ),
        "tag_names": (
            _concat("t.name", "books_tags_link l JOIN tags t ON t.id = l.tag"
                    " WHERE l.book = b.id")
            if caps.has_tags
            else "NULL"
        ),
    }
    selects = ",\n    ".join(f"{expr} AS {alias}" for alias, expr in columns.items())
    order = "b.timestamp DESC, b.id DESC" if "timestamp" in caps.book_columns else "b.id DESC"
    return f"SELECT\n    b.id,\n    b.title,\n    {selects}\nFROM books b\nORDER BY {order}"


def split_concat(value: str | None) -> list[str]:
    """Split a GROUP_CONCAT aggregate, trimming and dropping case-insensitive repeats."""
    if not value:
        return []
    seen: set[str] = set()
    parts = []
    for part in value.split(CONCAT_SEPARATOR):
        text = part.strip()
        if text and text.casefold() not in seen:
            seen.add(text.casefold())
            parts.append(text)
    return parts


def choose_isbn(inline_isbn: str | None, identifier_values: str | None) -> str | None:
    """Pick the best ISBN among the inline column and ISBN identifiers.

    Prefers the first 13-16 character value, then a 10-11 character one,
    both reduced to alphanumerics; otherwise the first raw candidate.
    """
    candidates = []
    if inline_isbn and inline_isbn.strip():
        candidates.append(inline_isbn.strip())
    candidates.extend(split_concat(identifier_values))
    if not candidates:
        return None

    best13 = best10 = None
    for candidate in candidates:
        cleaned = "".join(ch for ch in candidate if ch.isalnum())
        if 13 <= len(cleaned) <= 16:
            best13 = best13 or cleaned
        elif len(cleaned) in (10, 11):
            best10 = best10 or cleaned
    return best13 or best10 or candidates[0]


def parse_source_date(value: Any) -> datetime | None:
    """Accept ISO strings, datetimes, or unix seconds."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, UTC)
    try:
        return datetime.fromisoformat(str(value).strip())
    except ValueError:
        logger.debug("Unparseable Calibre date %r", value)
        return None


def _size_mb(total_bytes: Any) -> float | None:
    try:
        size = float(total_bytes or 0)
    except (TypeError, ValueError):
        return None
    return round(size / BYTES_PER_MB, 2) if size > 0 else None


def _blank_to_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def row_to_source_book(row: sqlite3.Row) -> SourceBook:
    return SourceBook(
        id=row["id"],
        title=row["title"] or "",
        authors=split_concat(row["authors"]),
        isbn=_blank_to_none(choose_isbn(row["inline_isbn"], row["identifier_values"])),
        rating=row["rating_value"],
        added_at=parse_source_date(row["added"]),
        published_at=parse_source_date(row["published"]),
        path=_blank_to_none(row["path"]),
        has_cover=bool(row["has_cover"]),
        formats=split_concat(row["formats"]),
        tags=split_concat(row["tag_names"]),
        publisher=_blank_to_none(row["publisher"]),
        series=_blank_to_none(row["series"]),
        file_size_mb=_size_mb(row["total_bytes"]),
        description=_blank_to_none(row["comments"]),
    )


class CalibreSource:
    """Reads books from a Calibre library's metadata.db without modifying it."""

    def __init__(self, metadata_path: Path | None) -> None:
        self.metadata_path = metadata_path

    @property
    def is_configured(self) -> bool:
        return self.metadata_path is not None and self.metadata_path.is_file()

    @property
    def library_root(self) -> Path | None:
        return self.metadata_path.parent if self.metadata_path else None

    def read_books(self, limit: int = 0) -> list[SourceBook]:
        """Read books, newest added first; ``limit <= 0`` reads them all.

        Raises:
            SourceNotConfiguredError: If no path is configured.
            FileNotFoundError: If the configured file does not exist.
        """
        if self.metadata_path is None:
            raise SourceNotConfiguredError("Calibre path not configured.")
        if not self.metadata_path.is_file():
            raise FileNotFoundError(f"Metadata file not found at {self.metadata_path}.")

        uri = f"{self.metadata_path.resolve().as_uri()}?mode=ro"
        conn = sqlite3.connect(uri, uri=True)
        try:
            conn.row_factory = sqlite3.Row
            caps = probe_capabilities(conn)
            sql = build_query(caps)
            params: tuple[int, ...] = ()
            if limit > 0:
                sql += "\nLIMIT ?"
                params = (limit,)
            books = [row_to_source_book(row) for row in conn.execute(sql, params)]
        finally:
            conn.close()
        logger.info("Read %d book(s) from %s", len(books), self.metadata_path)
        return books
