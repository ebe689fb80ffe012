# ABOUTME: Local copy of the user's Hardcover want-to-read shelf.
# ABOUTME: Replace-all refresh plus deletion by catalog id or slug.

import logging
from dataclasses import dataclass
from typing import Any

from shelfmirror.catalog.payload import (
    extract_authors,
    extract_cover_url,
    extract_external_id,
    extract_isbns,
    extract_title,
)
from shelfmirror.db.connection import Database
from shelfmirror.db.mapping import dump_json, load_json, utc_now

logger = logging.getLogger(__name__)


@dataclass
class WantCacheStats:
    count: int
    last_updated: str | None


def _book_to_row(book: dict[str, Any], external_id: str, now: str) -> tuple[Any, ...]:
    isbns = extract_isbns(book)
    isbn13 = next((isbn for isbn in isbns if len(isbn) == 13), None)
    isbn10 = next((isbn for isbn in isbns if len(isbn) == 10), None)
    return (
        external_id,
        extract_title(book) or None,
        dump_json(extract_authors(book)),
        isbn13,
        isbn10,
        extract_cover_url(book),
        dump_json(book),
        now,
    )


_UPSERT_SQL = (
    "INSERT INTO want_cache (external_id, title, authors_json, isbn13, isbn10, cover_url,"
    " book_json, last_updated) VALUES (?, ?, ?, ?, ?, ?, ?, ?)"
    " ON CONFLICT(external_id) DO UPDATE SET title = excluded.title,"
    " authors_json = excluded.authors_json, isbn13 = excluded.isbn13,"
    " isbn10 = excluded.isbn10, cover_url = excluded.cover_url,"
    " book_json = excluded.book_json, last_updated = excluded.last_updated"
)


class WantCacheStore:
    """Typed access to the want_cache table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def replace_all(self, books: list[dict[str, Any]]) -> tuple[int, int]:
        """Make the cache hold exactly ``books``; books without an id are skipped.

        Returns:
            (cached, removed) counts.
        """
        now = utc_now()
        rows = {}
        for book in books:
            external_id = extract_external_id(book)
            if external_id:
                rows[external_id] = _book_to_row(book, external_id, now)
        with self._db.transaction() as conn:
            existing = {row[0] for row in conn.execute("SELECT external_id FROM want_cache")}
            stale = existing - rows.keys()
            for external_id in stale:
                conn.execute("DELETE FROM want_cache WHERE external_id = ?", (external_id,))
            for row in rows.values():
                conn.execute(_UPSERT_SQL, row)
        return len(rows), len(stale)

    def upsert(self, book: dict[str, Any]) -> bool:
        external_id = extract_external_id(book)
        if not external_id:
            return False
        with self._db.read() as conn:
            conn.execute(_UPSERT_SQL, _book_to_row(book, external_id, utc_now()))
        return True

    def get_all(self) -> list[dict[str, Any]]:
        with self._db.read() as conn:
            rows = conn.execute(
                "SELECT book_json FROM want_cache ORDER BY last_updated DESC, title"
            ).fetchall()
        return [load_json(row["book_json"], {}) for row in rows]

    def get_stats(self) -> WantCacheStats:
        with self._db.read() as conn:
            row = conn.execute("SELECT COUNT(*), MAX(last_updated) FROM want_cache").fetchone()
        return WantCacheStats(count=row[0], last_updated=row[1])

    def delete_by_external_id(self, external_id: str) -> int:
        with self._db.read() as conn:
            return conn.execute(
                "DELETE FROM want_cache WHERE external_id = ?", (str(external_id),)
            ).rowcount

    def delete_by_slug(self, slug: str) -> int:
        """Delete rows whose stored payload carries ``slug`` (case-insensitive)."""
        with self._db.read() as conn:
            return conn.execute(
                "DELETE FROM want_cache WHERE lower(json_extract(book_json, '$.slug')) = lower(?)",
                (slug,),
            ).rowcount
