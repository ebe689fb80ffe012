# ABOUTME: Store for books the user wants to acquire.
# ABOUTME: Keyed by an arbitrary book key with an opaque payload.

from typing import Any

from shelfmirror.db.connection import Database
from shelfmirror.db.mapping import WantedEntry, dump_json, row_to_wanted, utc_now


class WantedStore:
    """Typed access to the wanted_books table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def upsert(self, key: str, book: dict[str, Any]) -> None:
        now = utc_now()
        with self._db.read() as conn:
            conn.execute(
                "INSERT INTO wanted_books (book_key, payload, created_at, updated_at)"
                " VALUES (?, ?, ?, ?) ON CONFLICT(book_key) DO UPDATE SET"
                " payload = excluded.payload, updated_at = excluded.updated_at",
                (key, dump_json(book), now, now),
            )

    def delete(self, key: str) -> bool:
        with self._db.read() as conn:
            cursor = conn.execute("DELETE FROM wanted_books WHERE book_key = ?", (key,))
        return cursor.rowcount > 0

    def get(self, key: str) -> WantedEntry | None:
        with self._db.read() as conn:
            row = conn.execute(
                "SELECT * FROM wanted_books WHERE book_key = ?", (key,)
            ).fetchone()
        return row_to_wanted(row) if row else None

    def get_all(self) -> list[WantedEntry]:
        """Return wanted books, newest first."""
        with self._db.read() as conn:
            rows = conn.execute(
                "SELECT * FROM wanted_books ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [row_to_wanted(row) for row in rows]
