# ABOUTME: Store for suggested books surfaced by list aggregation.
# ABOUTME: Insert-if-missing dedup, soft hiding, and a duplicate sweep.

import logging

from shelfmirror.catalog.payload import (
    extract_authors,
    extract_isbns,
    extract_title,
    normalize_title,
)
from shelfmirror.db.connection import Database
from shelfmirror.db.mapping import (
    SuggestedCandidate,
    dump_json,
    dump_reasons,
    fingerprint,
    row_to_candidate,
    utc_now,
)

logger = logging.getLogger(__name__)


def duplicate_keys(candidate: SuggestedCandidate) -> list[str]:
    """Identity keys under which two suggestions count as the same book."""
    keys = []
    if candidate.source_key.strip():
        keys.append(f"key:{candidate.source_key.strip().casefold()}")
    keys.extend(f"isbn:{isbn}" for isbn in extract_isbns(candidate.book))
    title = normalize_title(extract_title(candidate.book))
    authors = extract_authors(candidate.book)
    if title and authors:
        keys.append(f"work:{normalize_title(authors[0])}|{title}")
    return keys


class SuggestedStore:
    """Typed access to the suggested table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def upsert_missing(self, candidates: list[SuggestedCandidate]) -> int:
        """Insert candidates not already stored, in one transaction.

        A candidate is skipped when its source key matches a stored row
        case-insensitively, or its payload matches a stored payload exactly.

        Returns:
            The number of rows inserted.
        """
        inserted = 0
        now = utc_now()
        with self._db.transaction() as conn:
            keys: set[str] = set()
            prints: set[str] = set()
            for row in conn.execute("SELECT source_key, book_json FROM suggested"):
                keys.add((row["source_key"] or "").strip().casefold())
                prints.add(row["book_json"])
            for candidate in candidates:
                key = candidate.source_key.strip()
                book_json = fingerprint(candidate.book)
                if not key or key.casefold() in keys or book_json in prints:
                    continue
                conn.execute(
                    "INSERT INTO suggested (source_key, book_json, base_genres_json,"
                    " reasons_json, hidden, created_at, updated_at)"
                    " VALUES (?, ?, ?, ?, 0, ?, ?)",
                    (
                        key,
                        book_json,
                        dump_json(candidate.base_genres),
                        dump_reasons(candidate.reasons),
                        now,
                        now,
                    ),
                )
                keys.add(key.casefold())
                prints.add(book_json)
                inserted += 1
        logger.info("Stored %d new suggestion(s)", inserted)
        return inserted

    def get_all(self, include_hidden: bool = False) -> list[SuggestedCandidate]:
        """Return suggestions, most recently updated first."""
        sql = "SELECT * FROM suggested"
        if not include_hidden:
            sql += " WHERE hidden = 0"
        sql += " ORDER BY updated_at DESC, id DESC"
        with self._db.read() as conn:
            return [row_to_candidate(row) for row in conn.execute(sql)]

    def get_hidden(self) -> list[SuggestedCandidate]:
        with self._db.read() as conn:
            rows = conn.execute(
                "SELECT * FROM suggested WHERE hidden = 1 ORDER BY updated_at DESC, id DESC"
            ).fetchall()
        return [row_to_candidate(row) for row in rows]

    def _set_hidden(self, ids: list[int], hidden: bool) -> int:
        if not ids:
            return 0
        now = utc_now()
        with self._db.transaction() as conn:
            changed = 0
            for suggestion_id in ids:
                cursor = conn.execute(
                    "UPDATE suggested SET hidden = ?, updated_at = ? WHERE id = ?",
                    (1 if hidden else 0, now, suggestion_id),
                )
                changed += cursor.rowcount
        return changed

    def hide_by_ids(self, ids: list[int]) -> int:
        return self._set_hidden(ids, True)

    def unhide_by_ids(self, ids: list[int]) -> int:
        return self._set_hidden(ids, False)

    def delete_by_ids(self, ids: list[int]) -> int:
        if not ids:
            return 0
        with self._db.transaction() as conn:
            deleted = 0
            for suggestion_id in ids:
                deleted += conn.execute(
                    "DELETE FROM suggested WHERE id = ?", (suggestion_id,)
                ).rowcount
        return deleted

    def hide_duplicates(self) -> int:
        """Hide later visible rows that duplicate an earlier one.

        Rows are compared by source key, by any shared ISBN, and by first
        author plus title. The oldest row of each group stays visible.

        Returns:
            The number of rows hidden.
        """
        now = utc_now()
        hidden = 0
        with self._db.transaction() as conn:
            rows = conn.execute("SELECT * FROM suggested WHERE hidden = 0 ORDER BY id").fetchall()
            seen: set[str] = set()
            for row in rows:
                keys = duplicate_keys(row_to_candidate(row))
                if any(key in seen for key in keys):
                    conn.execute(
                        "UPDATE suggested SET hidden = 1, updated_at = ? WHERE id = ?",
                        (now, row["id"]),
                    )
                    hidden += 1
                else:
                    seen.update(keys)
        if hidden:
            logger.info("Hid %d duplicate suggestion(s)", hidden)
        return hidden
