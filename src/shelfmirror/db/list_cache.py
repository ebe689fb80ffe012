# ABOUTME: Store for per-book list scan state.
# ABOUTME: Reconciles entries with the mirror and tracks pending/ok/not_matched status.

import logging
from dataclasses import dataclass

from shelfmirror.db.connection import Database
from shelfmirror.db.mapping import (
    PENDING,
    LibraryRecord,
    ListCacheEntry,
    entry_to_row,
    row_to_entry,
)

logger = logging.getLogger(__name__)


@dataclass
class CacheSyncResult:
    added: int = 0
    updated: int = 0
    deleted: int = 0


class ListCacheStore:
    """Typed access to the list_cache table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def sync_with_library(self, records: list[LibraryRecord]) -> CacheSyncResult:
        """Reconcile scan state with the current mirror in one transaction.

        Entries for books no longer mirrored are deleted, new books get a
        pending entry, and retained books only have their title refreshed.
        """
        result = CacheSyncResult()
        titles = {record.id: record.title for record in records}
        with self._db.transaction() as conn:
            existing = {
                row["local_id"]: row["local_title"]
                for row in conn.execute("SELECT local_id, local_title FROM list_cache")
            }
            for local_id in existing.keys() - titles.keys():
                conn.execute("DELETE FROM list_cache WHERE local_id = ?", (local_id,))
                result.deleted += 1
            for local_id, title in titles.items():
                if local_id not in existing:
                    conn.execute(
                        "INSERT INTO list_cache (local_id, local_title, status) VALUES (?, ?, ?)",
                        (local_id, title, PENDING),
                    )
                    result.added += 1
                elif existing[local_id] != title:
                    conn.execute(
                        "UPDATE list_cache SET local_title = ? WHERE local_id = ?",
                        (title, local_id),
                    )
                    result.updated += 1
        logger.info(
            "List cache reconciled: %d added, %d updated, %d deleted",
            result.added,
            result.updated,
            result.deleted,
        )
        return result

    def upsert(self, entry: ListCacheEntry) -> None:
        row = entry_to_row(entry)
        columns = ", ".join(row.keys())
        placeholders = ", ".join("?" for _ in row)
        updates = ", ".join(f"{col} = excluded.{col}" for col in row if col != "local_id")
        with self._db.read() as conn:
            conn.execute(
                f"INSERT INTO list_cache ({columns}) VALUES ({placeholders})"
                f" ON CONFLICT(local_id) DO UPDATE SET {updates}",
                list(row.values()),
            )

    def get(self, local_id: int) -> ListCacheEntry | None:
        with self._db.read() as conn:
            row = conn.execute(
                "SELECT * FROM list_cache WHERE local_id = ?", (local_id,)
            ).fetchone()
        return row_to_entry(row) if row else None

    def get_all(self) -> list[ListCacheEntry]:
        with self._db.read() as conn:
            rows = conn.execute("SELECT * FROM list_cache ORDER BY local_id").fetchall()
        return [row_to_entry(row) for row in rows]

    def get_pending(self) -> list[ListCacheEntry]:
        return [entry for entry in self.get_all() if entry.is_pending]

    def status_counts(self) -> dict[str, int]:
        with self._db.read() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS n FROM list_cache GROUP BY status"
            ).fetchall()
        return {row["status"] or "": row["n"] for row in rows}
