# ABOUTME: Mirror store for books copied from the local Calibre library.
# ABOUTME: Atomic full replace with id deltas, carry-forward of external ids, and stats.

import logging
from dataclasses import dataclass, field

from shelfmirror.db.connection import Database
from shelfmirror.db.mapping import LibraryRecord, record_to_row, row_to_record, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ReplaceResult:
    """Outcome of swapping the mirror to a new snapshot."""

    added_ids: list[int] = field(default_factory=list)
    removed_ids: list[int] = field(default_factory=list)
    total: int = 0
    snapshot: str = ""


@dataclass
class MirrorStats:
    count: int
    last_updated: str | None


@dataclass
class SyncState:
    source_path: str | None
    last_snapshot: str | None


class MirrorStore:
    """Typed access to the library_books table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def replace_all(
        self, records: list[LibraryRecord], source_path: str | None = None
    ) -> ReplaceResult:
        """Atomically swap the mirror to exactly ``records``.

        External ids resolved earlier are carried forward for books that are
        still present when the new record does not supply one. Any failure
        rolls back the whole batch, leaving the previous mirror intact.

        Args:
            records: The complete new snapshot.
            source_path: Path of the source database, recorded in the sync state.

        Returns:
            A ReplaceResult with ids added and removed relative to the old mirror.
        """
        snapshot = utc_now()
        with self._db.transaction() as conn:
            previous = {
                row["id"]: row["external_id"]
                for row in conn.execute("SELECT id, external_id FROM library_books")
            }
            conn.execute("DELETE FROM library_books")
            for record in records:
                row = record_to_row(record, snapshot)
                if not row["external_id"]:
                    row["external_id"] = previous.get(record.id)
                columns = ", ".join(row.keys())
                placeholders = ", ".join("?" for _ in row)
                conn.execute(
                    f"INSERT INTO library_books ({columns}) VALUES ({placeholders})",
                    list(row.values()),
                )
            conn.execute(
                "INSERT INTO library_sync_state (id, source_path, last_snapshot) VALUES (1, ?, ?)"
                " ON CONFLICT(id) DO UPDATE SET source_path = excluded.source_path,"
                " last_snapshot = excluded.last_snapshot",
                (source_path, snapshot),
            )

        new_ids = {record.id for record in records}
        result = ReplaceResult(
            added_ids=sorted(new_ids - previous.keys()),
            removed_ids=sorted(previous.keys() - new_ids),
            total=len(new_ids),
            snapshot=snapshot,
        )
        logger.info(
            "Mirror replaced: %d books (%d added, %d removed)",
            result.total,
            len(result.added_ids),
            len(result.removed_ids),
        )
        return result

    def get_all(self, limit: int = 0) -> list[LibraryRecord]:
        """Return mirrored books, newest added first; ``limit <= 0`` means all."""
        sql = "SELECT * FROM library_books ORDER BY COALESCE(added_at, updated_at) DESC, id DESC"
        params: tuple[int, ...] = ()
        if limit > 0:
            sql += " LIMIT ?"
            params = (limit,)
        with self._db.read() as conn:
            return [row_to_record(row) for row in conn.execute(sql, params)]

    def get(self, book_id: int) -> LibraryRecord | None:
        with self._db.read() as conn:
            row = conn.execute("SELECT * FROM library_books WHERE id = ?", (book_id,)).fetchone()
        return row_to_record(row) if row else None

    def get_stats(self) -> MirrorStats:
        with self._db.read() as conn:
            row = conn.execute("SELECT COUNT(*), MAX(updated_at) FROM library_books").fetchone()
        return MirrorStats(count=row[0], last_updated=row[1])

    def get_sync_state(self) -> SyncState:
        with self._db.read() as conn:
            row = conn.execute(
                "SELECT source_path, last_snapshot FROM library_sync_state WHERE id = 1"
            ).fetchone()
        if row is None:
            return SyncState(source_path=None, last_snapshot=None)
        return SyncState(source_path=row["source_path"], last_snapshot=row["last_snapshot"])

    def update_external_id(self, book_id: int, external_id: str | None) -> None:
        with self._db.read() as conn:
            conn.execute(
                "UPDATE library_books SET external_id = ? WHERE id = ?", (external_id, book_id)
            )
