# ABOUTME: Store for local-to-external identity mappings.
# ABOUTME: One row per local book, refreshed on every resolution attempt.

from typing import Any

from shelfmirror.db.connection import Database
from shelfmirror.db.mapping import IdentityMapping

RESOLVED = "resolved"
NOT_FOUND = "not_found"
FAILED = "failed"


def _row_to_mapping(row: Any) -> IdentityMapping:
    return IdentityMapping(
        local_id=row["local_id"],
        external_id=row["external_id"],
        status=row["status"],
        last_checked=row["last_checked"],
    )


class IdentityMapStore:
    """Typed access to the identity_map table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def get_all(self) -> dict[int, IdentityMapping]:
        with self._db.read() as conn:
            rows = conn.execute("SELECT * FROM identity_map").fetchall()
        return {row["local_id"]: _row_to_mapping(row) for row in rows}

    def get(self, local_id: int) -> IdentityMapping | None:
        with self._db.read() as conn:
            row = conn.execute(
                "SELECT * FROM identity_map WHERE local_id = ?", (local_id,)
            ).fetchone()
        return _row_to_mapping(row) if row else None

    def upsert(self, mapping: IdentityMapping) -> None:
        with self._db.read() as conn:
            conn.execute(
                "INSERT INTO identity_map (local_id, external_id, status, last_checked)"
                " VALUES (?, ?, ?, ?) ON CONFLICT(local_id) DO UPDATE SET"
                " external_id = excluded.external_id, status = excluded.status,"
                " last_checked = excluded.last_checked",
                (mapping.local_id, mapping.external_id, mapping.status, mapping.last_checked),
            )
