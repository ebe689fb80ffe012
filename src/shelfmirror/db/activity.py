# ABOUTME: Bounded activity trail of sync events shown to the user.
# ABOUTME: Writes never raise; storage errors are logged and dropped.

import logging
import sqlite3
from typing import Any

from shelfmirror.db.connection import Database
from shelfmirror.db.mapping import ActivityEntry, dump_json, load_json, utc_now

logger = logging.getLogger(__name__)

MAX_ENTRIES = 500
LEVELS = ("info", "success", "warning", "error")


class ActivityLog:
    """Typed access to the activity_log table."""

    def __init__(self, db: Database, max_entries: int = MAX_ENTRIES) -> None:
        self._db = db
        self._max_entries = max_entries

    def add(
        self,
        source: str,
        level: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        if level not in LEVELS:
            level = "info"
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    "INSERT INTO activity_log (created_at, source, level, message, details_json)"
                    " VALUES (?, ?, ?, ?, ?)",
                    (utc_now(), source, level, message, dump_json(details) if details else None),
                )
                conn.execute(
                    "DELETE FROM activity_log WHERE id NOT IN"
                    " (SELECT id FROM activity_log ORDER BY id DESC LIMIT ?)",
                    (self._max_entries,),
                )
        except sqlite3.Error as exc:
            logger.warning("Could not record activity %r: %s", message, exc)

    def recent(self, take: int = 100) -> list[ActivityEntry]:
        with self._db.read() as conn:
            rows = conn.execute(
                "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (max(take, 1),)
            ).fetchall()
        return [
            ActivityEntry(
                id=row["id"],
                created_at=row["created_at"],
                source=row["source"],
                level=row["level"],
                message=row["message"],
                details=load_json(row["details_json"], {}) or None,
            )
            for row in rows
        ]

    def clear(self) -> int:
        with self._db.read() as conn:
            return conn.execute("DELETE FROM activity_log").rowcount
