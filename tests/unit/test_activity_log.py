# ABOUTME: Unit tests for the bounded activity trail.
# ABOUTME: Validates ordering, trimming, level normalization, and clearing.

from shelfmirror.db.activity import ActivityLog
from shelfmirror.db.connection import Database


class TestActivityLog:
    """Tests for ActivityLog."""

    def test_recent_is_newest_first(self, db: Database) -> None:
        log = ActivityLog(db)
        log.add("library sync", "success", "first")
        log.add("library sync", "warning", "second", {"failed": 1})
        entries = log.recent()
        assert [e.message for e in entries] == ["second", "first"]
        assert entries[0].details == {"failed": 1}
        assert entries[1].details is None

    def test_trims_to_max_entries(self, db: Database) -> None:
        log = ActivityLog(db, max_entries=5)
        for i in range(8):
            log.add("test", "info", f"event {i}")
        entries = log.recent(take=100)
        assert len(entries) == 5
        assert entries[-1].message == "event 3"

    def test_unknown_level_becomes_info(self, db: Database) -> None:
        log = ActivityLog(db)
        log.add("test", "loud", "hello")
        assert log.recent()[0].level == "info"

    def test_clear(self, db: Database) -> None:
        log = ActivityLog(db)
        log.add("test", "info", "a")
        assert log.clear() == 1
        assert log.recent() == []

    def test_storage_errors_are_swallowed(self, db: Database) -> None:
        with db.read() as conn:
            conn.execute("DROP TABLE activity_log")
        ActivityLog(db).add("test", "error", "lost")
