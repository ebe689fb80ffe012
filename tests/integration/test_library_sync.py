# ABOUTME: Integration tests for the full library sync cycle.
# ABOUTME: Real Calibre and mirror databases with a fake catalog client.

import sqlite3
import threading
from pathlib import Path

import pytest

from shelfmirror.app import Services, build_services
from shelfmirror.catalog.http import CatalogFetchError
from shelfmirror.config import Settings
from shelfmirror.core.jobs import shelf_key
from shelfmirror.core.sync import ALREADY_RUNNING, LibrarySync
from shelfmirror.db.mapping import NOT_MATCHED, OK, PENDING, LibraryRecord
from shelfmirror.db.mirror import MirrorStore
from shelfmirror.source.calibre import CalibreSource
from shelfmirror.source.covers import CoverCache
from tests.fixtures.calibre_library import SAMPLE_BOOKS, create_metadata_db
from tests.fixtures.fake_catalog import FakeCatalogClient
from tests.fixtures.hardcover_responses import (
    DUNE_LISTS,
    DUNE_TAGS,
    SEARCH_DUNE,
    SEARCH_NO_HITS,
    WANT_TO_READ,
)

LEFT_HAND = WANT_TO_READ["me"][0]["user_books"][0]["book"]


def _search(variables: dict) -> dict:
    return SEARCH_DUNE if variables["query"] == "9780441172719" else SEARCH_NO_HITS


def _catalog(**errors: Exception) -> FakeCatalogClient:
    return FakeCatalogClient(
        {"SearchByIsbn": _search, "BookTags": DUNE_TAGS, "ListsContainingBook": DUNE_LISTS},
        errors=errors,
    )


def _services(tmp_path: Path, calibre: Path | None, client: FakeCatalogClient | None) -> Services:
    settings = Settings(
        data_dir=tmp_path / "data",
        calibre_db_path=calibre,
        request_delay_seconds=0,
    )
    return build_services(settings, client=client)


class TestFullSync:
    """Tests for a complete cycle against the sample library."""

    def test_mirrors_scans_and_suggests(self, tmp_path: Path, calibre_library: Path) -> None:
        client = _catalog()
        services = _services(tmp_path, calibre_library, client)
        result = services.library_sync.sync()

        assert result.success
        assert result.count == 3
        assert result.added_ids == [1, 2, 3]
        assert result.scan.scanned == 3
        assert result.scan.matched == 1
        assert result.scan.not_matched == 2
        assert result.scan.suggestions_added == 3

        dune = services.mirror.get(1)
        assert dune.external_id == "312460"
        assert dune.cover_url == "/covers/1.jpg"
        assert (tmp_path / "data" / "covers" / "1.jpg").exists()
        assert services.mirror.get(3).cover_url is None

        assert services.list_cache.status_counts() == {OK: 1, NOT_MATCHED: 2}
        entry = services.list_cache.get(1)
        assert entry.base_genres == ["Science Fiction", "Classics"]
        assert entry.list_count == 2
        assert {c.source_key for c in services.suggested.get_all()} == {"1001", "1002", "1003"}
        assert services.mirror.get_sync_state().source_path == str(calibre_library)

    def test_second_sync_keeps_ids_and_skips_scanned_books(
        self, tmp_path: Path, calibre_library: Path
    ) -> None:
        client = _catalog()
        services = _services(tmp_path, calibre_library, client)
        services.library_sync.sync()
        calls = len(client.calls)

        again = services.library_sync.sync()
        assert again.success
        assert again.added_ids == []
        assert again.scan.scanned == 0
        assert len(client.calls) == calls
        assert services.mirror.get(1).external_id == "312460"

    def test_mirror_only_without_catalog(self, tmp_path: Path, calibre_library: Path) -> None:
        services = _services(tmp_path, calibre_library, None)
        if services.client is not None:
            pytest.skip("catalog API key present in environment")
        result = services.library_sync.sync()
        assert result.success
        assert result.scan.scanned == 0
        assert services.list_cache.status_counts() == {PENDING: 3}

    def test_removed_books_leave_mirror_and_cache(
        self, tmp_path: Path, calibre_library: Path
    ) -> None:
        services = _services(tmp_path, calibre_library, _catalog())
        services.library_sync.sync()
        create_metadata_db(calibre_library.parent, SAMPLE_BOOKS[:2])

        result = services.library_sync.sync()
        assert result.removed_ids == [3]
        assert result.cache.deleted == 1
        assert services.list_cache.get(3) is None


class TestSyncFailures:
    """Tests for failure handling and atomicity."""

    def test_unconfigured_source(self, tmp_path: Path) -> None:
        services = _services(tmp_path, None, None)
        result = services.library_sync.sync()
        assert not result.success
        assert result.error == "Calibre path not configured."
        assert services.activity.recent()[0].level == "warning"

    def test_missing_source_file(self, tmp_path: Path) -> None:
        services = _services(tmp_path, tmp_path / "gone" / "metadata.db", None)
        result = services.library_sync.sync()
        assert not result.success
        assert "Metadata file not found" in result.error

    def test_unreadable_source_keeps_previous_mirror(
        self, tmp_path: Path, calibre_library: Path
    ) -> None:
        services = _services(tmp_path, calibre_library, _catalog())
        services.library_sync.sync()
        calibre_library.write_bytes(b"this is not a sqlite database" * 10)

        result = services.library_sync.sync()
        assert not result.success
        assert services.mirror.get_stats().count == 3

    def test_replace_rolls_back_on_bad_record(self, tmp_path: Path) -> None:
        """A failing insert leaves the previous snapshot fully intact."""
        services = _services(tmp_path, None, None)
        mirror: MirrorStore = services.mirror
        mirror.replace_all([LibraryRecord(id=1, title="Dune"), LibraryRecord(id=2, title="Emma")])

        with pytest.raises(sqlite3.IntegrityError):
            mirror.replace_all([LibraryRecord(id=5, title="New"), LibraryRecord(id=6, title=None)])

        assert sorted(r.id for r in mirror.get_all()) == [1, 2]

    def test_cover_copy_failure_is_logged_to_activity(
        self, tmp_path: Path, calibre_library: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def failing_copy(source, destination):
            raise PermissionError("read-only covers directory")

        monkeypatch.setattr("shelfmirror.source.covers.shutil.copy2", failing_copy)
        services = _services(tmp_path, calibre_library, _catalog())
        result = services.library_sync.sync()

        assert result.success
        assert services.mirror.get(1).cover_url is None
        warnings = [
            entry for entry in services.activity.recent() if entry.level == "warning"
        ]
        assert [entry.message for entry in warnings] == ["Cover copy failed for book 1"]

    def test_catalog_outage_leaves_books_pending(
        self, tmp_path: Path, calibre_library: Path
    ) -> None:
        client = _catalog(ListsContainingBook=CatalogFetchError("HTTP 503", 503))
        services = _services(tmp_path, calibre_library, client)
        result = services.library_sync.sync()

        assert result.success
        assert result.scan.failed == 1
        assert services.list_cache.get(1).status == PENDING


class TestConcurrency:
    """Tests for single-flight and cancellation."""

    def test_concurrent_sync_is_rejected(self, tmp_path: Path, calibre_library: Path) -> None:
        started = threading.Event()
        release = threading.Event()

        class BlockingSource(CalibreSource):
            def read_books(self, limit: int = 0):
                started.set()
                release.wait(5)
                return super().read_books(limit)

        services = _services(tmp_path, calibre_library, None)
        sync = LibrarySync(
            BlockingSource(calibre_library),
            CoverCache(tmp_path / "covers"),
            services.mirror,
            services.list_cache,
            services.suggested,
            services.wanted,
            services.want_cache,
        )
        results = []
        worker = threading.Thread(target=lambda: results.append(sync.sync()))
        worker.start()
        assert started.wait(5)

        second = sync.sync()
        release.set()
        worker.join(5)

        assert second.success is False
        assert second.error == ALREADY_RUNNING
        assert results[0].success is True
        assert not sync.is_running

    def test_cancelled_scan_keeps_books_pending(
        self, tmp_path: Path, calibre_library: Path
    ) -> None:
        client = _catalog()
        services = _services(tmp_path, calibre_library, client)
        cancel = threading.Event()
        cancel.set()

        result = services.library_sync.sync(cancel)
        assert result.success
        assert result.count == 3
        assert result.scan.cancelled
        assert services.list_cache.status_counts() == {PENDING: 3}
        assert client.calls == []


class TestPruneWanted:
    """Tests for dropping wanted books once they arrive in the library."""

    def _arrive(self, tmp_path: Path, calibre_library: Path, client: FakeCatalogClient):
        create_metadata_db(calibre_library.parent, [SAMPLE_BOOKS[0], SAMPLE_BOOKS[2]])
        services = _services(tmp_path, calibre_library, client)
        services.library_sync.sync()
        services.wanted.upsert(shelf_key("4242"), LEFT_HAND)
        services.want_cache.replace_all([LEFT_HAND])
        services.wanted.upsert("manual:1", {"title": "Unrelated", "isbn": "9780000000002"})

        create_metadata_db(calibre_library.parent, SAMPLE_BOOKS)
        return services, services.library_sync.sync()

    def test_new_book_prunes_matching_wanted_entry(
        self, tmp_path: Path, calibre_library: Path
    ) -> None:
        client = _catalog()
        services, result = self._arrive(tmp_path, calibre_library, client)

        assert result.added_ids == [2]
        assert result.prune.matched == 1
        assert result.prune.removed_local == 1
        assert result.prune.removed_remote == 1
        assert result.prune.cache_removed == 1
        assert services.wanted.get(shelf_key("4242")) is None
        assert services.wanted.get("manual:1") is not None
        assert services.want_cache.get_stats().count == 0
        assert client.calls_to("SetUserBookStatus") == [{"bookId": 4242, "statusId": 6}]

    def test_scan_storage_failure_does_not_skip_pruning(
        self, tmp_path: Path, calibre_library: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Pruning has its own error boundary, separate from the pending scan."""

        def broken_scan(records, cancel=None):
            raise sqlite3.OperationalError("database is locked")

        create_metadata_db(calibre_library.parent, [SAMPLE_BOOKS[0], SAMPLE_BOOKS[2]])
        services = _services(tmp_path, calibre_library, _catalog())
        services.library_sync.sync()
        services.wanted.upsert(shelf_key("4242"), LEFT_HAND)
        monkeypatch.setattr(services.library_sync, "scan_pending", broken_scan)

        create_metadata_db(calibre_library.parent, SAMPLE_BOOKS)
        result = services.library_sync.sync()

        assert result.success
        assert result.scan is None
        assert result.prune.removed_local == 1
        assert services.wanted.get(shelf_key("4242")) is None
        messages = [entry.message for entry in services.activity.recent()]
        assert any("Post-sync scan failed" in message for message in messages)

    def test_remote_failure_does_not_block_local_cleanup(
        self, tmp_path: Path, calibre_library: Path
    ) -> None:
        client = _catalog(SetUserBookStatus=CatalogFetchError("HTTP 500", 500))
        services, result = self._arrive(tmp_path, calibre_library, client)

        assert result.success
        assert result.prune.removed_remote == 0
        assert result.prune.removed_local == 1
        assert result.prune.cache_removed == 1
        assert len(result.prune.failures) == 1
        assert services.wanted.get(shelf_key("4242")) is None
