# ABOUTME: Unit tests for the read-only Calibre metadata.db reader.
# ABOUTME: Covers schema probing, ISBN choice, aggregate splitting, and book rows.

import sqlite3
from datetime import datetime
from pathlib import Path

import pytest

from shelfmirror.source.calibre import (
    CalibreSource,
    SourceNotConfiguredError,
    build_query,
    choose_isbn,
    parse_source_date,
    probe_capabilities,
    split_concat,
)


class TestChooseIsbn:
    """Tests for picking one ISBN among several candidates."""

    def test_prefers_thirteen_digit_value(self) -> None:
        assert choose_isbn("0-441-17271-7", "978-0-441-17271-9") == "9780441172719"

    def test_falls_back_to_ten_digit_value(self) -> None:
        assert choose_isbn(None, "0-441-17271-7|||junk") == "0441172717"

    def test_returns_first_raw_when_nothing_fits(self) -> None:
        assert choose_isbn(" ABC ", None) == "ABC"

    def test_none_when_empty(self) -> None:
        assert choose_isbn("", None) is None


class TestHelpers:
    def test_split_concat_trims_and_dedupes(self) -> None:
        assert split_concat(" EPUB |||epub|||MOBI") == ["EPUB", "MOBI"]
        assert split_concat(None) == []

    def test_parse_source_date(self) -> None:
        parsed = parse_source_date("2024-01-01 10:00:00+00:00")
        assert isinstance(parsed, datetime)
        assert parsed.year == 2024
        assert parse_source_date(0).year == 1970
        assert parse_source_date("not a date") is None
        assert parse_source_date(None) is None


class TestProbeCapabilities:
    """Tests for detecting optional parts of the Calibre schema."""

    def test_full_schema(self, calibre_library: Path) -> None:
        conn = sqlite3.connect(calibre_library)
        caps = probe_capabilities(conn)
        conn.close()
        assert caps.rating_link
        assert not caps.inline_rating
        assert caps.comments_column == "text"
        assert caps.size_expression == "d.uncompressed_size"
        assert caps.has_identifiers and caps.has_tags and caps.has_series

    def test_minimal_schema(self) -> None:
        """A bare books table still yields a runnable query."""
        conn = sqlite3.connect(":memory:")
        conn.execute("CREATE TABLE books (id INTEGER PRIMARY KEY, title TEXT)")
        conn.execute("INSERT INTO books VALUES (1, 'Lonely')")
        caps = probe_capabilities(conn)
        assert not caps.has_authors
        assert caps.comments_column is None
        rows = conn.execute(build_query(caps)).fetchall()
        conn.close()
        assert rows[0][1] == "Lonely"

    def test_legacy_comments_and_sizes(self) -> None:
        conn = sqlite3.connect(":memory:")
        conn.execute("CREATE TABLE books (id INTEGER PRIMARY KEY, title TEXT, rating REAL)")
        conn.execute("CREATE TABLE comments (id INTEGER PRIMARY KEY, book INTEGER, value TEXT)")
        conn.execute(
            "CREATE TABLE data (id INTEGER PRIMARY KEY, book INTEGER, format TEXT,"
            " uncompressed_size INTEGER, size INTEGER)"
        )
        caps = probe_capabilities(conn)
        conn.close()
        assert caps.inline_rating
        assert caps.comments_column == "value"
        assert caps.size_expression == "COALESCE(d.uncompressed_size, d.size)"


class TestCalibreSource:
    """Tests for reading books through CalibreSource."""

    def test_reads_books_newest_first(self, calibre_library: Path) -> None:
        books = CalibreSource(calibre_library).read_books()
        assert [b.title for b in books] == ["Piranesi", "The Left Hand of Darkness", "Dune"]

    def test_book_fields(self, calibre_library: Path) -> None:
        dune = CalibreSource(calibre_library).read_books()[-1]
        assert dune.id == 1
        assert dune.authors == ["Frank Herbert"]
        assert dune.isbn == "9780441172719"
        assert dune.rating == 5.0
        assert sorted(dune.formats) == ["EPUB", "MOBI"]
        assert dune.file_size_mb == 1.5
        assert sorted(dune.tags) == ["Classics", "Science Fiction"]
        assert dune.publisher == "Ace"
        assert dune.series == "Dune"
        assert dune.description == "Desert planet politics."
        assert dune.has_cover
        assert dune.path == "Frank Herbert/Dune (1)"

    def test_sparse_book(self, calibre_library: Path) -> None:
        piranesi = CalibreSource(calibre_library).read_books()[0]
        assert piranesi.isbn is None
        assert piranesi.rating is None
        assert piranesi.formats == []
        assert piranesi.file_size_mb is None
        assert piranesi.description is None

    def test_limit(self, calibre_library: Path) -> None:
        assert len(CalibreSource(calibre_library).read_books(limit=2)) == 2

    def test_does_not_modify_library(self, calibre_library: Path) -> None:
        before = calibre_library.read_bytes()
        CalibreSource(calibre_library).read_books()
        assert calibre_library.read_bytes() == before

    def test_not_configured(self) -> None:
        with pytest.raises(SourceNotConfiguredError, match="Calibre path not configured"):
            CalibreSource(None).read_books()

    def test_missing_file(self, tmp_path: Path) -> None:
        source = CalibreSource(tmp_path / "metadata.db")
        assert not source.is_configured
        with pytest.raises(FileNotFoundError, match="Metadata file not found"):
            source.read_books()
