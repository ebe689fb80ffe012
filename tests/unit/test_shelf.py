# ABOUTME: Unit tests for the Hardcover want-to-read shelf client.
# ABOUTME: Covers query variant fallback, shelf parsing, and book removal.

import pytest

from shelfmirror.catalog.http import CatalogFetchError
from shelfmirror.catalog.queries import WANT_TO_READ
from shelfmirror.catalog.shelf import REMOVED_STATUS_ID, WantToReadShelf
from tests.fixtures.fake_catalog import FakeCatalogClient
from tests.fixtures.hardcover_responses import FIND_DUNE
from tests.fixtures.hardcover_responses import WANT_TO_READ as SHELF_RESPONSE


class VariantClient(FakeCatalogClient):
    """Fails the first query variant and answers the second."""

    def execute(self, query, variables=None, *, attempts=1):
        self.calls.append(("WantToRead", dict(variables or {}), attempts))
        if query == WANT_TO_READ[0]:
            raise CatalogFetchError("field 'user_books' not found")
        return {"me": {"user_book": [{"book": {"id": 1, "title": "Fallback"}}]}}


class TestFetch:
    """Tests for WantToReadShelf.fetch."""

    def test_parses_shelf_books(self) -> None:
        shelf = WantToReadShelf(FakeCatalogClient({"WantToRead": SHELF_RESPONSE}))
        books = shelf.fetch()
        assert [book["id"] for book in books] == [4242, 4343]

    def test_falls_back_to_second_variant(self) -> None:
        client = VariantClient()
        books = WantToReadShelf(client).fetch()
        assert books == [{"id": 1, "title": "Fallback"}]
        assert len(client.calls) == 2

    def test_raises_when_every_variant_fails(self) -> None:
        client = FakeCatalogClient(errors={"WantToRead": CatalogFetchError("HTTP 401", 401)})
        with pytest.raises(CatalogFetchError, match="401"):
            WantToReadShelf(client).fetch()


class TestRemove:
    """Tests for moving a book off the shelf."""

    def test_remove_by_id(self) -> None:
        client = FakeCatalogClient()
        assert WantToReadShelf(client).remove({"id": 4242}) is True
        assert client.calls_to("SetUserBookStatus") == [
            {"bookId": 4242, "statusId": REMOVED_STATUS_ID}
        ]

    def test_remove_resolves_id_by_isbn(self) -> None:
        client = FakeCatalogClient({"FindBookByIsbn": FIND_DUNE})
        assert WantToReadShelf(client).remove({"title": "Dune", "isbn": "9780441172719"}) is True
        assert client.calls_to("SetUserBookStatus")[0]["bookId"] == 312460

    def test_remove_without_any_id(self) -> None:
        client = FakeCatalogClient()
        assert WantToReadShelf(client).remove({"title": "Unknown"}) is False
        assert client.calls_to("SetUserBookStatus") == []
