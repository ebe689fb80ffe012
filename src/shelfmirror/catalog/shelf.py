# ABOUTME: Access to the authenticated user's Hardcover want-to-read shelf.
# ABOUTME: Fetches shelved books and moves a book off the shelf once it is owned.

import logging
from typing import Any

from shelfmirror.catalog.http import CatalogClient, CatalogFetchError
from shelfmirror.catalog.payload import extract_external_id, extract_isbns, normalize_isbn
from shelfmirror.catalog.queries import FIND_BOOK_BY_ISBN, SET_USER_BOOK_STATUS, WANT_TO_READ

logger = logging.getLogger(__name__)

REMOVED_STATUS_ID = 6


def _shelf_books(data: dict[str, Any]) -> list[dict[str, Any]]:
    me = data.get("me")
    users = me if isinstance(me, list) else [me]
    books = []
    for user in users:
        if not isinstance(user, dict):
            continue
        for relation in ("user_books", "user_book"):
            for item in user.get(relation) or []:
                book = item.get("book") if isinstance(item, dict) else None
                if isinstance(book, dict):
                    books.append(book)
    return books


class WantToReadShelf:
    def __init__(self, client: CatalogClient) -> None:
        self._client = client

    def fetch(self) -> list[dict[str, Any]]:
        """Return the books on the user's want-to-read shelf.

        Raises:
            CatalogFetchError: When every query variant fails.
        """
        last_error: CatalogFetchError | None = None
        for query in WANT_TO_READ:
            try:
                data = self._client.execute(query)
            except CatalogFetchError as exc:
                logger.debug("Want-to-read query variant failed: %s", exc)
                last_error = exc
                continue
            return _shelf_books(data)
        raise last_error or CatalogFetchError("No want-to-read query succeeded")

    def resolve_id_by_isbn(self, isbn: str) -> str | None:
        isbn = normalize_isbn(isbn)
        if not isbn:
            return None
        data = self._client.execute(FIND_BOOK_BY_ISBN, {"isbn": isbn})
        for book in data.get("books") or []:
            if isinstance(book, dict) and (external_id := extract_external_id(book)):
                return external_id
        return None

    def remove(self, book: dict[str, Any]) -> bool:
        """Move a book off the want-to-read shelf.

        Returns:
            False when no catalog id could be found for the book.

        Raises:
            CatalogFetchError: When the catalog call fails.
        """
        external_id = extract_external_id(book)
        if external_id is None:
            for isbn in extract_isbns(book):
                external_id = self.resolve_id_by_isbn(isbn)
                if external_id:
                    break
        if external_id is None:
            return False
        self._client.execute(
            SET_USER_BOOK_STATUS, {"bookId": int(external_id), "statusId": REMOVED_STATUS_ID}
        )
        logger.info("Removed book %s from want-to-read", external_id)
        return True
