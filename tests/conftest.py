# ABOUTME: Shared pytest fixtures for shelfmirror tests.
# ABOUTME: Provides a migrated database, a sample Calibre library, and a fake catalog client.

from pathlib import Path

import pytest

from shelfmirror.db.connection import Database, open_database
from tests.fixtures.calibre_library import SAMPLE_BOOKS, create_metadata_db
from tests.fixtures.fake_catalog import FakeCatalogClient


@pytest.fixture
def db(tmp_path: Path) -> Database:
    """A freshly migrated shelfmirror database."""
    return open_database(tmp_path / "data" / "shelfmirror.db")


@pytest.fixture
def calibre_library(tmp_path: Path) -> Path:
    """A Calibre library with three books; returns the metadata.db path.

    Layout:
        Calibre Library/
            metadata.db
            Frank Herbert/Dune (1)/cover.jpg
    """
    return create_metadata_db(tmp_path / "Calibre Library", SAMPLE_BOOKS)


@pytest.fixture
def fake_client() -> FakeCatalogClient:
    return FakeCatalogClient()
