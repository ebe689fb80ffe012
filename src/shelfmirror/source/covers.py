# ABOUTME: Copies Calibre cover images into a servable covers directory.
# ABOUTME: Skips the copy when the destination is already as new as the source.

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

COVER_FILENAME = "cover.jpg"


class CoverCache:
    """Keeps ``<covers_dir>/<book id>.jpg`` in step with the library's covers."""

    def __init__(self, covers_dir: Path, url_prefix: str = "/covers") -> None:
        self.covers_dir = covers_dir
        self.url_prefix = url_prefix.rstrip("/")

    def ensure_cover(
        self, book_id: int, library_root: Path | None, relative_path: str | None
    ) -> str | None:
        """Copy a book's cover if needed and return its URL.

        Returns:
            The cover URL, or None when the library has no cover for the book.

        Raises:
            OSError: If the copy itself fails.
        """
        if library_root is None or not relative_path:
            return None
        source = library_root / relative_path / COVER_FILENAME
        if not source.is_file():
            return None

        self.covers_dir.mkdir(parents=True, exist_ok=True)
        destination = self.covers_dir / f"{book_id}.jpg"
        if not destination.exists() or destination.stat().st_mtime < source.stat().st_mtime:
            shutil.copy2(source, destination)
            logger.debug("Copied cover for book %d", book_id)
        return f"{self.url_prefix}/{book_id}.jpg"
