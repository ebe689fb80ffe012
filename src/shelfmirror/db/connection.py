# ABOUTME: SQLite connection management for the shelfmirror database.
# ABOUTME: Opens or creates the database, self-migrates it, and scopes transactions.

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from shelfmirror.db.schema import (
    ADDITIVE_COLUMNS,
    LEGACY_LIST_CACHE_COLUMN,
    LEGACY_TABLE_NAMES,
    LIST_CACHE_COLUMNS,
    LIST_CACHE_DDL,
    SCHEMA,
    SCHEMA_VERSION,
    SUGGESTED_DDL,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".shelfmirror"
DEFAULT_DB_PATH = DEFAULT_DATA_DIR / "shelfmirror.db"


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    """Check whether a table is present in the database."""
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    )
    return cursor.fetchone() is not None


def table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    """Return the lowercased column names of a table (empty if it is missing)."""
    safe = table.replace("'", "''")
    rows = conn.execute(f"PRAGMA table_info('{safe}')").fetchall()
    return {row[1].lower() for row in rows}


def ensure_column(
    conn: sqlite3.Connection, table: str, column: str, declaration: str
) -> bool:
    """Add a column to a table unless it already exists.

    Returns:
        True if the column was added.
    """
    if column.lower() in table_columns(conn, table):
        return False
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {declaration}")
    logger.info("Added column %s.%s", table, column)
    return True


class Database:
    """Handle on the shelfmirror database file.

    Each operation opens its own short-lived connection so background jobs on
    different threads never share one. Connections run in autocommit mode;
    multi-row writes go through ``transaction()``.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.path), timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def read(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection for reads and single-statement writes."""
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside BEGIN IMMEDIATE; roll back on any error."""
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()


def _rename_legacy_tables(conn: sqlite3.Connection) -> None:
    for old, new in LEGACY_TABLE_NAMES.items():
        if table_exists(conn, old) and not table_exists(conn, new):
            conn.execute(f"ALTER TABLE {old} RENAME TO {new}")
            logger.info("Renamed legacy table %s to %s", old, new)


def _drop_legacy_list_cache_column(conn: sqlite3.Connection) -> None:
    """Rebuild list_cache without the retired genres column."""
    existing = table_columns(conn, "list_cache")
    if LEGACY_LIST_CACHE_COLUMN not in existing:
        return
    keep = [col for col in LIST_CACHE_COLUMNS if col in existing]
    cols = ", ".join(keep)
    values = ", ".join(
        f"COALESCE({col}, {LIST_CACHE_COLUMNS[col]})" if LIST_CACHE_COLUMNS[col] else col
        for col in keep
    )
    conn.execute("ALTER TABLE list_cache RENAME TO list_cache_legacy")
    conn.execute(LIST_CACHE_DDL)
    conn.execute(f"INSERT INTO list_cache ({cols}) SELECT {values} FROM list_cache_legacy")
    conn.execute("DROP TABLE list_cache_legacy")
    logger.info("Rebuilt list_cache without %s", LEGACY_LIST_CACHE_COLUMN)


def _rebuild_legacy_suggested(conn: sqlite3.Connection) -> None:
    """Rebuild suggested rows stored in the old book_key layout."""
    existing = table_columns(conn, "suggested")
    if not existing or ("book_key" not in existing and "id" in existing):
        return

    key_col = "book_key" if "book_key" in existing else "source_key"

    def pick(column: str, fallback: str) -> str:
        return f"COALESCE({column}, {fallback})" if column in existing else fallback

    select = ", ".join(
        [
            f"COALESCE({key_col}, '')",
            pick("book_json", "'{}'"),
            pick("base_genres_json", "'[]'"),
            pick("reasons_json", "'[]'"),
            pick("hidden", "0"),
            pick("created_at", "strftime('%Y-%m-%dT%H:%M:%S', 'now')"),
            pick("updated_at", "strftime('%Y-%m-%dT%H:%M:%S', 'now')"),
        ]
    )
    conn.execute("ALTER TABLE suggested RENAME TO suggested_legacy")
    conn.execute(SUGGESTED_DDL)
    conn.execute(
        "INSERT INTO suggested (source_key, book_json, base_genres_json, reasons_json,"
        f" hidden, created_at, updated_at) SELECT {select} FROM suggested_legacy"
    )
    conn.execute("DROP TABLE suggested_legacy")
    logger.info("Rebuilt legacy suggested table")


def _apply_additive_columns(conn: sqlite3.Connection) -> None:
    for table, columns in ADDITIVE_COLUMNS.items():
        for column, declaration in columns:
            ensure_column(conn, table, column, declaration)


def _get_schema_version(conn: sqlite3.Connection) -> int:
    """Read the current schema version from the database."""
    cursor = conn.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
    row = cursor.fetchone()
    return row[0] if row else 0


def open_database(path: Path | None = None) -> Database:
    """Open or create the shelfmirror database and bring its schema up to date.

    Creates parent directories as needed, converts legacy table layouts,
    creates any missing tables, and adds columns missing from older files.

    Args:
        path: Path to the database file. Defaults to ~/.shelfmirror/shelfmirror.db.

    Returns:
        A Database handle for the migrated file.
    """
    db_path = path or DEFAULT_DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = Database(db_path)

    with db.transaction() as conn:
        _rename_legacy_tables(conn)
        _drop_legacy_list_cache_column(conn)
        _rebuild_legacy_suggested(conn)

    with db.read() as conn:
        conn.executescript(SCHEMA)

    with db.transaction() as conn:
        _apply_additive_columns(conn)
        if _get_schema_version(conn) < SCHEMA_VERSION:
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

    return db
