# ABOUTME: SQL DDL statements for the shelfmirror database.
# ABOUTME: Declares every table plus the columns expected by additive migrations.

SCHEMA_VERSION = 1

LIST_CACHE_DDL = """
CREATE TABLE IF NOT EXISTS list_cache (
    local_id              INTEGER PRIMARY KEY,
    local_title           TEXT,
    external_id           TEXT,
    external_title        TEXT,
    list_count            INTEGER NOT NULL DEFAULT 0,
    recommendation_count  INTEGER NOT NULL DEFAULT 0,
    last_checked          TEXT,
    status                TEXT NOT NULL DEFAULT 'pending',
    base_genres_json      TEXT NOT NULL DEFAULT '[]',
    lists_json            TEXT NOT NULL DEFAULT '[]',
    recommendations_json  TEXT NOT NULL DEFAULT '[]'
)
"""

SUGGESTED_DDL = """
CREATE TABLE IF NOT EXISTS suggested (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    source_key        TEXT NOT NULL,
    book_json         TEXT NOT NULL,
    base_genres_json  TEXT NOT NULL DEFAULT '[]',
    reasons_json      TEXT NOT NULL DEFAULT '[]',
    hidden            INTEGER NOT NULL DEFAULT 0,
    created_at        TEXT NOT NULL,
    updated_at        TEXT NOT NULL
)
"""

SCHEMA = f"""
-- Local mirror of the Calibre library
CREATE TABLE IF NOT EXISTS library_books (
    id            INTEGER PRIMARY KEY,
    title         TEXT NOT NULL,
    authors_json  TEXT NOT NULL DEFAULT '[]',
    isbn          TEXT,
    rating        REAL,
    added_at      TEXT,
    published_at  TEXT,
    path          TEXT,
    has_cover     INTEGER NOT NULL DEFAULT 0,
    formats_json  TEXT NOT NULL DEFAULT '[]',
    tags_json     TEXT NOT NULL DEFAULT '[]',
    publisher     TEXT,
    series        TEXT,
    file_size_mb  REAL,
    description   TEXT,
    cover_url     TEXT,
    external_id   TEXT,
    updated_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS library_sync_state (
    id            INTEGER PRIMARY KEY CHECK (id = 1),
    source_path   TEXT,
    last_snapshot TEXT
);

-- Local id to external catalog id, refreshed on every resolution attempt
CREATE TABLE IF NOT EXISTS identity_map (
    local_id      INTEGER PRIMARY KEY,
    external_id   TEXT,
    status        TEXT NOT NULL DEFAULT 'not_found',
    last_checked  TEXT NOT NULL
);

{LIST_CACHE_DDL};

{SUGGESTED_DDL};

CREATE INDEX IF NOT EXISTS idx_suggested_source_key ON suggested(source_key);

CREATE TABLE IF NOT EXISTS wanted_books (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    book_key    TEXT NOT NULL UNIQUE,
    payload     TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

-- Mirror of the external want-to-read shelf
CREATE TABLE IF NOT EXISTS want_cache (
    external_id   TEXT PRIMARY KEY,
    title         TEXT,
    authors_json  TEXT NOT NULL DEFAULT '[]',
    isbn13        TEXT,
    isbn10        TEXT,
    cover_url     TEXT,
    book_json     TEXT NOT NULL,
    last_updated  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS activity_log (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at    TEXT NOT NULL,
    source        TEXT NOT NULL,
    level         TEXT NOT NULL,
    message       TEXT NOT NULL,
    details_json  TEXT
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);
"""

# Columns added after a table first shipped. Older databases gain them on open.
ADDITIVE_COLUMNS: dict[str, list[tuple[str, str]]] = {
    "library_books": [
        ("tags_json", "TEXT NOT NULL DEFAULT '[]'"),
        ("publisher", "TEXT"),
        ("series", "TEXT"),
        ("file_size_mb", "REAL"),
        ("description", "TEXT"),
        ("cover_url", "TEXT"),
        ("external_id", "TEXT"),
    ],
    "identity_map": [
        ("status", "TEXT NOT NULL DEFAULT 'not_found'"),
    ],
    "list_cache": [
        ("base_genres_json", "TEXT NOT NULL DEFAULT '[]'"),
        ("lists_json", "TEXT NOT NULL DEFAULT '[]'"),
        ("recommendations_json", "TEXT NOT NULL DEFAULT '[]'"),
    ],
    "suggested": [
        ("base_genres_json", "TEXT NOT NULL DEFAULT '[]'"),
        ("reasons_json", "TEXT NOT NULL DEFAULT '[]'"),
        ("hidden", "INTEGER NOT NULL DEFAULT 0"),
    ],
}

# Dropped from list_cache once genres moved to base_genres_json.
LEGACY_LIST_CACHE_COLUMN = "genres_json"

# Old names of renamed tables, mapped to their current name.
LEGACY_TABLE_NAMES = {"wanted": "wanted_books"}

# Current list_cache columns, with the value used when a legacy row holds NULL.
LIST_CACHE_COLUMNS: dict[str, str | None] = {
    "local_id": None,
    "local_title": None,
    "external_id": None,
    "external_title": None,
    "list_count": "0",
    "recommendation_count": "0",
    "last_checked": None,
    "status": "'pending'",
    "base_genres_json": "'[]'",
    "lists_json": "'[]'",
    "recommendations_json": "'[]'",
}
