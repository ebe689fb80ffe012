# ABOUTME: Persistence layer for shelfmirror.
# ABOUTME: SQLite stores for the mirror, scan cache, suggestions, and wanted books.
