# ABOUTME: Local library source for shelfmirror.
# ABOUTME: Read-only access to a Calibre metadata.db and its cover files.
