# ABOUTME: Shelfmirror package root.
# ABOUTME: Mirrors a Calibre library and discovers Hardcover list recommendations.
