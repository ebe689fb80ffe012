# ABOUTME: Sync and reconciliation core for shelfmirror.
# ABOUTME: Identity resolution, suggestion ranking, the sync cycle, and scheduled jobs.
