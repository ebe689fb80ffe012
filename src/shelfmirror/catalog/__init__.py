# ABOUTME: Hardcover catalog integration for shelfmirror.
# ABOUTME: GraphQL client, payload extraction, list aggregation, and shelf operations.
