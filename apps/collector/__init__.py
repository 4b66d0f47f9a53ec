"""
Collector App - Geotagged Search Ingestion

Responsibilities:
- Scheduled polling of every configured location (cron via APScheduler)
- Cursor-based pagination (since_id persisted in SQLite after each page)
- Append each page to the day's archive (one file per day per location)
- Seal previous days' archives and publish Redis events for them

Output:
- <SEARCH_GEO_DIR>/YYYY-MM-DD_Location (JSON array once sealed)
- Redis event: channel=files.archive_sealed, payload={type, key, path, ts}
"""
