"""
Database utilities for SQLite operations.

Provides connection management, schema initialization and the location store
used by the collector:
- locations: configured search locations and their last archived status id
- poll_targets: which application polls which location
"""

import logging
import sqlite3
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Iterator, Optional

from geoarchive.errors import NotFoundError
from utils.config import settings
from utils.schemas import LocationRecord, PollTarget

logger = logging.getLogger(__name__)


def get_conn(path: Optional[str] = None) -> sqlite3.Connection:
    """
    Get SQLite database connection with dict-friendly row factory.

    Args:
        path: Database file, defaults to settings.SQLITE_PATH

    Returns:
        SQLite connection with row_factory set to sqlite3.Row

    Raises:
        sqlite3.Error: If connection fails
    """
    db_path = Path(path or settings.SQLITE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), timeout=30)
    conn.row_factory = sqlite3.Row
    return conn


def init_schema(path: Optional[str] = None) -> None:
    """
    Initialize database schema by creating required tables if they don't exist.

    Raises:
        sqlite3.Error: If schema creation fails
    """
    with closing(get_conn(path)) as conn, conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS locations (
                name TEXT PRIMARY KEY,
                latitude REAL NOT NULL,
                longitude REAL NOT NULL,
                radius_km REAL NOT NULL,
                since_id INTEGER
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS poll_targets (
                app_name TEXT NOT NULL,
                location TEXT NOT NULL REFERENCES locations(name),
                PRIMARY KEY (app_name, location)
            )
        """)

    logger.info("DB schema ready")


def _row_to_location(row: sqlite3.Row) -> LocationRecord:
    return LocationRecord(
        name=row["name"],
        latitude=row["latitude"],
        longitude=row["longitude"],
        radius_km=row["radius_km"],
        since_id=row["since_id"],
    )


class LocationStore:
    """Synchronous access to configured locations and poll targets."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or settings.SQLITE_PATH
        init_schema(self.path)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with closing(get_conn(self.path)) as conn, conn:
            yield conn

    def add_location(self, location: LocationRecord) -> None:
        """Insert or replace a location."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO locations (name, latitude, longitude, radius_km, since_id) "
                "VALUES (?, ?, ?, ?, ?)",
                (location.name, location.latitude, location.longitude, location.radius_km, location.since_id),
            )

    def add_poll_target(self, app_name: str, location: str) -> None:
        """
        Schedule an application to poll a location.

        Raises:
            NotFoundError: If the location is not configured
        """
        self.find_location(location)
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO poll_targets (app_name, location) VALUES (?, ?)",
                (app_name, location),
            )

    def find_location(self, name: str) -> LocationRecord:
        """
        Look up a location by name.

        Raises:
            NotFoundError: If no location has this name
        """
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM locations WHERE name = ?", (name,)).fetchone()
        if row is None:
            raise NotFoundError("Location", name)
        return _row_to_location(row)

    def list_poll_targets(self) -> list[PollTarget]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT app_name, location FROM poll_targets ORDER BY app_name, location"
            ).fetchall()
        return [PollTarget(app_name=row["app_name"], location=row["location"]) for row in rows]

    def update_location(self, location: LocationRecord) -> None:
        """
        Persist the cursor (and coordinates) of an existing location.

        Raises:
            NotFoundError: If the location is not configured
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE locations SET latitude = ?, longitude = ?, radius_km = ?, since_id = ? "
                "WHERE name = ?",
                (location.latitude, location.longitude, location.radius_km, location.since_id, location.name),
            )
            updated = cursor.rowcount
        if updated == 0:
            raise NotFoundError("Location", location.name)
