"""
Pydantic Schemas - Data Validation Models

Defines the Pydantic schemas exchanged between the collector, the location
store and Redis Pub/Sub:
- LocationRecord: a configured search location and its pagination cursor
- PollTarget: an application scheduled to poll one location
- ArchiveEvent: Redis Pub/Sub payload announcing a sealed archive

Usage:
    from utils.schemas import LocationRecord

    location = LocationRecord(name="London", latitude=51.5074, longitude=-0.1278)
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LocationRecord(BaseModel):
    """Configured search location.

    since_id is the highest status id already archived for the location;
    None until the first page has been collected.
    """

    name: str = Field(..., min_length=1, description="Location token used in archive keys")
    latitude: float = Field(..., ge=-90, le=90, description="Latitude of the search centre")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude of the search centre")
    radius_km: float = Field(default=10.0, gt=0, description="Search radius in kilometres")
    since_id: Optional[int] = Field(default=None, description="Last archived status id")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Location names become file names and key tokens."""
        if "_" in v or "/" in v or "\\" in v:
            raise ValueError("location name must not contain '_', '/' or '\\'")
        return v

    @property
    def geocode(self) -> str:
        return f"{self.latitude},{self.longitude},{self.radius_km:g}km"


class PollTarget(BaseModel):
    """An application polling one location."""

    app_name: str = Field(..., min_length=1, description="Polling application")
    location: str = Field(..., min_length=1, description="LocationRecord.name")


class ArchiveEvent(BaseModel):
    """Redis Pub/Sub event payload.

    Standard format for sealed archive events:
    {
        "type": "archive_sealed",
        "key": "2021-06-01_London",
        "path": "/data/search-geo/2021-06-01_London",
        "ts": "2021-06-02T00:05:02Z"
    }
    """

    type: str = Field(default="archive_sealed", description="Event type")
    key: str = Field(..., description="Archive key")
    path: str = Field(..., description="File path")
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Timestamp")
