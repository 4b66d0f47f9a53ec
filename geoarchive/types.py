"""
Archive Value Types

Small immutable types shared by the extractor, archive files and the registry:
- ArchiveKey: `YYYY-MM-DD_Location` identifier, also used as the file name
- ArchiveState: lifecycle state of one archive file
- Metadata: pagination cursor returned from each extraction

Usage:
    from geoarchive.types import ArchiveKey

    key = ArchiveKey.for_day("London")
    str(key)  # "2021-06-01_London"
"""

import enum
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

KEY_SEPARATOR = "_"

_KEY_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2})_([^_/\\]+)$")


class ArchiveState(enum.Enum):
    """Lifecycle of an archive file. Transitions only move forward."""

    OPEN = "open"
    APPENDING = "appending"
    SEALED = "sealed"


@dataclass(frozen=True)
class ArchiveKey:
    """Identifier of one archive: one day of posts for one location."""

    day: date
    location: str

    def __post_init__(self) -> None:
        if not self.location:
            raise ValueError("Archive location must be a non-empty string")
        if KEY_SEPARATOR in self.location or "/" in self.location or "\\" in self.location:
            raise ValueError(f"Invalid archive location token: {self.location!r}")

    def __str__(self) -> str:
        return f"{self.day.isoformat()}{KEY_SEPARATOR}{self.location}"

    @classmethod
    def parse(cls, raw: str) -> "ArchiveKey":
        """
        Parse a key of the form YYYY-MM-DD_Location.

        Args:
            raw: Key string (typically an archive file name)

        Returns:
            Parsed ArchiveKey

        Raises:
            ValueError: If the string is not a valid archive key
        """
        match = _KEY_PATTERN.match(raw)
        if match is None:
            raise ValueError(f"Invalid archive key: {raw!r}")
        return cls(day=date.fromisoformat(match.group(1)), location=match.group(2))

    @classmethod
    def for_day(cls, location: str, day: Optional[date] = None) -> "ArchiveKey":
        """Build the key for a location, defaulting to today's date."""
        return cls(day=day or date.today(), location=location)


@dataclass(frozen=True)
class Metadata:
    """
    Pagination cursor and item count from the most recent extraction.

    A field left as None was not present in the response, which callers can
    tell apart from an explicit zero.
    """

    max_id: Optional[int] = None
    count: Optional[int] = None
