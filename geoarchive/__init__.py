"""
Geo Archive - File-based Archive of Geotagged Search Results

Responsibilities:
- Extract the statuses fragment and pagination cursor from each search response
- Append fragments to one file per day per location (YYYY-MM-DD_Location)
- Seal finished days into a single JSON array
- Keep exactly one archive handle per key across worker threads

Usage:
    from geoarchive import ArchiveKey, Registry

    registry = Registry("/var/lib/search-geo")
    archive = registry.get_or_create(ArchiveKey.for_day("London"))
    metadata = archive.append(raw_response)
    archive.seal()
"""

from geoarchive.archive_file import ArchiveFile
from geoarchive.errors import ArchiveError, ClosedArchiveError, NotFoundError
from geoarchive.extractor import extract
from geoarchive.registry import Registry
from geoarchive.types import ArchiveKey, ArchiveState, Metadata

__all__ = [
    "ArchiveError",
    "ArchiveFile",
    "ArchiveKey",
    "ArchiveState",
    "ClosedArchiveError",
    "Metadata",
    "NotFoundError",
    "Registry",
    "extract",
]
