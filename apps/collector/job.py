"""
Collection Jobs

Units of work run by the collector scheduler:
- collect_location: fetch one page for a location and append it to today's archive
- run_collection_cycle: collect every polled location on a thread pool
- adopt_unsealed_archives: register unsealed files left on disk by an earlier process
- seal_stale_archives: seal archives of previous days, publish, and release them

All collaborators are passed in explicitly; the scheduler owns them.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional, Protocol

import redis

from apps.collector.publisher import publish_sealed_event
from geoarchive.errors import ClosedArchiveError
from geoarchive.registry import Registry
from geoarchive.types import ArchiveKey, ArchiveState, Metadata
from utils.config import settings
from utils.db import LocationStore
from utils.mq import RedisPublisher
from utils.schemas import LocationRecord

logger = logging.getLogger(__name__)


class SearchSource(Protocol):
    def search(self, location: LocationRecord, since_id: Optional[int] = None) -> str: ...


@dataclass
class CycleResult:
    collected: dict[str, Metadata] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)


def collect_location(
    location_name: str,
    *,
    registry: Registry,
    store: LocationStore,
    client: SearchSource,
    today: Optional[date] = None,
) -> Metadata:
    """
    Fetch new statuses for a location and append them to today's archive.

    The stored cursor only moves forward, and only after the page was appended.

    Args:
        location_name: Name of a configured location
        registry: Archive registry
        store: Location store holding the cursor
        client: Search API client
        today: Archive day, defaults to the current date

    Returns:
        Metadata extracted from the fetched page

    Raises:
        NotFoundError: If the location is not configured
        ClosedArchiveError: If today's archive was already sealed
        OSError: If the archive cannot be written
    """
    location = store.find_location(location_name)
    key = ArchiveKey.for_day(location.name, today)
    archive = registry.get_or_create(key)

    raw_response = client.search(location, since_id=location.since_id)
    metadata = archive.append(raw_response)

    if metadata.max_id is not None and (location.since_id is None or metadata.max_id > location.since_id):
        store.update_location(location.model_copy(update={"since_id": metadata.max_id}))

    logger.info(
        "Collected search page",
        extra={
            "archive_key": str(key),
            "max_id": metadata.max_id,
            "count": metadata.count,
            "previous_since_id": location.since_id,
        },
    )
    return metadata


def run_collection_cycle(
    *,
    registry: Registry,
    store: LocationStore,
    client: SearchSource,
    today: Optional[date] = None,
    max_workers: Optional[int] = None,
) -> CycleResult:
    """
    Collect one page for every polled location.

    Each location is collected once per cycle even when several applications
    poll it. A failure for one location is logged and does not stop the others.

    Returns:
        Per-location metadata and error messages
    """
    locations = sorted({target.location for target in store.list_poll_targets()})
    result = CycleResult()

    if not locations:
        logger.info("No poll targets configured")
        return result

    logger.info("Starting collection cycle", extra={"locations": len(locations)})

    with ThreadPoolExecutor(max_workers=max_workers or settings.COLLECTOR_WORKERS) as executor:
        futures = {
            name: executor.submit(
                collect_location,
                name,
                registry=registry,
                store=store,
                client=client,
                today=today,
            )
            for name in locations
        }

        for name, future in futures.items():
            try:
                result.collected[name] = future.result()
            except Exception as e:
                result.failed[name] = str(e)
                logger.error(
                    "Collection failed",
                    extra={"location_name": name, "error": str(e)},
                    exc_info=True,
                )

    logger.info(
        "Collection cycle completed",
        extra={"collected": len(result.collected), "failed": len(result.failed)},
    )
    return result


def adopt_unsealed_archives(registry: Registry, today: Optional[date] = None) -> list[str]:
    """
    Register unsealed archive files from earlier days found in the archive directory.

    Files written by a previous process are unknown to a fresh registry. Files
    already sealed on disk are not registered again.

    Returns:
        Keys of the archives adopted by this call
    """
    today = today or date.today()
    adopted: list[str] = []

    for path in sorted(registry.base_dir.iterdir()):
        if not path.is_file() or path.name.startswith("."):
            continue
        try:
            key = ArchiveKey.parse(path.name)
        except ValueError:
            continue
        if key.day >= today or registry.has(key):
            continue

        archive = registry.get_or_create(key)
        if archive.state is ArchiveState.SEALED:
            registry.remove(key)
            continue
        adopted.append(str(key))

    if adopted:
        logger.info("Adopted unsealed archives", extra={"adopted": len(adopted)})
    return adopted


def seal_stale_archives(
    *,
    registry: Registry,
    publisher: Optional[RedisPublisher] = None,
    today: Optional[date] = None,
) -> list[Path]:
    """
    Seal every archive from a day before today.

    Unsealed files left in the archive directory by an earlier process are
    adopted first. Sealed archives are announced on Redis and released from the
    registry; their files stay on disk. An archive that fails to seal stays
    registered so the next run retries it.

    Returns:
        Paths of the archives sealed (or found already sealed) by this run
    """
    today = today or date.today()
    sealed: list[Path] = []

    adopt_unsealed_archives(registry, today)

    for path in registry.all_paths():
        try:
            key = ArchiveKey.parse(path.name)
        except ValueError:
            logger.warning("Skipping archive with unexpected name", extra={"file_path": str(path)})
            continue

        if key.day >= today:
            continue

        archive = registry.get(key)
        if archive is None:
            continue

        try:
            archive.seal()
        except ClosedArchiveError as e:
            if e.reason != "sealed":
                continue
            logger.info("Archive already sealed", extra={"archive_key": str(key)})
        except OSError as e:
            logger.error(
                "Failed to seal archive",
                extra={"archive_key": str(key), "file_path": str(path), "error": str(e)},
            )
            continue

        registry.remove(key)
        sealed.append(archive.path)

        try:
            publish_sealed_event(archive.path, str(key), publisher)
        except redis.RedisError:
            # Already logged by the publisher; the file itself is complete
            continue

    logger.info("Sealed stale archives", extra={"sealed": len(sealed), "today": today.isoformat()})
    return sealed
