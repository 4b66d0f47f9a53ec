"""
Event Publisher for Collector Service

Publishes archive sealed events to Redis Pub/Sub so downstream consumers can
pick up finished daily files.

Usage:
    from apps.collector.publisher import publish_sealed_event

    publish_sealed_event(path, "2021-06-01_London", publisher)
"""

import logging
from pathlib import Path
from typing import Optional

from utils.config import settings
from utils.mq import RedisPublisher
from utils.schemas import ArchiveEvent

logger = logging.getLogger(__name__)


def publish_sealed_event(
    path: Path,
    key: str,
    publisher: Optional[RedisPublisher],
    channel: Optional[str] = None,
) -> Optional[ArchiveEvent]:
    """
    Publish archive sealed event to Redis channel.

    Args:
        path: Path of the sealed archive
        key: Archive key
        publisher: Redis publisher; None disables publishing
        channel: Redis channel, defaults to settings.REDIS_CHANNEL_SEALED

    Returns:
        The published event, or None when publishing is disabled

    Raises:
        redis.RedisError: If publishing fails
    """
    if publisher is None:
        logger.debug("Event publishing disabled", extra={"archive_key": key})
        return None

    channel = channel or settings.REDIS_CHANNEL_SEALED
    event = ArchiveEvent(key=key, path=str(path))

    try:
        publisher.publish(channel, event.model_dump(mode="json"))
    except Exception as e:
        logger.error(
            "Failed to publish event",
            extra={"channel": channel, "archive_key": key, "file_path": str(path), "error": str(e)},
        )
        raise

    logger.info(
        "Published archive sealed event",
        extra={"channel": channel, "archive_key": key, "file_path": str(path)},
    )
    return event
