"""
Redis Pub/Sub publisher with connection pooling and retries.

The collector runs on worker threads, so the synchronous redis client is used.
"""

import logging
from typing import Any, Optional

import orjson
import redis
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from utils.config import settings

logger = logging.getLogger(__name__)


class RedisPublisher:
    """Redis publisher for Pub/Sub events with connection pooling and retries."""

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None) -> None:
        """Initialize Redis publisher.

        Args:
            redis_url: Redis connection URL, defaults to settings.REDIS_URL
            client: Pre-built client (tests inject a fake here)
        """
        self.redis_url = redis_url or settings.REDIS_URL
        self.client: Optional[redis.Redis] = client

    def connect(self) -> None:
        """Establish Redis connection with connection pooling."""
        if self.client is None:
            self.client = redis.Redis.from_url(
                self.redis_url,
                decode_responses=False,  # Handle bytes for orjson
            )

    @retry(
        retry=retry_if_exception_type((redis.ConnectionError, redis.TimeoutError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    def publish(self, channel: str, message: dict[str, Any]) -> int:
        """Publish message to Redis channel with retry logic.

        Args:
            channel: Redis channel name
            message: Message payload dict (will be JSON-serialized)

        Returns:
            Number of subscribers that received the message

        Raises:
            redis.RedisError: If publishing fails after retries
        """
        if self.client is None:
            self.connect()

        message_bytes = orjson.dumps(message)

        return self.client.publish(channel, message_bytes)

    def close(self) -> None:
        """Close Redis connection and cleanup resources."""
        if self.client:
            self.client.close()
            self.client = None
