"""Test helpers: response builder and fakes for external collaborators."""

from typing import Any, Optional

import orjson

from utils.schemas import LocationRecord


def make_response(
    statuses: Optional[list[dict[str, Any]]] = None,
    max_id: Optional[int] = None,
    count: Optional[int] = None,
) -> str:
    """Build a search API response body with top-level cursor fields."""
    body: dict[str, Any] = {}
    if statuses is not None:
        body["statuses"] = statuses
    if max_id is not None:
        body["max_id"] = max_id
    if count is not None:
        body["count"] = count
    return orjson.dumps(body).decode("utf-8")


class FakeSearchClient:
    """Returns queued responses per location and records every call."""

    def __init__(self) -> None:
        self.responses: dict[str, list[str]] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, Optional[int]]] = []

    def queue(self, location: str, *responses: str) -> None:
        self.responses.setdefault(location, []).extend(responses)

    def search(self, location: LocationRecord, since_id: Optional[int] = None) -> str:
        self.calls.append((location.name, since_id))
        if location.name in self.errors:
            raise self.errors[location.name]
        return self.responses[location.name].pop(0)


class FakeRedis:
    """Stands in for redis.Redis in publisher tests."""

    def __init__(self) -> None:
        self.published: list[tuple[str, bytes]] = []
        self.closed = False

    def publish(self, channel: str, message: bytes) -> int:
        self.published.append((channel, message))
        return 1

    def close(self) -> None:
        self.closed = True
