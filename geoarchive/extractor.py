"""
Status Extractor - Streaming Scan of Search API Responses

Pulls the two things the archive needs out of one raw search response without
materialising the whole document:
- the `statuses` array, re-serialised element by element and joined with commas
  (no surrounding brackets)
- the pagination cursor: `max_id` and `count`, read from the top level or from
  the `search_metadata` envelope

Memory use is bounded by the largest single status, independent of how much
has already been archived for the same key.

A response that is not valid JSON, or that holds an integer outside the signed
64-bit range, is dropped whole: no fragment and no cursor. Floats too large for
a double are written as null.

Usage:
    from geoarchive.extractor import extract
    from geoarchive.types import ArchiveState

    fragment, metadata = extract(raw_json, ArchiveState.OPEN)
"""

import io
import logging
from typing import Optional, Union

import ijson
import orjson

from geoarchive.types import ArchiveState, Metadata

logger = logging.getLogger(__name__)

STATUS_ITEM_PREFIX = "statuses.item"
MAX_ID_PREFIXES = frozenset({"max_id", "search_metadata.max_id"})
COUNT_PREFIXES = frozenset({"count", "search_metadata.count"})

_CONTAINER_START = ("start_map", "start_array")
_CONTAINER_END = ("end_map", "end_array")


def extract(
    raw_response: Union[str, bytes],
    state: ArchiveState,
) -> tuple[str, Metadata]:
    """
    Extract the status fragment and pagination metadata from a raw response.

    Args:
        raw_response: Search API response body (JSON text)
        state: Current state of the archive the fragment will be written to.
            When APPENDING, a non-empty fragment is prefixed with a comma.

    Returns:
        Tuple of (fragment, metadata). The fragment is empty when the response
        carries no statuses or cannot be parsed; a dropped response also yields
        an empty Metadata.
    """
    data = raw_response.encode("utf-8") if isinstance(raw_response, str) else raw_response

    parts: list[bytes] = []
    max_id: Optional[int] = None
    count: Optional[int] = None

    builder: Optional[ijson.ObjectBuilder] = None
    depth = 0

    try:
        for prefix, event, value in ijson.parse(io.BytesIO(data), use_float=True):
            if builder is not None:
                builder.event(event, value)
                if event in _CONTAINER_START:
                    depth += 1
                elif event in _CONTAINER_END:
                    depth -= 1
                if depth == 0:
                    parts.append(orjson.dumps(builder.value))
                    builder = None
                continue

            if prefix == STATUS_ITEM_PREFIX:
                if event in _CONTAINER_START:
                    builder = ijson.ObjectBuilder()
                    builder.event(event, value)
                    depth = 1
                else:
                    parts.append(orjson.dumps(value))
            elif event == "number" and prefix in MAX_ID_PREFIXES:
                max_id = int(value)
            elif event == "number" and prefix in COUNT_PREFIXES:
                count = int(value)

    except (ijson.JSONError, orjson.JSONEncodeError) as e:
        logger.error(
            "Search response dropped, nothing extracted",
            extra={"error": str(e), "response_bytes": len(data)},
        )
        return "", Metadata()

    fragment = b",".join(parts).decode("utf-8")
    if fragment and state is ArchiveState.APPENDING:
        fragment = "," + fragment

    return fragment, Metadata(max_id=max_id, count=count)
