"""
Search API Client

Thin synchronous client for the geocoded search endpoint. Returns the raw
response body untouched; parsing is left to geoarchive.extractor.

Features:
- Bearer token authentication
- Exponential backoff retry (tenacity) on transport errors, 429 and 5xx
"""

import logging
from typing import Optional

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from utils.config import settings
from utils.schemas import LocationRecord

logger = logging.getLogger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


class SearchClient:
    """Client for the search API used by the collector."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        page_size: Optional[int] = None,
        result_type: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        """
        Initialize search client.

        Args:
            base_url: Search endpoint, defaults to settings.SEARCH_API_BASE
            token: Bearer token, defaults to settings.SEARCH_API_TOKEN
            page_size: Statuses per page, defaults to settings.SEARCH_PAGE_SIZE
            result_type: Search result type, defaults to settings.SEARCH_RESULT_TYPE
            http_client: Pre-built httpx client (tests inject a mock transport)
        """
        self.base_url = base_url or settings.SEARCH_API_BASE
        self.page_size = page_size or settings.SEARCH_PAGE_SIZE
        self.result_type = result_type or settings.SEARCH_RESULT_TYPE

        token = token if token is not None else settings.SEARCH_API_TOKEN
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.http = http_client or httpx.Client(timeout=settings.API_TIMEOUT, headers=headers)

    @retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(settings.API_MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _get(self, params: dict[str, object]) -> httpx.Response:
        response = self.http.get(self.base_url, params=params)
        response.raise_for_status()
        return response

    def search(self, location: LocationRecord, since_id: Optional[int] = None) -> str:
        """
        Fetch one page of statuses posted around a location.

        Args:
            location: Location to search around
            since_id: Only return statuses newer than this id

        Returns:
            Raw JSON response body

        Raises:
            httpx.HTTPError: If the request still fails after retries
        """
        params: dict[str, object] = {
            "geocode": location.geocode,
            "count": self.page_size,
            "result_type": self.result_type,
        }
        if since_id is not None:
            params["since_id"] = since_id

        response = self._get(params)

        logger.debug(
            "Fetched search page",
            extra={"location": location.name, "since_id": since_id, "response_bytes": len(response.content)},
        )
        return response.text

    def close(self) -> None:
        self.http.close()
