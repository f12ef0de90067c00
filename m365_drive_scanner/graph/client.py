"""
Async Graph API client with pagination, throttling, retry, and safety enforcement.
Used by the drive source to list folder children one page at a time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator, Optional

import httpx

from ..config import (
    GRAPH_BASE_URL,
    GRAPH_API_VERSION,
    MAX_RETRIES,
    INITIAL_BACKOFF_SECONDS,
    MAX_BACKOFF_SECONDS,
    BACKOFF_MULTIPLIER,
    DEFAULT_PAGE_SIZE,
    MAX_PAGES_PER_ENDPOINT,
    MAX_CONCURRENT_REQUESTS,
)
from ..safety.guardian import SafetyGuardian

logger = logging.getLogger("m365_drive_scanner.graph")


class GraphAPIError(Exception):
    """Raised when Graph API returns a non-recoverable error."""
    def __init__(self, status_code: int, message: str, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Graph API Error {status_code} for {url}: {message}")


def _retry_delay(header: Optional[str], backoff: float) -> float:
    """Seconds to wait; Retry-After in HTTP-date form falls back to backoff."""
    if header is None:
        return backoff
    try:
        return max(float(header), backoff)
    except ValueError:
        return backoff


class GraphClient:
    """
    Async Microsoft Graph API client.
    Features:
      - Safety-validated requests (read-only enforcement)
      - Automatic pagination with @odata.nextLink
      - Exponential backoff on 429/503/504
      - Concurrent request semaphore
    """

    def __init__(
        self,
        access_token: str,
        guardian: SafetyGuardian,
        max_concurrency: int = MAX_CONCURRENT_REQUESTS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.guardian = guardian
        self.max_concurrency = max_concurrency
        self._transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._request_count = 0
        self._throttle_count = 0
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(60.0, connect=30.0),
            limits=httpx.Limits(
                max_connections=self.max_concurrency * 2,
                max_keepalive_connections=self.max_concurrency,
            ),
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Accept": "application/json",
            },
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str) -> str:
        """Build full Graph URL from relative endpoint."""
        if endpoint.startswith("http"):
            return endpoint
        endpoint = endpoint.lstrip("/")
        return f"{GRAPH_BASE_URL}/{GRAPH_API_VERSION}/{endpoint}"

    async def get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """
        Execute a single GET request with retry/throttle handling.
        Raises GraphAPIError for 403/404 so lookups never look like empty results.
        """
        url = self._build_url(endpoint)
        self.guardian.validate_request("GET", url)

        async with self._semaphore:
            data = await self._execute_with_retry(url, params=params)
        self._raise_for_marker(data, url)
        return data

    async def get_all_pages(self, endpoint: str, params: Optional[dict] = None) -> list[dict]:
        """Fetch all pages of a paginated endpoint into a list."""
        items = []
        async for item in self.get_all_pages_stream(endpoint, params):
            items.append(item)
        return items

    async def get_all_pages_stream(
        self,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> AsyncGenerator[dict, None]:
        """
        Stream all pages of a paginated endpoint as an async generator.
        Yields one item at a time; raises GraphAPIError on any failed page.
        """
        params = dict(params or {})
        params.setdefault("$top", str(DEFAULT_PAGE_SIZE))

        url = self._build_url(endpoint)
        pages = 0

        while url and pages < MAX_PAGES_PER_ENDPOINT:
            self.guardian.validate_request("GET", url)

            async with self._semaphore:
                data = await self._execute_with_retry(url, params=params)
            self._raise_for_marker(data, url)

            for item in data.get("value", []):
                yield item

            # nextLink carries every query parameter
            url = data.get("@odata.nextLink")
            params = None
            pages += 1

        if url and pages >= MAX_PAGES_PER_ENDPOINT:
            logger.warning(
                f"Pagination safety cap reached ({MAX_PAGES_PER_ENDPOINT} pages) "
                f"for endpoint: {endpoint}"
            )

    @staticmethod
    def _raise_for_marker(data: dict, url: str):
        """Turn the soft-failure markers from _execute_with_retry into errors."""
        if data.get("_forbidden"):
            raise GraphAPIError(
                403,
                data.get("_error_message", "Forbidden — missing API permission"),
                url,
            )
        if data.get("_not_found"):
            raise GraphAPIError(404, "Item not found", url)
        if data.get("_max_retries_exceeded"):
            raise GraphAPIError(429, f"Gave up after {MAX_RETRIES} retries", url)

    async def _execute_with_retry(self, url: str, params: Optional[dict] = None) -> dict:
        """Execute a GET with exponential backoff on throttling."""
        backoff = INITIAL_BACKOFF_SECONDS

        for attempt in range(MAX_RETRIES + 1):
            try:
                response = await self._execute_raw(url, params=params)
                self._request_count += 1

                if response.status_code == 200:
                    if not response.content or not response.content.strip():
                        return {"value": []}
                    try:
                        return response.json()
                    except ValueError:
                        logger.debug(f"200 response with non-JSON body from {url}")
                        return {"value": []}

                if response.status_code == 204:
                    return {}

                if response.status_code == 404:
                    logger.debug(f"404 Not Found: {url}")
                    return {"value": [], "_not_found": True}

                if response.status_code in (429, 503, 504):
                    self._throttle_count += 1
                    wait_time = _retry_delay(response.headers.get("Retry-After"), backoff)
                    logger.warning(
                        f"Throttled ({response.status_code}) on {url}. "
                        f"Retry {attempt + 1}/{MAX_RETRIES} in {wait_time:.1f}s"
                    )
                    await asyncio.sleep(wait_time)
                    backoff = min(backoff * BACKOFF_MULTIPLIER, MAX_BACKOFF_SECONDS)
                    continue

                if response.status_code == 403:
                    error_msg = self._error_message(response, "Forbidden")
                    logger.warning(f"403 Forbidden: {url} — {error_msg}")
                    return {"value": [], "_forbidden": True, "_error_message": error_msg}

                error_msg = self._error_message(response, response.text[:200])
                raise GraphAPIError(response.status_code, error_msg, url)

            except httpx.TimeoutException:
                logger.warning(f"Timeout on {url}, attempt {attempt + 1}/{MAX_RETRIES}")
                if attempt == MAX_RETRIES:
                    raise
                await asyncio.sleep(backoff)
                backoff = min(backoff * BACKOFF_MULTIPLIER, MAX_BACKOFF_SECONDS)

            except httpx.ConnectError as e:
                logger.warning(f"Connection error on {url}: {e}")
                if attempt == MAX_RETRIES:
                    raise
                await asyncio.sleep(backoff)
                backoff = min(backoff * BACKOFF_MULTIPLIER, MAX_BACKOFF_SECONDS)

        return {"value": [], "_max_retries_exceeded": True}

    @staticmethod
    def _error_message(response: httpx.Response, default: str) -> str:
        try:
            body = response.json() if response.content else {}
        except ValueError:
            return default
        return body.get("error", {}).get("message", default)

    async def _execute_raw(self, url: str, params: Optional[dict] = None) -> httpx.Response:
        """Execute raw GET request."""
        if not self._client:
            raise RuntimeError("GraphClient not initialized. Use 'async with' context.")
        return await self._client.get(url, params=params)

    def get_stats(self) -> dict:
        """Return client statistics."""
        return {
            "total_requests": self._request_count,
            "throttle_events": self._throttle_count,
        }
