"""Vendor page fetcher with status-aware error handling."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from catalog_sync.config import settings
from catalog_sync.metrics import record_fetch

logger = logging.getLogger(__name__)

# Transport errors that mean the request never completed
TIMEOUT_EXC = (
    httpx.ReadTimeout,
    httpx.ConnectTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
)


class FetchError(RuntimeError):
    """Base class for a failed page fetch."""

    kind = "error"

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FetchTimeoutError(FetchError):
    """Raised when the request did not complete within its timeout."""

    kind = "timeout"


class PageNotFoundError(FetchError):
    """Raised when the page does not exist (404)."""

    kind = "not_found"


class TransientFetchError(FetchError):
    """Raised for 5xx, other non-2xx statuses and transport failures."""

    kind = "transient"


@dataclass(frozen=True)
class FetchedPage:
    """A successfully fetched page."""

    url: str
    status_code: int
    html: str


def default_headers() -> dict[str, str]:
    """Get default browser-like headers."""
    return {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Connection": "keep-alive",
    }


class PageFetcher:
    """
    Fetches vendor pages over a shared httpx client.

    One request per call, no retries. Redirects are followed and the final
    response must be 2xx, otherwise a FetchError subclass is raised.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        default_timeout: Optional[float] = None,
    ):
        self._client = client
        self.default_timeout = default_timeout or settings.page_timeout

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=default_headers(),
                follow_redirects=True,
            )
        return self._client

    async def fetch(self, url: str, timeout: Optional[float] = None) -> FetchedPage:
        """
        Fetch a page.

        Args:
            url: Absolute URL to fetch
            timeout: Seconds before giving up; defaults to the page timeout

        Returns:
            FetchedPage with the final status and body text

        Raises:
            FetchTimeoutError: If the request timed out
            PageNotFoundError: If the server answered 404
            TransientFetchError: On any other non-2xx status or transport error
        """
        client = await self._get_client()
        started = time.monotonic()

        try:
            resp = await client.get(
                url,
                timeout=timeout or self.default_timeout,
                follow_redirects=True,
            )
        except TIMEOUT_EXC as e:
            record_fetch(FetchTimeoutError.kind, time.monotonic() - started)
            raise FetchTimeoutError(f"Timeout fetching {url}: {e}", url) from e
        except httpx.HTTPError as e:
            record_fetch(TransientFetchError.kind, time.monotonic() - started)
            raise TransientFetchError(f"Transport error fetching {url}: {e}", url) from e

        duration = time.monotonic() - started
        sc = resp.status_code

        if sc == 404:
            record_fetch(PageNotFoundError.kind, duration)
            raise PageNotFoundError(f"404 for {url}", url, sc)

        if not 200 <= sc < 300:
            record_fetch(TransientFetchError.kind, duration)
            raise TransientFetchError(f"HTTP {sc} for {url}", url, sc)

        record_fetch("ok", duration)
        logger.debug(f"Fetched {url} ({sc}) in {duration:.2f}s")
        return FetchedPage(url=str(resp.url), status_code=sc, html=resp.text)

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "PageFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
