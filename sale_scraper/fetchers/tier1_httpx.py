"""
Tier 1 Page Fetcher - direct httpx request.

The fastest and lowest cost way to get a product page. Sends browser-like
headers, follows redirects and gives up after CRAWLER_REQUEST_TIMEOUT.
Failures are raised with their classification; retrying is left to the
RetryController.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from sale_scraper import settings
from sale_scraper.errors import HTTPStatusError

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

# No 'br': httpx only decodes brotli with an extra package
PRODUCT_PAGE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
}


@dataclass
class FetchResponse:
    """A fetched product page."""

    content: str
    status_code: int
    headers: Dict[str, str]
    url: str = ""
    tier: int = 1


class Tier1HttpxFetcher:
    """
    Direct product page fetcher.

    The underlying httpx.AsyncClient is created on first use and dropped by
    close(); a closed fetcher can be used again.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            timeout: Request timeout in seconds (defaults to settings.CRAWLER_REQUEST_TIMEOUT)
            user_agent: User-Agent override
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.timeout = timeout or getattr(settings, "CRAWLER_REQUEST_TIMEOUT", 10)
        self.user_agent = user_agent or BROWSER_USER_AGENT
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={**PRODUCT_PAGE_HEADERS, "User-Agent": self.user_agent},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self.transport,
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> FetchResponse:
        """
        Fetch a product page.

        Args:
            url: Product page URL

        Returns:
            FetchResponse for the final (post-redirect) URL

        Raises:
            HTTPStatusError: non-2xx final status, classified by status code
            httpx.TimeoutException / httpx.NetworkError: transport failures
        """
        response = await self._get_client().get(url)
        status = response.status_code

        if status < 200 or status >= 300:
            logger.warning(f"Tier 1 got HTTP {status} for {url}")
            raise HTTPStatusError(status, f"HTTP {status}: {response.reason_phrase}")

        page = response.text
        logger.debug(f"Tier 1 fetched {url} ({len(page)} chars)")

        return FetchResponse(
            content=page,
            status_code=status,
            headers=dict(response.headers),
            url=str(response.url),
        )
