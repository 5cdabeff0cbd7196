"""
Rendering Proxy Fetcher - ScrapingBee API.

Used for domains that block direct fetches, and for the JS-rendered shopping
search page. ScrapingBee renders the page in a remote browser behind premium
or stealth residential proxies and returns the final HTML.
"""

import asyncio
import logging
from typing import Optional

import requests
from scrapingbee import ScrapingBeeClient

from sale_scraper import settings
from sale_scraper.errors import BlockedError, ClassifiedError, ExtractionError, HTTPStatusError
from sale_scraper.types import ErrorClassification

logger = logging.getLogger(__name__)

PROXY_TIERS = ("premium", "stealth")

# ScrapingBee answers these when our account, not the target, is the problem
ACCOUNT_BLOCKING_STATUSES = {401, 429}

# Client-side read timeout on top of the timeout ScrapingBee enforces remotely
CLIENT_TIMEOUT_MARGIN = 5


class Tier3ScrapingBeeFetcher:
    """
    Rendering proxy fetcher using the ScrapingBee SDK.

    Features:
    - JavaScript rendering with a post-load wait
    - Premium or stealth proxy pools
    - Synchronous SDK call run in the default executor
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        wait_ms: Optional[int] = None,
    ):
        """
        Initialize the rendering proxy fetcher.

        Args:
            api_key: ScrapingBee API key (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings.PROXY_REQUEST_TIMEOUT)
            wait_ms: Post-load wait in milliseconds (defaults to settings.PROXY_WAIT_MS)
        """
        self.api_key = api_key or getattr(settings, "SCRAPINGBEE_API_KEY", "")
        self.timeout = timeout or getattr(settings, "PROXY_REQUEST_TIMEOUT", 90)
        self.wait_ms = wait_ms if wait_ms is not None else getattr(settings, "PROXY_WAIT_MS", 5000)

        self._client: Optional[ScrapingBeeClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _init_client(self):
        """Initialize ScrapingBee client."""
        if not self.api_key:
            raise ExtractionError(
                "ScrapingBee API key not configured. "
                "Set SCRAPINGBEE_API_KEY in the environment."
            )

        self._client = ScrapingBeeClient(api_key=self.api_key)
        logger.info("ScrapingBee client initialized for proxy fetching")

    def build_params(self, wait_ms: Optional[int] = None, tier: str = "premium") -> dict:
        if tier not in PROXY_TIERS:
            raise ValueError(f"Unknown proxy tier: {tier}")

        return {
            "render_js": True,
            "premium_proxy": tier == "premium",
            "stealth_proxy": tier == "stealth",
            "wait": wait_ms if wait_ms is not None else self.wait_ms,
            "block_resources": False,
            # ScrapingBee uses milliseconds
            "timeout": int(self.timeout * 1000),
        }

    async def fetch_rendered(
        self,
        url: str,
        wait_ms: Optional[int] = None,
        tier: str = "premium",
    ) -> str:
        """
        Fetch fully rendered page HTML through ScrapingBee.

        Args:
            url: URL to fetch
            wait_ms: Post-load wait override in milliseconds
            tier: "premium" or "stealth" proxy pool

        Returns:
            Rendered HTML

        Raises:
            BlockedError: when ScrapingBee refuses the request (401, 429)
            HTTPStatusError: other non-success statuses, classified by status
            ExtractionError: when no API key is configured
            ClassifiedError: RETRYABLE when the request outlives timeout + CLIENT_TIMEOUT_MARGIN
        """
        if self._client is None:
            self._init_client()

        params = self.build_params(wait_ms, tier)

        client_timeout = self.timeout + CLIENT_TIMEOUT_MARGIN

        logger.debug(f"ScrapingBee {tier} fetch for {url}")

        # ScrapingBee client is synchronous; the requests timeout bounds the
        # worker thread even when a caller deadline cancels the await
        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(
                None,
                lambda: self._client.get(url, params=params, timeout=client_timeout),
            )
        except requests.exceptions.Timeout:
            logger.warning(f"ScrapingBee timed out after {client_timeout}s for {url}")
            raise ClassifiedError(
                f"ScrapingBee request timed out after {client_timeout}s",
                ErrorClassification.RETRYABLE,
            )

        if response.ok:
            logger.info(f"ScrapingBee fetched {url} ({len(response.text)} chars)")
            return response.text

        logger.warning(f"ScrapingBee returned {response.status_code} for {url}")

        if response.status_code in ACCOUNT_BLOCKING_STATUSES:
            raise BlockedError(
                f"ScrapingBee HTTP {response.status_code}: {response.text[:200]}"
            )

        raise HTTPStatusError(
            response.status_code,
            f"ScrapingBee HTTP {response.status_code}",
        )
