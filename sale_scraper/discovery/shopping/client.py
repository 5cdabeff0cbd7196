"""
Shopping Search Client - fetch shopping-index results pages.

The results page is rendered client-side, so it is fetched through the
rendering proxy rather than requested directly.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from sale_scraper.fetchers.tier3_scrapingbee import Tier3ScrapingBeeFetcher

logger = logging.getLogger(__name__)


class ShoppingSearchClient:
    """
    Shopping-index search through the rendering proxy.

    Usage:
        client = ShoppingSearchClient()
        html = await client.search('"Wool Coat" shop.com')
    """

    BASE_URL = "https://www.google.com/search"

    # Results render quickly; no need for the product-page wait
    SEARCH_WAIT_MS = 2000

    def __init__(self, fetcher: Optional[Tier3ScrapingBeeFetcher] = None):
        """
        Args:
            fetcher: Rendering proxy fetcher (default Tier3ScrapingBeeFetcher())
        """
        self.fetcher = fetcher or Tier3ScrapingBeeFetcher()

    @property
    def is_configured(self) -> bool:
        return self.fetcher.is_configured

    def build_search_url(self, query: str) -> str:
        params = {"tbm": "shop", "hl": "en", "gl": "us", "q": query}
        return f"{self.BASE_URL}?{urlencode(params)}"

    async def search(self, query: str) -> str:
        """
        Run one shopping search.

        Args:
            query: Search query text

        Returns:
            Raw results page HTML
        """
        search_url = self.build_search_url(query)
        logger.info(f"Shopping search: {query}")
        return await self.fetcher.fetch_rendered(
            search_url,
            wait_ms=self.SEARCH_WAIT_MS,
            tier="premium",
        )
