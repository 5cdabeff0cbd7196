"""
Proxy strategy - rendering proxy fetch plus the extractor cascade.

Only used for domains known to block direct fetches. The proxy renders the
page remotely behind residential proxies, which is slow and billed per
request. A challenge page on the premium pool is retried once on the
stealth pool.
"""

import logging
from typing import List, Optional

from sale_scraper.errors import BlockedError
from sale_scraper.extractors.ai_extractor import AIExtractor
from sale_scraper.fetchers.tier3_scrapingbee import Tier3ScrapingBeeFetcher
from sale_scraper.strategies.base import HtmlExtractionStrategy
from sale_scraper.types import ExtractionDiagnostics, StrategyResult

logger = logging.getLogger(__name__)

# Rendered product pages are never this small
SHORT_PAGE_LENGTH = 1000


class ProxyStrategy(HtmlExtractionStrategy):
    """Tier 2: ScrapingBee rendered fetch, then JSON-LD / deterministic / AI."""

    name = "proxy"

    def __init__(
        self,
        ai_extractor: AIExtractor,
        fetcher: Optional[Tier3ScrapingBeeFetcher] = None,
        proxy_tier: str = "premium",
        enable_test_metadata: bool = False,
    ):
        super().__init__(ai_extractor, enable_test_metadata=enable_test_metadata)
        self.fetcher = fetcher or Tier3ScrapingBeeFetcher()
        self.proxy_tier = proxy_tier

    @property
    def is_configured(self) -> bool:
        return self.fetcher.is_configured

    @property
    def proxy_tiers(self) -> List[str]:
        """Proxy pools to try in order; premium falls back to stealth."""
        if self.proxy_tier == "premium":
            return ["premium", "stealth"]
        return [self.proxy_tier]

    async def fetch_unblocked(self, url: str) -> str:
        """
        Fetch rendered HTML, moving to the next proxy pool on a challenge page.

        Raises:
            BlockedError: when the last pool also gets a challenge page, or
                when ScrapingBee refuses the account (no pool change helps)
        """
        tiers = self.proxy_tiers

        for index, tier in enumerate(tiers):
            logger.info(f"[proxy] Fetching through rendering proxy ({tier}): {url}")
            html = await self.fetcher.fetch_rendered(url, tier=tier)
            logger.info(f"[proxy] Fetched HTML: {len(html)} characters")

            if len(html) < SHORT_PAGE_LENGTH:
                logger.warning("[proxy] Suspiciously short HTML - might be blocked")

            try:
                self.check_blocked(html, url)
            except BlockedError:
                if index == len(tiers) - 1:
                    raise
                logger.warning(f"[proxy] {tier} pool blocked, retrying with {tiers[index + 1]}")
                continue

            return html

        raise BlockedError("No proxy tier available")

    async def attempt(self, url: str) -> StrategyResult:
        diagnostics = ExtractionDiagnostics()

        html = await self.fetch_unblocked(url)

        product, phase = await self.extract_from_html(html, url, diagnostics)
        return self.success(product, phase, diagnostics)
