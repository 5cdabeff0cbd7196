"""
Fast strategy - direct page fetch plus the extractor cascade.

When a shopping resolver is configured, the search-hybrid phase runs first:
the shopping index supplies name, brand and image, and the sale price is
read fresh from the fetched page.
"""

import logging
from typing import Optional

from sale_scraper.discovery.shopping.resolver import ProductResolver
from sale_scraper.errors import ExtractionError
from sale_scraper.extractors.ai_extractor import AIExtractor
from sale_scraper.extractors.page_price import extract_fresh_price
from sale_scraper.fetchers.tier1_httpx import Tier1HttpxFetcher
from sale_scraper.services.confidence import ExtractedFields, is_placeholder_image
from sale_scraper.strategies.base import HtmlExtractionStrategy
from sale_scraper.types import ExtractionDiagnostics, ProductCandidate, StrategyResult

logger = logging.getLogger(__name__)

SEARCH_HYBRID_CONFIDENCE = 90


class FastStrategy(HtmlExtractionStrategy):
    """Tier 1: httpx fetch, optional search-hybrid, then JSON-LD / deterministic / AI."""

    name = "fast"

    def __init__(
        self,
        ai_extractor: AIExtractor,
        fetcher: Optional[Tier1HttpxFetcher] = None,
        resolver: Optional[ProductResolver] = None,
        enable_test_metadata: bool = False,
    ):
        super().__init__(ai_extractor, enable_test_metadata=enable_test_metadata)
        self.fetcher = fetcher or Tier1HttpxFetcher()
        self.resolver = resolver

    async def attempt(self, url: str) -> StrategyResult:
        diagnostics = ExtractionDiagnostics()

        logger.info(f"[fast] Scraping product: {url}")
        try:
            response = await self.fetcher.fetch(url)
        finally:
            await self.fetcher.close()

        html = response.content
        logger.info(f"[fast] Fetched HTML: {len(html)} characters")
        self.check_blocked(html, url)

        if self.resolver is not None:
            hybrid = await self.try_search_hybrid(url, html)
            if hybrid is not None:
                product, hybrid_diagnostics = hybrid
                return self.success(product, "search-hybrid", hybrid_diagnostics)
            logger.info("[fast] Search hybrid incomplete, falling back to page extraction")

        product, phase = await self.extract_from_html(html, url, diagnostics)
        return self.success(product, phase, diagnostics)

    async def try_search_hybrid(self, url: str, html: str):
        """
        Combine a shopping listing with the page's current sale price.

        Returns:
            (product, diagnostics), or None when the listing or fresh price
            is missing or the combination fails validation
        """
        resolved = await self.resolver.resolve(url, html)
        if resolved is None or not resolved.image_url:
            return None

        if is_placeholder_image(resolved.image_url):
            logger.warning(f"[fast] Shopping listing has placeholder image: {resolved.image_url}")
            return None

        fresh = extract_fresh_price(html)
        if fresh is None:
            return None

        sale_price, page_original = fresh
        diagnostics = ExtractionDiagnostics(
            phase_used="search-hybrid",
            image_source="shopping-search",
        )

        fields = ExtractedFields(
            name=resolved.name,
            brand=resolved.brand,
            image_url=resolved.image_url,
            sale_price=sale_price,
            original_price=resolved.original_price or page_original,
            confidence=SEARCH_HYBRID_CONFIDENCE,
        )

        try:
            product: ProductCandidate = self.ai_extractor.engine.evaluate(
                fields, html, url, diagnostics=diagnostics
            )
        except ExtractionError as e:
            logger.warning(f"[fast] Search hybrid rejected: {e.message}")
            return None

        return product, diagnostics
