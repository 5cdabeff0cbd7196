"""
Headless strategy - Playwright render plus DOM heuristics.

Last tier in the cascade. Rendered HTML is checked for complete JSON-LD
first; otherwise fields read from the DOM are scored:

    start 70, -30 no name, -20 no image, -20 no sale price,
    -20 placeholder or data: image

Missing name or image can be filled from the shopping resolver as a last
resort before scoring.
"""

import logging
import re
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urljoin

from sale_scraper.discovery.shopping.resolver import ProductResolver
from sale_scraper.errors import ClassifiedError, ExtractionError, classify_message
from sale_scraper.extractors.structured_data import extract_from_json_ld
from sale_scraper.fetchers.retry import RetryController
from sale_scraper.fetchers.tier2_playwright import RenderedPage, Tier2PlaywrightFetcher
from sale_scraper.services.confidence import MAX_PRICE, is_placeholder_image
from sale_scraper.strategies.base import Strategy
from sale_scraper.types import ExtractionDiagnostics, ProductCandidate, StrategyResult

logger = logging.getLogger(__name__)

HeadlessScraper = Callable[[str], Awaitable[StrategyResult]]

DOM_BASE_CONFIDENCE = 70
DOM_MIN_CONFIDENCE = 50

PRICE_TEXT_PATTERN = re.compile(r"[\d,]+\.?\d*")


def parse_dom_price(value: Any) -> Optional[float]:
    """'$1,299.99 USD' -> 1299.99"""
    if value is None:
        return None
    match = PRICE_TEXT_PATTERN.search(str(value))
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def normalize_image_url(image_url: Optional[str], page_url: str) -> Optional[str]:
    """Resolve a relative image URL against the page URL."""
    if not image_url:
        return None
    if image_url.startswith("http"):
        return image_url
    if image_url.startswith("data:"):
        return image_url
    resolved = urljoin(page_url, image_url)
    return resolved if resolved.startswith("http") else None


class HeadlessStrategy(Strategy):
    """
    Tier 3: Playwright.

    An external scraper callable can replace the built-in Playwright
    extraction entirely; its failed results are raised with their
    classification so the RetryController treats them like any other tier.
    """

    name = "headless"

    def __init__(
        self,
        fetcher: Optional[Tier2PlaywrightFetcher] = None,
        resolver: Optional[ProductResolver] = None,
        scraper: Optional[HeadlessScraper] = None,
        enable_test_metadata: bool = False,
    ):
        super().__init__(enable_test_metadata=enable_test_metadata)
        self.fetcher = fetcher or Tier2PlaywrightFetcher()
        self.resolver = resolver
        self.scraper = scraper

    async def attempt(self, url: str) -> StrategyResult:
        if self.scraper is not None:
            return await self._run_external(url)

        diagnostics = ExtractionDiagnostics()
        page = await self.fetcher.render(url)

        structured = extract_from_json_ld(page.content, url, diagnostics)
        if structured is not None and structured.complete:
            product = ProductCandidate.build(
                name=structured.name,
                brand=structured.brand,
                image_url=structured.image_url,
                sale_price=structured.sale_price,
                original_price=structured.original_price,
                source_url=url,
                confidence=structured.confidence,
            )
            return self.success(product, "json-ld", diagnostics)

        product = await self.extract_from_dom(page, url, diagnostics)
        return self.success(product, "browser-extraction", diagnostics)

    async def _run_external(self, url: str) -> StrategyResult:
        result = await self.scraper(url)
        if result.success and result.product is not None:
            result.meta.method = self.name
            return result

        message = result.error or "Headless scraper failed"
        classification = result.classification or classify_message(message)
        raise ClassifiedError(message, classification)

    async def extract_from_dom(
        self,
        page: RenderedPage,
        url: str,
        diagnostics: ExtractionDiagnostics,
    ) -> ProductCandidate:
        """
        Score and validate DOM fields.

        Raises:
            ExtractionError: on low confidence or missing fields
        """
        fields = page.dom_fields or {}
        diagnostics.phase_used = "browser-extraction"

        name = (fields.get("name") or "").strip() or None
        image_url = normalize_image_url(fields.get("image"), page.url or url)
        sale_price = parse_dom_price(fields.get("sale_price"))
        original_price = parse_dom_price(fields.get("original_price"))
        brand = None

        if image_url:
            diagnostics.image_source = "dom"

        if (not name or not image_url) and self.resolver is not None:
            resolved = await self.resolver.resolve(url, page.content)
            if resolved is not None:
                brand = resolved.brand
                if not name:
                    name = resolved.name
                    diagnostics.adjust("name from shopping search")
                if not image_url and resolved.image_url:
                    image_url = resolved.image_url
                    diagnostics.image_source = "shopping-search"
                    diagnostics.adjust("image from shopping search")

        confidence = DOM_BASE_CONFIDENCE
        if not name:
            confidence -= 30
            diagnostics.adjust("-30: no name")
        if not image_url:
            confidence -= 20
            diagnostics.adjust("-20: no image")
        if not sale_price:
            confidence -= 20
            diagnostics.adjust("-20: no sale price")
        if image_url and (
            is_placeholder_image(image_url)
            or "placeholder" in image_url
            or image_url.startswith("data:")
        ):
            confidence -= 20
            diagnostics.adjust("-20: placeholder image")

        if confidence < DOM_MIN_CONFIDENCE:
            raise ExtractionError(
                f"Headless extraction failed: low confidence ({confidence}%)"
            )

        if not name or not image_url or not sale_price:
            raise ExtractionError("Missing required product fields (name, image_url, or sale_price)")

        if not (0 < sale_price <= MAX_PRICE):
            raise ExtractionError(f"Sale price out of reasonable range: {sale_price}")

        return ProductCandidate.build(
            name=name,
            brand=brand,
            image_url=image_url,
            sale_price=sale_price,
            original_price=original_price,
            source_url=url,
            confidence=confidence,
        )


async def scrape_with_playwright(
    url: str,
    resolver: Optional[ProductResolver] = None,
    enable_test_metadata: bool = False,
) -> StrategyResult:
    """
    Run the built-in headless extraction once.

    Returns:
        StrategyResult; failures are returned, not raised
    """
    strategy = HeadlessStrategy(resolver=resolver, enable_test_metadata=enable_test_metadata)
    controller = RetryController(max_retries=1)
    return await controller.run_strategy(strategy, url)
