"""
Strategy base classes.

Every tier exposes the same interface: async attempt(url) -> StrategyResult.
attempt() returns a successful result or raises a classified error; the
RetryController turns raised errors into failed results.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from sale_scraper.errors import BlockedError
from sale_scraper.extractors.ai_extractor import AIExtractor
from sale_scraper.extractors.deterministic import extract_deterministic_prices
from sale_scraper.extractors.structured_data import extract_from_json_ld
from sale_scraper.types import (
    ExtractionDiagnostics,
    ProductCandidate,
    StrategyMeta,
    StrategyResult,
)

logger = logging.getLogger(__name__)

# Block/challenge pages are small; real product pages are not
BLOCK_PAGE_MAX_LENGTH = 5000

BLOCK_PAGE_PATTERN = re.compile(
    r"captcha|cf-challenge|cf-browser-verification|access denied|"
    r"are you a robot|verify you are human|request blocked",
    re.IGNORECASE,
)


def detect_block_page(html: str) -> Optional[str]:
    """Return the matched marker if html looks like a bot challenge page."""
    if not html or len(html) > BLOCK_PAGE_MAX_LENGTH:
        return None
    match = BLOCK_PAGE_PATTERN.search(html)
    return match.group(0) if match else None


class Strategy(ABC):
    """One self-contained extraction technique (a tier)."""

    name = "strategy"

    def __init__(self, enable_test_metadata: bool = False):
        self.enable_test_metadata = enable_test_metadata

    @abstractmethod
    async def attempt(self, url: str) -> StrategyResult:
        """Extract a product from url or raise a classified error."""

    def build_meta(self, phase: str, diagnostics: Optional[ExtractionDiagnostics]) -> StrategyMeta:
        return StrategyMeta(
            method=self.name,
            phase=phase,
            diagnostics=diagnostics if self.enable_test_metadata else None,
        )

    def success(
        self,
        product: ProductCandidate,
        phase: str,
        diagnostics: Optional[ExtractionDiagnostics],
    ) -> StrategyResult:
        logger.info(
            f"[{self.name}] Extracted {product.name!r} via {phase} "
            f"(confidence: {product.confidence}%)"
        )
        return StrategyResult.ok(product, self.build_meta(phase, diagnostics))


class HtmlExtractionStrategy(Strategy):
    """
    Strategy that obtains page HTML and runs the extractor cascade on it:
    JSON-LD, then deterministic platform prices, then the AI extractor.
    """

    def __init__(self, ai_extractor: AIExtractor, enable_test_metadata: bool = False):
        super().__init__(enable_test_metadata=enable_test_metadata)
        self.ai_extractor = ai_extractor

    def check_blocked(self, html: str, url: str) -> None:
        """Raise BlockedError when html is a bot challenge page."""
        marker = detect_block_page(html)
        if marker:
            logger.warning(f"[{self.name}] Challenge page for {url} ({marker})")
            raise BlockedError(f"Blocked by bot protection: {marker}")

    async def extract_from_html(
        self,
        html: str,
        url: str,
        diagnostics: ExtractionDiagnostics,
    ) -> Tuple[ProductCandidate, str]:
        """
        Run the extractor cascade.

        Returns:
            (product, phase) where phase is json-ld or ai-extraction

        Raises:
            ExtractionError: when the AI extractor refuses the page
        """
        structured = extract_from_json_ld(html, url, diagnostics)
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
            return product, "json-ld"

        if structured is not None:
            logger.info(f"[{self.name}] Partial JSON-LD found, using it for AI extraction")
        else:
            logger.info(f"[{self.name}] No JSON-LD data found, trying deterministic extraction")

        deterministic = extract_deterministic_prices(html, diagnostics)

        logger.info(f"[{self.name}] Falling back to AI extraction")
        product = await self.ai_extractor.extract(
            html,
            url,
            structured=structured,
            deterministic=deterministic,
            diagnostics=diagnostics,
        )
        diagnostics.phase_used = "ai-extraction"
        return product, "ai-extraction"
