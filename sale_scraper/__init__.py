"""
Sale Scraper - product extraction from retail product pages.

Given a product URL, returns the product name, brand, image, sale price,
original price and percent off, escalating through three fetch tiers
(direct fetch, rendering proxy, headless browser) until one produces an
acceptable result.

Usage:
    from sale_scraper import extract_product

    result = await extract_product("https://shop.example.com/products/widget")
    if result.success:
        print(result.product.name, result.product.sale_price)
"""

from sale_scraper.errors import (
    BlockedError,
    ClassifiedError,
    ExtractionError,
    HTTPStatusError,
    InvalidURLError,
    classify_error,
    merge_classifications,
)
from sale_scraper.services.extraction_orchestrator import (
    ExtractionOrchestrator,
    extract_product,
)
from sale_scraper.types import (
    ErrorClassification,
    ExtractionAttempt,
    ExtractionDiagnostics,
    ExtractionResult,
    ProductCandidate,
    StrategyMeta,
    StrategyResult,
)

__all__ = [
    "extract_product",
    "ExtractionOrchestrator",
    "ErrorClassification",
    "ExtractionAttempt",
    "ExtractionDiagnostics",
    "ExtractionResult",
    "ProductCandidate",
    "StrategyMeta",
    "StrategyResult",
    "ClassifiedError",
    "InvalidURLError",
    "ExtractionError",
    "BlockedError",
    "HTTPStatusError",
    "classify_error",
    "merge_classifications",
]
