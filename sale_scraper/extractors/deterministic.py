"""
Deterministic platform price extraction.

Only two sources are trusted:
- Shopify product JSON (<script type="application/json" data-product-json>)
  with price / compare_at_price in cents
- Price microdata (itemprop="price" with a highPrice/listPrice companion)

Generic class-name or strikethrough heuristics are not used. Pages
often show several prices (recommendation carousels, bundles) and picking the
right pair needs page context, so those pages go to the AI extractor.

Only a discount pair is returned, and it is never complete on its own: it
carries prices but no name or image.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sale_scraper.types import ExtractionDiagnostics, compute_percent_off

logger = logging.getLogger(__name__)

DETERMINISTIC_CONFIDENCE = 88

SHOPIFY_JSON_PATTERN = re.compile(
    r"<script[^>]*type=[\"']application/json[\"'][^>]*data-product-json[^>]*>([\s\S]*?)</script>",
    re.IGNORECASE,
)

MICRODATA_PRICE_PATTERN = re.compile(
    r"<[^>]*itemprop=[\"']price[\"'][^>]*content=[\"']([^\"']+)[\"'][^>]*>",
    re.IGNORECASE,
)

MICRODATA_COMPARE_PATTERN = re.compile(
    r"<[^>]*itemprop=[\"'](?:highPrice|listPrice)[\"'][^>]*content=[\"']([^\"']+)[\"'][^>]*>",
    re.IGNORECASE,
)


@dataclass
class DeterministicPrices:
    """A trusted sale/original price pair."""

    sale_price: float
    original_price: float
    percent_off: int
    source: str
    complete: bool = False
    confidence: int = DETERMINISTIC_CONFIDENCE


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(str(value).replace(",", ""))
    except (TypeError, ValueError):
        return None


def _cents_pair(data: Dict[str, Any]):
    """Return (sale, original) in currency units from a Shopify price dict."""
    price = _to_float(data.get("price"))
    compare = _to_float(data.get("compare_at_price"))
    if price and compare:
        return price / 100, compare / 100
    return None, None


def _from_shopify_json(html: str):
    match = SHOPIFY_JSON_PATTERN.search(html)
    if not match:
        return None

    try:
        product_data = json.loads(match.group(1))
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse Shopify product JSON: {e}")
        return None

    if not isinstance(product_data, dict):
        return None

    sale, original = _cents_pair(product_data)
    if sale is not None:
        return sale, original, "shopify-json"

    variants = product_data.get("variants")
    if isinstance(variants, list) and variants and isinstance(variants[0], dict):
        sale, original = _cents_pair(variants[0])
        if sale is not None:
            return sale, original, "shopify-json-variant"

    return None


def _from_microdata(html: str):
    price_match = MICRODATA_PRICE_PATTERN.search(html)
    if not price_match:
        return None

    current = _to_float(price_match.group(1))
    compare_match = MICRODATA_COMPARE_PATTERN.search(html)
    compare = _to_float(compare_match.group(1)) if compare_match else None

    if current is not None and compare is not None and compare > current:
        return current, compare, "microdata"

    return None


def extract_deterministic_prices(
    html: str,
    diagnostics: Optional[ExtractionDiagnostics] = None,
) -> Optional[DeterministicPrices]:
    """
    Extract a trusted discount pair from platform markup.

    Args:
        html: Page HTML
        diagnostics: Optional diagnostics to annotate

    Returns:
        DeterministicPrices (complete=False) or None
    """
    if not html:
        return None

    found = _from_shopify_json(html) or _from_microdata(html)

    if not found:
        logger.debug("No deterministic prices found")
        return None

    sale_price, original_price, source = found

    if not (sale_price and original_price and original_price > sale_price):
        logger.debug(f"Ignoring {source} prices without a discount")
        return None

    logger.info(f"Found {source} prices: {sale_price} (was {original_price})")

    if diagnostics is not None:
        diagnostics.phase_used = "html-deterministic"
        diagnostics.price_found_in_html = True
        diagnostics.checked_formats.append(source)

    return DeterministicPrices(
        sale_price=sale_price,
        original_price=original_price,
        percent_off=compute_percent_off(original_price, sale_price),
        source=source,
    )
