"""
Fresh price lookup on a fetched page.

Used by the search-hybrid phase: the shopping index supplies name and image,
but its price can be stale, so the current sale price is read from the page
itself. Sources, in order: JSON-LD offers, price meta tags, then common
price class and JSON key patterns.
"""

import logging
import re
from typing import Optional, Tuple

from sale_scraper.extractors.html_sections import extract_meta_content
from sale_scraper.extractors.structured_data import (
    extract_offer_prices,
    find_json_ld_blocks,
    flatten_items,
    is_product_item,
)

logger = logging.getLogger(__name__)

# Page prices above this are treated as noise (SKU numbers, cents fields)
MAX_PAGE_PRICE = 10000

SALE_PRICE_PATTERNS = [
    re.compile(
        r"<[^>]*class=\"[^\"]*(?:sale-price|price-sale|final-price|current-price)[^\"]*\"[^>]*>\s*\$?\s*(\d+(?:\.\d{2})?)",
        re.IGNORECASE,
    ),
    re.compile(r"<span[^>]*class=\"[^\"]*price[^\"]*\"[^>]*>\s*\$?\s*(\d+(?:\.\d{2})?)", re.IGNORECASE),
    re.compile(r"\"price\":\s*\"?(\d+(?:\.\d{2})?)\""),
    re.compile(r"\"salePrice\":\s*\"?(\d+(?:\.\d{2})?)\""),
]

ORIGINAL_PRICE_PATTERNS = [
    re.compile(
        r"<[^>]*class=\"[^\"]*(?:original-price|was-price|compare-at|price-original)[^\"]*\"[^>]*>\s*\$?\s*(\d+(?:\.\d{2})?)",
        re.IGNORECASE,
    ),
    re.compile(r"\"originalPrice\":\s*\"?(\d+(?:\.\d{2})?)\""),
    re.compile(r"\"compareAtPrice\":\s*\"?(\d+(?:\.\d{2})?)\""),
]

PRICE_META_KEYS = ("og:price:amount", "product:price:amount")


def _from_json_ld(html: str) -> Tuple[Optional[float], Optional[float]]:
    for block in find_json_ld_blocks(html):
        for item in flatten_items(block):
            if not is_product_item(item):
                continue
            current, compare = extract_offer_prices(item.get("offers"))
            if current:
                return current, compare
    return None, None


def _first_match(patterns, html: str, above: float = 0) -> Optional[float]:
    for pattern in patterns:
        match = pattern.search(html)
        if not match:
            continue
        price = float(match.group(1))
        if 0 < price < MAX_PAGE_PRICE and price > above:
            return price
    return None


def extract_fresh_price(html: str) -> Optional[Tuple[float, Optional[float]]]:
    """
    Read the current sale price (and original price, if shown) from a page.

    Returns:
        (sale_price, original_price) or None when no sale price is found
    """
    if not html:
        return None

    sale_price, original_price = _from_json_ld(html)
    if sale_price:
        logger.debug(f"Fresh sale price from JSON-LD: {sale_price}")

    if not sale_price:
        for key in PRICE_META_KEYS:
            content = extract_meta_content(html, key)
            try:
                sale_price = float(content.replace(",", "")) if content else None
            except ValueError:
                sale_price = None
            if sale_price:
                logger.debug(f"Fresh sale price from {key}: {sale_price}")
                break

    if not sale_price:
        sale_price = _first_match(SALE_PRICE_PATTERNS, html)
        if sale_price:
            logger.debug(f"Fresh sale price from HTML pattern: {sale_price}")

    if not sale_price:
        logger.info("Could not extract fresh price from page")
        return None

    if not original_price or original_price <= sale_price:
        original_price = _first_match(ORIGINAL_PRICE_PATTERNS, html, above=sale_price)

    return sale_price, original_price
