"""
Shopping Listing Parser - pull product listings out of a rendered shopping
search results page.

The results page has no contract with us; class names and nesting change
without notice. Listings are located by block markers and their fields by
loose patterns, and anything that does not look like a listing is skipped.

Extracts:
- Title
- Price (and a higher struck-through price, when shown)
- Product link (search redirect wrappers unwrapped)
- Image
- Merchant name
"""

import html as html_lib
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

# Start of each listing block, newest layouts first
BLOCK_START_PATTERN = re.compile(
    r"<div[^>]*(?:class=\"[^\"]*(?:sh-dgr__grid-result|sh-dgr__content|sh-dlr__list-result|"
    r"i0X6df|KZmu8e)[^\"]*\"|data-docid=\"[^\"]+\")[^>]*>",
    re.IGNORECASE,
)

TITLE_PATTERNS = [
    re.compile(r"<h3[^>]*>([\s\S]*?)</h3>", re.IGNORECASE),
    re.compile(r"<h4[^>]*>([\s\S]*?)</h4>", re.IGNORECASE),
    re.compile(r"<a[^>]*aria-label=\"([^\"]+)\"", re.IGNORECASE),
]

PRICE_PATTERN = re.compile(r"\$\s?(\d{1,3}(?:,\d{3})*(?:\.\d{2})?|\d+(?:\.\d{2})?)")
LINK_PATTERN = re.compile(r"<a[^>]*href=\"([^\"]+)\"", re.IGNORECASE)
IMAGE_PATTERN = re.compile(r"<img[^>]*src=\"(https?://[^\"]+)\"", re.IGNORECASE)
SOURCE_PATTERNS = [
    re.compile(r"<div[^>]*class=\"[^\"]*(?:aULzUe|IuHnof|merchant)[^\"]*\"[^>]*>([\s\S]*?)</div>", re.IGNORECASE),
    re.compile(r"<span[^>]*class=\"[^\"]*(?:E5ocAb|merchant|source)[^\"]*\"[^>]*>([\s\S]*?)</span>", re.IGNORECASE),
]

TAG_PATTERN = re.compile(r"<[^>]+>")

BRAND_SEPARATOR_PATTERN = re.compile(r"[|–—-]")
BRAND_PHRASE_PATTERN = re.compile(r"^([A-Z][a-zA-Z&\s]+?)(?:\s+[A-Z][a-z]|\s+\d|\s*$)")


@dataclass
class ShoppingListing:
    """One product listing from a shopping results page."""

    title: str
    link: str
    price: Optional[float] = None
    original_price: Optional[float] = None
    image_url: Optional[str] = None
    source: str = ""


def _text(fragment: str) -> str:
    return html_lib.unescape(re.sub(r"\s+", " ", TAG_PATTERN.sub(" ", fragment))).strip()


def _to_price(value: str) -> Optional[float]:
    try:
        return float(value.replace(",", ""))
    except ValueError:
        return None


def unwrap_link(href: str) -> str:
    """Resolve /url?url=... and /url?q=... redirect wrappers to the target URL."""
    href = html_lib.unescape(href)
    parsed = urlparse(href)
    if parsed.path == "/url":
        params = parse_qs(parsed.query)
        for key in ("url", "q", "adurl"):
            if params.get(key):
                return params[key][0]
    return href


def extract_brand_from_title(title: str) -> Optional[str]:
    """
    Guess the brand from a listing title.

    Takes the text before the first separator and keeps a leading run of
    capitalised words: 'Madewell The Lexie Boot | Shop' -> 'Madewell'.
    """
    if not title:
        return None

    cleaned = BRAND_SEPARATOR_PATTERN.split(title)[0].strip()

    brand_match = BRAND_PHRASE_PATTERN.match(cleaned)
    if brand_match:
        return brand_match.group(1).strip()

    words = cleaned.split()
    if words and re.match(r"[A-Z]", words[0]):
        return words[0]

    return None


class ShoppingListingParser:
    """
    Parse listings from a shopping results page.

    Listings are deduplicated by link, first occurrence kept.
    """

    def parse(self, html: str) -> List[ShoppingListing]:
        """
        Extract listings from results page HTML.

        Args:
            html: Rendered shopping results page

        Returns:
            List of ShoppingListing in page order
        """
        listings: List[ShoppingListing] = []
        seen_links = set()

        for block in self._split_blocks(html or ""):
            listing = self._parse_block(block)
            if listing is None or listing.link in seen_links:
                continue
            seen_links.add(listing.link)
            listings.append(listing)

        return listings

    def _split_blocks(self, html: str) -> List[str]:
        starts = [m.start() for m in BLOCK_START_PATTERN.finditer(html)]
        blocks = []
        for index, start in enumerate(starts):
            end = starts[index + 1] if index + 1 < len(starts) else len(html)
            blocks.append(html[start:end])
        return blocks

    def _parse_block(self, block: str) -> Optional[ShoppingListing]:
        title = None
        for pattern in TITLE_PATTERNS:
            match = pattern.search(block)
            if match:
                title = _text(match.group(1))
                if title:
                    break

        link_match = LINK_PATTERN.search(block)
        if not title or not link_match:
            return None

        link = unwrap_link(link_match.group(1))
        if not link.startswith("http"):
            return None

        prices = [p for p in (_to_price(m) for m in PRICE_PATTERN.findall(block)) if p]
        price = prices[0] if prices else None
        original_price = None
        if price is not None:
            higher = [p for p in prices[1:] if p > price]
            original_price = higher[0] if higher else None

        image_match = IMAGE_PATTERN.search(block)

        source = ""
        for pattern in SOURCE_PATTERNS:
            match = pattern.search(block)
            if match:
                source = _text(match.group(1))
                if source:
                    break

        return ShoppingListing(
            title=title,
            link=link,
            price=price,
            original_price=original_price,
            image_url=html_lib.unescape(image_match.group(1)) if image_match else None,
            source=source,
        )
