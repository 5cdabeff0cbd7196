"""
Query Builder - ranked shopping-index queries for one product URL.

Strategies, most specific first:
1. exact-title: og:title product name (site suffix removed) + domain
2. url-name: name from URL query parameters or the path slug + domain
3. product-id: numeric product/SKU id from the slug or parameters + domain
4. generic: "product" + domain
"""

import re
from typing import List, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlparse

from sale_scraper.extractors.html_sections import extract_meta_content
from sale_scraper.types import QueryStrategy

NAME_PARAMS = ("name", "product", "q", "title")
ID_PARAMS = ("id", "pid", "sku", "productId")

PAGE_EXTENSION_PATTERN = re.compile(r"\.(?:html?|php|aspx?|jsp)$", re.IGNORECASE)
SLUG_ID_PATTERN = re.compile(r"^(.*?)[-_](\d{5,})$")
PRODUCT_ID_PATTERN = re.compile(r"^\d{5,}$")
TITLE_SUFFIX_PATTERN = re.compile(r"\s*(?:\||–|—|\s-\s).*$")

# Path segments that never name a product
GENERIC_SEGMENTS = {"p", "product", "products", "item", "items", "dp", "shop", "en", "us"}


def bare_domain(url: str) -> str:
    """Hostname without a leading www., lowercased."""
    hostname = (urlparse(url).hostname or "").lower()
    return hostname[4:] if hostname.startswith("www.") else hostname


def clean_title(title: str) -> str:
    """Strip a trailing site name: 'Wool Coat | Shop' -> 'Wool Coat'."""
    return TITLE_SUFFIX_PATTERN.sub("", title or "").strip()


def parse_slug(path: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Derive (name, product_id) from a URL path.

    'product-name-1234567.html' -> ('product name', '1234567')
    """
    segments = [unquote(s) for s in path.split("/") if s]
    product_id = None

    while segments:
        segment = PAGE_EXTENSION_PATTERN.sub("", segments[-1])
        if PRODUCT_ID_PATTERN.match(segment):
            product_id = product_id or segment
            segments.pop()
            continue
        if segment.lower() in GENERIC_SEGMENTS:
            segments.pop()
            continue
        break

    if not segments:
        return None, product_id

    slug = PAGE_EXTENSION_PATTERN.sub("", segments[-1])
    id_match = SLUG_ID_PATTERN.match(slug)
    if id_match:
        slug = id_match.group(1)
        product_id = product_id or id_match.group(2)

    name = re.sub(r"[-_+]+", " ", slug).strip()
    if len(name) < 3 or not re.search(r"[a-zA-Z]", name):
        return None, product_id

    return name.lower(), product_id


class QueryBuilder:
    """
    Build ranked shopping-index queries for a product URL.

    Strategies are generated once per URL; duplicates are dropped.
    """

    def build(self, url: str, html: Optional[str] = None) -> List[QueryStrategy]:
        """
        Build query strategies for a product URL.

        Args:
            url: Product page URL
            html: Page HTML, if already fetched (enables exact-title)

        Returns:
            List of QueryStrategy, most specific first
        """
        domain = bare_domain(url)
        parsed = urlparse(url)
        params = parse_qs(parsed.query)

        strategies: List[QueryStrategy] = []

        title = self._og_title(html)
        if title:
            strategies.append(
                QueryStrategy(
                    query_text=f'"{title}" {domain}',
                    source_tag="exact-title",
                    exact_match=True,
                )
            )

        slug_name, slug_id = parse_slug(parsed.path)

        name = self._first_param(params, NAME_PARAMS) or slug_name
        if name:
            strategies.append(
                QueryStrategy(query_text=f"{name} {domain}", source_tag="url-name")
            )

        product_id = self._first_param(params, ID_PARAMS) or slug_id
        if product_id and PRODUCT_ID_PATTERN.match(product_id):
            strategies.append(
                QueryStrategy(query_text=f"{product_id} {domain}", source_tag="product-id")
            )

        strategies.append(QueryStrategy(query_text=f"product {domain}", source_tag="generic"))

        return self._dedupe(strategies)

    def _og_title(self, html: Optional[str]) -> Optional[str]:
        if not html:
            return None
        title = clean_title(extract_meta_content(html, "og:title") or "")
        return title or None

    def _first_param(self, params, names) -> Optional[str]:
        for name in names:
            values = params.get(name)
            if values and values[0].strip():
                return values[0].strip()
        return None

    def _dedupe(self, strategies: List[QueryStrategy]) -> List[QueryStrategy]:
        seen = set()
        unique = []
        for strategy in strategies:
            key = strategy.query_text.lower()
            if key in seen:
                continue
            seen.add(key)
            unique.append(strategy)
        return unique
