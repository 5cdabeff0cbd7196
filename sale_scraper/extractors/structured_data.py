"""
Structured-data (JSON-LD) product extraction.

Reads every <script type="application/ld+json"> block, flattens @graph
containers and top-level arrays, and looks for schema.org Product items.

A Product with name, absolute image URL and a parseable offer price is a
complete extraction (confidence 95) and needs no oracle call. A Product that
is missing any of those is still returned, incomplete, with the raw items so
the AI extractor can reuse the signal.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from sale_scraper.types import ExtractionDiagnostics, compute_percent_off

logger = logging.getLogger(__name__)

JSON_LD_CONFIDENCE = 95


@dataclass
class StructuredDataResult:
    """Result of JSON-LD extraction; complete=False carries raw_items only."""

    complete: bool
    name: Optional[str] = None
    brand: Optional[str] = None
    image_url: Optional[str] = None
    original_price: Optional[float] = None
    sale_price: Optional[float] = None
    percent_off: int = 0
    source_url: str = ""
    confidence: int = 0
    raw_items: List[Dict[str, Any]] = field(default_factory=list)


def _parse_price(value: Any) -> Optional[float]:
    """Parse an offer price that may be a number or a string like '131.00'."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "").strip())
    except ValueError:
        return None


def is_product_item(item: Dict[str, Any]) -> bool:
    item_type = item.get("@type")
    if isinstance(item_type, list):
        return "Product" in item_type
    return isinstance(item_type, str) and "Product" in item_type


def flatten_items(data: Any) -> List[Dict[str, Any]]:
    """Flatten @graph containers and arrays into a list of dict items."""
    if isinstance(data, list):
        items = []
        for entry in data:
            items.extend(flatten_items(entry))
        return items

    if not isinstance(data, dict):
        return []

    if "@graph" in data:
        return flatten_items(data["@graph"])

    return [data]


def extract_image(image: Any) -> Optional[str]:
    """
    Resolve a schema.org image value to an absolute URL.

    Handles a plain string, an ImageObject with url, or an array of either
    (first element wins). Relative URLs are discarded.
    """
    if isinstance(image, list):
        image = image[0] if image else None

    if isinstance(image, dict):
        image = image.get("url") or image.get("contentUrl")

    if isinstance(image, str) and image.startswith("http"):
        return image

    return None


def _extract_brand(brand: Any) -> Optional[str]:
    if isinstance(brand, list):
        brand = brand[0] if brand else None
    if isinstance(brand, dict):
        brand = brand.get("name")
    if isinstance(brand, str) and brand.strip():
        return brand.strip()
    return None


def extract_offer_prices(offers: Any):
    """Return (current, compare) prices from an offers value."""
    if isinstance(offers, list):
        offers = offers[0] if offers else None

    if not isinstance(offers, dict):
        return None, None

    current = _parse_price(offers.get("price"))
    if current is None:
        # AggregateOffer carries lowPrice instead of price
        current = _parse_price(offers.get("lowPrice"))

    compare = _parse_price(offers.get("highPrice"))
    if compare is None:
        specification = offers.get("priceSpecification")
        if isinstance(specification, list):
            specification = specification[0] if specification else None
        if isinstance(specification, dict):
            compare = _parse_price(specification.get("price"))

    return current, compare


def find_json_ld_blocks(html: str) -> List[Any]:
    """Parse every JSON-LD script block, skipping blocks that are not valid JSON."""
    soup = BeautifulSoup(html, "html.parser")
    blocks = []

    for script in soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text() or ""
        raw = raw.strip()
        if not raw:
            continue
        try:
            blocks.append(json.loads(raw))
        except json.JSONDecodeError as e:
            logger.debug(f"Skipping unparseable JSON-LD block: {e}")

    return blocks


def extract_from_json_ld(
    html: str,
    url: str,
    diagnostics: Optional[ExtractionDiagnostics] = None,
) -> Optional[StructuredDataResult]:
    """
    Extract a product from JSON-LD structured data.

    Args:
        html: Page HTML
        url: Page URL (recorded as source_url)
        diagnostics: Optional diagnostics to annotate

    Returns:
        Complete result, incomplete result with raw items, or None when the
        page carries no Product item
    """
    if not html:
        return None

    blocks = find_json_ld_blocks(html)
    if not blocks:
        return None

    logger.debug(f"Found {len(blocks)} JSON-LD blocks for {url}")

    products: List[Dict[str, Any]] = []

    for block in blocks:
        for item in flatten_items(block):
            if not is_product_item(item):
                continue

            products.append(item)

            name = item.get("name")
            image_url = extract_image(item.get("image"))
            current, compare = extract_offer_prices(item.get("offers"))

            if not (name and image_url and current is not None):
                continue

            if compare is not None and compare > current:
                sale_price, original_price = current, compare
            elif compare is not None and compare < current:
                logger.warning(
                    f"JSON-LD offers.price ({current}) above compare price "
                    f"({compare}) on {url}, swapping them"
                )
                sale_price, original_price = compare, current
            else:
                sale_price, original_price = current, None

            if diagnostics is not None:
                diagnostics.phase_used = "json-ld"
                diagnostics.image_source = "json-ld"

            logger.info(
                f"Extracted from JSON-LD (confidence: {JSON_LD_CONFIDENCE}): "
                f"{name} sale={sale_price} original={original_price}"
            )

            return StructuredDataResult(
                complete=True,
                name=str(name).strip(),
                brand=_extract_brand(item.get("brand")),
                image_url=image_url,
                original_price=original_price,
                sale_price=sale_price,
                percent_off=compute_percent_off(original_price, sale_price),
                source_url=url,
                confidence=JSON_LD_CONFIDENCE,
                raw_items=[item],
            )

    if products:
        logger.info(
            f"Found {len(products)} JSON-LD product objects with incomplete data, "
            f"keeping them for AI extraction"
        )
        return StructuredDataResult(complete=False, source_url=url, raw_items=products)

    return None
