"""
Confidence & Validation Engine.

Turns raw extracted fields (usually from the oracle) into a ProductCandidate
or refuses them. Checks, in order:

1. Sale price must be a positive number no larger than MAX_PRICE.
2. An original price that is out of range or not above the sale price is
   dropped and confidence is penalised.
3. A deterministic price pair, when one was found on the page, overrides the
   extracted prices outright and lifts confidence to at least 88. The oracle
   is then only trusted for name and image.
4. Otherwise the hallucination check: the sale price must appear literally
   in the raw HTML in at least one common textual form, or confidence drops
   by 20.
5. Confidence below MIN_CONFIDENCE fails the extraction as FATAL. Untrusted
   data is refused rather than returned.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from sale_scraper import settings
from sale_scraper.errors import ExtractionError
from sale_scraper.extractors.deterministic import (
    DETERMINISTIC_CONFIDENCE,
    DeterministicPrices,
)
from sale_scraper.types import (
    ExtractionDiagnostics,
    ProductCandidate,
    compute_percent_off,
)

logger = logging.getLogger(__name__)

MAX_PRICE = 50000

# Penalties and floors
INVALID_ORIGINAL_PENALTY = 20
INVERTED_PRICE_PENALTY = 25
PRICE_PENALTY_FLOOR = 30
HALLUCINATION_PENALTY = 20

# Discounts in this range look like a genuine sale
REASONABLE_DISCOUNT_RANGE = (10, 80)
REASONABLE_DISCOUNT_BONUS = 3

PLACEHOLDER_IMAGE_DOMAINS = [
    "example.com",
    "placeholder.com",
    "via.placeholder.com",
    "placehold.it",
    "placehold.co",
    "dummyimage.com",
]


@dataclass
class ExtractedFields:
    """Unvalidated product fields plus the confidence they arrived with."""

    name: Optional[str]
    image_url: Optional[str]
    sale_price: Any
    original_price: Any = None
    brand: Optional[str] = None
    confidence: int = 50


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_placeholder_image(image_url: Optional[str]) -> bool:
    """True if the image URL points at a known placeholder host."""
    if not image_url:
        return False
    lowered = image_url.lower()
    return any(domain in lowered for domain in PLACEHOLDER_IMAGE_DOMAINS)


def price_text_forms(price: float) -> List[str]:
    """
    Literal forms a price is likely to take in page source.

    49.99 -> ["49.99", "4999", "50"]; 1299.99 adds "1,299.99". Duplicates
    are removed, order is kept.
    """
    forms = [
        f"{price:.2f}",
        f"{price:,.2f}",
        str(int(round(price * 100))),
        str(int(round(price))),
    ]
    unique = []
    for form in forms:
        if form not in unique:
            unique.append(form)
    return unique


def price_in_html(price: float, html: str) -> bool:
    """True if any literal form of price appears in html."""
    return any(form in (html or "") for form in price_text_forms(price))


class ConfidenceEngine:
    """
    Validates extracted fields and scores them.

    Args:
        min_confidence: Hard floor below which extraction fails (default from
            settings.MIN_CONFIDENCE)
    """

    def __init__(self, min_confidence: Optional[int] = None):
        self.min_confidence = (
            min_confidence
            if min_confidence is not None
            else getattr(settings, "MIN_CONFIDENCE", 50)
        )

    def evaluate(
        self,
        fields: ExtractedFields,
        html: str,
        url: str,
        deterministic: Optional[DeterministicPrices] = None,
        diagnostics: Optional[ExtractionDiagnostics] = None,
    ) -> ProductCandidate:
        """
        Validate and score extracted fields.

        Args:
            fields: Extracted fields with their starting confidence
            html: Raw page HTML the fields were derived from
            url: Source URL
            deterministic: Trusted price pair found on the page, if any
            diagnostics: Optional diagnostics to annotate

        Returns:
            ProductCandidate

        Raises:
            ExtractionError: FATAL, on invalid sale price or low confidence
        """
        if diagnostics is None:
            diagnostics = ExtractionDiagnostics()

        confidence = int(fields.confidence)
        sale_price = fields.sale_price
        original_price = fields.original_price

        if not _is_number(sale_price) or not (0 < sale_price <= MAX_PRICE):
            raise ExtractionError(f"Sale price out of reasonable range: {sale_price}")

        if original_price is not None and (
            not _is_number(original_price) or not (0 < original_price <= MAX_PRICE)
        ):
            logger.warning(f"Invalid original price ({original_price}), setting to null")
            original_price = None
            confidence = max(PRICE_PENALTY_FLOOR, confidence - INVALID_ORIGINAL_PENALTY)
            diagnostics.adjust(f"-{INVALID_ORIGINAL_PENALTY}: invalid original price")

        if original_price is not None and original_price <= sale_price:
            logger.warning(
                f"Original price ({original_price}) not above sale price "
                f"({sale_price}), setting to null"
            )
            original_price = None
            confidence = max(PRICE_PENALTY_FLOOR, confidence - INVERTED_PRICE_PENALTY)
            diagnostics.adjust(f"-{INVERTED_PRICE_PENALTY}: original price not above sale price")

        if deterministic is not None:
            sale_price = deterministic.sale_price
            original_price = deterministic.original_price
            confidence = max(confidence, DETERMINISTIC_CONFIDENCE)
            diagnostics.price_found_in_html = True
            diagnostics.adjust(f"={confidence}: prices from {deterministic.source}")
            logger.info(
                f"Using deterministic prices: {sale_price} (was {original_price})"
            )
        else:
            discount = compute_percent_off(original_price, sale_price)
            low, high = REASONABLE_DISCOUNT_RANGE
            if original_price is not None and low <= discount <= high:
                confidence += REASONABLE_DISCOUNT_BONUS
                diagnostics.adjust(f"+{REASONABLE_DISCOUNT_BONUS}: discount looks reasonable")

            confidence = self.check_hallucination(sale_price, html, confidence, diagnostics)

        confidence = max(0, min(100, confidence))

        if confidence < self.min_confidence:
            raise ExtractionError(
                f"Low confidence ({confidence}%) - data may be inaccurate"
            )

        return ProductCandidate.build(
            name=str(fields.name).strip(),
            brand=fields.brand,
            image_url=fields.image_url,
            sale_price=sale_price,
            original_price=original_price,
            source_url=url,
            confidence=confidence,
        )

    def check_hallucination(
        self,
        sale_price: float,
        html: str,
        confidence: int,
        diagnostics: Optional[ExtractionDiagnostics] = None,
    ) -> int:
        """
        Require the sale price to appear literally in the HTML.

        Returns:
            Confidence, reduced by exactly HALLUCINATION_PENALTY (floor 0) when
            no literal form of the price is found
        """
        forms = price_text_forms(sale_price)
        found = price_in_html(sale_price, html)

        if diagnostics is not None:
            diagnostics.checked_formats.extend(forms)
            diagnostics.price_found_in_html = found

        if found:
            return confidence

        logger.warning(
            f"Sale price {sale_price} not found in HTML (checked {forms}), "
            f"possible hallucination"
        )
        if diagnostics is not None:
            diagnostics.adjust(f"-{HALLUCINATION_PENALTY}: sale price not found in HTML")

        return max(0, confidence - HALLUCINATION_PENALTY)
