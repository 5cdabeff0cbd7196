"""
Product extractors, cheapest first:
- structured_data: schema.org JSON-LD Product items
- deterministic: Shopify product JSON and price microdata
- ai_extractor: language-model oracle over selected HTML sections

ai_extractor depends on services.confidence and is imported from its module
directly.
"""

from .structured_data import StructuredDataResult, extract_from_json_ld
from .deterministic import DeterministicPrices, extract_deterministic_prices
from .html_sections import build_bounded_content, extract_image_hint

__all__ = [
    "StructuredDataResult",
    "extract_from_json_ld",
    "DeterministicPrices",
    "extract_deterministic_prices",
    "build_bounded_content",
    "extract_image_hint",
]
