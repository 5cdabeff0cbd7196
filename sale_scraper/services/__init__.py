"""
Services module for the Sale Scraper.

Contains:
- ai_client: language-model oracle client
- confidence: price validation and confidence scoring
- extraction_orchestrator: tier cascade (import from its module)
"""

from sale_scraper.services.ai_client import OracleClient
from sale_scraper.services.confidence import (
    ConfidenceEngine,
    ExtractedFields,
    is_placeholder_image,
    price_in_html,
    price_text_forms,
)

__all__ = [
    "OracleClient",
    "ConfidenceEngine",
    "ExtractedFields",
    "is_placeholder_image",
    "price_in_html",
    "price_text_forms",
]
