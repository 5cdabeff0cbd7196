"""
Page fetching and retry.

- Tier 1: httpx direct fetch (fastest, lowest cost)
- Rendering proxy: ScrapingBee (bot-protected pages, JS-rendered search pages)
- Headless: Playwright Chromium (client-side rendered pages)

RetryController wraps each strategy and retries RETRYABLE failures only.
"""

from .tier1_httpx import FetchResponse, Tier1HttpxFetcher
from .tier2_playwright import RenderedPage, Tier2PlaywrightFetcher
from .tier3_scrapingbee import Tier3ScrapingBeeFetcher
from .retry import RetryController

__all__ = [
    "FetchResponse",
    "Tier1HttpxFetcher",
    "RenderedPage",
    "Tier2PlaywrightFetcher",
    "Tier3ScrapingBeeFetcher",
    "RetryController",
]
