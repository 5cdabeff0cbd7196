"""
Tier strategies, cheapest first.

- fast: direct httpx fetch (optionally with shopping search)
- proxy: ScrapingBee rendered fetch for bot-protected domains
- headless: Playwright render with DOM heuristics

All share one interface: async attempt(url) -> StrategyResult.
"""

from .base import HtmlExtractionStrategy, Strategy, detect_block_page
from .fast import FastStrategy
from .proxy import ProxyStrategy
from .headless import HeadlessStrategy, scrape_with_playwright

__all__ = [
    "Strategy",
    "HtmlExtractionStrategy",
    "detect_block_page",
    "FastStrategy",
    "ProxyStrategy",
    "HeadlessStrategy",
    "scrape_with_playwright",
]
