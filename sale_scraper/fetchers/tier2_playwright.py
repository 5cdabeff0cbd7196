"""
Headless Browser Fetcher - Playwright.

Last resort for client-side rendered pages. Launches Chromium, waits for the
network to settle, then returns both the rendered HTML and product fields
read straight from the DOM.

A browser is launched for every render() call and closed in a finally
block; nothing is shared between calls.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from sale_scraper import settings
from sale_scraper.errors import ExtractionError, HTTPStatusError

logger = logging.getLogger(__name__)

# Settle time after networkidle for late price widgets
SETTLE_DELAY_MS = 2000

BROWSER_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]

# Runs in the page; returns raw field strings, parsing happens in Python
DOM_EXTRACTION_SCRIPT = """
() => {
  const text = (selector) => {
    const el = document.querySelector(selector);
    return el && el.textContent ? el.textContent.trim() : null;
  };
  const attr = (selector, name) => {
    const el = document.querySelector(selector);
    return el ? el.getAttribute(name) : null;
  };
  const firstPrice = (selectors) => {
    for (const selector of selectors) {
      const el = document.querySelector(selector);
      if (el) {
        return el.textContent && el.textContent.trim()
          ? el.textContent.trim()
          : el.getAttribute('content');
      }
    }
    return null;
  };

  return {
    name: text('h1') || text('[class*="product-title"]') || text('[class*="ProductName"]')
      || attr('meta[property="og:title"]', 'content') || document.title || null,
    image: attr('meta[property="og:image"]', 'content') || attr('meta[name="og:image"]', 'content')
      || attr('meta[property="twitter:image"]', 'content') || attr('meta[name="twitter:image"]', 'content')
      || attr('img[class*="product"]', 'src') || attr('img[class*="main"]', 'src'),
    sale_price: firstPrice([
      '[class*="price"][class*="sale"]',
      '[class*="sale"][class*="price"]',
      '[class*="current-price"]',
      '[class*="currentPrice"]',
      '[data-test*="price"]',
      '[data-testid*="price"]',
      '.price',
      '[itemprop="price"]'
    ]),
    original_price: firstPrice([
      '[class*="price"][class*="original"]',
      '[class*="original"][class*="price"]',
      '[class*="regular-price"]',
      '[class*="regularPrice"]',
      '[class*="was-price"]',
      '[class*="compare-at-price"]',
      '[itemprop="highPrice"]'
    ])
  };
}
"""


@dataclass
class RenderedPage:
    """Rendered HTML plus the raw DOM field strings."""

    content: str
    status_code: int
    url: str
    dom_fields: Dict[str, Any] = field(default_factory=dict)


class Tier2PlaywrightFetcher:
    """
    Headless fetcher using Playwright Chromium.

    Features:
    - Lazy Playwright import (a missing install is FATAL, not retried)
    - networkidle navigation plus a short settle delay
    - DOM field extraction in the page context
    """

    DEFAULT_USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )

    def __init__(self, timeout: Optional[float] = None, settle_delay_ms: int = SETTLE_DELAY_MS):
        """
        Initialize headless fetcher.

        Args:
            timeout: Navigation timeout in seconds (defaults to settings.HEADLESS_TIMEOUT)
            settle_delay_ms: Extra wait after networkidle
        """
        self.timeout = timeout or getattr(settings, "HEADLESS_TIMEOUT", 30)
        self.settle_delay_ms = settle_delay_ms

    async def render(self, url: str) -> RenderedPage:
        """
        Render a URL in a fresh headless browser.

        Args:
            url: URL to render

        Returns:
            RenderedPage with HTML and DOM fields

        Raises:
            ExtractionError: Playwright is not installed
            HTTPStatusError: the page answered with an error status
        """
        try:
            from playwright.async_api import async_playwright
        except ImportError:
            raise ExtractionError(
                "Playwright not installed. Install with: "
                "pip install playwright && playwright install chromium"
            )

        logger.info(f"Launching headless browser for {url}")

        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=True, args=BROWSER_ARGS)
            try:
                context = await browser.new_context(user_agent=self.DEFAULT_USER_AGENT)
                page = await context.new_page()

                response = await page.goto(
                    url,
                    wait_until="networkidle",
                    timeout=self.timeout * 1000,
                )

                status_code = response.status if response else 200
                if status_code >= 400:
                    raise HTTPStatusError(status_code, f"HTTP {status_code}")

                await asyncio.sleep(self.settle_delay_ms / 1000)

                dom_fields = await page.evaluate(DOM_EXTRACTION_SCRIPT)
                content = await page.content()

                logger.debug(f"Headless extracted DOM fields for {url}: {dom_fields}")

                return RenderedPage(
                    content=content,
                    status_code=status_code,
                    url=page.url,
                    dom_fields=dom_fields or {},
                )

            finally:
                await browser.close()
