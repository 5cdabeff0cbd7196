"""
Pytest configuration and fixtures for the Sale Scraper test suite.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sale_scraper.types import ExtractionDiagnostics, ProductCandidate, StrategyMeta, StrategyResult


@pytest.fixture
def oracle():
    """An oracle stand-in; tests that reach it set complete.return_value."""
    mock_oracle = MagicMock()
    mock_oracle.complete = AsyncMock(return_value="{}")
    return mock_oracle


@pytest.fixture
def make_tier_result():
    """Build a successful StrategyResult for a tier at a given confidence."""

    def _make(method="fast", confidence=90, phase="json-ld", **product_overrides):
        values = {
            "name": "Linen Shirt",
            "image_url": "https://cdn.site.com/shirt.jpg",
            "sale_price": 39.99,
            "original_price": 79.99,
            "source_url": "https://shop.site.com/products/linen-shirt",
            "confidence": confidence,
        }
        values.update(product_overrides)
        product = ProductCandidate.build(**values)
        meta = StrategyMeta(method=method, phase=phase, diagnostics=ExtractionDiagnostics(phase_used=phase))
        return StrategyResult.ok(product, meta)

    return _make


@pytest.fixture
def no_backoff(monkeypatch):
    """Skip RetryController backoff sleeps."""
    mock_sleep = AsyncMock()
    monkeypatch.setattr("sale_scraper.fetchers.retry.asyncio.sleep", mock_sleep)
    return mock_sleep
