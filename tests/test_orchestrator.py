"""
Tests for the extraction orchestrator (tier cascade).

Each tier's attempt() is replaced with an AsyncMock so the cascade logic is
tested without network access.
"""

from unittest.mock import AsyncMock, patch

import pytest

from sale_scraper import settings
from sale_scraper.discovery.shopping.resolver import ProductResolver
from sale_scraper.errors import BlockedError, ExtractionError, HTTPStatusError
from sale_scraper.services.extraction_orchestrator import (
    ExtractionOrchestrator,
    extract_product,
)
from sale_scraper.types import ErrorClassification

URL = "https://shop.site.com/products/linen-shirt"


def make_orchestrator(oracle, **options) -> ExtractionOrchestrator:
    options.setdefault("search_enabled", False)
    options.setdefault("proxy_domains", [])
    options.setdefault("max_retries", 1)
    orchestrator = ExtractionOrchestrator(oracle=oracle, **options)
    orchestrator.fast.attempt = AsyncMock(side_effect=ExtractionError("fast not stubbed"))
    orchestrator.proxy.attempt = AsyncMock(side_effect=ExtractionError("proxy not stubbed"))
    orchestrator.headless.attempt = AsyncMock(side_effect=ExtractionError("headless not stubbed"))
    return orchestrator


@pytest.fixture(autouse=True)
def sentry_calls():
    """Keep Sentry calls local and observable."""
    with patch(
        "sale_scraper.services.extraction_orchestrator.add_extraction_breadcrumb"
    ) as breadcrumb, patch(
        "sale_scraper.services.extraction_orchestrator.capture_extraction_failure"
    ) as capture:
        yield breadcrumb, capture


class TestOrchestratorConfiguration:
    """Tests for orchestrator construction."""

    def test_requires_oracle(self):
        with patch.object(settings, "OPENAI_API_KEY", ""):
            with pytest.raises(ValueError, match="oracle"):
                ExtractionOrchestrator()

    def test_default_oracle_from_settings(self):
        with patch.object(settings, "OPENAI_API_KEY", "sk-test"):
            orchestrator = ExtractionOrchestrator(search_enabled=False)

        assert orchestrator.fast.ai_extractor.oracle.api_key == "sk-test"

    def test_search_enabled_builds_resolver(self, oracle):
        orchestrator = ExtractionOrchestrator(
            oracle=oracle,
            search_enabled=True,
            scrapingbee_api_key="test-key",
        )

        assert isinstance(orchestrator.resolver, ProductResolver)
        assert orchestrator.fast.resolver is orchestrator.resolver
        assert orchestrator.headless.resolver is orchestrator.resolver

    def test_search_needs_proxy_key(self, oracle):
        with patch.object(settings, "SCRAPINGBEE_API_KEY", ""):
            orchestrator = ExtractionOrchestrator(oracle=oracle, search_enabled=True)

        assert orchestrator.resolver is None

    def test_explicit_zero_retries_is_kept(self, oracle):
        with patch.object(settings, "CRAWLER_MAX_RETRIES", 5):
            assert make_orchestrator(oracle, max_retries=0).max_retries == 0
            assert make_orchestrator(oracle, max_retries=None).max_retries == 5

    def test_requires_proxy_matches_subdomains(self, oracle):
        orchestrator = make_orchestrator(oracle, proxy_domains=["Site.com"])

        assert orchestrator.requires_proxy("https://shop.site.com/p") is True
        assert orchestrator.requires_proxy("https://site.com/p") is True
        assert orchestrator.requires_proxy("https://notsite.com/p") is False


class TestOrchestratorCascade:
    """Tests for tier escalation."""

    @pytest.mark.asyncio
    async def test_fast_success_short_circuits(self, oracle, make_tier_result):
        orchestrator = make_orchestrator(oracle)
        orchestrator.fast.attempt = AsyncMock(return_value=make_tier_result("fast", 95))

        result = await orchestrator.extract(URL)

        assert result.success is True
        assert result.extraction_method == "fast"
        assert result.confidence == 95
        assert result.product.name == "Linen Shirt"
        assert [a.strategy_name for a in result.attempts] == ["fast"]
        assert result.diagnostics is None
        orchestrator.headless.attempt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_low_confidence_escalates_to_proxy(self, oracle, make_tier_result):
        """Fast at confidence 40 with all fields is not acceptable; Proxy runs next."""
        orchestrator = make_orchestrator(
            oracle,
            proxy_domains=["site.com"],
            scrapingbee_api_key="test-key",
        )
        orchestrator.fast.attempt = AsyncMock(return_value=make_tier_result("fast", 40))
        orchestrator.proxy.attempt = AsyncMock(return_value=make_tier_result("proxy", 88))

        result = await orchestrator.extract(URL)

        assert result.success is True
        assert result.extraction_method == "proxy"
        assert [(a.strategy_name, a.outcome, a.confidence) for a in result.attempts] == [
            ("fast", "success", 40),
            ("proxy", "success", 88),
        ]
        orchestrator.proxy.attempt.assert_awaited_once_with(URL)
        orchestrator.headless.attempt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_field_is_not_acceptable(self, oracle, make_tier_result):
        orchestrator = make_orchestrator(oracle)
        orchestrator.fast.attempt = AsyncMock(
            return_value=make_tier_result("fast", 95, image_url="")
        )
        orchestrator.headless.attempt = AsyncMock(return_value=make_tier_result("headless", 70))

        result = await orchestrator.extract(URL)

        assert result.extraction_method == "headless"

    @pytest.mark.asyncio
    async def test_proxy_skipped_for_unlisted_domain(self, oracle, make_tier_result):
        orchestrator = make_orchestrator(oracle, scrapingbee_api_key="test-key")
        orchestrator.fast.attempt = AsyncMock(side_effect=HTTPStatusError(404))
        orchestrator.headless.attempt = AsyncMock(return_value=make_tier_result("headless", 70))

        result = await orchestrator.extract(URL)

        assert result.success is True
        assert result.extraction_method == "headless"
        proxy_attempt = result.attempts[1]
        assert proxy_attempt.strategy_name == "proxy"
        assert proxy_attempt.outcome == "skipped"
        assert proxy_attempt.error_message == "Domain does not require proxy"
        orchestrator.proxy.attempt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_proxy_skipped_without_key(self, oracle, make_tier_result):
        with patch.object(settings, "SCRAPINGBEE_API_KEY", ""):
            orchestrator = make_orchestrator(oracle, proxy_domains=["site.com"])
        orchestrator.headless.attempt = AsyncMock(return_value=make_tier_result("headless", 70))

        result = await orchestrator.extract(URL)

        assert result.attempts[1].outcome == "skipped"
        assert result.attempts[1].error_message == "ScrapingBee API key not configured"

    @pytest.mark.asyncio
    async def test_retryable_failures_are_retried_within_tier(
        self, oracle, make_tier_result, no_backoff
    ):
        orchestrator = make_orchestrator(oracle, max_retries=3)
        orchestrator.fast.attempt = AsyncMock(
            side_effect=[HTTPStatusError(503), make_tier_result("fast", 90)]
        )

        result = await orchestrator.extract(URL)

        assert result.success is True
        assert result.attempts[0].retry_count == 1
        assert orchestrator.fast.attempt.await_count == 2
        no_backoff.assert_awaited_once_with(2)

    @pytest.mark.asyncio
    async def test_diagnostics_with_test_metadata(self, oracle, make_tier_result):
        orchestrator = make_orchestrator(oracle, enable_test_metadata=True)
        orchestrator.fast.attempt = AsyncMock(return_value=make_tier_result("fast", 95))

        result = await orchestrator.extract(URL)

        assert result.diagnostics["phase_used"] == "json-ld"
        assert result.diagnostics["retry_count"] == 0


class TestOrchestratorFailures:
    """Tests for total failure handling."""

    @pytest.mark.asyncio
    async def test_private_url_rejected_before_network(self, oracle, sentry_calls):
        orchestrator = make_orchestrator(oracle)

        result = await orchestrator.extract("http://10.0.0.5/product")

        assert result.success is False
        assert result.error_classification == ErrorClassification.FATAL
        assert result.error == "Private URLs not allowed"
        assert result.attempts == []
        orchestrator.fast.attempt.assert_not_awaited()
        orchestrator.headless.attempt.assert_not_awaited()
        oracle.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mixed_fatal_and_blocking_is_retryable(self, oracle, sentry_calls):
        orchestrator = make_orchestrator(oracle)
        orchestrator.fast.attempt = AsyncMock(side_effect=HTTPStatusError(404, "HTTP 404: Not Found"))
        orchestrator.headless.attempt = AsyncMock(side_effect=BlockedError("Blocked by bot protection: captcha"))

        result = await orchestrator.extract(URL)

        assert result.success is False
        assert result.error_classification == ErrorClassification.RETRYABLE
        assert result.error == (
            "All strategies failed. fast: HTTP 404: Not Found; "
            "headless: Blocked by bot protection: captcha"
        )
        assert [(a.strategy_name, a.outcome) for a in result.attempts] == [
            ("fast", "failed"),
            ("proxy", "skipped"),
            ("headless", "failed"),
        ]
        _, capture = sentry_calls
        capture.assert_called_once()
        assert capture.call_args.kwargs["classification"] == "RETRYABLE"

    @pytest.mark.asyncio
    async def test_all_fatal_is_fatal(self, oracle):
        orchestrator = make_orchestrator(oracle)

        result = await orchestrator.extract(URL)

        assert result.error_classification == ErrorClassification.FATAL

    @pytest.mark.asyncio
    async def test_all_blocking_is_blocking(self, oracle):
        orchestrator = make_orchestrator(oracle)
        orchestrator.fast.attempt = AsyncMock(side_effect=HTTPStatusError(403))
        orchestrator.headless.attempt = AsyncMock(side_effect=HTTPStatusError(429))

        result = await orchestrator.extract(URL)

        assert result.error_classification == ErrorClassification.BLOCKING

    @pytest.mark.asyncio
    async def test_low_confidence_success_counts_as_fatal(self, oracle, make_tier_result):
        orchestrator = make_orchestrator(oracle)
        orchestrator.fast.attempt = AsyncMock(return_value=make_tier_result("fast", 40))

        result = await orchestrator.extract(URL)

        assert result.success is False
        assert result.error_classification == ErrorClassification.FATAL
        assert "fast: Low confidence (40%)" in result.error

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error_attempt(self, oracle):
        orchestrator = make_orchestrator(oracle)
        # A strategy returning None breaks the result contract
        orchestrator.fast.attempt = AsyncMock(return_value=None)

        result = await orchestrator.extract(URL)

        assert result.success is False
        assert result.attempts[0].outcome == "error"
        assert result.attempts[0].classification == ErrorClassification.RETRYABLE
        assert result.error_classification == ErrorClassification.RETRYABLE


class TestExtractProduct:
    """Tests for the module-level entry point."""

    @pytest.mark.asyncio
    async def test_options_are_passed_through(self, oracle):
        result = await extract_product(
            "ftp://shop.site.com/file",
            oracle=oracle,
            search_enabled=False,
        )

        assert result.success is False
        assert result.error == "Invalid URL protocol"
        assert result.to_dict()["error_classification"] == "FATAL"

    @pytest.mark.asyncio
    async def test_missing_oracle_returns_failure(self):
        with patch.object(settings, "OPENAI_API_KEY", ""):
            result = await extract_product(URL)

        assert result.success is False
        assert result.error_classification == ErrorClassification.FATAL
        assert result.error == (
            "Configuration error: An oracle client is required (set OPENAI_API_KEY)"
        )
        assert result.attempts == []

    @pytest.mark.asyncio
    async def test_unknown_option_returns_failure(self, oracle):
        result = await extract_product(URL, oracle=oracle, retries=5)

        assert result.success is False
        assert result.error_classification == ErrorClassification.FATAL
        assert result.error.startswith("Configuration error:")
        assert "retries" in result.error
