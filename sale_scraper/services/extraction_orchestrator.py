"""
Extraction Orchestrator - the tier cascade.

Validates the URL, then runs Fast, Proxy and Headless in order, each inside
its own RetryController, and stops at the first acceptable result:

    success and confidence >= ACCEPTABLE_CONFIDENCE
    and name, image_url and sale_price all present

Proxy only runs for domains in PROXY_REQUIRED_DOMAINS and only when a
ScrapingBee key is configured; otherwise it is recorded as skipped.

When every tier fails, the classifications of the tiers that ran are merged
and returned with the full attempt history. extract() never raises.
"""

import logging
import time
from typing import List, Optional
from urllib.parse import urlparse

from sale_scraper import settings
from sale_scraper.discovery.shopping.client import ShoppingSearchClient
from sale_scraper.discovery.shopping.resolver import ProductResolver
from sale_scraper.errors import InvalidURLError, classify_error, merge_classifications
from sale_scraper.extractors.ai_extractor import AIExtractor
from sale_scraper.fetchers.retry import RetryController
from sale_scraper.fetchers.tier1_httpx import Tier1HttpxFetcher
from sale_scraper.fetchers.tier3_scrapingbee import Tier3ScrapingBeeFetcher
from sale_scraper.monitoring.sentry_integration import (
    add_extraction_breadcrumb,
    capture_extraction_failure,
)
from sale_scraper.services.ai_client import OracleClient
from sale_scraper.services.confidence import ConfidenceEngine
from sale_scraper.strategies.fast import FastStrategy
from sale_scraper.strategies.headless import HeadlessScraper, HeadlessStrategy
from sale_scraper.strategies.proxy import ProxyStrategy
from sale_scraper.types import (
    ErrorClassification,
    ExtractionAttempt,
    ExtractionResult,
    StrategyResult,
)
from sale_scraper.validators.url import validate_url

module_logger = logging.getLogger(__name__)

LOW_CONFIDENCE_CLASSIFICATION = ErrorClassification.FATAL


class ExtractionOrchestrator:
    """
    Runs the tier cascade for one product URL at a time.

    An orchestrator holds only configuration and tier objects; every
    extract() call allocates its own attempt log.
    """

    def __init__(
        self,
        oracle=None,
        resolver: Optional[ProductResolver] = None,
        search_enabled: Optional[bool] = None,
        scrapingbee_api_key: Optional[str] = None,
        enable_test_metadata: bool = False,
        max_retries: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
        deadline: Optional[float] = None,
        headless_scraper: Optional[HeadlessScraper] = None,
        proxy_domains: Optional[List[str]] = None,
        acceptable_confidence: Optional[int] = None,
        min_confidence: Optional[int] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            oracle: Object with async complete(system_prompt, user_prompt) -> str
                (default OracleClient() when OPENAI_API_KEY is set)
            resolver: Shopping resolver; enables search-hybrid and headless enrichment
            search_enabled: Build a default resolver (defaults to settings.SHOPPING_SEARCH_ENABLED)
            scrapingbee_api_key: Rendering proxy key (defaults to settings)
            enable_test_metadata: Return per-tier diagnostics in the result
            max_retries: Attempts per tier (defaults to settings.CRAWLER_MAX_RETRIES)
            logger: Logger to use instead of the module logger
            deadline: Per-attempt timeout in seconds
            headless_scraper: Callable replacing the built-in Playwright extraction
            proxy_domains: Domains routed through the proxy tier
                (defaults to settings.PROXY_REQUIRED_DOMAINS)
            acceptable_confidence: Escalation threshold (defaults to settings)
            min_confidence: Refusal threshold (defaults to settings)

        Raises:
            ValueError: if no oracle is given and none can be configured
        """
        if oracle is None:
            if not getattr(settings, "OPENAI_API_KEY", ""):
                raise ValueError("An oracle client is required (set OPENAI_API_KEY)")
            oracle = OracleClient()

        self.logger = logger or module_logger
        self.enable_test_metadata = enable_test_metadata
        self.max_retries = (
            max_retries
            if max_retries is not None
            else getattr(settings, "CRAWLER_MAX_RETRIES", 3)
        )
        self.deadline = deadline
        self.acceptable_confidence = (
            acceptable_confidence
            if acceptable_confidence is not None
            else getattr(settings, "ACCEPTABLE_CONFIDENCE", 60)
        )
        self.proxy_domains = [
            d.lower()
            for d in (
                proxy_domains
                if proxy_domains is not None
                else getattr(settings, "PROXY_REQUIRED_DOMAINS", [])
            )
        ]

        api_key = scrapingbee_api_key or getattr(settings, "SCRAPINGBEE_API_KEY", "")
        proxy_fetcher = Tier3ScrapingBeeFetcher(api_key=api_key)

        if search_enabled is None:
            search_enabled = getattr(settings, "SHOPPING_SEARCH_ENABLED", False)
        if resolver is None and search_enabled and proxy_fetcher.is_configured:
            resolver = ProductResolver(client=ShoppingSearchClient(fetcher=proxy_fetcher))
        self.resolver = resolver

        engine = ConfidenceEngine(min_confidence=min_confidence)
        ai_extractor = AIExtractor(oracle, engine=engine)

        self.fast = FastStrategy(
            ai_extractor,
            fetcher=Tier1HttpxFetcher(),
            resolver=resolver,
            enable_test_metadata=enable_test_metadata,
        )
        self.proxy = ProxyStrategy(
            ai_extractor,
            fetcher=proxy_fetcher,
            enable_test_metadata=enable_test_metadata,
        )
        self.headless = HeadlessStrategy(
            resolver=resolver,
            scraper=headless_scraper,
            enable_test_metadata=enable_test_metadata,
        )

    def is_acceptable(self, result: StrategyResult) -> bool:
        """A result that stops escalation."""
        product = result.product
        return bool(
            result.success
            and product is not None
            and result.confidence >= self.acceptable_confidence
            and product.name
            and product.image_url
            and product.sale_price
        )

    def requires_proxy(self, url: str) -> bool:
        """True when the URL's domain is on the proxy list."""
        hostname = (urlparse(url).hostname or "").lower()
        return any(
            hostname == domain or hostname.endswith(f".{domain}")
            for domain in self.proxy_domains
        )

    def proxy_skip_reason(self, url: str) -> Optional[str]:
        if not self.requires_proxy(url):
            return "Domain does not require proxy"
        if not self.proxy.is_configured:
            return "ScrapingBee API key not configured"
        return None

    async def extract(self, url: str) -> ExtractionResult:
        """
        Extract a product from a URL.

        Args:
            url: Product page URL

        Returns:
            ExtractionResult (never raises)
        """
        start = time.monotonic()
        attempts: List[ExtractionAttempt] = []
        failures = []

        try:
            validate_url(url)
        except InvalidURLError as e:
            self.logger.warning(f"Rejected URL {url!r}: {e.message}")
            return ExtractionResult(
                success=False,
                error=e.message,
                error_classification=e.classification,
                total_duration_ms=self._elapsed_ms(start),
                attempts=attempts,
            )

        self.logger.info(f"Starting extraction for: {url}")

        for strategy in (self.fast, self.proxy, self.headless):
            if strategy is self.proxy:
                reason = self.proxy_skip_reason(url)
                if reason:
                    self.logger.info(f"Skipping proxy tier: {reason}")
                    attempts.append(
                        ExtractionAttempt(
                            strategy_name=strategy.name,
                            outcome="skipped",
                            error_message=reason,
                        )
                    )
                    continue

            attempt_start = time.monotonic()
            try:
                controller = RetryController(
                    max_retries=self.max_retries,
                    attempt_timeout=self.deadline,
                )
                result = await controller.run_strategy(strategy, url)
            except Exception as e:
                classification = classify_error(e)
                self.logger.exception(f"Unexpected error in {strategy.name} tier: {e}")
                attempts.append(
                    ExtractionAttempt(
                        strategy_name=strategy.name,
                        outcome="error",
                        duration_ms=self._elapsed_ms(attempt_start),
                        error_message=str(e),
                        classification=classification,
                    )
                )
                failures.append((strategy.name, str(e), classification))
                continue

            acceptable = self.is_acceptable(result)
            attempts.append(self._record(strategy.name, result))

            add_extraction_breadcrumb(
                strategy=strategy.name,
                url=url,
                message="Tier succeeded" if acceptable else "Tier did not produce an acceptable result",
                level="info" if acceptable else "warning",
                extra_data={
                    "confidence": result.confidence,
                    "phase": result.meta.phase,
                    "classification": result.classification.value if result.classification else None,
                },
            )

            if acceptable:
                self.logger.info(
                    f"{strategy.name} tier succeeded (confidence: {result.confidence}%)"
                )
                return ExtractionResult(
                    success=True,
                    extraction_method=strategy.name,
                    confidence=result.confidence,
                    total_duration_ms=self._elapsed_ms(start),
                    attempts=attempts,
                    product=result.product,
                    diagnostics=self._diagnostics(result),
                )

            if result.success:
                error = (
                    f"Low confidence ({result.confidence}%) or missing fields, "
                    f"below acceptable threshold ({self.acceptable_confidence}%)"
                )
                self.logger.warning(f"{strategy.name} tier result not acceptable: {error}")
                failures.append((strategy.name, error, LOW_CONFIDENCE_CLASSIFICATION))
            else:
                self.logger.error(
                    f"{strategy.name} tier failed ({result.classification.value}): {result.error}"
                )
                failures.append((strategy.name, result.error, result.classification))

        return self._failure(url, start, attempts, failures)

    def _failure(self, url, start, attempts, failures) -> ExtractionResult:
        classification = merge_classifications(c for _, _, c in failures)
        error = "All strategies failed. " + "; ".join(
            f"{name}: {message}" for name, message, _ in failures
        )

        self.logger.error(f"Extraction failed for {url} ({classification.value}): {error}")
        capture_extraction_failure(
            url=url,
            error=error,
            classification=classification.value,
            extra_context={"attempts": [a.to_dict() for a in attempts]},
        )

        return ExtractionResult(
            success=False,
            total_duration_ms=self._elapsed_ms(start),
            attempts=attempts,
            error=error,
            error_classification=classification,
        )

    def _record(self, name: str, result: StrategyResult) -> ExtractionAttempt:
        return ExtractionAttempt(
            strategy_name=name,
            outcome="success" if result.success else "failed",
            confidence=result.confidence,
            duration_ms=result.meta.duration_ms,
            phase=result.meta.phase,
            error_message=result.error,
            classification=result.classification,
            retry_count=result.meta.retry_count,
        )

    def _diagnostics(self, result: StrategyResult):
        if not self.enable_test_metadata or result.meta.diagnostics is None:
            return None
        return result.meta.diagnostics.to_dict()

    def _elapsed_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


async def extract_product(url: str, **options) -> ExtractionResult:
    """
    Extract a product from a URL with a one-off orchestrator.

    Args:
        url: Product page URL
        **options: ExtractionOrchestrator keyword arguments (oracle, resolver,
            scrapingbee_api_key, enable_test_metadata, max_retries, logger,
            deadline, headless_scraper, proxy_domains, ...)

    Returns:
        ExtractionResult; a missing oracle or an unknown option comes back as
        a FATAL failure rather than an exception
    """
    try:
        orchestrator = ExtractionOrchestrator(**options)
    except (ValueError, TypeError) as e:
        error = f"Configuration error: {e}"
        module_logger.error(f"Cannot extract {url}: {error}")
        return ExtractionResult(
            success=False,
            error=error,
            error_classification=ErrorClassification.FATAL,
        )

    return await orchestrator.extract(url)
