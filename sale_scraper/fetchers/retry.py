"""
Retry/Backoff Controller.

Wraps one strategy (tier) and retries it on RETRYABLE failures only, with
exponential backoff between attempts. BLOCKING and FATAL failures are raised
immediately; escalating to another strategy is the orchestrator's job, never
the controller's.

Delay before retry k (0-based attempt that failed) is base_delay ** (k + 1):
2s, 4s, 8s... with the default base of 2.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from sale_scraper import settings
from sale_scraper.errors import ClassifiedError, classify_error
from sale_scraper.types import ErrorClassification, StrategyMeta, StrategyResult

logger = logging.getLogger(__name__)

NON_RETRYABLE = {ErrorClassification.BLOCKING, ErrorClassification.FATAL}


class RetryController:
    """
    Retry wrapper for a single strategy.

    A controller is created per tier per extraction call; retry_count holds
    the number of retries used by the most recent call().
    """

    def __init__(
        self,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        attempt_timeout: Optional[float] = None,
    ):
        """
        Args:
            max_retries: Total attempts allowed (defaults to settings.CRAWLER_MAX_RETRIES)
            base_delay: Backoff base in seconds (defaults to settings.RETRY_BASE_DELAY)
            attempt_timeout: Optional per-attempt deadline in seconds
        """
        if max_retries is None:
            max_retries = getattr(settings, "CRAWLER_MAX_RETRIES", 3)
        if base_delay is None:
            base_delay = getattr(settings, "RETRY_BASE_DELAY", 2.0)

        # At least one attempt is always made
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self.attempt_timeout = attempt_timeout
        self.retry_count = 0

    def backoff_delay(self, attempt: int) -> float:
        """Delay in seconds after the given 0-based attempt fails."""
        return self.base_delay ** (attempt + 1)

    async def _run_once(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        if self.attempt_timeout:
            return await asyncio.wait_for(func(*args, **kwargs), timeout=self.attempt_timeout)
        return await func(*args, **kwargs)

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await func(*args, **kwargs), retrying RETRYABLE failures.

        Returns:
            Whatever func returns on the first successful attempt

        Raises:
            ClassifiedError: the last failure, carrying its classification
        """
        self.retry_count = 0

        for attempt in range(self.max_retries):
            self.retry_count = attempt
            try:
                return await self._run_once(func, *args, **kwargs)

            except Exception as e:
                classification = classify_error(e)
                error = self._as_classified(e, classification)

                if classification in NON_RETRYABLE:
                    logger.warning(
                        f"{classification.value} error, not retrying: {error.message}"
                    )
                    raise error

                if attempt >= self.max_retries - 1:
                    logger.error(
                        f"Giving up after {self.max_retries} attempts: {error.message}"
                    )
                    raise error

                delay = self.backoff_delay(attempt)
                logger.warning(
                    f"Retryable error (attempt {attempt + 1}/{self.max_retries}): "
                    f"{error.message}. Retrying in {delay}s"
                )
                await asyncio.sleep(delay)

        # max_retries >= 1, so the loop always returns or raises
        raise ClassifiedError("No attempts made", ErrorClassification.UNKNOWN)

    def _as_classified(
        self,
        error: Exception,
        classification: ErrorClassification,
    ) -> ClassifiedError:
        if isinstance(error, ClassifiedError) and error.classification == classification:
            return error

        if isinstance(error, asyncio.TimeoutError):
            message = f"Attempt timed out after {self.attempt_timeout}s"
        else:
            message = str(error) or error.__class__.__name__

        classified = ClassifiedError(message, classification)
        classified.__cause__ = error
        return classified

    async def run_strategy(self, strategy, url: str) -> StrategyResult:
        """
        Run strategy.attempt(url) under this controller.

        Args:
            strategy: Object with a name and an async attempt(url) -> StrategyResult
            url: Product URL

        Returns:
            StrategyResult; failures are converted, never raised
        """
        start = time.monotonic()

        try:
            result = await self.call(strategy.attempt, url)
        except ClassifiedError as e:
            meta = StrategyMeta(
                method=strategy.name,
                phase="error",
                duration_ms=int((time.monotonic() - start) * 1000),
                retry_count=self.retry_count,
            )
            return StrategyResult.failed(e.message, e.classification, meta)

        result.meta.duration_ms = int((time.monotonic() - start) * 1000)
        result.meta.retry_count = self.retry_count
        if result.meta.diagnostics is not None:
            result.meta.diagnostics.retry_count = self.retry_count

        return result
