"""
Sentry error tracking for product extraction.

- Breadcrumbs for each tier attempt (strategy, URL, outcome)
- Captured message when every tier fails
- Sensitive values (API keys, tokens, cookies) filtered from event data

Sentry itself is initialised in settings when SENTRY_DSN is set; without a
DSN these calls are no-ops.

Usage:
    from sale_scraper.monitoring import add_extraction_breadcrumb

    add_extraction_breadcrumb(
        strategy="fast",
        url=url,
        message="Tier failed",
        level="warning",
    )
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

# Sensitive fields to filter from Sentry events
SENSITIVE_FIELDS = {
    "cookies",
    "cookie",
    "api_key",
    "apikey",
    "api-key",
    "authorization",
    "auth",
    "password",
    "secret",
    "token",
    "x-api-key",
}


def filter_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Replace values for keys that look sensitive, recursing into nested dicts.

    Args:
        data: Dictionary potentially containing sensitive data

    Returns:
        Dictionary with sensitive values replaced
    """
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        key_lower = str(key).lower()

        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
            filtered[key] = "[Filtered]"
        elif isinstance(value, dict):
            filtered[key] = filter_sensitive_data(value)
        else:
            filtered[key] = value

    return filtered


def add_extraction_breadcrumb(
    strategy: str,
    url: str,
    message: str = "Extraction attempt",
    level: str = "info",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Add a breadcrumb for one tier attempt.

    Args:
        strategy: Strategy name (fast, proxy, headless)
        url: Product URL
        message: Description of the operation
        level: Log level (info, warning, error)
        extra_data: Additional context data (filtered)
    """
    breadcrumb_data = {
        "strategy": strategy,
        "url": url,
    }

    if extra_data:
        breadcrumb_data.update(filter_sensitive_data(extra_data))

    sentry_sdk.add_breadcrumb(
        category="extraction",
        message=message,
        level=level,
        data=breadcrumb_data,
    )


def capture_extraction_failure(
    url: str,
    error: str,
    classification: str,
    extra_context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Report an extraction where every tier failed.

    Args:
        url: Product URL
        error: Combined error message
        classification: Merged error classification value
        extra_context: Additional context (filtered)
    """
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("extraction.classification", classification)
        scope.set_extra("product_url", url)
        if extra_context:
            scope.set_extra("extraction_context", filter_sensitive_data(extra_context))

        sentry_sdk.capture_message(f"Extraction failed: {error}", level="warning")

    logger.debug(f"Reported extraction failure for {url} to Sentry")
