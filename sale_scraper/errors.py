"""
Error taxonomy and classifier.

Failures are raised as ClassifiedError subclasses carrying their
classification from the point of detection. Anything else (httpx errors,
timeouts, library exceptions) is classified by classify_error() using the
HTTP status rule first and message patterns second.

Classification rules:
- HTTP 5xx -> RETRYABLE
- HTTP 401/403/429 -> BLOCKING
- HTTP 404 and other 4xx -> FATAL
- Timeouts, connection resets, generic network errors -> RETRYABLE
- CAPTCHA / Cloudflare / rate limit / access denied messages -> BLOCKING
- Invalid URL / missing fields / placeholder image messages -> FATAL
- Anything else -> RETRYABLE (optimistic default)
"""

import asyncio
import logging
from typing import Iterable, Optional

import httpx

from .types import ErrorClassification

logger = logging.getLogger(__name__)


RETRYABLE_STATUS_CODES = {500, 502, 503, 504}
BLOCKING_STATUS_CODES = {401, 403, 429}

RETRYABLE_PATTERNS = [
    "timeout",
    "timed out",
    "econnreset",
    "econnrefused",
    "connection reset",
    "network",
    "socket hang up",
]

BLOCKING_PATTERNS = [
    "captcha",
    "cloudflare",
    "access denied",
    "forbidden",
    "rate limit",
]

FATAL_PATTERNS = [
    "invalid url",
    "private urls not allowed",
    "missing required",
    "placeholder image",
    "low confidence",
]


class ClassifiedError(Exception):
    """An error whose handling has been decided where it was detected."""

    classification = ErrorClassification.UNKNOWN

    def __init__(
        self,
        message: str,
        classification: Optional[ErrorClassification] = None,
    ):
        super().__init__(message)
        self.message = message
        if classification is not None:
            self.classification = classification


class InvalidURLError(ClassifiedError):
    """URL rejected before any network access."""

    classification = ErrorClassification.FATAL


class ExtractionError(ClassifiedError):
    """Page or oracle response is unusable for this URL."""

    classification = ErrorClassification.FATAL


class BlockedError(ClassifiedError):
    """Domain is actively refusing automated access."""

    classification = ErrorClassification.BLOCKING


class HTTPStatusError(ClassifiedError):
    """Non-success HTTP response, classified by status code."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__(
            message or f"HTTP {status_code}",
            classify_http_status(status_code),
        )
        self.status_code = status_code


def classify_http_status(status_code: int) -> ErrorClassification:
    """Map an HTTP status code to a classification."""
    if status_code in RETRYABLE_STATUS_CODES or 500 <= status_code < 600:
        return ErrorClassification.RETRYABLE

    if status_code in BLOCKING_STATUS_CODES:
        return ErrorClassification.BLOCKING

    if 400 <= status_code < 500:
        return ErrorClassification.FATAL

    return ErrorClassification.RETRYABLE


def classify_message(message: str) -> ErrorClassification:
    """Classify a free-text error message."""
    message_lower = (message or "").lower()

    for pattern in RETRYABLE_PATTERNS:
        if pattern in message_lower:
            return ErrorClassification.RETRYABLE

    for pattern in BLOCKING_PATTERNS:
        if pattern in message_lower:
            return ErrorClassification.BLOCKING

    for pattern in FATAL_PATTERNS:
        if pattern in message_lower:
            return ErrorClassification.FATAL

    return ErrorClassification.RETRYABLE


def classify_error(error: BaseException) -> ErrorClassification:
    """
    Classify any exception raised by a strategy.

    Args:
        error: Exception raised while extracting

    Returns:
        ErrorClassification; UNKNOWN is never returned for a real exception
    """
    if isinstance(error, ClassifiedError):
        if error.classification == ErrorClassification.UNKNOWN:
            return classify_message(error.message)
        return error.classification

    if isinstance(error, httpx.HTTPStatusError):
        return classify_http_status(error.response.status_code)

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return ErrorClassification.RETRYABLE

    if isinstance(error, (httpx.NetworkError, ConnectionError)):
        return ErrorClassification.RETRYABLE

    return classify_message(str(error))


def merge_classifications(
    classifications: Iterable[Optional[ErrorClassification]],
) -> ErrorClassification:
    """
    Merge the classifications of every failed tier.

    RETRYABLE wins if any tier was retryable (UNKNOWN counts as retryable).
    A mix of FATAL and BLOCKING is ambiguous and also comes out RETRYABLE,
    so a domain is not written off as blocked on partial evidence. BLOCKING
    and FATAL are only returned when every tier agrees.
    """
    seen = {c or ErrorClassification.UNKNOWN for c in classifications}

    if not seen:
        return ErrorClassification.UNKNOWN

    if ErrorClassification.RETRYABLE in seen or ErrorClassification.UNKNOWN in seen:
        return ErrorClassification.RETRYABLE

    if seen == {ErrorClassification.BLOCKING}:
        return ErrorClassification.BLOCKING

    if seen == {ErrorClassification.FATAL}:
        return ErrorClassification.FATAL

    return ErrorClassification.RETRYABLE
