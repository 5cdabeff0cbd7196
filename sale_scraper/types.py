"""
Data types for product extraction.

Every record here is allocated fresh for one extract_product() call and
discarded afterwards; nothing is persisted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorClassification(str, Enum):
    """
    How a failure should be handled.

    - RETRYABLE: transient (network, 5xx, timeouts); retry the same strategy
    - BLOCKING: the domain is refusing automated access (401/403/429, CAPTCHA)
    - FATAL: this URL or response is unusable (404, bad data, low confidence)
    - UNKNOWN: not determined; treated as RETRYABLE
    """

    RETRYABLE = "RETRYABLE"
    BLOCKING = "BLOCKING"
    FATAL = "FATAL"
    UNKNOWN = "UNKNOWN"


def compute_percent_off(
    original_price: Optional[float], sale_price: Optional[float]
) -> int:
    """Whole-number discount, 0 when there is no valid original price."""
    if not original_price or sale_price is None or original_price <= sale_price:
        return 0
    return int(round((original_price - sale_price) / original_price * 100))


@dataclass
class ProductCandidate:
    """
    A product extracted from a page.

    original_price, when set, is always greater than sale_price, and
    percent_off is always derived from the two. Use build() rather than the
    raw constructor to get that guarantee.
    """

    name: str
    image_url: str
    sale_price: float
    source_url: str
    brand: Optional[str] = None
    original_price: Optional[float] = None
    percent_off: int = 0
    confidence: int = 0

    @classmethod
    def build(
        cls,
        name: str,
        image_url: str,
        sale_price: float,
        source_url: str,
        original_price: Optional[float] = None,
        brand: Optional[str] = None,
        confidence: int = 0,
    ) -> "ProductCandidate":
        """Create a candidate, dropping an original price that is not higher."""
        if original_price is not None and original_price <= sale_price:
            original_price = None

        return cls(
            name=name,
            image_url=image_url,
            sale_price=sale_price,
            source_url=source_url,
            brand=brand or None,
            original_price=original_price,
            percent_off=compute_percent_off(original_price, sale_price),
            confidence=int(confidence),
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.name and self.image_url and self.sale_price)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "brand": self.brand,
            "image_url": self.image_url,
            "original_price": self.original_price,
            "sale_price": self.sale_price,
            "percent_off": self.percent_off,
            "source_url": self.source_url,
            "confidence": self.confidence,
        }


@dataclass
class ExtractionDiagnostics:
    """
    Per-strategy diagnostics, returned only when test metadata is enabled.

    Records which phase produced the product, how prices were validated and
    every confidence adjustment applied along the way.
    """

    phase_used: Optional[str] = None
    price_found_in_html: bool = False
    checked_formats: List[str] = field(default_factory=list)
    image_source: Optional[str] = None
    image_pre_extracted: bool = False
    confidence_adjustments: List[str] = field(default_factory=list)
    retry_count: int = 0

    def adjust(self, note: str) -> None:
        self.confidence_adjustments.append(note)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase_used": self.phase_used,
            "price_validation": {
                "found_in_html": self.price_found_in_html,
                "checked_formats": self.checked_formats,
            },
            "image_extraction": {
                "source": self.image_source,
                "pre_extracted": self.image_pre_extracted,
            },
            "confidence_adjustments": self.confidence_adjustments,
            "retry_count": self.retry_count,
        }


@dataclass
class StrategyMeta:
    """Metadata attached to every strategy outcome."""

    method: str
    phase: str = ""
    confidence: int = 0
    duration_ms: int = 0
    retry_count: int = 0
    diagnostics: Optional[ExtractionDiagnostics] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "phase": self.phase,
            "confidence": self.confidence,
            "duration_ms": self.duration_ms,
            "retry_count": self.retry_count,
            "diagnostics": self.diagnostics.to_dict() if self.diagnostics else None,
        }


@dataclass
class StrategyResult:
    """
    Outcome of one strategy (tier) call.

    A failed result always carries the classification decided where the
    failure was detected.
    """

    success: bool
    meta: StrategyMeta
    product: Optional[ProductCandidate] = None
    error: Optional[str] = None
    classification: Optional[ErrorClassification] = None

    @classmethod
    def ok(cls, product: ProductCandidate, meta: StrategyMeta) -> "StrategyResult":
        meta.confidence = product.confidence
        return cls(success=True, product=product, meta=meta)

    @classmethod
    def failed(
        cls,
        error: str,
        classification: ErrorClassification,
        meta: StrategyMeta,
    ) -> "StrategyResult":
        meta.confidence = 0
        return cls(
            success=False,
            error=error,
            classification=classification,
            meta=meta,
        )

    @property
    def confidence(self) -> int:
        return self.meta.confidence

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "product": self.product.to_dict() if self.product else None,
            "error": self.error,
            "classification": self.classification.value if self.classification else None,
            "meta": self.meta.to_dict(),
        }


@dataclass
class ExtractionAttempt:
    """One entry in the per-call attempt log."""

    strategy_name: str
    outcome: str  # success | failed | error | skipped
    confidence: int = 0
    duration_ms: int = 0
    phase: Optional[str] = None
    error_message: Optional[str] = None
    classification: Optional[ErrorClassification] = None
    retry_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy_name": self.strategy_name,
            "outcome": self.outcome,
            "confidence": self.confidence,
            "duration_ms": self.duration_ms,
            "phase": self.phase,
            "error_message": self.error_message,
            "classification": self.classification.value if self.classification else None,
            "retry_count": self.retry_count,
        }


@dataclass
class QueryStrategy:
    """A shopping-index query, ordered most specific first."""

    query_text: str
    source_tag: str
    exact_match: bool = False


@dataclass
class ExtractionResult:
    """Structured result handed back to the caller; never an exception."""

    success: bool
    extraction_method: str = "none"
    confidence: int = 0
    total_duration_ms: int = 0
    attempts: List[ExtractionAttempt] = field(default_factory=list)
    product: Optional[ProductCandidate] = None
    error: Optional[str] = None
    error_classification: Optional[ErrorClassification] = None
    diagnostics: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "product": self.product.to_dict() if self.product else None,
            "error": self.error,
            "error_classification": (
                self.error_classification.value if self.error_classification else None
            ),
            "meta": {
                "extraction_method": self.extraction_method,
                "confidence": self.confidence,
                "total_duration_ms": self.total_duration_ms,
                "attempts": [a.to_dict() for a in self.attempts],
                "diagnostics": self.diagnostics,
            },
        }
