"""
AI Extractor for product pages.

Sends a bounded selection of page HTML (plus any partial JSON-LD) to the
language-model oracle and turns its JSON reply into a ProductCandidate.

Features:
- Relevant-section selection bounded to AI_MAX_CONTENT_LENGTH
- og:image / twitter:image pre-extraction passed to the oracle as ground truth
- Deterministic price pair passed as ground truth and enforced afterwards
- Robust JSON parsing with markdown handling
- All price/confidence validation delegated to the ConfidenceEngine
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from sale_scraper import settings
from sale_scraper.errors import ExtractionError
from sale_scraper.extractors.deterministic import DeterministicPrices
from sale_scraper.extractors.extraction_prompts import (
    DETERMINISTIC_PRICES_HINT,
    IMAGE_HINT,
    PAGE_CONTENT_HEADER,
    PRODUCT_EXTRACTION_SYSTEM_PROMPT,
    STRUCTURED_DATA_HEADER,
)
from sale_scraper.extractors.html_sections import (
    build_bounded_content,
    extract_image_hint,
)
from sale_scraper.extractors.structured_data import StructuredDataResult
from sale_scraper.services.confidence import (
    ConfidenceEngine,
    ExtractedFields,
    is_placeholder_image,
)
from sale_scraper.types import ExtractionDiagnostics, ProductCandidate

logger = logging.getLogger(__name__)

DEFAULT_ORACLE_CONFIDENCE = 50
STRUCTURED_NAME_BONUS = 10
META_IMAGE_BONUS = 5

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def parse_price_value(value: Any) -> Optional[float]:
    """Numbers pass through; strings like "$1,299.99" are parsed; else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = re.sub(r"[^\d.]", "", str(value))
    try:
        return float(cleaned)
    except ValueError:
        return None


class AIExtractor:
    """
    Oracle-backed product extractor.

    Uses one oracle call per extract(). The oracle is any object with an
    async complete(system_prompt, user_prompt) -> str method.
    """

    def __init__(
        self,
        oracle,
        engine: Optional[ConfidenceEngine] = None,
        max_content_length: Optional[int] = None,
    ):
        """
        Initialize with an oracle client.

        Args:
            oracle: Oracle client (see services.ai_client.OracleClient)
            engine: Confidence engine (default ConfidenceEngine())
            max_content_length: Bound on page content sent to the oracle
                (defaults to settings.AI_MAX_CONTENT_LENGTH)
        """
        self.oracle = oracle
        self.engine = engine or ConfidenceEngine()
        self.max_content_length = max_content_length or getattr(
            settings, "AI_MAX_CONTENT_LENGTH", 50000
        )

    async def extract(
        self,
        html: str,
        url: str,
        structured: Optional[StructuredDataResult] = None,
        deterministic: Optional[DeterministicPrices] = None,
        diagnostics: Optional[ExtractionDiagnostics] = None,
    ) -> ProductCandidate:
        """
        Extract a product from page HTML with the oracle.

        Args:
            html: Raw page HTML
            url: Page URL
            structured: Partial JSON-LD result to reuse, if any
            deterministic: Trusted price pair from page markup, if any
            diagnostics: Optional diagnostics to annotate

        Returns:
            Validated ProductCandidate

        Raises:
            ExtractionError: FATAL on unusable input, reply or confidence
        """
        if diagnostics is None:
            diagnostics = ExtractionDiagnostics()

        image_hint, image_key = extract_image_hint(html)
        if image_hint:
            diagnostics.image_pre_extracted = True
            logger.debug(f"Pre-extracted image from {image_key}: {image_hint}")

        system_prompt = self.build_system_prompt(image_hint, deterministic)
        user_prompt = self.build_user_prompt(html, structured)

        response = await self.oracle.complete(system_prompt, user_prompt)
        data = self.parse_response(response)

        fields = self._to_fields(data, structured, image_hint, image_key, diagnostics)

        return self.engine.evaluate(
            fields,
            html,
            url,
            deterministic=deterministic,
            diagnostics=diagnostics,
        )

    def build_system_prompt(
        self,
        image_hint: Optional[str] = None,
        deterministic: Optional[DeterministicPrices] = None,
    ) -> str:
        prompt = PRODUCT_EXTRACTION_SYSTEM_PROMPT
        if image_hint:
            prompt += IMAGE_HINT.format(image_url=image_hint)
        if deterministic is not None:
            prompt += DETERMINISTIC_PRICES_HINT.format(
                sale_price=deterministic.sale_price,
                original_price=deterministic.original_price,
            )
        return prompt

    def build_user_prompt(
        self,
        html: str,
        structured: Optional[StructuredDataResult] = None,
    ) -> str:
        """
        Build the bounded page content for the oracle.

        Partial JSON-LD goes first, then the selected HTML sections. The
        whole prompt never exceeds max_content_length characters.

        Raises:
            ExtractionError: when there is nothing to send
        """
        prefix = ""
        if structured is not None and structured.raw_items:
            prefix = (
                STRUCTURED_DATA_HEADER
                + json.dumps(structured.raw_items[0], default=str)[: self.max_content_length // 2]
                + "\n\n"
            )

        prefix += PAGE_CONTENT_HEADER
        remaining = max(0, self.max_content_length - len(prefix))
        content = build_bounded_content(html or "", remaining)

        if not content.strip() and structured is None:
            raise ExtractionError("No page content to extract from")

        return (prefix + content)[: self.max_content_length]

    def parse_response(self, response: Any) -> Dict[str, Any]:
        """
        Parse the oracle reply into a dict.

        Handles dict passthrough, plain JSON and JSON wrapped in markdown
        code blocks.

        Raises:
            ExtractionError: on unparseable replies or an explicit error field
        """
        if isinstance(response, dict):
            data = response
        else:
            response_str = str(response or "")
            fence_match = CODE_FENCE_PATTERN.search(response_str)
            if fence_match:
                response_str = fence_match.group(1)

            try:
                data = json.loads(response_str.strip())
            except json.JSONDecodeError as e:
                logger.warning(
                    f"Failed to parse AI response as JSON: {response_str[:200]}... "
                    f"Error: {e}"
                )
                raise ExtractionError("Failed to parse AI response")

        if not isinstance(data, dict):
            raise ExtractionError("Failed to parse AI response")

        if data.get("error"):
            logger.warning(f"AI reported extraction error: {data['error']}")
            raise ExtractionError(str(data["error"]))

        return data

    def _to_fields(
        self,
        data: Dict[str, Any],
        structured: Optional[StructuredDataResult],
        image_hint: Optional[str],
        image_key: Optional[str],
        diagnostics: ExtractionDiagnostics,
    ) -> ExtractedFields:
        confidence = data.get("confidence")
        if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
            confidence = DEFAULT_ORACLE_CONFIDENCE
        confidence = int(confidence)

        name = data.get("name")
        brand = data.get("brand")
        image_url = data.get("imageUrl") or data.get("image_url")
        raw_sale = data.get("salePrice", data.get("sale_price"))
        raw_original = data.get("originalPrice", data.get("original_price"))

        # The oracle's own image is judged before any field is replaced
        if is_placeholder_image(image_url):
            logger.warning(f"AI returned placeholder image: {image_url}")
            raise ExtractionError("AI returned placeholder image URL")

        structured_item = structured.raw_items[0] if structured and structured.raw_items else {}
        structured_name = structured_item.get("name") if isinstance(structured_item, dict) else None
        if isinstance(structured_name, str) and structured_name.strip():
            name = structured_name.strip()
            confidence += STRUCTURED_NAME_BONUS
            diagnostics.adjust(f"+{STRUCTURED_NAME_BONUS}: name from structured data")

        if image_hint:
            image_url = image_hint
            confidence += META_IMAGE_BONUS
            diagnostics.image_source = image_key
            diagnostics.adjust(f"+{META_IMAGE_BONUS}: image from {image_key}")
        elif image_url:
            diagnostics.image_source = "ai"

        if not name or not image_url or raw_sale in (None, ""):
            raise ExtractionError("Missing required product fields")

        if is_placeholder_image(image_url):
            logger.warning(f"Page {image_key} is a placeholder image: {image_url}")
            raise ExtractionError(f"Page {image_key} is a placeholder image URL")

        sale_price = parse_price_value(raw_sale)
        if sale_price is None:
            raise ExtractionError(f"Invalid sale price from AI: {raw_sale}")

        original_price = None
        if raw_original not in (None, ""):
            # Unparseable originals reach the engine as-is and are nulled there
            original_price = parse_price_value(raw_original)
            if original_price is None:
                original_price = raw_original

        logger.info(
            f"AI extracted: {name} sale={sale_price} original={original_price} "
            f"(confidence: {confidence})"
        )

        return ExtractedFields(
            name=str(name),
            brand=brand if isinstance(brand, str) and brand.strip() else None,
            image_url=image_url,
            sale_price=sale_price,
            original_price=original_price,
            confidence=confidence,
        )
