"""
Tests for the Confidence & Validation Engine.
"""

import pytest

from sale_scraper.errors import ExtractionError
from sale_scraper.extractors.deterministic import DeterministicPrices
from sale_scraper.services.confidence import (
    ConfidenceEngine,
    ExtractedFields,
    is_placeholder_image,
    price_in_html,
    price_text_forms,
)
from sale_scraper.types import ErrorClassification, ExtractionDiagnostics

URL = "https://shop.site.com/products/linen-shirt"
IMAGE = "https://cdn.site.com/shirt.jpg"


def make_fields(**overrides) -> ExtractedFields:
    values = {
        "name": "Linen Shirt",
        "image_url": IMAGE,
        "sale_price": 49.99,
        "original_price": None,
        "confidence": 90,
    }
    values.update(overrides)
    return ExtractedFields(**values)


class TestPriceTextForms:
    """Tests for literal price forms."""

    def test_forms_for_two_decimal_price(self):
        assert price_text_forms(49.99) == ["49.99", "4999", "50"]

    def test_thousands_separator(self):
        assert "1,299.99" in price_text_forms(1299.99)

    def test_price_in_html(self):
        assert price_in_html(49.99, "<span>$49.99</span>") is True
        assert price_in_html(49.99, '{"price": 4999}') is True
        assert price_in_html(49.99, "<span>$12.00</span>") is False


class TestPlaceholderImage:
    """Tests for placeholder image detection."""

    def test_known_hosts(self):
        assert is_placeholder_image("https://via.placeholder.com/300") is True
        assert is_placeholder_image("https://placehold.co/600x400") is True
        assert is_placeholder_image("https://dummyimage.com/300") is True

    def test_real_image(self):
        assert is_placeholder_image(IMAGE) is False
        assert is_placeholder_image(None) is False


class TestConfidenceEngine:
    """Tests for ConfidenceEngine.evaluate."""

    def test_price_found_keeps_confidence(self):
        engine = ConfidenceEngine(min_confidence=50)

        product = engine.evaluate(make_fields(), "<span>$49.99</span>", URL)

        assert product.confidence == 90
        assert product.sale_price == 49.99
        assert product.source_url == URL

    def test_price_not_in_html_costs_exactly_twenty(self):
        """A price with none of its literal forms in the HTML loses exactly 20."""
        engine = ConfidenceEngine(min_confidence=50)
        diagnostics = ExtractionDiagnostics()

        product = engine.evaluate(
            make_fields(confidence=90),
            "<html><body><p>Price: $12.00</p></body></html>",
            URL,
            diagnostics=diagnostics,
        )

        assert product.confidence == 70
        assert diagnostics.price_found_in_html is False
        assert diagnostics.checked_formats == ["49.99", "4999", "50"]

    def test_hallucination_can_push_below_minimum(self):
        engine = ConfidenceEngine(min_confidence=50)

        with pytest.raises(ExtractionError, match=r"Low confidence \(40%\)") as exc_info:
            engine.evaluate(make_fields(confidence=60), "<p>nothing</p>", URL)

        assert exc_info.value.classification == ErrorClassification.FATAL

    def test_reasonable_discount_bonus(self):
        engine = ConfidenceEngine(min_confidence=50)

        product = engine.evaluate(
            make_fields(original_price=99.99),
            "<span>$49.99</span><s>$99.99</s>",
            URL,
        )

        assert product.original_price == 99.99
        assert product.percent_off == 50
        assert product.confidence == 93

    def test_original_below_sale_is_nulled(self):
        """Original 50 / sale 80: original dropped, penalised, no discount."""
        engine = ConfidenceEngine(min_confidence=50)

        product = engine.evaluate(
            make_fields(sale_price=80.0, original_price=50.0, confidence=90),
            "<span>$80.00</span>",
            URL,
        )

        assert product.original_price is None
        assert product.percent_off == 0
        assert product.confidence <= 70

    def test_invalid_original_is_nulled(self):
        engine = ConfidenceEngine(min_confidence=50)

        product = engine.evaluate(
            make_fields(original_price="N/A", confidence=90),
            "<span>$49.99</span>",
            URL,
        )

        assert product.original_price is None
        assert product.confidence == 70

    def test_price_penalty_floor(self):
        engine = ConfidenceEngine(min_confidence=0)

        product = engine.evaluate(
            make_fields(sale_price=80.0, original_price=50.0, confidence=40),
            "<span>80.00</span>",
            URL,
        )

        assert product.confidence == 30

    @pytest.mark.parametrize("sale_price", [0, -5, 50001, "49.99", None, True])
    def test_invalid_sale_price_is_fatal(self, sale_price):
        engine = ConfidenceEngine(min_confidence=50)

        with pytest.raises(ExtractionError, match="Sale price out of reasonable range"):
            engine.evaluate(make_fields(sale_price=sale_price), "<p></p>", URL)

    def test_deterministic_prices_override(self):
        """Deterministic prices replace the extracted ones and skip the HTML check."""
        engine = ConfidenceEngine(min_confidence=50)
        deterministic = DeterministicPrices(
            sale_price=25.0,
            original_price=50.0,
            percent_off=50,
            source="shopify-json",
        )

        product = engine.evaluate(
            make_fields(sale_price=49.99, confidence=60),
            "<p>no literal prices</p>",
            URL,
            deterministic=deterministic,
        )

        assert product.sale_price == 25.0
        assert product.original_price == 50.0
        assert product.confidence == 88

    def test_confidence_clamped_to_100(self):
        engine = ConfidenceEngine(min_confidence=50)

        product = engine.evaluate(
            make_fields(original_price=99.99, confidence=99),
            "<span>$49.99</span>",
            URL,
        )

        assert product.confidence == 100
