"""
Tests for the non-AI extractors: JSON-LD, deterministic platform prices,
HTML section selection and fresh page prices.
"""

import json

from sale_scraper.extractors.deterministic import extract_deterministic_prices
from sale_scraper.extractors.html_sections import (
    build_bounded_content,
    extract_image_hint,
    extract_meta_content,
)
from sale_scraper.extractors.page_price import extract_fresh_price
from sale_scraper.extractors.structured_data import extract_from_json_ld, extract_image
from sale_scraper.types import ExtractionDiagnostics


def json_ld_page(data) -> str:
    return (
        "<html><head>"
        f'<script type="application/ld+json">{json.dumps(data)}</script>'
        "</head><body><h1>Product</h1></body></html>"
    )


WOOL_COAT = {
    "@context": "https://schema.org",
    "@type": "Product",
    "name": "Wool Coat",
    "image": "https://cdn.site.com/a.jpg",
    "brand": {"@type": "Brand", "name": "Acme"},
    "offers": {"@type": "AggregateOffer", "price": 131, "highPrice": 435},
}


class TestStructuredDataExtraction:
    """Tests for JSON-LD product extraction."""

    def test_complete_product(self):
        """Complete Product yields confidence 95 and a derived discount."""
        diagnostics = ExtractionDiagnostics()

        result = extract_from_json_ld(json_ld_page(WOOL_COAT), "https://site.com/coat", diagnostics)

        assert result.complete is True
        assert result.name == "Wool Coat"
        assert result.brand == "Acme"
        assert result.image_url == "https://cdn.site.com/a.jpg"
        assert result.sale_price == 131
        assert result.original_price == 435
        assert result.percent_off == 70
        assert result.confidence == 95
        assert diagnostics.phase_used == "json-ld"

    def test_graph_container(self):
        page = json_ld_page({"@graph": [{"@type": "WebPage"}, WOOL_COAT]})

        result = extract_from_json_ld(page, "https://site.com/coat")

        assert result.complete is True
        assert result.name == "Wool Coat"

    def test_top_level_array_and_type_list(self):
        item = dict(WOOL_COAT, **{"@type": ["Product", "Thing"]})
        page = json_ld_page([{"@type": "Organization"}, item])

        result = extract_from_json_ld(page, "https://site.com/coat")

        assert result.complete is True

    def test_inverted_prices_are_swapped(self):
        item = dict(WOOL_COAT, offers={"price": "435.00", "highPrice": "131.00"})

        result = extract_from_json_ld(json_ld_page(item), "https://site.com/coat")

        assert result.sale_price == 131
        assert result.original_price == 435

    def test_single_price_has_no_original(self):
        item = dict(WOOL_COAT, offers=[{"price": "99.50"}])

        result = extract_from_json_ld(json_ld_page(item), "https://site.com/coat")

        assert result.sale_price == 99.5
        assert result.original_price is None
        assert result.percent_off == 0

    def test_price_specification_compare_price(self):
        item = dict(
            WOOL_COAT,
            offers={"price": 40, "priceSpecification": {"price": 80}},
        )

        result = extract_from_json_ld(json_ld_page(item), "https://site.com/coat")

        assert result.original_price == 80
        assert result.percent_off == 50

    def test_relative_image_makes_product_incomplete(self):
        item = dict(WOOL_COAT, image="/images/a.jpg")

        result = extract_from_json_ld(json_ld_page(item), "https://site.com/coat")

        assert result.complete is False
        assert result.raw_items[0]["name"] == "Wool Coat"

    def test_missing_price_makes_product_incomplete(self):
        item = {k: v for k, v in WOOL_COAT.items() if k != "offers"}

        result = extract_from_json_ld(json_ld_page(item), "https://site.com/coat")

        assert result.complete is False

    def test_no_product_items(self):
        page = json_ld_page({"@type": "Organization", "name": "Site"})

        assert extract_from_json_ld(page, "https://site.com") is None

    def test_invalid_json_block_is_skipped(self):
        page = (
            '<script type="application/ld+json">{not json</script>'
            f'<script type="application/ld+json">{json.dumps(WOOL_COAT)}</script>'
        )

        result = extract_from_json_ld(page, "https://site.com/coat")

        assert result.complete is True

    def test_image_object_and_list(self):
        assert extract_image({"url": "https://cdn.site.com/x.jpg"}) == "https://cdn.site.com/x.jpg"
        assert extract_image(["https://cdn.site.com/1.jpg", "https://cdn.site.com/2.jpg"]) == (
            "https://cdn.site.com/1.jpg"
        )
        assert extract_image("//cdn.site.com/x.jpg") is None


class TestDeterministicExtraction:
    """Tests for Shopify JSON and microdata price pairs."""

    def test_shopify_product_json_in_cents(self):
        html = (
            '<script type="application/json" data-product-json>'
            '{"title": "Tee", "price": 2500, "compare_at_price": 5000}'
            "</script>"
        )
        diagnostics = ExtractionDiagnostics()

        prices = extract_deterministic_prices(html, diagnostics)

        assert prices.sale_price == 25.0
        assert prices.original_price == 50.0
        assert prices.percent_off == 50
        assert prices.source == "shopify-json"
        assert prices.complete is False
        assert diagnostics.price_found_in_html is True

    def test_shopify_variant_fallback(self):
        html = (
            '<script type="application/json" data-product-json>'
            '{"variants": [{"price": 1999, "compare_at_price": 3999}]}'
            "</script>"
        )

        prices = extract_deterministic_prices(html)

        assert prices.sale_price == 19.99
        assert prices.source == "shopify-json-variant"

    def test_microdata_pair(self):
        html = (
            '<span itemprop="price" content="59.00">$59</span>'
            '<span itemprop="highPrice" content="99.00">$99</span>'
        )

        prices = extract_deterministic_prices(html)

        assert prices.sale_price == 59.0
        assert prices.original_price == 99.0
        assert prices.source == "microdata"

    def test_no_discount_is_ignored(self):
        html = (
            '<script type="application/json" data-product-json>'
            '{"price": 2500, "compare_at_price": null}'
            "</script>"
        )

        assert extract_deterministic_prices(html) is None

    def test_class_name_heuristics_are_not_used(self):
        html = '<span class="sale-price">$40</span><s class="was-price">$80</s>'

        assert extract_deterministic_prices(html) is None


class TestHtmlSections:
    """Tests for oracle input selection."""

    def test_selects_price_and_heading_sections(self):
        html = (
            "<html><head><style>.x{color:red}</style></head><body>"
            + "<p>filler</p>" * 2000
            + '<div class="product-price">$49.99</div>'
            + "<h1>Linen Shirt</h1></body></html>"
        )

        content = build_bounded_content(html, 50000)

        assert "$49.99" in content
        assert "Linen Shirt" in content
        assert "filler" not in content

    def test_falls_back_to_raw_prefix(self):
        html = "<p>" + "x" * 100 + "</p>"

        assert build_bounded_content(html, 20) == html[:20]

    def test_content_is_bounded(self):
        html = '<div class="price">$1</div>' * 10000

        assert len(build_bounded_content(html, 500)) <= 500

    def test_image_hint_prefers_og_image(self):
        html = (
            '<meta name="twitter:image" content="https://cdn.site.com/t.jpg">'
            '<meta property="og:image" content="https://cdn.site.com/o.jpg">'
        )

        assert extract_image_hint(html) == ("https://cdn.site.com/o.jpg", "og:image")

    def test_image_hint_content_first(self):
        html = '<meta content="https://cdn.site.com/t.jpg" name="twitter:image">'

        assert extract_image_hint(html) == ("https://cdn.site.com/t.jpg", "twitter:image")

    def test_image_hint_ignores_relative(self):
        assert extract_image_hint('<meta property="og:image" content="/a.jpg">') == (None, None)

    def test_meta_content(self):
        html = '<meta property="og:title" content=" Linen Shirt ">'

        assert extract_meta_content(html, "og:title") == "Linen Shirt"
        assert extract_meta_content(html, "og:description") is None


class TestFreshPrice:
    """Tests for the page price lookup used by search-hybrid."""

    def test_from_json_ld(self):
        assert extract_fresh_price(json_ld_page(WOOL_COAT)) == (131.0, 435.0)

    def test_from_price_meta(self):
        html = '<meta property="og:price:amount" content="1,049.00">'

        assert extract_fresh_price(html) == (1049.0, None)

    def test_from_class_patterns_with_original(self):
        html = (
            '<span class="sale-price">$39.99</span>'
            '<span class="was-price">$79.99</span>'
        )

        assert extract_fresh_price(html) == (39.99, 79.99)

    def test_original_must_exceed_sale(self):
        html = (
            '<span class="sale-price">$39.99</span>'
            '<span class="was-price">$19.99</span>'
        )

        assert extract_fresh_price(html) == (39.99, None)

    def test_no_price(self):
        assert extract_fresh_price("<html><body>Nothing here</body></html>") is None
