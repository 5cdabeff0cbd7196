"""
Command line entry point.

Usage:
    python -m sale_scraper https://shop.example.com/products/widget
    python -m sale_scraper https://shop.example.com/products/widget --json
    python -m sale_scraper https://shop.example.com/products/widget --test-metadata --max-retries 1
"""

import argparse
import asyncio
import json
import sys

from sale_scraper import settings
from sale_scraper.services.extraction_orchestrator import extract_product


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sale_scraper",
        description="Extract sale product details from a product page URL",
    )
    parser.add_argument(
        "url",
        help="Product page URL",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON",
    )
    parser.add_argument(
        "--test-metadata",
        action="store_true",
        help="Include per-tier diagnostics in the result",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=None,
        help="Attempts per tier (default: CRAWLER_MAX_RETRIES)",
    )
    return parser


def format_result(result) -> str:
    """Human-readable summary of an ExtractionResult."""
    if not result.success:
        classification = (
            result.error_classification.value if result.error_classification else "UNKNOWN"
        )
        return f"FAILED ({classification}): {result.error}"

    product = result.product
    lines = [
        f"Name:        {product.name}",
        f"Brand:       {product.brand or '-'}",
        f"Image:       {product.image_url}",
        f"Sale price:  {product.sale_price:.2f}",
    ]
    if product.original_price:
        lines.append(
            f"Original:    {product.original_price:.2f} ({product.percent_off}% off)"
        )
    lines.append(
        f"Method:      {result.extraction_method} "
        f"(confidence {result.confidence}%, {result.total_duration_ms}ms)"
    )
    return "\n".join(lines)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings.configure_logging()

    result = asyncio.run(
        extract_product(
            args.url,
            enable_test_metadata=args.test_metadata,
            max_retries=args.max_retries,
        )
    )

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(format_result(result))

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
