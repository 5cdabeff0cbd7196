"""
Product Resolver - identify a product page's listing in the shopping index.

Runs the query strategies from QueryBuilder in order. For each one the
results page is searched and parsed, and a listing from the page's own
domain is preferred. When nothing matches the domain, the first listing is
only trusted for the most specific strategy.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sale_scraper.discovery.shopping.client import ShoppingSearchClient
from sale_scraper.discovery.shopping.parsers import (
    ShoppingListing,
    ShoppingListingParser,
    extract_brand_from_title,
)
from sale_scraper.discovery.shopping.queries import QueryBuilder, bare_domain
from sale_scraper.errors import ClassifiedError, classify_error
from sale_scraper.types import ErrorClassification, QueryStrategy

logger = logging.getLogger(__name__)


@dataclass
class ResolvedProduct:
    """Product identity found in the shopping index."""

    name: str
    image_url: Optional[str]
    link: str
    brand: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = None
    source: str = ""
    source_tag: str = ""
    domain_match: bool = False


class ProductResolver:
    """
    Resolve a product URL to a shopping listing.

    Usage:
        resolver = ProductResolver()
        resolved = await resolver.resolve(url, html)
    """

    def __init__(
        self,
        client: Optional[ShoppingSearchClient] = None,
        parser: Optional[ShoppingListingParser] = None,
        query_builder: Optional[QueryBuilder] = None,
    ):
        self.client = client or ShoppingSearchClient()
        self.parser = parser or ShoppingListingParser()
        self.query_builder = query_builder or QueryBuilder()

    @property
    def is_configured(self) -> bool:
        return getattr(self.client, "is_configured", True)

    async def resolve(self, url: str, html: Optional[str] = None) -> Optional[ResolvedProduct]:
        """
        Find the shopping listing for a product URL.

        Args:
            url: Product page URL
            html: Page HTML, if already fetched

        Returns:
            ResolvedProduct, or None when every strategy is exhausted
        """
        if not self.is_configured:
            logger.debug("Shopping search not configured, skipping resolver")
            return None

        domain = bare_domain(url)
        strategies = self.query_builder.build(url, html)

        for index, strategy in enumerate(strategies):
            try:
                results_html = await self.client.search(strategy.query_text)
            except ClassifiedError as e:
                logger.warning(
                    f"Shopping search failed for {strategy.source_tag} query: {e.message}"
                )
                if e.classification == ErrorClassification.BLOCKING:
                    # Same account, same answer for every remaining query
                    return None
                continue
            except Exception as e:
                logger.warning(
                    f"Shopping search error for {strategy.source_tag} query "
                    f"({classify_error(e).value}): {e}"
                )
                continue

            listings = self.parser.parse(results_html)
            logger.debug(
                f"Strategy {strategy.source_tag} returned {len(listings)} listings"
            )

            listing = self.select_listing(listings, domain, strategy, is_first=index == 0)
            if listing is not None:
                return self._to_resolved(listing, strategy, domain)

        logger.info(f"No shopping listing found for {url}")
        return None

    def select_listing(
        self,
        listings: List[ShoppingListing],
        domain: str,
        strategy: QueryStrategy,
        is_first: bool = False,
    ) -> Optional[ShoppingListing]:
        """
        Pick the listing to trust for one strategy.

        Prefers a listing whose link or merchant matches the domain. Falls
        back to the first listing only for the first (most specific) strategy.
        """
        usable = [listing for listing in listings if listing.title and listing.image_url]
        if not usable:
            return None

        for listing in usable:
            if self.matches_domain(listing, domain):
                return listing

        if is_first:
            logger.info(
                f"No {domain} listing for {strategy.source_tag} query, "
                f"accepting first result"
            )
            return usable[0]

        return None

    def matches_domain(self, listing: ShoppingListing, domain: str) -> bool:
        if not domain:
            return False
        if domain in (listing.link or "").lower():
            return True
        site_name = domain.split(".")[0]
        return bool(site_name) and site_name in (listing.source or "").lower()

    def _to_resolved(
        self,
        listing: ShoppingListing,
        strategy: QueryStrategy,
        domain: str,
    ) -> ResolvedProduct:
        logger.info(f"Shopping listing found via {strategy.source_tag}: {listing.title}")
        return ResolvedProduct(
            name=listing.title,
            brand=extract_brand_from_title(listing.title),
            image_url=listing.image_url,
            link=listing.link,
            price=listing.price,
            original_price=listing.original_price,
            source=listing.source,
            source_tag=strategy.source_tag,
            domain_match=self.matches_domain(listing, domain),
        )
