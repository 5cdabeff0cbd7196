"""
Shopping-index product resolver.

Components:
- QueryBuilder: ranked query strategies for a product URL
- ShoppingSearchClient: results pages through the rendering proxy
- ShoppingListingParser: listing extraction from results HTML
- ProductResolver: strategy loop with domain matching
"""

from .queries import QueryBuilder
from .parsers import ShoppingListing, ShoppingListingParser, extract_brand_from_title
from .client import ShoppingSearchClient
from .resolver import ProductResolver, ResolvedProduct

__all__ = [
    "QueryBuilder",
    "ShoppingListing",
    "ShoppingListingParser",
    "extract_brand_from_title",
    "ShoppingSearchClient",
    "ProductResolver",
    "ResolvedProduct",
]
