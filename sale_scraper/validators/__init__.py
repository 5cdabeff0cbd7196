"""
Validators Module - URL safety checks run before any network access.
"""

from sale_scraper.validators.url import validate_url

__all__ = [
    "validate_url",
]
