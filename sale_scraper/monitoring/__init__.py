"""
Monitoring for product extraction.

- Sentry breadcrumbs per tier attempt
- Sentry message on total extraction failure
"""

from .sentry_integration import (
    add_extraction_breadcrumb,
    capture_extraction_failure,
    filter_sensitive_data,
)

__all__ = [
    "add_extraction_breadcrumb",
    "capture_extraction_failure",
    "filter_sensitive_data",
]
