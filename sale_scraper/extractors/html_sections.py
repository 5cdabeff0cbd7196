"""
HTML fragment selection for the AI extractor.

Full product pages routinely exceed a million characters. The oracle only
needs the parts likely to carry price, name and image signals, so those are
picked out with patterns and bounded to a fixed size.
"""

import re
from typing import List, Optional, Tuple

# Fragments likely to hold price/name/image signals, in priority order
SECTION_PATTERNS = [
    re.compile(r"<[^>]*class=\"[^\"]*price[^\"]*\"[^>]*>[\s\S]{0,500}</[^>]+>", re.IGNORECASE),
    re.compile(r"<[^>]*class=\"[^\"]*product[^\"]*\"[^>]*>[\s\S]{0,1000}</[^>]+>", re.IGNORECASE),
    re.compile(r"<script type=\"application/json\"[^>]*>[\s\S]{0,5000}</script>", re.IGNORECASE),
    re.compile(r"<meta[^>]*property=\"og:(?:title|image|price)[^\"]*\"[^>]*>", re.IGNORECASE),
    re.compile(r"<meta[^>]*(?:property|name)=[\"']twitter:[^\"']*[\"'][^>]*>", re.IGNORECASE),
    re.compile(r"<h1[^>]*>[\s\S]{0,200}</h1>", re.IGNORECASE),
    re.compile(r"<[^>]*itemprop=[\"'](?:price|name|image|highPrice|listPrice)[\"'][^>]*>", re.IGNORECASE),
    re.compile(r"<[^>]*data-testid[^>]*>[\s\S]{0,500}</[^>]+>", re.IGNORECASE),
    re.compile(r"<[^>]*data-test=[^>]*>[\s\S]{0,500}</[^>]+>", re.IGNORECASE),
]

# (property first, content first) pairs for each meta image key
IMAGE_META_PATTERNS: List[Tuple[str, Tuple[re.Pattern, re.Pattern]]] = [
    (
        key,
        (
            re.compile(
                rf"<meta[^>]*(?:property|name)=[\"']{key}[\"'][^>]*content=[\"']([^\"']+)[\"']",
                re.IGNORECASE,
            ),
            re.compile(
                rf"<meta[^>]*content=[\"']([^\"']+)[\"'][^>]*(?:property|name)=[\"']{key}[\"']",
                re.IGNORECASE,
            ),
        ),
    )
    for key in ("og:image", "twitter:image")
]

NOISE_PATTERNS = [
    re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE),
    re.compile(r"<svg\b[^<]*(?:(?!</svg>)<[^<]*)*</svg>", re.IGNORECASE),
    re.compile(r"<!--[\s\S]*?-->"),
]


def clean_html(fragment: str) -> str:
    """Strip styles, inline SVG and comments, and collapse whitespace."""
    for pattern in NOISE_PATTERNS:
        fragment = pattern.sub("", fragment)
    return re.sub(r"\s+", " ", fragment).strip()


def extract_relevant_sections(html: str) -> List[str]:
    """Return every fragment matched by SECTION_PATTERNS, in pattern order."""
    sections = []
    for pattern in SECTION_PATTERNS:
        for match in pattern.finditer(html):
            cleaned = clean_html(match.group(0))
            if cleaned:
                sections.append(cleaned)
    return sections


def build_bounded_content(html: str, max_length: int) -> str:
    """
    Build the oracle input from relevant sections, falling back to the raw
    HTML prefix when nothing matches. Never longer than max_length.
    """
    sections = extract_relevant_sections(html or "")
    if sections:
        return "\n".join(sections)[:max_length]
    return (html or "")[:max_length]


def extract_image_hint(html: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Find the og:image (then twitter:image) URL.

    Returns:
        (image_url, source_key), or (None, None) when no absolute URL is found
    """
    for key, patterns in IMAGE_META_PATTERNS:
        for pattern in patterns:
            match = pattern.search(html or "")
            if match and match.group(1).startswith("http"):
                return match.group(1), key
    return None, None


def extract_meta_content(html: str, key: str) -> Optional[str]:
    """Return the content of a <meta property|name=key> tag in either attribute order."""
    escaped = re.escape(key)
    for pattern in (
        rf"<meta[^>]*(?:property|name)=[\"']{escaped}[\"'][^>]*content=[\"']([^\"']*)[\"']",
        rf"<meta[^>]*content=[\"']([^\"']*)[\"'][^>]*(?:property|name)=[\"']{escaped}[\"']",
    ):
        match = re.search(pattern, html or "", re.IGNORECASE)
        if match:
            return match.group(1).strip()
    return None
