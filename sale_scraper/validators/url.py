"""
URL validation.

Rejects URLs that must never be fetched: non-http(s) schemes, loopback and
private network hosts (IPv4 and IPv6 literals) and anything that does not
parse. Runs before any network access and has no side effects.

IPv4 hosts are read the way browsers and the OS resolver read them, so
short (127.1), decimal (2130706433), hex (0x7f000001), octal (0177.0.0.1)
and trailing-dot (10.0.0.5.) spellings are checked as the address they name.
"""

import ipaddress
import re
from typing import Optional
from urllib.parse import urlparse

from sale_scraper.errors import InvalidURLError

BLOCKED_HOSTS = {"localhost", "localhost.localdomain", "0.0.0.0"}

NUMERIC_LABEL_PATTERN = re.compile(r"^(?:[0-9]+|0x[0-9a-f]*)$")


def _is_private_ipv4(a: int, b: int) -> bool:
    return (
        a == 10
        or a == 127
        or (a == 172 and 16 <= b <= 31)
        or (a == 192 and b == 168)
        or (a == 169 and b == 254)
    )


def _parse_ipv4_part(part: str) -> Optional[int]:
    if not part:
        return None
    if part.startswith("0x"):
        digits, base = part[2:], 16
    elif len(part) > 1 and part.startswith("0"):
        digits, base = part[1:], 8
    else:
        digits, base = part, 10
    if not digits:
        return 0
    try:
        return int(digits, base)
    except ValueError:
        return None


def parse_ipv4_host(hostname: str) -> Optional[ipaddress.IPv4Address]:
    """
    Read a hostname as an IPv4 address.

    Args:
        hostname: Lowercased hostname without a trailing dot

    Returns:
        IPv4Address, or None when the host is a domain name

    Raises:
        InvalidURLError: the host ends in a number but is not a valid address
    """
    labels = hostname.split(".")
    if not NUMERIC_LABEL_PATTERN.match(labels[-1]):
        return None

    numbers = [_parse_ipv4_part(label) for label in labels]
    if len(numbers) > 4 or any(n is None for n in numbers):
        raise InvalidURLError("Invalid URL format")

    # Every part but the last is one octet; the last fills the remaining bytes
    if any(n > 255 for n in numbers[:-1]) or numbers[-1] >= 256 ** (5 - len(numbers)):
        raise InvalidURLError("Invalid URL format")

    value = numbers[-1]
    for index, number in enumerate(numbers[:-1]):
        value += number * 256 ** (3 - index)
    return ipaddress.IPv4Address(value)


def _is_blocked_ipv4(address: ipaddress.IPv4Address) -> bool:
    first, second = address.packed[:2]
    return first == 0 or _is_private_ipv4(first, second)


def validate_url(url: str) -> None:
    """
    Validate a product URL.

    Args:
        url: URL submitted for extraction

    Raises:
        InvalidURLError: classified FATAL, for any rejected URL
    """
    try:
        parsed = urlparse((url or "").strip())
        hostname = (parsed.hostname or "").lower()
        # Accessing .port raises ValueError on a malformed port
        parsed.port
    except ValueError:
        raise InvalidURLError("Invalid URL format")

    if parsed.scheme not in ("http", "https"):
        raise InvalidURLError("Invalid URL protocol")

    # A single trailing dot names the same (fully qualified) host
    if hostname.endswith("."):
        hostname = hostname[:-1]

    if not hostname:
        raise InvalidURLError("Invalid URL format")

    if hostname in BLOCKED_HOSTS or hostname.endswith(".localhost"):
        raise InvalidURLError("Private URLs not allowed")

    if ":" in hostname:
        try:
            address = ipaddress.IPv6Address(hostname)
        except ValueError:
            raise InvalidURLError("Invalid URL format")

        mapped = address.ipv4_mapped
        if (
            address.is_loopback
            or address.is_private
            or address.is_link_local
            or address.is_unspecified
            or (mapped is not None and _is_blocked_ipv4(mapped))
        ):
            raise InvalidURLError("Private URLs not allowed")
        return

    if re.search(r"[\s<>\"'\\]", hostname) or ".." in hostname or hostname.endswith("."):
        raise InvalidURLError("Invalid URL format")

    ipv4 = parse_ipv4_host(hostname)
    if ipv4 is not None and _is_blocked_ipv4(ipv4):
        raise InvalidURLError("Private URLs not allowed")
