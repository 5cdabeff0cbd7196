"""
Tests for URL validation.
"""

import pytest

from sale_scraper.errors import InvalidURLError
from sale_scraper.types import ErrorClassification
from sale_scraper.validators.url import parse_ipv4_host, validate_url


class TestValidateUrl:
    """Tests for validate_url."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://shop.example.com/products/wool-coat",
            "http://www.site.com/item?id=12345",
            "https://8.8.8.8/product",
            "https://[2001:4860:4860::8888]/product",
            "https://shop.site.com./products/coat",
            "http://134744072/product",
            "http://0x08080808/",
        ],
    )
    def test_accepts_public_urls(self, url):
        validate_url(url)

    @pytest.mark.parametrize(
        "url",
        [
            "http://10.0.0.5/product",
            "http://127.0.0.1/",
            "http://172.16.4.1/x",
            "http://192.168.1.20/x",
            "http://169.254.169.254/latest/meta-data",
            "http://localhost:8000/",
            "http://shop.localhost/",
            "http://[::1]/",
            "http://[fd00::1]/",
            "http://[fe80::1]/",
            "http://[::ffff:10.0.0.1]/",
            "http://10.0.0.5./product",
            "http://127.0.0.1./",
            "http://localhost./",
            "http://2130706433/",
            "http://127.1/",
            "http://0x7f000001/",
            "http://0177.0.0.1/",
            "http://0xa.0.0.5/",
            "http://0/",
        ],
    )
    def test_rejects_private_hosts(self, url):
        with pytest.raises(InvalidURLError, match="Private URLs not allowed") as exc_info:
            validate_url(url)

        assert exc_info.value.classification == ErrorClassification.FATAL

    @pytest.mark.parametrize(
        "url",
        [
            "ftp://shop.example.com/file",
            "javascript:alert(1)",
            "file:///etc/passwd",
        ],
    )
    def test_rejects_other_schemes(self, url):
        with pytest.raises(InvalidURLError, match="Invalid URL protocol"):
            validate_url(url)

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "https://",
            "https://999.1.1.1/x",
            "http://1.2.3.4.5/",
            "http://0x1g.0.0.1/",
            "http://09.0.0.1/",
            "http://127.0.0.1../",
            "https://shop.example.com:notaport/x",
        ],
    )
    def test_rejects_malformed(self, url):
        with pytest.raises(InvalidURLError):
            validate_url(url)


class TestParseIpv4Host:
    """Tests for reading alternate IPv4 spellings."""

    @pytest.mark.parametrize(
        "hostname,expected",
        [
            ("127.0.0.1", "127.0.0.1"),
            ("127.1", "127.0.0.1"),
            ("10.5", "10.0.0.5"),
            ("2130706433", "127.0.0.1"),
            ("0x7f000001", "127.0.0.1"),
            ("0177.0.0.01", "127.0.0.1"),
            ("192.168.0x1.1", "192.168.1.1"),
        ],
    )
    def test_alternate_spellings(self, hostname, expected):
        assert str(parse_ipv4_host(hostname)) == expected

    def test_domain_is_not_an_address(self):
        assert parse_ipv4_host("shop.site.com") is None
        assert parse_ipv4_host("10.0.0.5.nip.io") is None
