"""Pytest configuration and fixtures."""

# pylint: disable=redefined-outer-name

import os

import dns.rdata
import dns.rdataclass
import dns.rdatatype
import pytest

from dnscheck.core.config import Settings

# Set test environment variables before importing application code
os.environ.setdefault("CUSTOM_RESOLVERS", "192.0.2.53 192.0.2.54")
os.environ.setdefault("LIMIT", "50")


@pytest.fixture
def test_settings():
    """Provide test settings with predictable values."""
    return Settings(
        limit=50,
        concurrency=5,
        max_retries=3,
        query_timeout=0.5,
        custom_resolvers="192.0.2.53 192.0.2.54",
        redis_ip=None,
        geoip_db=None,
        sentry_dsn=None,
        _env_file=None,
    )


@pytest.fixture
def make_rdata():
    """Build dnspython rdata objects from their text form."""

    def _make(rdtype: str, text: str):
        return dns.rdata.from_text(
            dns.rdataclass.IN, dns.rdatatype.from_text(rdtype), text
        )

    return _make
