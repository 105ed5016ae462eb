"""Tests for core/geoip.py."""

# pylint: disable=missing-function-docstring,protected-access

import asyncio
import os
from dataclasses import dataclass, field
from types import SimpleNamespace
from unittest.mock import patch

import geoip2.errors
import pytest

from dnscheck.core.geoip import (
    GeoEnricher,
    MaxMindLocator,
    build_geo_enricher,
    collect_ips,
    geo_info_from_city,
)
from dnscheck.core.models import AnswerError, AnswerRecord, GeoInfo
from dnscheck.utils.exceptions import EnrichmentError


@dataclass
class FakeLocator:
    """Fake geolocation returning canned entries."""

    known: dict[str, GeoInfo] = field(default_factory=dict)
    delay: float = 0.0
    slow: set[str] = field(default_factory=set)
    calls: list[str] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0

    async def lookup(self, ip: str) -> GeoInfo:
        self.calls.append(ip)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)

        try:
            await asyncio.sleep(10 if ip in self.slow else self.delay)

            if ip not in self.known:
                raise EnrichmentError(f"{ip} not found")

            return self.known[ip]
        finally:
            self.in_flight -= 1


@dataclass
class FakeReverse:
    """Fake reverse resolver."""

    names: dict[str, list[str]] = field(default_factory=dict)

    async def reverse_lookup(self, ip: str) -> list[str]:
        if ip not in self.names:
            raise LookupError(f"no PTR for {ip}")

        return self.names[ip]


def answer(query: str, values: list[str], error: bool = False) -> AnswerRecord:
    return AnswerRecord(
        query=query,
        raw_values=values,
        error=AnswerError(kind="timeout", message="t") if error else None,
    )


class TestCollectIps:
    """Tests for collecting IP-shaped answers."""

    def test_distinct_ips_in_first_seen_order(self):
        answers = [
            answer("a.com", ["10.0.0.2", "10.0.0.1"]),
            answer("b.com", ["10.0.0.1", "2001:db8::1"]),
        ]

        assert collect_ips(answers) == ["10.0.0.2", "10.0.0.1", "2001:db8::1"]

    def test_ignores_non_ip_values(self):
        answers = [answer("a.com", ["mail.example.com", "10.0.0.1", '"v=spf1"'])]

        assert collect_ips(answers) == ["10.0.0.1"]

    def test_skips_errored_answers(self):
        answers = [answer("a.com", ["10.0.0.1"], error=True)]

        assert collect_ips(answers) == []


class TestGeoInfoFromCity:
    """Tests for mapping a geoip2 City response."""

    def test_maps_fields(self):
        response = SimpleNamespace(
            city=SimpleNamespace(name="Mountain View"),
            subdivisions=[SimpleNamespace(name="California"), SimpleNamespace(name=None)],
            country=SimpleNamespace(name="United States", iso_code="US"),
            continent=SimpleNamespace(name="North America", code="NA"),
            location=SimpleNamespace(
                latitude=37.386, longitude=-122.0838, time_zone="America/Los_Angeles"
            ),
            postal=SimpleNamespace(code="94035"),
            traits=SimpleNamespace(is_anonymous_proxy=True),
        )

        info = geo_info_from_city(response)

        assert info.city == "Mountain View"
        assert info.subdivision == "California"
        assert info.country_code == "US"
        assert info.continent_code == "NA"
        assert info.lat == pytest.approx(37.386)
        assert info.long == pytest.approx(-122.0838)
        assert info.timezone == "America/Los_Angeles"
        assert info.postal_code == "94035"
        assert info.is_proxy is True
        assert info.reverse_hosts == []

    def test_missing_values(self):
        response = SimpleNamespace(
            city=SimpleNamespace(name=None),
            subdivisions=[],
            country=SimpleNamespace(name=None, iso_code=None),
            continent=SimpleNamespace(name=None, code=None),
            location=SimpleNamespace(latitude=None, longitude=None, time_zone=None),
            postal=SimpleNamespace(code=None),
            traits=SimpleNamespace(),
        )

        info = geo_info_from_city(response)

        assert info == GeoInfo()


class FakeReader:
    """Stands in for geoip2.database.Reader and records each open."""

    opened: list[str] = []

    def __init__(self, path):
        self.path = path
        FakeReader.opened.append(path)

    def city(self, ip):
        raise geoip2.errors.AddressNotFoundError(f"{ip} not in database")


class TestMaxMindLocator:
    """Tests for the MaxMind locator."""

    @pytest.fixture
    def db_file(self, tmp_path):
        path = tmp_path / "city.mmdb"
        path.write_bytes(b"v1")
        FakeReader.opened = []
        return path

    async def test_address_not_found(self, db_file):
        locator = MaxMindLocator(str(db_file))

        with patch("geoip2.database.Reader", FakeReader):
            with pytest.raises(EnrichmentError, match="not found"):
                await locator.lookup("10.0.0.1")

    async def test_missing_database(self, tmp_path):
        locator = MaxMindLocator(str(tmp_path / "missing.mmdb"))

        with pytest.raises(EnrichmentError):
            await locator.lookup("10.0.0.1")

    async def test_reader_reused_while_file_unchanged(self, db_file):
        locator = MaxMindLocator(str(db_file))

        with patch("geoip2.database.Reader", FakeReader):
            first = await locator._get_reader()
            second = await locator._get_reader()

        assert first is second
        assert FakeReader.opened == [str(db_file)]

    async def test_replaced_database_is_reopened(self, db_file, tmp_path):
        locator = MaxMindLocator(str(db_file))
        update = tmp_path / "city.mmdb.new"
        update.write_bytes(b"v2")

        with patch("geoip2.database.Reader", FakeReader):
            first = await locator._get_reader()
            os.replace(update, db_file)
            second = await locator._get_reader()

        assert first is not second
        assert FakeReader.opened == [str(db_file), str(db_file)]

    async def test_touched_database_is_reopened(self, db_file):
        locator = MaxMindLocator(str(db_file))

        with patch("geoip2.database.Reader", FakeReader):
            first = await locator._get_reader()
            mtime = os.stat(db_file).st_mtime
            os.utime(db_file, (mtime + 60, mtime + 60))
            second = await locator._get_reader()

        assert first is not second
        assert len(FakeReader.opened) == 2


class TestGeoEnricher:
    """Tests for GeoEnricher.enrich."""

    async def test_enriches_each_ip_once(self):
        locator = FakeLocator(
            known={"10.0.0.1": GeoInfo(country_code="US"), "10.0.0.2": GeoInfo(country_code="DE")}
        )
        enricher = GeoEnricher(locator=locator, reverse=FakeReverse())

        geo = await enricher.enrich(
            [answer("a.com", ["10.0.0.1"]), answer("b.com", ["10.0.0.1", "10.0.0.2"])]
        )

        assert list(geo) == ["10.0.0.1", "10.0.0.2"]
        assert geo["10.0.0.2"].country_code == "DE"
        assert sorted(locator.calls) == ["10.0.0.1", "10.0.0.2"]

    async def test_failed_lookups_are_dropped(self):
        locator = FakeLocator(known={"10.0.0.1": GeoInfo(country_code="US")})
        enricher = GeoEnricher(locator=locator, reverse=FakeReverse())

        geo = await enricher.enrich([answer("a.com", ["10.0.0.1", "10.0.0.99"])])

        assert list(geo) == ["10.0.0.1"]

    async def test_timeouts_are_dropped(self):
        locator = FakeLocator(
            known={"10.0.0.1": GeoInfo(), "10.0.0.2": GeoInfo()}, slow={"10.0.0.2"}
        )
        enricher = GeoEnricher(locator=locator, reverse=FakeReverse(), timeout=0.05)

        geo = await enricher.enrich([answer("a.com", ["10.0.0.1", "10.0.0.2"])])

        assert list(geo) == ["10.0.0.1"]

    async def test_unexpected_errors_are_absorbed(self):
        class BrokenLocator:
            async def lookup(self, ip):
                raise RuntimeError("database exploded")

        enricher = GeoEnricher(locator=BrokenLocator(), reverse=FakeReverse())

        assert await enricher.enrich([answer("a.com", ["10.0.0.1"])]) == {}

    async def test_reverse_hosts_trimmed(self):
        locator = FakeLocator(known={"10.0.0.1": GeoInfo(city="Berlin")})
        reverse = FakeReverse(names={"10.0.0.1": ["host.example.com.", "alias.example.com."]})
        enricher = GeoEnricher(locator=locator, reverse=reverse)

        geo = await enricher.enrich([answer("a.com", ["10.0.0.1"])])

        assert geo["10.0.0.1"].reverse_hosts == ["host.example.com", "alias.example.com"]
        assert geo["10.0.0.1"].city == "Berlin"

    async def test_reverse_failure_keeps_geolocation(self):
        locator = FakeLocator(known={"10.0.0.1": GeoInfo(city="Berlin")})
        enricher = GeoEnricher(locator=locator, reverse=FakeReverse())

        geo = await enricher.enrich([answer("a.com", ["10.0.0.1"])])

        assert geo["10.0.0.1"].city == "Berlin"
        assert geo["10.0.0.1"].reverse_hosts == []

    async def test_concurrency_bound(self):
        ips = [f"10.0.0.{i}" for i in range(1, 13)]
        locator = FakeLocator(known={ip: GeoInfo() for ip in ips}, delay=0.01)
        enricher = GeoEnricher(locator=locator, reverse=FakeReverse(), concurrency=4)

        geo = await enricher.enrich([answer("a.com", ips)])

        assert len(geo) == 12
        assert 1 < locator.max_in_flight <= 4

    async def test_no_ips(self):
        locator = FakeLocator()
        enricher = GeoEnricher(locator=locator, reverse=FakeReverse())

        assert await enricher.enrich([answer("a.com", ["mx.example.com"])]) == {}
        assert locator.calls == []


class TestBuildGeoEnricher:
    """Tests for build_geo_enricher."""

    def test_disabled_without_database(self, test_settings):
        assert build_geo_enricher(test_settings) is None

    def test_uses_settings(self, test_settings):
        settings = test_settings.model_copy(
            update={"geoip_db": "/tmp/GeoLite2-City.mmdb", "geo_concurrency": 2}
        )

        enricher = build_geo_enricher(settings)

        assert isinstance(enricher.locator, MaxMindLocator)
        assert enricher.concurrency == 2
        assert enricher.timeout == settings.geo_timeout
