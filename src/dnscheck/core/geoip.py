"""GeoIP and reverse DNS enrichment of IP answers."""

import asyncio
import ipaddress
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol

import dns.asyncresolver
import geoip2.database
import geoip2.errors
import maxminddb

from dnscheck.core.config import Settings, get_settings
from dnscheck.core.models import AnswerRecord, GeoInfo
from dnscheck.utils.exceptions import EnrichmentError, capture_exception

logger = logging.getLogger(__name__)


class GeoLocator(Protocol):
    """Protocol for IP geolocation."""

    async def lookup(self, ip: str) -> GeoInfo: ...


class ReverseResolver(Protocol):
    """Protocol for reverse (PTR) lookups."""

    async def reverse_lookup(self, ip: str) -> list[str]: ...


def geo_info_from_city(response: Any) -> GeoInfo:
    """Build a GeoInfo from a ``geoip2.models.City`` response."""
    subdivisions = [s.name for s in response.subdivisions if s.name]

    return GeoInfo(
        city=response.city.name or "",
        subdivision=", ".join(subdivisions),
        country=response.country.name or "",
        country_code=response.country.iso_code or "",
        continent=response.continent.name or "",
        continent_code=response.continent.code or "",
        lat=response.location.latitude,
        long=response.location.longitude,
        timezone=response.location.time_zone or "",
        postal_code=response.postal.code or "",
        # Dropped from newer geoip2 releases
        is_proxy=bool(getattr(response.traits, "is_anonymous_proxy", False)),
    )


class MaxMindLocator:
    """
    Looks up IPs in a local GeoLite2/GeoIP2 City database.

    The reader is reopened whenever the file on disk is replaced, so a
    database installed by the update loop is picked up without a restart.
    """

    def __init__(self, path: str):
        self._path = path
        self._reader: Optional[geoip2.database.Reader] = None
        self._signature: Optional[tuple[int, int]] = None
        self._open_lock = asyncio.Lock()

    async def _get_reader(self) -> geoip2.database.Reader:
        async with self._open_lock:
            st = os.stat(self._path)
            signature = (st.st_ino, st.st_mtime_ns)

            if self._reader is None or signature != self._signature:
                if self._reader is not None:
                    logger.info("GeoIP database %s changed, reopening", self._path)

                # In-flight lookups keep their reference to the previous reader
                self._reader = await asyncio.to_thread(
                    geoip2.database.Reader, self._path
                )
                self._signature = signature

        return self._reader

    async def lookup(self, ip: str) -> GeoInfo:
        """
        Geolocate ``ip``.

        Raises:
            EnrichmentError: the address is invalid, unknown to the
                database, or the database cannot be read.
        """
        try:
            reader = await self._get_reader()
            response = await asyncio.to_thread(reader.city, ip)
        except geoip2.errors.AddressNotFoundError as e:
            raise EnrichmentError(f"{ip} not found in GeoIP database") from e
        except (ValueError, OSError, maxminddb.InvalidDatabaseError) as e:
            raise EnrichmentError(f"GeoIP lookup for {ip} failed: {e}") from e

        return geo_info_from_city(response)

    def close(self) -> None:
        """Close the underlying database reader."""
        if self._reader is not None:
            self._reader.close()
            self._reader = None


@dataclass
class DNSReverseResolver:
    """Reverse lookups through the system resolver."""

    timeout: float = 2.0
    _resolver: Optional[dns.asyncresolver.Resolver] = field(default=None, repr=False)

    async def reverse_lookup(self, ip: str) -> list[str]:
        if self._resolver is None:
            self._resolver = dns.asyncresolver.Resolver()
            self._resolver.lifetime = self.timeout

        answer = await self._resolver.resolve_address(ip)

        return [r.target.to_text() for r in answer]


def collect_ips(answers: Iterable[AnswerRecord]) -> list[str]:
    """Distinct IP-shaped values of successful answers, in first-seen order."""
    seen: dict[str, None] = {}

    for answer in answers:
        if answer.error is not None:
            continue

        for value in answer.raw_values:
            if value in seen:
                continue

            try:
                ipaddress.ip_address(value)
            except ValueError:
                continue

            seen[value] = None

    return list(seen)


@dataclass
class GeoEnricher:
    """Best-effort geolocation of every IP in a set of answers."""

    locator: GeoLocator
    reverse: ReverseResolver = field(default_factory=DNSReverseResolver)
    concurrency: int = 4
    timeout: float = 2.0

    async def _reverse_hosts(self, ip: str) -> list[str]:
        try:
            hosts = await asyncio.wait_for(
                self.reverse.reverse_lookup(ip), timeout=self.timeout
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.debug("Reverse lookup for %s failed: %s", ip, e)
            return []

        return [h.rstrip(".") for h in hosts]

    async def lookup(self, ip: str) -> Optional[GeoInfo]:
        """Geolocate one IP. Returns None when the lookup fails."""
        try:
            info = await asyncio.wait_for(self.locator.lookup(ip), timeout=self.timeout)
        except (EnrichmentError, asyncio.TimeoutError) as e:
            logger.debug("GeoIP lookup for %s dropped: %s", ip, e)
            return None
        except Exception as e:  # pylint: disable=broad-exception-caught
            capture_exception(e, {"ip": ip, "operation": "geoip_lookup"}, level="warning")
            return None

        hosts = await self._reverse_hosts(ip)

        return info.model_copy(update={"reverse_hosts": hosts})

    async def enrich(self, answers: Iterable[AnswerRecord]) -> dict[str, GeoInfo]:
        """
        Geolocate the distinct IPs found in ``answers``.

        IPs whose lookup fails or times out are left out of the result.
        Never raises for individual lookups.
        """
        ips = collect_ips(answers)
        found: dict[str, GeoInfo] = {}

        semaphore = asyncio.Semaphore(self.concurrency)
        lock = asyncio.Lock()

        async def worker(ip: str) -> None:
            async with semaphore:
                info = await self.lookup(ip)

            if info is None:
                return

            async with lock:
                found[ip] = info

        await asyncio.gather(*(worker(ip) for ip in ips))

        logger.info("Enriched %d of %d IPs", len(found), len(ips))

        return {ip: found[ip] for ip in ips if ip in found}

    def close(self) -> None:
        """Release the database reader, if any."""
        if isinstance(self.locator, MaxMindLocator):
            self.locator.close()


def build_geo_enricher(settings: Optional[Settings] = None) -> Optional[GeoEnricher]:
    """Create an enricher for the configured database, or None without one."""
    settings = settings or get_settings()

    if not settings.geoip_enabled:
        return None

    return GeoEnricher(
        locator=MaxMindLocator(settings.geoip_db),
        reverse=DNSReverseResolver(timeout=settings.geo_timeout),
        concurrency=settings.geo_concurrency,
        timeout=settings.geo_timeout,
    )
