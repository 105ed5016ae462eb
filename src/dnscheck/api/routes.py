"""API routes for the DNS Check service."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from dnscheck.api.models import (
    GeoResponse,
    LookupRequest,
    LookupResponse,
    ResolversResponse,
)
from dnscheck.core.config import RECORD_TYPES, Settings, get_settings
from dnscheck.core.geoip import GeoEnricher, build_geo_enricher
from dnscheck.core.hosts import parse_hosts, render_hosts
from dnscheck.core.lookup import LookupPool, get_lookup_pool
from dnscheck.core.models import ResultSet
from dnscheck.core.stats import compute_stats
from dnscheck.core.store import ResultStore, get_result_store
from dnscheck.dns.servers import build_resolver_groups
from dnscheck.utils.decorators import sentry_exception_catcher
from dnscheck.utils.exceptions import (
    ConfigError,
    InputError,
    StoreError,
    capture_exception,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@dataclass
class RouteDependencies:
    """Dependencies for route handlers."""

    settings: Settings = field(default_factory=get_settings)
    pool: LookupPool = field(default_factory=get_lookup_pool)
    store: ResultStore = field(default_factory=get_result_store)
    resolver_groups: Optional[dict[str, list[str]]] = None
    enricher: Optional[GeoEnricher] = None

    def __post_init__(self):
        if self.resolver_groups is None:
            self.resolver_groups = build_resolver_groups(self.settings)

        if self.enricher is None:
            self.enricher = build_geo_enricher(self.settings)


# Global dependencies instance (can be overridden for testing)
_dependencies: Optional[RouteDependencies] = None


def get_dependencies() -> RouteDependencies:
    """Get the current route dependencies."""
    global _dependencies  # pylint: disable=global-statement
    if _dependencies is None:
        _dependencies = RouteDependencies()
    return _dependencies


def set_dependencies(deps: RouteDependencies) -> None:
    """Set custom dependencies (useful for testing)."""
    global _dependencies  # pylint: disable=global-statement
    _dependencies = deps


def reset_dependencies() -> None:
    """Reset dependencies to default (useful for testing)."""
    global _dependencies  # pylint: disable=global-statement
    _dependencies = None


def _response(key: str, results: ResultSet) -> LookupResponse:
    return LookupResponse(
        id=key,
        hosts=render_hosts(results.request),
        results=results,
        stats=compute_stats(results.answers),
    )


async def _load(key: str, deps: RouteDependencies) -> ResultSet:
    try:
        results = await deps.store.load(key)
    except StoreError as e:
        capture_exception(e, {"key": key})
        raise HTTPException(status_code=500, detail="Unable to load results") from e

    if results is None:
        raise HTTPException(status_code=404, detail=f"No results for {key}")

    return results


@router.get("/resolvers", response_model=ResolversResponse)
async def list_resolvers(deps: RouteDependencies = Depends(get_dependencies)):
    """Resolver groups and supported record types."""
    return ResolversResponse(
        groups=deps.resolver_groups,
        record_types=list(RECORD_TYPES),
    )


@router.post("/lookup", response_model=LookupResponse)
@sentry_exception_catcher
async def lookup(
    body: LookupRequest,
    deps: RouteDependencies = Depends(get_dependencies),
):
    """Parse submitted hosts, resolve them and store the results."""
    resolvers = deps.resolver_groups.get(body.resolvers)
    if resolvers is None:
        raise HTTPException(status_code=400, detail="Resolvers specified do not exist")

    try:
        requests = parse_hosts(body.hosts)
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    if not requests:
        raise HTTPException(status_code=400, detail="No hosts to look up")

    try:
        results = await deps.pool.resolve_all(requests, resolvers, body.record_type)
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    try:
        key = await deps.store.save(results)
    except StoreError as e:
        capture_exception(e, {"hosts": len(requests)})
        raise HTTPException(status_code=500, detail="Unable to store results") from e

    return _response(key, results)


@router.get("/r/{key}", response_model=LookupResponse)
async def get_results(key: str, deps: RouteDependencies = Depends(get_dependencies)):
    """Stored results with freshly computed statistics."""
    return _response(key, await _load(key, deps))


@router.get("/r/{key}/geo", response_model=GeoResponse)
async def get_geo(key: str, deps: RouteDependencies = Depends(get_dependencies)):
    """Geolocation of the IPs in stored results."""
    if deps.enricher is None:
        raise HTTPException(status_code=503, detail="GeoIP lookups are not configured")

    results = await _load(key, deps)

    return GeoResponse(id=key, geo=await deps.enricher.enrich(results.answers))
