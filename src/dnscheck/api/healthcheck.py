"""Health check API endpoint."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from dnscheck.api.routes import RouteDependencies, get_dependencies

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    resolver_groups: int
    store_backend: str
    geoip_enabled: bool


@router.get("/healthcheck", response_model=HealthResponse)
async def health_check(
    deps: RouteDependencies = Depends(get_dependencies),
) -> HealthResponse:
    """Health check endpoint (no auth required)."""
    return HealthResponse(
        status="ok",
        resolver_groups=len(deps.resolver_groups),
        store_backend=deps.store.backend.name,
        geoip_enabled=deps.enricher is not None,
    )
