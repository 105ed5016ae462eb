"""Pydantic models for API request/response schemas."""

from typing import Dict, List

from pydantic import BaseModel, Field

from dnscheck.core.models import GeoInfo, ResultSet, Stats


class LookupRequest(BaseModel):
    """Body of a lookup submission."""

    hosts: str
    record_type: str = "A"
    resolvers: str


class LookupResponse(BaseModel):
    """Stored lookup results with their statistics."""

    id: str
    hosts: str = ""
    results: ResultSet
    stats: Stats


class ResolversResponse(BaseModel):
    """Resolver groups and record types a lookup can use."""

    groups: Dict[str, List[str]] = Field(default_factory=dict)
    record_types: List[str] = Field(default_factory=list)


class GeoResponse(BaseModel):
    """Geolocation of the IPs returned by a stored lookup."""

    id: str
    geo: Dict[str, GeoInfo] = Field(default_factory=dict)
