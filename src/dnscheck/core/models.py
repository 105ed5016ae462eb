"""Data models shared by the lookup engine, the store and the API."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class HostRequest(BaseModel):
    """A single host to resolve, with the value the operator expects back."""

    model_config = ConfigDict(frozen=True)

    name: str
    want: str = ""


# Ordered, de-duplicated hosts of one lookup
RequestSet = List[HostRequest]


class AnswerError(BaseModel):
    """Why a lookup produced no answer."""

    kind: str
    message: str

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class AnswerRecord(BaseModel):
    """Outcome of resolving one host."""

    query: str
    want: str = ""
    record_type: str = "A"
    raw_values: List[str] = Field(default_factory=list)
    response_time_ms: Optional[float] = None
    error: Optional[AnswerError] = None
    is_match: bool = False

    @property
    def response_time(self) -> str:
        """Round-trip time formatted for display, e.g. ``12.34ms``."""
        if self.response_time_ms is None:
            return ""

        return f"{self.response_time_ms:.2f}ms"

    def __str__(self) -> str:
        return ", ".join(self.raw_values)


class ResultSet(BaseModel):
    """All answers of one lookup run."""

    request: List[HostRequest] = Field(default_factory=list)
    answers: List[AnswerRecord] = Field(default_factory=list)
    record_type: str = "A"
    scan_timestamp: str = ""


class AnswerCount(BaseModel):
    """How often a value was returned across a result set."""

    value: str
    count: int
    pct: float


class Stats(BaseModel):
    """Aggregate statistics derived from a result set."""

    matched_pct: float = 0.0
    unmatched_pct: float = 0.0
    errored_pct: float = 0.0
    answer_frequency: List[AnswerCount] = Field(default_factory=list)


class GeoInfo(BaseModel):
    """Geolocation and reverse DNS data for one IP."""

    city: str = ""
    subdivision: str = ""
    country: str = ""
    country_code: str = ""
    continent: str = ""
    continent_code: str = ""
    lat: Optional[float] = None
    long: Optional[float] = None
    timezone: str = ""
    postal_code: str = ""
    is_proxy: bool = False
    reverse_hosts: List[str] = Field(default_factory=list)
