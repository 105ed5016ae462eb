"""Centralized configuration using Pydantic BaseSettings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Record types the lookup pool accepts ("" is treated as A)
RECORD_TYPES = ("A", "AAAA", "CNAME", "MX", "NS", "TXT")

GEOLITE_CITY_URL = (
    "https://geolite.maxmind.com/download/geoip/database/GeoLite2-City.mmdb.gz"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False

    # Lookup pool
    limit: int = 500  # Max hosts per request
    concurrency: int = 10
    max_retries: int = 3  # Total attempts per host, timeouts only
    query_timeout: float = 1.0

    # Resolvers
    custom_resolvers: str = ""  # Space-separated list of resolver addresses
    resolv_conf: str = "/etc/resolv.conf"

    # Result store
    redis_ip: Optional[str] = None
    redis_port: int = 6379
    redis_db: int = 0
    result_ttl: int = 2592000

    # GeoIP enrichment
    geoip_db: Optional[str] = None
    geoip_url: str = GEOLITE_CITY_URL
    geoip_max_age: int = 604800
    geoip_check_interval: int = 86400
    geo_concurrency: int = 4
    geo_timeout: float = 2.0

    # Sentry configuration (optional)
    sentry_dsn: Optional[str] = None
    sentry_environment: str = "production"
    sentry_traces_sample_rate: float = 1.0

    @property
    def custom_resolvers_list(self) -> list[str]:
        """Return custom resolvers as a list."""
        return self.custom_resolvers.split()

    @property
    def use_redis(self) -> bool:
        """Check if Redis is configured."""
        return self.redis_ip is not None

    @property
    def redis_url(self) -> str:
        """Return Redis connection URL."""
        return f"redis://{self.redis_ip}:{self.redis_port}/{self.redis_db}"

    @property
    def geoip_enabled(self) -> bool:
        """Check if a GeoIP database path is configured."""
        return bool(self.geoip_db)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
