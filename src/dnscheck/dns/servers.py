"""Resolver groups offered to operators."""

import logging
from typing import Optional

import dns.resolver

from dnscheck.core.config import Settings, get_settings
from dnscheck.utils.exceptions import ConfigError

logger = logging.getLogger(__name__)

PUBLIC_RESOLVERS: dict[str, list[str]] = {
    "Google DNS": ["8.8.8.8", "8.8.4.4"],
    "OpenDNS": ["208.67.222.222", "208.67.220.220"],
}


def local_nameservers(path: str) -> list[str]:
    """
    Read the ``nameserver`` entries of a resolv.conf file.

    Raises:
        ConfigError: the file cannot be read or lists no nameservers.
    """
    try:
        resolver = dns.resolver.Resolver(filename=path)
    except (dns.resolver.NoResolverConfiguration, OSError) as e:
        raise ConfigError(f"unusable resolver configuration {path}: {e}") from e

    return [str(ns) for ns in resolver.nameservers]


def build_resolver_groups(settings: Optional[Settings] = None) -> dict[str, list[str]]:
    """
    Build the named resolver groups lookups can run against.

    Custom resolvers, when configured, replace everything else. Otherwise
    the local resolvers from resolv.conf are offered alongside a few public
    ones.

    Raises:
        ConfigError: no custom resolvers are set and resolv.conf is
            missing or has no nameservers.
    """
    settings = settings or get_settings()

    if settings.custom_resolvers_list:
        return {"Custom": settings.custom_resolvers_list}

    groups = {"Local Resolvers": local_nameservers(settings.resolv_conf)}
    groups.update(PUBLIC_RESOLVERS)

    logger.info(f"Resolver groups: {', '.join(groups)}")

    return groups
