"""Custom exceptions and error handling utilities."""

import logging
from typing import Optional

import dns.exception
import dns.resolver
import sentry_sdk

from dnscheck.core.config import get_settings

logger = logging.getLogger(__name__)


class DNSCheckError(Exception):
    """Base exception for DNS Check errors."""


class InputError(DNSCheckError):
    """Host input could not be parsed."""


class ConfigError(DNSCheckError):
    """Lookup request cannot run with the given configuration."""


class BatchTooLargeError(ConfigError):
    """More hosts were submitted than the configured limit allows."""


class NoResolversError(ConfigError):
    """No resolvers were supplied for the lookup."""


class InvalidRecordTypeError(ConfigError):
    """The requested record type is not supported."""


class DNSLookupError(DNSCheckError):
    """A single host lookup failed."""

    def __init__(self, message: str, kind: str = "unknown"):
        super().__init__(message)
        self.kind = kind


class QueryTimeoutError(DNSLookupError):
    """A DNS query did not get an answer in time."""

    def __init__(self, message: str = "query timed out"):
        super().__init__(message, kind="timeout")


class EnrichmentError(DNSCheckError):
    """Geolocation lookup for an IP failed."""


class StoreError(DNSCheckError):
    """Result store operation failed."""


class GeoIPDatabaseError(DNSCheckError):
    """GeoIP database could not be downloaded or verified."""


def capture_exception(
    exception: Exception,
    context: Optional[dict] = None,
    level: str = "error",
) -> None:
    """
    Capture exception to Sentry if configured, otherwise log it.

    Args:
        exception: The exception to capture
        context: Additional context to include
        level: Log level ('error', 'warning', 'info')
    """
    settings = get_settings()

    log_func = getattr(logger, level, logger.error)
    log_func("%s: %s", type(exception).__name__, exception, exc_info=True)

    if settings.sentry_dsn:
        if context:
            with sentry_sdk.push_scope() as scope:
                for key, value in context.items():
                    scope.set_extra(key, value)
                sentry_sdk.capture_exception(exception)
        else:
            sentry_sdk.capture_exception(exception)


def is_expected_dns_error(exception: Exception) -> bool:
    """Check if exception is an expected DNS error (NXDOMAIN, NoAnswer, Timeout)."""
    return isinstance(
        exception,
        (
            DNSLookupError,
            dns.resolver.NoAnswer,
            dns.resolver.NXDOMAIN,
            dns.exception.Timeout,
        ),
    )


def error_kind(exception: Exception) -> str:
    """Short label for an expected DNS error, as stored on answers."""
    if isinstance(exception, DNSLookupError):
        return exception.kind
    if isinstance(exception, dns.resolver.NXDOMAIN):
        return "nxdomain"
    if isinstance(exception, dns.resolver.NoAnswer):
        return "no_answer"
    if isinstance(exception, dns.exception.Timeout):
        return "timeout"
    return "protocol"


def is_timeout(exception: Exception) -> bool:
    """Check if exception means the query timed out and may be retried."""
    return isinstance(
        exception, (QueryTimeoutError, dns.exception.Timeout, TimeoutError)
    )
