"""Concurrent resolution of host requests across a pool of resolvers."""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence

from dnscheck.core.config import RECORD_TYPES, Settings, get_settings
from dnscheck.core.models import AnswerRecord, HostRequest, ResultSet
from dnscheck.core.stats import rank
from dnscheck.dns.answers import build_answer, build_error
from dnscheck.dns.exchange import DNSExchange, UDPExchange
from dnscheck.utils.exceptions import (
    BatchTooLargeError,
    ConfigError,
    InvalidRecordTypeError,
    NoResolversError,
    capture_exception,
    error_kind,
    is_expected_dns_error,
    is_timeout,
)

logger = logging.getLogger(__name__)


def normalize_record_type(record_type: str) -> str:
    """Map an empty record type to A and reject anything unsupported."""
    if record_type == "":
        return "A"

    if record_type not in RECORD_TYPES:
        raise InvalidRecordTypeError(f"invalid lookup type: {record_type!r}")

    return record_type


@dataclass
class LookupPool:
    """Resolves batches of hosts with bounded concurrency and retries."""

    settings: Settings = field(default_factory=get_settings)
    exchange: Optional[DNSExchange] = None
    rng: random.Random = field(default_factory=random.Random)

    def __post_init__(self):
        if self.exchange is None:
            self.exchange = UDPExchange(timeout=self.settings.query_timeout)

    def validate(
        self,
        requests: Sequence[HostRequest],
        resolvers: Sequence[str],
        record_type: str,
        concurrency: int,
        max_retries: int,
    ) -> str:
        """Check a batch before any query is sent. Returns the record type to use."""
        if len(requests) > self.settings.limit:
            raise BatchTooLargeError(
                f"too many queries to process ({len(requests)} > {self.settings.limit})"
            )

        if not resolvers:
            raise NoResolversError("no resolvers configured")

        rtype = normalize_record_type(record_type)

        if concurrency < 1:
            raise ConfigError(f"concurrency must be positive, got {concurrency}")

        if max_retries < 1:
            raise ConfigError(f"max_retries must be positive, got {max_retries}")

        return rtype

    async def query(
        self,
        request: HostRequest,
        resolvers: Sequence[str],
        record_type: str,
        max_retries: int,
    ) -> AnswerRecord:
        """
        Resolve one host, retrying timeouts against a random resolver.

        Never raises: failures are returned as an answer with ``error`` set.
        """
        last_timeout: Optional[Exception] = None

        for attempt in range(1, max_retries + 1):
            server = self.rng.choice(resolvers)

            try:
                result = await self.exchange.exchange(server, request.name, record_type)
            except Exception as e:  # pylint: disable=broad-exception-caught
                if is_timeout(e):
                    logger.debug(
                        "%s %s: timeout from %s (attempt %d/%d)",
                        request.name,
                        record_type,
                        server,
                        attempt,
                        max_retries,
                    )
                    last_timeout = e
                    continue

                if is_expected_dns_error(e):
                    logger.debug("%s %s: %s", request.name, record_type, e)
                    kind = error_kind(e)
                else:
                    capture_exception(
                        e,
                        {"host": request.name, "record_type": record_type, "server": server},
                    )
                    kind = "unknown"

                return build_error(request, record_type, kind, str(e) or type(e).__name__)

            return build_answer(request, record_type, result.records, result.rtt)

        message = str(last_timeout) or "query timed out"

        return build_error(
            request,
            record_type,
            "timeout",
            f"{message} after {max_retries} attempts",
        )

    async def resolve_all(
        self,
        requests: Sequence[HostRequest],
        resolvers: Sequence[str],
        record_type: str = "",
        concurrency: Optional[int] = None,
        max_retries: Optional[int] = None,
    ) -> ResultSet:
        """
        Resolve every request and return the ranked results.

        Raises:
            ConfigError: the batch is too large, no resolvers were given,
                or the record type is unsupported. Nothing is queried then.
        """
        if concurrency is None:
            concurrency = self.settings.concurrency
        if max_retries is None:
            max_retries = self.settings.max_retries

        rtype = self.validate(requests, resolvers, record_type, concurrency, max_retries)

        out = ResultSet(
            request=list(requests),
            record_type=rtype,
            scan_timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )

        semaphore = asyncio.Semaphore(concurrency)
        lock = asyncio.Lock()
        answers: list[AnswerRecord] = []

        async def worker(request: HostRequest) -> None:
            async with semaphore:
                answer = await self.query(request, resolvers, rtype, max_retries)

            async with lock:
                answers.append(answer)

        logger.info(
            "Resolving %d hosts (%s) across %d resolvers, concurrency %d",
            len(requests),
            rtype,
            len(resolvers),
            concurrency,
        )

        await asyncio.gather(*(worker(req) for req in requests))

        out.answers = rank(answers)

        return out


# Default pool instance
_lookup_pool: Optional[LookupPool] = None


def get_lookup_pool() -> LookupPool:
    """Get or create the default lookup pool."""
    global _lookup_pool

    if _lookup_pool is None:
        _lookup_pool = LookupPool()

    return _lookup_pool


def set_lookup_pool(pool: LookupPool) -> None:
    """Set a custom lookup pool (useful for testing)."""
    global _lookup_pool

    _lookup_pool = pool


def reset_lookup_pool() -> None:
    """Reset the lookup pool (useful for testing)."""
    global _lookup_pool

    _lookup_pool = None


async def resolve_all(
    requests: Sequence[HostRequest],
    resolvers: Sequence[str],
    record_type: str = "",
    concurrency: Optional[int] = None,
    max_retries: Optional[int] = None,
) -> ResultSet:
    """Resolve requests with the default lookup pool."""
    return await get_lookup_pool().resolve_all(
        requests, resolvers, record_type, concurrency, max_retries
    )
