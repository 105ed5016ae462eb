"""Single-query DNS exchange against a specific server."""

from dataclasses import dataclass, field
from typing import Any, Protocol

import dns.asyncquery
import dns.exception
import dns.message
import dns.rcode

from dnscheck.utils.exceptions import DNSLookupError, QueryTimeoutError


@dataclass
class ExchangeResult:
    """Answer records of one query and how long the server took."""

    records: list[Any] = field(default_factory=list)
    rtt: float = 0.0  # seconds


class DNSExchange(Protocol):
    """Protocol for sending one query to one server."""

    async def exchange(
        self, server: str, name: str, record_type: str
    ) -> ExchangeResult: ...


@dataclass
class UDPExchange:
    """Sends a single UDP query with dnspython."""

    timeout: float = 1.0
    port: int = 53

    async def exchange(self, server: str, name: str, record_type: str) -> ExchangeResult:
        """
        Query ``server`` for ``name``/``record_type``.

        Raises:
            QueryTimeoutError: no response within ``timeout``.
            DNSLookupError: any other failure, including a non-NOERROR
                rcode or an empty answer section.
        """
        query = dns.message.make_query(name, record_type)

        try:
            response = await dns.asyncquery.udp(
                query, server, timeout=self.timeout, port=self.port
            )
        except dns.exception.Timeout as e:
            raise QueryTimeoutError(f"query to {server} timed out") from e
        except dns.exception.DNSException as e:
            raise DNSLookupError(str(e), kind="protocol") from e
        except OSError as e:
            raise DNSLookupError(f"{server}: {e}", kind="network") from e

        rcode = response.rcode()
        if rcode != dns.rcode.NOERROR:
            text = dns.rcode.to_text(rcode)
            raise DNSLookupError(f"{name}: {text}", kind=text.lower())

        records = [rdata for rrset in response.answer for rdata in rrset]
        if not records:
            raise DNSLookupError(f"{name}: no answer", kind="no_answer")

        return ExchangeResult(records=records, rtt=response.time)
