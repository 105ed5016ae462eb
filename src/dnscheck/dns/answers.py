"""Turning raw DNS records into answer records."""

# pylint: disable=missing-function-docstring

from typing import Any, Iterable, Optional

import dns.rdatatype

from dnscheck.core.models import AnswerError, AnswerRecord, HostRequest

UNKNOWN_RESPONSE = "unknown response"


def format_rdata(rdata: Any) -> str:
    """Render a single record as a short display string."""
    rdtype = getattr(rdata, "rdtype", None)

    if rdtype in (dns.rdatatype.A, dns.rdatatype.AAAA):
        return rdata.address

    if rdtype in (dns.rdatatype.CNAME, dns.rdatatype.NS):
        return rdata.target.to_text().rstrip(".")

    if rdtype == dns.rdatatype.MX:
        return rdata.exchange.to_text().rstrip(".")

    if rdtype == dns.rdatatype.TXT:
        return " ".join(
            '"' + s.decode("utf-8", errors="replace") + '"' for s in rdata.strings
        )

    return UNKNOWN_RESPONSE


def is_match(values: Iterable[str], want: str, record_type: str) -> bool:
    """
    Decide whether returned values satisfy the expectation.

    Only A answers are compared against ``want``. Any other record type, or
    an empty ``want``, matches as soon as one value came back.
    """
    for value in values:
        if value == want or not want or record_type != "A":
            return True

    return False


def build_answer(
    request: HostRequest,
    record_type: str,
    records: Iterable[Any],
    rtt: Optional[float] = None,
) -> AnswerRecord:
    values = [format_rdata(r) for r in records]

    return AnswerRecord(
        query=request.name,
        want=request.want,
        record_type=record_type,
        raw_values=values,
        response_time_ms=rtt * 1000 if rtt is not None else None,
        is_match=is_match(values, request.want, record_type),
    )


def build_error(
    request: HostRequest, record_type: str, kind: str, message: str
) -> AnswerRecord:
    return AnswerRecord(
        query=request.name,
        want=request.want,
        record_type=record_type,
        error=AnswerError(kind=kind, message=message),
    )
