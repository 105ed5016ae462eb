"""Parsing of free-text host input into lookup requests."""

import logging
import re
from typing import Iterable

from dnscheck.core.models import HostRequest, RequestSet
from dnscheck.utils.exceptions import InputError

logger = logging.getLogger(__name__)

_RE_EDGE_SPACES = re.compile(r"^[\t\n\v\f\r ]+|[\t\n\v\f\r ]+$")
_RE_NEWLINES = re.compile(r"[\n\r]+")

_RE_DOMAIN = re.compile(r"[A-Za-z0-9_.-]{1,350}\.[A-Za-z0-9]{2,63}", re.ASCII)

# [expected IPv4] <domain> [<domain> ...]
_RE_HOST_LINE = re.compile(
    r"(?:(?P<ip>\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})\s+)?"
    r"(?P<domains>[A-Za-z0-9_.\s-]+)",
    re.ASCII,
)

MALFORMED = "malformed input"


def is_domain(name: str) -> bool:
    """Check if ``name`` passes the strict domain name pattern."""
    return _RE_DOMAIN.fullmatch(name) is not None


def split_lines(raw: str) -> list[str]:
    """Trim the input and split it on any run of line breaks."""
    return _RE_NEWLINES.sub("\n", _RE_EDGE_SPACES.sub("", raw)).split("\n")


def parse_hosts(raw: str) -> RequestSet:
    """
    Parse operator input into a de-duplicated list of host requests.

    Each line holds an optional IPv4 address (the expected answer) followed
    by one or more domains separated by single spaces. Lines containing a
    wildcard label are skipped, since wildcards cannot be looked up. Any
    other malformed line rejects the whole input.

    Raises:
        InputError: if any line or domain is malformed.
    """
    out: RequestSet = []
    seen: set[str] = set()

    for line in split_lines(raw):
        if "*." in line:
            logger.debug("Skipping wildcard line: %r", line)
            continue

        line = _RE_EDGE_SPACES.sub("", line)
        if not line:
            continue

        match = _RE_HOST_LINE.fullmatch(line)
        if match is None:
            raise InputError(MALFORMED)

        want = match.group("ip") or ""

        for domain in match.group("domains").split(" "):
            if not domain or not is_domain(domain):
                raise InputError(MALFORMED)

            if domain in seen:
                continue

            seen.add(domain)
            out.append(HostRequest(name=domain, want=want))

    return out


def render_hosts(requests: Iterable[HostRequest]) -> str:
    """Render requests back into the text form accepted by :func:`parse_hosts`."""
    return "\n".join(
        f"{req.want} {req.name}" if req.want else req.name for req in requests
    )
