"""Record content parsing and canonical serialization via dnspython."""

from __future__ import annotations

import dns.exception
import dns.ipv6
import dns.rdata
import dns.rdataclass
import dns.rdatatype

NAME_CONTENT_TYPES = {"NS", "SRV", "MX", "CNAME", "DNAME"}


class ContentError(ValueError):
    """Raised when record content cannot be parsed for its type."""


def normalise_content(rtype: str, content: str) -> str:
    """Return stored content in the form the parser expects.

    SOA content may omit trailing numeric fields and TXT content may be
    stored without quotes.
    """
    if rtype == "SOA":
        parts = content.split()
        return " ".join([content, *["0"] * (7 - len(parts))]) if len(parts) < 7 else content
    if rtype == "TXT" and content and not content.startswith('"'):
        return f'"{content}"'
    return content


def parse(rtype: str, content: str) -> dns.rdata.Rdata:
    """Parse record content; names are kept relative when written without a dot."""
    try:
        return dns.rdata.from_text(dns.rdataclass.IN, dns.rdatatype.from_text(rtype), content, origin=None)
    except (dns.exception.DNSException, ValueError) as exc:
        raise ContentError(str(exc) or exc.__class__.__name__) from exc


def canonical_text(rdata: dns.rdata.Rdata) -> str:
    """Return the zone-file representation of parsed content."""
    return rdata.to_text(origin=None, relativize=False, chunksize=0)


def is_valid_ipv6(content: str) -> bool:
    """Return True for an IPv6 literal without an embedded dotted IPv4 tail."""
    if "." in content:
        return False
    try:
        dns.ipv6.inet_aton(content)
    except (dns.exception.SyntaxError, ValueError):
        return False
    return True


def has_trailing_dot(rtype: str, content: str) -> bool:
    """Return True when name-valued content ends with a dot."""
    return rtype in NAME_CONTENT_TYPES and content.endswith(".")
