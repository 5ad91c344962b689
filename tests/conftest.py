"""Shared fixtures: small zones loaded into the in-memory backend."""

from __future__ import annotations

import pytest

from zone_rectify.backend import InMemoryZoneDataSource
from zone_rectify.models import Record

SOA = "ns1.example.com hostmaster.example.com 1 10800 3600 604800 3600"
DS_DIGEST = "ab" * 32


def rr(name: str, rtype: str, content: str, ttl: int = 3600, **kwargs) -> Record:
    """Shorthand for building a record."""
    return Record(name=name, type=rtype, content=content, ttl=ttl, **kwargs)


def minimal_zone() -> list[Record]:
    """Apex SOA and NS plus in-zone glue for the NS target."""
    return [
        rr("example.com", "SOA", SOA),
        rr("example.com", "NS", "ns1.example.com"),
        rr("ns1.example.com", "A", "192.0.2.1"),
    ]


def delegating_zone() -> list[Record]:
    """A zone with empty non-terminals and secure/insecure delegations."""
    return minimal_zone() + [
        rr("www.example.com", "A", "192.0.2.2"),
        rr("a.b.c.example.com", "TXT", "deep"),
        rr("deleg.example.com", "NS", "ns.deleg.example.com"),
        rr("ns.deleg.example.com", "A", "192.0.2.3"),
        rr("host.sub.deleg.example.com", "A", "192.0.2.4"),
        rr("secure.example.com", "NS", "ns.other.net"),
        rr("secure.example.com", "DS", f"12345 13 2 {DS_DIGEST}"),
    ]


@pytest.fixture
def backend() -> InMemoryZoneDataSource:
    return InMemoryZoneDataSource()


def records_at(backend: InMemoryZoneDataSource, name: str, rtype: str | None = None) -> list[Record]:
    """Return the stored records owned by ``name`` (optionally of one type)."""
    wanted = name.lower().rstrip(".") + "."
    return [
        record
        for stored in backend.zones.values()
        for record in stored.records
        if record.canonical_name().to_text() == wanted and (rtype is None or record.canonical_type() == rtype)
    ]
