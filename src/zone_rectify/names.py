"""Owner name helpers built on dnspython.

Names are kept as absolute, lower-cased ``dns.name.Name`` values. dnspython
compares names in DNSSEC canonical order, so these values double as ordering
keys for plain NSEC chains.
"""

from __future__ import annotations

from typing import Iterator

import dns.name


def to_name(text: str | dns.name.Name) -> dns.name.Name:
    """Return the canonical absolute form of a name."""
    if isinstance(text, dns.name.Name):
        name = text
    else:
        stripped = text.strip()
        if stripped in {"", "@", "."}:
            return dns.name.root
        name = dns.name.from_text(stripped)
    return name.canonicalize()


def chop_off(name: dns.name.Name) -> dns.name.Name | None:
    """Return the name without its leftmost label, or None at the root."""
    if name == dns.name.root or not name.labels:
        return None
    return name.parent()


def walk_up(name: dns.name.Name) -> Iterator[dns.name.Name]:
    """Yield the name itself and every ancestor up to the root."""
    current: dns.name.Name | None = name
    while current is not None:
        yield current
        current = chop_off(current)


def strict_ancestors(name: dns.name.Name, apex: dns.name.Name) -> Iterator[dns.name.Name]:
    """Yield ancestors of ``name`` strictly between it and ``apex``."""
    if name == apex or not is_part_of(name, apex):
        return
    current = chop_off(name)
    while current is not None and current != apex and is_part_of(current, apex):
        yield current
        current = chop_off(current)


def is_part_of(name: dns.name.Name, zone: dns.name.Name) -> bool:
    """Return True when ``name`` equals or sits below ``zone``."""
    return name.is_subdomain(zone)


def is_wildcard(name: dns.name.Name) -> bool:
    """Return True when the leftmost label is ``*``."""
    return bool(name.labels) and name.labels[0] == b"*"


def wire_length(name: dns.name.Name) -> int:
    """Return the length of the uncompressed wire form."""
    return len(name.to_wire())


def display(name: dns.name.Name) -> str:
    """Return the text form used in messages."""
    return name.to_text()
