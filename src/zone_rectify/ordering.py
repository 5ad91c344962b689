"""Ordername and authority computation for a single owner name."""

from __future__ import annotations

from dataclasses import dataclass, field

import dns.name

from .hashing import HashOracle
from .models import DnssecPosture, OrderingUpdate, ZoneMetadata
from .names import walk_up


@dataclass
class RectifyContext:
    """Name sets built from one zone snapshot, owned by a single run."""

    apex: dns.name.Name
    qnames: set[dns.name.Name] = field(default_factory=set)
    nsset: set[dns.name.Name] = field(default_factory=set)
    dsnames: set[dns.name.Name] = field(default_factory=set)
    known_ents: set[dns.name.Name] = field(default_factory=set)
    nonterm: dict[dns.name.Name, bool] = field(default_factory=dict)
    real_auth: dict[dns.name.Name, bool] = field(default_factory=dict)

    def add_record(self, name: dns.name.Name, rtype: str) -> None:
        """Account for one snapshot row."""
        if not rtype:
            self.known_ents.add(name)
            return
        self.qnames.add(name)
        if rtype == "NS" and name != self.apex:
            self.nsset.add(name)
        elif rtype == "DS":
            self.dsnames.add(name)


class OrderingComputer:
    """Decides ordername and auth for names of one zone."""

    def __init__(self, metadata: ZoneMetadata, hasher: HashOracle | None = None):
        self.metadata = metadata
        self.apex = metadata.apex
        self.posture = metadata.posture
        self.nsec3 = metadata.nsec3
        if hasher is None and self.nsec3 is not None:
            hasher = HashOracle(self.nsec3)
        self.hasher = hasher

    @property
    def narrow(self) -> bool:
        return self.nsec3 is not None and self.nsec3.narrow

    @property
    def opt_out(self) -> bool:
        return self.nsec3 is not None and self.nsec3.opt_out

    def is_authoritative(self, name: dns.name.Name, context: RectifyContext) -> bool:
        """Return False when the name or any ancestor is a delegation point."""
        return not any(candidate in context.nsset for candidate in walk_up(name))

    def compute(self, name: dns.name.Name, context: RectifyContext, synthetic: bool = False) -> list[OrderingUpdate]:
        """Return the writes needed to rectify ``name``.

        The first update always covers every record at the name; any further
        updates are limited to one RR type.
        """
        if synthetic:
            auth = context.nonterm.get(name, False)
        else:
            auth = self.is_authoritative(name, context)
            context.real_auth[name] = auth

        ordername = self._ordername(name, auth, synthetic)
        updates = [OrderingUpdate(name, ordername, auth)]
        if synthetic:
            return updates

        if name in context.dsnames:
            # signed data at the cut, chained even when the cut is opted out
            updates.append(OrderingUpdate(name, self._ordername(name, True, False), True, "DS"))
        if not auth or name in context.nsset:
            if self.opt_out:
                updates.append(OrderingUpdate(name, None, False, "NS"))
            updates.append(OrderingUpdate(name, None, False, "A"))
            updates.append(OrderingUpdate(name, None, False, "AAAA"))
        return updates

    def _ordername(self, name: dns.name.Name, auth: bool, synthetic: bool) -> str | None:
        if self.posture is DnssecPosture.NSEC3:
            if self.narrow or self.hasher is None:
                return None
            if auth or (not synthetic and not self.opt_out):
                return self.hasher.ordername(name, self.apex)
            return None
        if self.posture is DnssecPosture.NSEC and not synthetic:
            return name.to_text()
        return None
