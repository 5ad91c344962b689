"""Zone datastore interface and an in-memory implementation."""

from __future__ import annotations

import abc
import copy
import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator

import dns.name

from .models import (
    BackendError,
    Nsec3Params,
    Record,
    SOAData,
    ZoneMetadata,
    ZoneNotFoundError,
)
from .names import to_name

LOG = logging.getLogger("zone_rectify")


class ZoneDataSource(abc.ABC):
    """Capabilities the engines need from a record store."""

    @abc.abstractmethod
    def list_zones(self) -> list[dns.name.Name]:
        """Return the apex of every zone."""

    @abc.abstractmethod
    def get_soa(self, apex: dns.name.Name) -> SOAData | None:
        """Return SOA data for a zone, or None when it has no active SOA."""

    @abc.abstractmethod
    def get_zone_metadata(self, apex: dns.name.Name) -> ZoneMetadata:
        """Return zone identity and posture; raise ZoneNotFoundError if unknown."""

    @abc.abstractmethod
    def list_records(self, apex: dns.name.Name, domain_id: int, include_disabled: bool = False) -> Iterator[Record]:
        """Yield every row of a zone, ENT markers included."""

    @abc.abstractmethod
    def lookup(self, name: dns.name.Name, domain_id: int) -> Iterator[Record]:
        """Yield the records owned by ``name`` in one zone."""

    @abc.abstractmethod
    def update_ordering_and_auth(
        self,
        domain_id: int,
        apex: dns.name.Name,
        name: dns.name.Name,
        ordername: str | None,
        auth: bool,
        rtype: str | None = None,
    ) -> bool:
        """Set ordername and auth for the records at a name."""

    @abc.abstractmethod
    def replace_empty_non_terminals(
        self,
        domain_id: int,
        apex: dns.name.Name,
        insert: Iterable[dns.name.Name],
        delete: Iterable[dns.name.Name],
        remove_all: bool,
    ) -> bool:
        """Add and remove ENT marker rows; ``remove_all`` drops every marker."""

    @abc.abstractmethod
    def begin_transaction(self, apex: dns.name.Name, domain_id: int) -> bool:
        """Start a write transaction."""

    @abc.abstractmethod
    def commit_transaction(self) -> bool:
        """Commit the open transaction."""

    @abc.abstractmethod
    def abort_transaction(self) -> bool:
        """Roll back the open transaction."""

    @abc.abstractmethod
    def get_before_and_after(
        self, domain_id: int, ordername: str
    ) -> tuple[dns.name.Name | None, dns.name.Name | None]:
        """Return the owners whose ordernames surround ``ordername``."""

    def get_nsec3_params(self, apex: dns.name.Name) -> tuple[Nsec3Params | None, bool]:
        """Return the zone's NSEC3 parameters and narrow flag."""
        nsec3 = self.get_zone_metadata(apex).nsec3
        return nsec3, bool(nsec3 and nsec3.narrow)

    def is_presigned(self, apex: dns.name.Name) -> bool:
        """Return True when the zone is signed outside this system."""
        return self.get_zone_metadata(apex).presigned


@dataclass
class StoredZone:
    """Zone row kept by the in-memory backend."""

    domain_id: int
    apex: dns.name.Name
    secured: bool = False
    presigned: bool = False
    nsec3: Nsec3Params | None = None
    records: list[Record] = field(default_factory=list)


class InMemoryZoneDataSource(ZoneDataSource):
    """Dictionary-backed store with all-or-nothing transactions."""

    def __init__(self) -> None:
        self.zones: dict[dns.name.Name, StoredZone] = {}
        self._saved: dict[dns.name.Name, StoredZone] | None = None

    def add_zone(
        self,
        apex: str | dns.name.Name,
        records: Iterable[Record] = (),
        secured: bool = False,
        presigned: bool = False,
        nsec3: Nsec3Params | None = None,
        domain_id: int | None = None,
    ) -> StoredZone:
        """Register a zone and its records."""
        name = to_name(apex)
        if domain_id is None:
            domain_id = max((zone.domain_id for zone in self.zones.values()), default=0) + 1
        zone = StoredZone(domain_id=domain_id, apex=name, secured=secured, presigned=presigned, nsec3=nsec3)
        zone.records = [replace(record, domain_id=domain_id) for record in records]
        self.zones[name] = zone
        return zone

    def _zone(self, apex: dns.name.Name) -> StoredZone:
        try:
            return self.zones[to_name(apex)]
        except KeyError:
            raise ZoneNotFoundError(f"Zone '{apex}' is not known to the backend.") from None

    def _zone_by_id(self, domain_id: int) -> StoredZone:
        for zone in self.zones.values():
            if zone.domain_id == domain_id:
                return zone
        raise ZoneNotFoundError(f"No zone with id {domain_id}.")

    def list_zones(self) -> list[dns.name.Name]:
        return sorted(self.zones)

    def get_soa(self, apex: dns.name.Name) -> SOAData | None:
        zone = self.zones.get(to_name(apex))
        if zone is None:
            return None
        for record in zone.records:
            if record.canonical_type() == "SOA" and not record.disabled and record.canonical_name() == zone.apex:
                return SOAData.from_record(record, zone.apex)
        return None

    def get_zone_metadata(self, apex: dns.name.Name) -> ZoneMetadata:
        zone = self._zone(apex)
        soa = self.get_soa(zone.apex)
        return ZoneMetadata(
            domain_id=zone.domain_id,
            apex=zone.apex,
            serial=soa.serial if soa else 0,
            secured=zone.secured,
            presigned=zone.presigned,
            nsec3=zone.nsec3,
        )

    def list_records(self, apex: dns.name.Name, domain_id: int, include_disabled: bool = False) -> Iterator[Record]:
        zone = self._zone(apex)
        if zone.domain_id != domain_id:
            raise BackendError(f"Zone '{apex}' does not have id {domain_id}.")
        for record in list(zone.records):
            if record.disabled and not include_disabled:
                continue
            yield record

    def lookup(self, name: dns.name.Name, domain_id: int) -> Iterator[Record]:
        zone = self._zone_by_id(domain_id)
        wanted = to_name(name)
        for record in list(zone.records):
            if record.type and not record.disabled and record.canonical_name() == wanted:
                yield record

    def update_ordering_and_auth(
        self,
        domain_id: int,
        apex: dns.name.Name,
        name: dns.name.Name,
        ordername: str | None,
        auth: bool,
        rtype: str | None = None,
    ) -> bool:
        zone = self._zone_by_id(domain_id)
        wanted = to_name(name)
        wanted_type = rtype.upper() if rtype else None
        for index, record in enumerate(zone.records):
            if record.canonical_name() != wanted:
                continue
            if wanted_type is not None and record.canonical_type() != wanted_type:
                continue
            zone.records[index] = replace(record, ordername=ordername, auth=auth)
        return True

    def replace_empty_non_terminals(
        self,
        domain_id: int,
        apex: dns.name.Name,
        insert: Iterable[dns.name.Name],
        delete: Iterable[dns.name.Name],
        remove_all: bool,
    ) -> bool:
        zone = self._zone_by_id(domain_id)
        if remove_all:
            zone.records = [record for record in zone.records if not record.is_ent_marker()]
            return True
        doomed = {to_name(name) for name in delete}
        zone.records = [
            record
            for record in zone.records
            if not (record.is_ent_marker() and record.canonical_name() in doomed)
        ]
        for name in sorted(to_name(name) for name in insert):
            zone.records.append(
                Record(name=name.to_text(), type="", content="", ttl=0, auth=True, domain_id=domain_id)
            )
        return True

    def begin_transaction(self, apex: dns.name.Name, domain_id: int) -> bool:
        if self._saved is not None:
            raise BackendError("A transaction is already in progress.")
        self._saved = copy.deepcopy(self.zones)
        LOG.debug("Started transaction for %s (id %d)", apex, domain_id)
        return True

    def commit_transaction(self) -> bool:
        if self._saved is None:
            raise BackendError("No transaction in progress.")
        self._saved = None
        return True

    def abort_transaction(self) -> bool:
        if self._saved is None:
            return False
        self.zones = self._saved
        self._saved = None
        return True

    def get_before_and_after(
        self, domain_id: int, ordername: str
    ) -> tuple[dns.name.Name | None, dns.name.Name | None]:
        zone = self._zone_by_id(domain_id)
        chain: dict[dns.name.Name, dns.name.Name] = {}
        for record in zone.records:
            if record.ordername is not None and not record.disabled:
                chain.setdefault(to_name(record.ordername), record.canonical_name())
        if not chain:
            return None, None
        key = to_name(ordername)
        ordered = sorted(chain)
        below = [candidate for candidate in ordered if candidate <= key]
        above = [candidate for candidate in ordered if candidate > key]
        before = below[-1] if below else ordered[-1]
        after = above[0] if above else ordered[0]
        return chain[before], chain[after]
