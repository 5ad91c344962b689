"""Tests for the rectify engine against the in-memory backend."""

import pytest

from conftest import SOA, delegating_zone, minimal_zone, records_at, rr
from zone_rectify.backend import InMemoryZoneDataSource
from zone_rectify.hashing import HashOracle
from zone_rectify.models import (
    BackendError,
    DnssecPosture,
    EngineOptions,
    MissingSOAError,
    Nsec3Params,
    PresignedZoneError,
    ZoneNotFoundError,
)
from zone_rectify.names import to_name
from zone_rectify.rectify import RectifyEngine, rectify_all_zones

NSEC3 = Nsec3Params(salt=bytes.fromhex("abcd"), iterations=1)


def _state(backend):
    """Return a comparable view of every stored row."""
    return sorted(
        (record.canonical_name().to_text(), record.type, record.content, record.ordername or "", record.auth)
        for zone in backend.zones.values()
        for record in zone.records
    )


def _ent_names(backend):
    return sorted(
        record.canonical_name().to_text()
        for zone in backend.zones.values()
        for record in zone.records
        if record.is_ent_marker()
    )


def test_nsec_rectify_sets_ordernames_and_auth(backend):
    backend.add_zone("example.com", delegating_zone(), secured=True)
    result = RectifyEngine(backend).rectify("example.com")

    assert result.posture is DnssecPosture.NSEC
    assert result.ent_tracking
    assert records_at(backend, "www.example.com")[0].ordername == "www.example.com."
    assert records_at(backend, "www.example.com")[0].auth

    delegation = records_at(backend, "deleg.example.com", "NS")[0]
    assert delegation.ordername == "deleg.example.com."
    assert delegation.auth is False

    glue = records_at(backend, "ns.deleg.example.com", "A")[0]
    assert glue.ordername is None
    assert glue.auth is False

    ds = records_at(backend, "secure.example.com", "DS")[0]
    assert ds.auth is True
    assert ds.ordername == "secure.example.com."
    assert records_at(backend, "secure.example.com", "NS")[0].auth is False


def test_rectify_inserts_empty_non_terminals(backend):
    backend.add_zone("example.com", delegating_zone(), secured=True)
    result = RectifyEngine(backend).rectify("example.com")

    assert _ent_names(backend) == ["b.c.example.com.", "c.example.com.", "sub.deleg.example.com."]
    assert result.ent_inserted == 3
    assert result.ent_deleted == 0
    assert records_at(backend, "c.example.com")[0].auth is True
    assert records_at(backend, "c.example.com")[0].ordername is None
    assert records_at(backend, "sub.deleg.example.com")[0].auth is False


def test_apex_never_yields_markers_outside_the_zone(backend):
    backend.add_zone("example.com", minimal_zone(), secured=True)
    result = RectifyEngine(backend).rectify("example.com")
    assert result.ent_inserted == 0
    assert _ent_names(backend) == []


def test_rectify_is_idempotent(backend):
    backend.add_zone("example.com", delegating_zone(), nsec3=NSEC3)
    engine = RectifyEngine(backend)
    engine.rectify("example.com")
    first = _state(backend)

    second = engine.rectify("example.com")

    assert _state(backend) == first
    assert second.ent_inserted == 0
    assert second.ent_deleted == 0


def test_rectify_does_not_depend_on_record_order():
    forward = InMemoryZoneDataSource()
    forward.add_zone("example.com", delegating_zone(), nsec3=NSEC3)
    backward = InMemoryZoneDataSource()
    backward.add_zone("example.com", list(reversed(delegating_zone())), nsec3=NSEC3)

    RectifyEngine(forward).rectify("example.com")
    RectifyEngine(backward).rectify("example.com")

    assert _state(forward) == _state(backward)


def test_delegated_names_are_never_authoritative(backend):
    backend.add_zone("example.com", delegating_zone(), secured=True)
    RectifyEngine(backend).rectify("example.com")
    delegations = {to_name("deleg.example.com"), to_name("secure.example.com")}

    for record in backend.zones[to_name("example.com")].records:
        if record.is_ent_marker() or record.canonical_type() == "DS":
            continue
        delegated = any(record.canonical_name().is_subdomain(cut) for cut in delegations)
        assert record.auth is not delegated, record


def test_nsec3_ordernames_are_hashed(backend):
    backend.add_zone("example.com", delegating_zone(), secured=True, nsec3=NSEC3)
    RectifyEngine(backend).rectify("example.com")
    oracle = HashOracle(NSEC3)
    apex = to_name("example.com")

    www = records_at(backend, "www.example.com")[0]
    assert www.ordername == oracle.ordername(to_name("www.example.com"), apex)
    ent = records_at(backend, "c.example.com")[0]
    assert ent.ordername == oracle.ordername(to_name("c.example.com"), apex)
    assert records_at(backend, "sub.deleg.example.com")[0].ordername is None


def test_nsec3_opt_out_leaves_insecure_delegations_unhashed(backend):
    params = Nsec3Params(salt=NSEC3.salt, iterations=NSEC3.iterations, opt_out=True)
    backend.add_zone("example.com", delegating_zone(), secured=True, nsec3=params)
    RectifyEngine(backend).rectify("example.com")
    oracle = HashOracle(params)

    assert records_at(backend, "deleg.example.com", "NS")[0].ordername is None
    assert records_at(backend, "secure.example.com", "NS")[0].ordername is None
    ds = records_at(backend, "secure.example.com", "DS")[0]
    assert ds.ordername == oracle.ordername(to_name("secure.example.com"), to_name("example.com"))
    assert ds.auth is True


def test_nsec3_narrow_never_writes_ordernames(backend):
    records = delegating_zone() + [rr("stale.example.com", "TXT", "old", ordername="stale.example.com.")]
    params = Nsec3Params(salt=NSEC3.salt, iterations=NSEC3.iterations, narrow=True)
    backend.add_zone("example.com", records, secured=True, nsec3=params)
    RectifyEngine(backend).rectify("example.com")

    stored = backend.zones[to_name("example.com")].records
    assert all(record.ordername is None for record in stored)
    assert records_at(backend, "ns.deleg.example.com")[0].auth is False
    assert records_at(backend, "www.example.com")[0].auth is True


def test_unsigned_zone_only_tracks_empty_non_terminals(backend):
    backend.add_zone("example.com", delegating_zone())
    result = RectifyEngine(backend).rectify("example.com")

    assert result.posture is DnssecPosture.UNSIGNED
    assert all(record.ordername is None for record in backend.zones[to_name("example.com")].records)
    assert "c.example.com." in _ent_names(backend)


def test_stale_markers_are_replaced(backend):
    records = delegating_zone() + [
        rr("c.example.com", "", "", ttl=0),
        rr("gone.example.com", "", "", ttl=0),
    ]
    backend.add_zone("example.com", records, secured=True)
    result = RectifyEngine(backend).rectify("example.com")

    assert result.ent_inserted == 2
    assert result.ent_deleted == 1
    assert _ent_names(backend) == ["b.c.example.com.", "c.example.com.", "sub.deleg.example.com."]


def test_ent_budget_exceeded_drops_all_markers(backend):
    records = delegating_zone() + [rr("old.example.com", "", "", ttl=0)]
    backend.add_zone("example.com", records, secured=True)
    result = RectifyEngine(backend, EngineOptions(max_ent_entries=2)).rectify("example.com")

    assert result.ent_tracking is False
    assert result.ent_inserted == 0
    assert result.ent_deleted == 0
    assert _ent_names(backend) == []
    assert records_at(backend, "www.example.com")[0].ordername == "www.example.com."


def test_ent_budget_at_limit_keeps_tracking(backend):
    backend.add_zone("example.com", delegating_zone(), secured=True)
    result = RectifyEngine(backend, EngineOptions(max_ent_entries=3)).rectify("example.com")
    assert result.ent_tracking
    assert len(_ent_names(backend)) == 3


def test_presigned_zone_is_refused(backend):
    backend.add_zone("example.com", delegating_zone(), presigned=True)
    before = _state(backend)
    with pytest.raises(PresignedZoneError):
        RectifyEngine(backend).rectify("example.com")
    assert _state(backend) == before


def test_zone_without_soa_is_refused(backend):
    backend.add_zone("example.com", delegating_zone()[1:], secured=True)
    before = _state(backend)
    with pytest.raises(MissingSOAError):
        RectifyEngine(backend).rectify("example.com")
    assert _state(backend) == before


def test_unknown_zone(backend):
    with pytest.raises(ZoneNotFoundError):
        RectifyEngine(backend).rectify("nowhere.example")


class FailingBackend(InMemoryZoneDataSource):
    """Backend whose writes fail for one owner name."""

    def __init__(self, failing_name):
        super().__init__()
        self.failing_name = to_name(failing_name)

    def update_ordering_and_auth(self, domain_id, apex, name, ordername, auth, rtype=None):
        if to_name(name) == self.failing_name:
            return False
        return super().update_ordering_and_auth(domain_id, apex, name, ordername, auth, rtype)


def test_failed_write_aborts_whole_transaction():
    backend = FailingBackend("www.example.com")
    backend.add_zone("example.com", delegating_zone(), secured=True)
    before = _state(backend)

    with pytest.raises(BackendError):
        RectifyEngine(backend).rectify("example.com")

    assert _state(backend) == before
    assert backend._saved is None


def test_rectify_completes_without_apex_ns(backend):
    records = [rr("example.com", "SOA", SOA), rr("www.example.com", "A", "192.0.2.2")]
    backend.add_zone("example.com", records, secured=True)
    RectifyEngine(backend).rectify("example.com")
    assert records_at(backend, "example.com")[0].auth is True
    assert records_at(backend, "www.example.com")[0].ordername == "www.example.com."


def _underscore_zone():
    return [
        rr("example.com", "SOA", SOA),
        rr("example.com", "NS", "ns1.example.com"),
        rr("_underscore.example.com", "A", "127.0.0.1"),
        rr("bla.example.com", "A", "127.0.0.2"),
    ]


def test_nsec_neighbours_follow_canonical_order(backend):
    zone = backend.add_zone("example.com", _underscore_zone(), secured=True)
    RectifyEngine(backend).rectify("example.com")

    before, after = backend.get_before_and_after(zone.domain_id, "z.example.com.")
    assert before == to_name("bla.example.com")
    assert after == to_name("example.com")

    before, after = backend.get_before_and_after(zone.domain_id, "a.example.com.")
    assert before == to_name("_underscore.example.com")
    assert after == to_name("bla.example.com")


def test_nsec3_neighbours_follow_hash_order(backend):
    zone = backend.add_zone("example.com", _underscore_zone(), secured=True, nsec3=NSEC3)
    RectifyEngine(backend).rectify("example.com")

    assert records_at(backend, "example.com", "SOA")[0].ordername == "vtnq6ocn2vkuiv3nju14oqtaen2mt5sk.example.com."
    assert records_at(backend, "bla.example.com")[0].ordername == "5g8js7nle8o3rd0t8jiqnahm02sjt6f7.example.com."

    # qdnnm409... sorts between _underscore (k4sd6f5f...) and the apex (vtnq6ocn...).
    before, after = backend.get_before_and_after(zone.domain_id, "qdnnm409bos416elegb5pcflugbgp0kv.example.com.")
    assert before == to_name("_underscore.example.com")
    assert after == to_name("example.com")
    assert _ent_names(backend) == []


def test_rectify_all_zones_continues_after_failures(backend):
    backend.add_zone("example.com", delegating_zone(), secured=True)
    backend.add_zone("example.net", [rr("example.net", "NS", "ns1.example.com")])
    backend.add_zone("example.org", [rr("example.org", "SOA", SOA)], presigned=True)
    rectified, failed = rectify_all_zones(backend)
    assert (rectified, failed) == (1, 2)
