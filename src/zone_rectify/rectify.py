"""Zone rectification: ordernames, auth flags and empty non-terminals."""

from __future__ import annotations

import logging
from typing import Iterable

import dns.name

from .backend import ZoneDataSource
from .ent import EmptyNonTerminalReconciler, EntPlan
from .hashing import HashOracle
from .models import (
    BackendError,
    DnssecPosture,
    EngineOptions,
    MissingSOAError,
    PresignedZoneError,
    RectifyResult,
    ZoneMetadata,
)
from .names import display, to_name
from .ordering import OrderingComputer, RectifyContext

LOG = logging.getLogger("zone_rectify")


class RectifyEngine:
    """Rectifies one zone at a time against a ZoneDataSource."""

    def __init__(self, backend: ZoneDataSource, options: EngineOptions | None = None, hasher: HashOracle | None = None):
        """Store the backend and engine options for subsequent runs."""
        self.backend = backend
        self.options = options or EngineOptions()
        self.hasher = hasher

    def rectify(self, zone: str | dns.name.Name) -> RectifyResult:
        """Recompute ordering metadata for ``zone`` inside one transaction."""
        apex = to_name(zone)
        if self.backend.is_presigned(apex):
            raise PresignedZoneError(f"Rectify presigned zone '{display(apex)}' is not allowed/necessary.")
        if self.backend.get_soa(apex) is None:
            raise MissingSOAError(f"No SOA known for '{display(apex)}', is such a zone in the database?")
        metadata = self.backend.get_zone_metadata(apex)
        context = self._load_snapshot(metadata)
        _log_posture(metadata)

        computer = OrderingComputer(metadata, hasher=self.hasher)
        reconciler = EmptyNonTerminalReconciler(self.options.max_ent_entries)
        result = RectifyResult(zone=display(apex), posture=metadata.posture)

        _check(self.backend.begin_transaction(apex, metadata.domain_id), "start transaction", apex)
        try:
            result.names += self._ordering_pass(metadata, computer, context, sorted(context.qnames), synthetic=False)
            plan = reconciler.reconcile(context.real_auth, apex, context.known_ents)
            self._write_ents(metadata, plan)
            result.ent_inserted = len(plan.insert)
            result.ent_deleted = len(plan.delete)
            result.ent_tracking = plan.tracking
            if plan.tracking:
                context.nonterm = plan.nonterm
                result.names += self._ordering_pass(
                    metadata, computer, context, sorted(plan.nonterm), synthetic=True
                )
            _check(self.backend.commit_transaction(), "commit transaction", apex)
        except Exception:
            LOG.error("Rectify of '%s' failed, aborting transaction", display(apex))
            self.backend.abort_transaction()
            raise
        LOG.info(
            "Rectified '%s': %d names, %d empty non terminals added, %d removed",
            display(apex),
            result.names,
            result.ent_inserted,
            result.ent_deleted,
        )
        return result

    def _load_snapshot(self, metadata: ZoneMetadata) -> RectifyContext:
        """Build the name sets for this run from the backend's records."""
        context = RectifyContext(apex=metadata.apex)
        for record in self.backend.list_records(metadata.apex, metadata.domain_id):
            context.add_record(record.canonical_name(), record.canonical_type())
        return context

    def _ordering_pass(
        self,
        metadata: ZoneMetadata,
        computer: OrderingComputer,
        context: RectifyContext,
        names: Iterable[dns.name.Name],
        synthetic: bool,
    ) -> int:
        count = 0
        for name in names:
            for update in computer.compute(name, context, synthetic=synthetic):
                LOG.debug("'%s' -> '%s' (auth=%s)", display(name), update.ordername or "", update.auth)
                ok = self.backend.update_ordering_and_auth(
                    metadata.domain_id,
                    metadata.apex,
                    update.name,
                    update.ordername,
                    update.auth,
                    update.rtype,
                )
                _check(ok, f"update ordername for '{display(name)}'", metadata.apex)
            count += 1
        return count

    def _write_ents(self, metadata: ZoneMetadata, plan: EntPlan) -> None:
        if not plan.needs_write():
            return
        ok = self.backend.replace_empty_non_terminals(
            metadata.domain_id,
            metadata.apex,
            sorted(plan.insert),
            sorted(plan.delete),
            not plan.tracking,
        )
        _check(ok, "update empty non terminals", metadata.apex)


def rectify_all_zones(backend: ZoneDataSource, options: EngineOptions | None = None) -> tuple[int, int]:
    """Rectify every zone the backend knows; return (rectified, failed)."""
    engine = RectifyEngine(backend, options)
    rectified = failed = 0
    for apex in backend.list_zones():
        try:
            engine.rectify(apex)
        except Exception as exc:  # noqa: BLE001
            LOG.error("Rectifying %s failed: %s", display(apex), exc)
            failed += 1
            continue
        rectified += 1
    LOG.info("Rectified %d zones, %d failed.", rectified, failed)
    return rectified, failed


def _check(ok: bool, action: str, apex: dns.name.Name) -> None:
    if not ok:
        raise BackendError(f"Backend failed to {action} in zone '{display(apex)}'.")


def _log_posture(metadata: ZoneMetadata) -> None:
    posture = metadata.posture
    if posture is DnssecPosture.NSEC:
        LOG.info("Adding NSEC ordering information")
    elif posture is DnssecPosture.NSEC3 and metadata.nsec3 is not None:
        if metadata.nsec3.narrow:
            LOG.info("Erasing NSEC3 ordering since we are narrow, only setting 'auth' fields")
        elif metadata.nsec3.opt_out:
            LOG.info("Adding NSEC3 opt-out hashed ordering information for '%s'", display(metadata.apex))
        else:
            LOG.info("Adding NSEC3 hashed ordering information for '%s'", display(metadata.apex))
    else:
        LOG.info("Non DNSSEC zone, only adding empty non-terminals")
