"""Read-only integrity audit of a zone's records."""

from __future__ import annotations

import logging

import dns.name
import dns.rdatatype

from . import content as rrcontent
from .backend import ZoneDataSource
from .models import CheckReport, EngineOptions, Finding, Record, Severity, SOAData, ZoneMetadata
from .names import chop_off, display, is_part_of, is_wildcard, to_name, wire_length

LOG = logging.getLogger("zone_rectify")

MAX_NSEC3_APEX_WIRE_LENGTH = 222


class _ZoneAudit:
    """Accumulates the state of one check run."""

    def __init__(self, zone: dns.name.Name, report: CheckReport):
        self.zone = zone
        self.report = report
        self.has_ns_at_apex = False
        self.tlsas: set[dns.name.Name] = set()
        self.cnames: set[dns.name.Name] = set()
        self.noncnames: set[dns.name.Name] = set()
        self.glue: set[dns.name.Name] = set()
        self.checkglue: set[dns.name.Name] = set()
        self.records: set[str] = set()
        self.ttls: dict[str, int] = {}

    def error(self, message: str) -> None:
        self._add(Severity.ERROR, message)

    def warning(self, message: str) -> None:
        self._add(Severity.WARNING, message)

    def info(self, message: str) -> None:
        self._add(Severity.INFO, message)

    def _add(self, severity: Severity, message: str) -> None:
        finding = Finding(severity, message)
        LOG.debug("%s", finding)
        self.report.findings.append(finding)


class IntegrityChecker:
    """Classifies problems in a zone as errors or warnings."""

    def __init__(self, backend: ZoneDataSource, options: EngineOptions | None = None):
        self.backend = backend
        self.options = options or EngineOptions()

    def check(self, zone: str | dns.name.Name) -> CheckReport:
        """Audit ``zone`` and return the report; never writes to the backend."""
        apex = to_name(zone)
        report = CheckReport(zone=display(apex))
        audit = _ZoneAudit(apex, report)

        soa = self.backend.get_soa(apex)
        if soa is None:
            audit.error(f"No SOA record present, or active, in zone '{display(apex)}'")
            LOG.info("%s", report.summary())
            return report
        metadata = self.backend.get_zone_metadata(apex)

        self._check_apex_length(audit, metadata)
        self._check_parent_delegation(audit)
        for record in self.backend.list_records(apex, metadata.domain_id, include_disabled=True):
            if record.is_ent_marker():
                continue
            report.records_checked += 1
            self._check_record(audit, metadata, soa, record)
        self._post_checks(audit)

        LOG.info("%s", report.summary())
        return report

    def _check_apex_length(self, audit: _ZoneAudit, metadata: ZoneMetadata) -> None:
        length = wire_length(audit.zone)
        if metadata.nsec3 is not None and metadata.secured and length > MAX_NSEC3_APEX_WIRE_LENGTH:
            audit.error(
                f"zone '{display(audit.zone)}' has NSEC3 semantics but is too long to have the hash prepended. "
                f"Zone name is {length} bytes long, whereas the maximum is {MAX_NSEC3_APEX_WIRE_LENGTH} bytes."
            )

    def _check_parent_delegation(self, audit: _ZoneAudit) -> None:
        parent = chop_off(audit.zone)
        while parent is not None:
            parent_soa = self.backend.get_soa(parent)
            if parent_soa is not None:
                records = self.backend.lookup(audit.zone, parent_soa.domain_id)
                if not any(record.canonical_type() == "NS" for record in records):
                    audit.error(f"No delegation for zone '{display(audit.zone)}' in parent '{display(parent)}'")
                return
            parent = chop_off(parent)

    def _check_record(self, audit: _ZoneAudit, metadata: ZoneMetadata, soa: SOAData, record: Record) -> None:
        zone = audit.zone
        qname = record.canonical_name()
        rtype = record.canonical_type()
        text = rrcontent.normalise_content(rtype, record.content)
        shown = f"{display(qname)} IN {rtype} {text}"

        if rtype == "TLSA":
            audit.tlsas.add(qname)

        try:
            rdata = rrcontent.parse(rtype, text)
        except rrcontent.ContentError as exc:
            audit.error(f"Following record had a problem: {shown}")
            audit.info(f"Error was: {exc}")
            return
        if rtype == "AAAA":
            if not rrcontent.is_valid_ipv6(text):
                audit.warning(f"Following record is not a valid IPv6 address: {display(qname)} IN {rtype} '{text}'")
        else:
            parsed = rrcontent.canonical_text(rdata)
            if parsed.lower() != text.lower():
                audit.warning(
                    f"Parsed and original record content are not equal: {display(qname)} IN {rtype} "
                    f"'{text}' (Content parsed as '{parsed}')"
                )

        if not is_part_of(qname, zone):
            audit.warning(f"Record '{shown}' in zone '{display(zone)}' is out-of-zone.")
            return

        record_key = f"{display(qname)} {rtype} {text}".lower()
        if record_key in audit.records:
            audit.error(f"Duplicate record found in rrset: '{shown}'")
            return
        audit.records.add(record_key)

        ttl_key = f"{display(qname)} {rtype}"
        if rtype == "RRSIG":
            ttl_key += f" ({dns.rdatatype.to_text(rdata.type_covered)})"
        ttl_key = ttl_key.lower()
        previous = audit.ttls.setdefault(ttl_key, record.ttl)
        if previous != record.ttl:
            audit.error(f"TTL mismatch in rrset: '{shown}' ({previous} != {record.ttl})")
            return

        if metadata.secured and metadata.nsec3 is not None and metadata.nsec3.opt_out and is_wildcard(qname):
            audit.warning(f"wildcard record '{shown}' is insecure")
            audit.info(
                f"Wildcard records in opt-out zones are insecure. Disable the opt-out flag for '{display(zone)}' "
                "to avoid this warning."
            )

        if qname == zone:
            if rtype == "NS":
                audit.has_ns_at_apex = True
            elif rtype == "DS":
                audit.warning(f"DS at apex in zone '{display(zone)}', should not be here.")
        elif rtype == "SOA":
            audit.error(f"SOA record not at apex '{shown}' in zone '{display(zone)}'")
            return
        elif rtype == "DNSKEY":
            audit.warning(f"DNSKEY record not at apex '{shown}' in zone '{display(zone)}', should not be here.")
        elif rtype == "NS":
            target = to_name(rdata.target.to_text())
            if is_part_of(target, qname):
                audit.checkglue.add(target)
        elif rtype in {"A", "AAAA"}:
            audit.glue.add(qname)

        if rtype == "CNAME":
            if qname in audit.cnames:
                audit.error(f"Duplicate CNAME found at '{display(qname)}'")
                return
            audit.cnames.add(qname)
        elif rtype == "RRSIG":
            if not metadata.presigned:
                audit.error(
                    f"RRSIG found at '{display(qname)}' in non-presigned zone. These do not belong in the database."
                )
                return
        else:
            audit.noncnames.add(qname)

        if rtype in {"NSEC", "NSEC3"}:
            audit.error(f"NSEC or NSEC3 found at '{display(qname)}'. These do not belong in the database.")
            return

        if rtype == "DNSKEY" and not metadata.presigned:
            if self.options.direct_dnskey:
                if record.ttl != soa.default_ttl:
                    audit.warning(
                        f"DNSKEY TTL of {record.ttl} at '{display(qname)}' differs from SOA minimum of "
                        f"{soa.default_ttl}"
                    )
            else:
                audit.warning(
                    f"DNSKEY at '{display(qname)}' in non-presigned zone will mostly be ignored and can cause problems."
                )

        if rrcontent.has_trailing_dot(rtype, record.content):
            audit.warning(
                f"The record {display(qname)} with type {rtype} has a trailing dot in the content "
                f"({record.content}). Your backend might not work well with this."
            )

        if not record.auth and rtype not in {"NS", "A", "AAAA"}:
            audit.error(f"Following record is auth=0, run zone-rectify rectify-zone?: {shown}")

    def _post_checks(self, audit: _ZoneAudit) -> None:
        zone = audit.zone
        for name in sorted(audit.cnames & audit.noncnames):
            audit.error(f"CNAME {display(name)} found, but other records with same label exist.")

        existing = audit.cnames | audit.noncnames
        for tlsa in sorted(audit.tlsas):
            if len(tlsa.labels) < 3:
                continue
            base = dns.name.Name(tlsa.labels[2:])
            if base in existing:
                continue
            wildcard = _wildcard_for(base)
            if wildcard is not None and wildcard in existing:
                detail = f"A wildcard record exist for '{display(wildcard)}' and a TLSA record for '{display(tlsa)}'."
            else:
                detail = f"No record for '{display(base)}' exists, but a TLSA record for '{display(tlsa)}' does."
            audit.warning(
                f"{detail} A query for '{display(base)}' will yield an empty response. This is most likely "
                f"a mistake, please create records for '{display(base)}'."
            )

        if not audit.has_ns_at_apex:
            audit.error(f"No NS record at zone apex in zone '{display(zone)}'")

        for target in sorted(audit.checkglue):
            if target not in audit.glue:
                audit.warning(f"Missing glue for '{display(target)}' in zone '{display(zone)}'")


def _wildcard_for(name: dns.name.Name) -> dns.name.Name | None:
    parent = chop_off(name)
    if parent is None:
        return None
    return dns.name.Name((b"*",) + parent.labels)


def check_all_zones(
    backend: ZoneDataSource,
    options: EngineOptions | None = None,
    exit_on_error: bool = False,
) -> list[CheckReport]:
    """Check every zone; stop at the first failing zone when ``exit_on_error``."""
    checker = IntegrityChecker(backend, options)
    reports: list[CheckReport] = []
    for apex in backend.list_zones():
        report = checker.check(apex)
        reports.append(report)
        if exit_on_error and not report.passed:
            break
    failed = sum(1 for report in reports if not report.passed)
    LOG.info("Checked %d zones, %d had errors.", len(reports), failed)
    return reports
