"""Core data models used by zone-rectify."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

import dns.exception
import dns.name
import dns.rdata
import dns.rdataclass
import dns.rdatatype

from .names import to_name

MAX_NSEC3_ITERATIONS = 2500
NSEC3_SHA1 = 1


@dataclass(frozen=True)
class Record:
    """A resource record as stored by the backend."""

    name: str
    type: str
    content: str
    ttl: int = 3600
    auth: bool = True
    disabled: bool = False
    ordername: str | None = None
    domain_id: int = 0

    def canonical_name(self) -> dns.name.Name:
        """Return the canonical fully qualified owner name."""
        return to_name(self.name)

    def canonical_type(self) -> str:
        """Return the canonical RR type."""
        return self.type.upper()

    def is_ent_marker(self) -> bool:
        """Return True for an empty non-terminal marker row."""
        return not self.type


class DnssecPosture(enum.Enum):
    """How a zone is signed."""

    UNSIGNED = "unsigned"
    NSEC = "nsec"
    NSEC3 = "nsec3"
    PRESIGNED = "presigned"


@dataclass(frozen=True)
class Nsec3Params:
    """NSEC3 hashing parameters for a zone."""

    salt: bytes = b""
    iterations: int = 0
    opt_out: bool = False
    narrow: bool = False
    algorithm: int = 1

    def __post_init__(self) -> None:
        if not 0 <= self.iterations <= MAX_NSEC3_ITERATIONS:
            raise ValueError(
                f"NSEC3 iterations must be between 0 and {MAX_NSEC3_ITERATIONS}, got {self.iterations}."
            )
        if self.algorithm != NSEC3_SHA1:
            raise ValueError(f"Unsupported NSEC3 hash algorithm {self.algorithm}, only SHA-1 (1) is defined.")

    @classmethod
    def from_text(cls, text: str, narrow: bool = False) -> Nsec3Params:
        """Parse NSEC3PARAM presentation format, e.g. ``1 1 10 ab``.

        The flags field carries the opt-out bit.
        """
        try:
            rdata = dns.rdata.from_text(dns.rdataclass.IN, dns.rdatatype.NSEC3PARAM, text)
        except dns.exception.DNSException as exc:
            raise ValueError(f"Invalid NSEC3PARAM '{text}': {exc}") from exc
        return cls(
            salt=rdata.salt,
            iterations=rdata.iterations,
            opt_out=bool(rdata.flags & 1),
            narrow=narrow,
            algorithm=rdata.algorithm,
        )

    def to_text(self) -> str:
        """Return NSEC3PARAM presentation format."""
        salt = self.salt.hex() if self.salt else "-"
        return f"{self.algorithm} {1 if self.opt_out else 0} {self.iterations} {salt}"


@dataclass(frozen=True)
class SOAData:
    """The parts of a zone's SOA the engines care about."""

    domain_id: int
    apex: dns.name.Name
    serial: int
    default_ttl: int

    @classmethod
    def from_record(cls, record: Record, apex: dns.name.Name) -> SOAData:
        """Build SOA data from a stored SOA record; missing fields count as zero."""
        parts = record.content.split()
        numbers = []
        for part in parts[2:7]:
            try:
                numbers.append(int(part))
            except ValueError:
                numbers.append(0)
        numbers.extend([0] * (5 - len(numbers)))
        return cls(domain_id=record.domain_id, apex=apex, serial=numbers[0], default_ttl=numbers[4])


@dataclass(frozen=True)
class ZoneMetadata:
    """Zone identity and DNSSEC posture."""

    domain_id: int
    apex: dns.name.Name
    serial: int = 0
    secured: bool = False
    presigned: bool = False
    nsec3: Nsec3Params | None = None

    @property
    def posture(self) -> DnssecPosture:
        """Return the zone's DNSSEC posture."""
        if self.presigned:
            return DnssecPosture.PRESIGNED
        if self.nsec3 is not None:
            return DnssecPosture.NSEC3
        if self.secured:
            return DnssecPosture.NSEC
        return DnssecPosture.UNSIGNED


@dataclass(frozen=True)
class EngineOptions:
    """Settings consumed by the rectify and check engines."""

    max_ent_entries: int = 100000
    direct_dnskey: bool = False


@dataclass(frozen=True)
class OrderingUpdate:
    """A single ordername/auth write; ``rtype`` limits it to one RR type."""

    name: dns.name.Name
    ordername: str | None
    auth: bool
    rtype: str | None = None


@dataclass
class RectifyResult:
    """Outcome of rectifying one zone."""

    zone: str
    posture: DnssecPosture
    names: int = 0
    ent_inserted: int = 0
    ent_deleted: int = 0
    ent_tracking: bool = True


class Severity(enum.Enum):
    """Classification of a check finding."""

    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Info"


@dataclass(frozen=True)
class Finding:
    """One message produced by the integrity checker."""

    severity: Severity
    message: str

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.message}"


@dataclass
class CheckReport:
    """Result of checking one zone."""

    zone: str
    records_checked: int = 0
    findings: list[Finding] = field(default_factory=list)

    @property
    def errors(self) -> int:
        """Return the number of error findings."""
        return sum(1 for finding in self.findings if finding.severity is Severity.ERROR)

    @property
    def warnings(self) -> int:
        """Return the number of warning findings."""
        return sum(1 for finding in self.findings if finding.severity is Severity.WARNING)

    @property
    def passed(self) -> bool:
        """Return True when no errors were found."""
        return self.errors == 0

    def summary(self) -> str:
        """Return the one-line summary printed after a check."""
        return (
            f"Checked {self.records_checked} records of '{self.zone}', "
            f"{self.errors} errors, {self.warnings} warnings."
        )


class ZoneRectifyError(Exception):
    """Base exception for zone-rectify."""


class ZoneNotFoundError(ZoneRectifyError):
    """Raised when the backend does not know a zone."""


class PresignedZoneError(ZoneRectifyError):
    """Raised when rectification is requested for a presigned zone."""


class MissingSOAError(ZoneRectifyError):
    """Raised when a zone has no SOA record."""


class BackendError(ZoneRectifyError):
    """Raised when a backend write or transaction call fails."""


class ValidationError(ZoneRectifyError):
    """Raised when a zone store file is invalid."""
