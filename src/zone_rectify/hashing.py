"""NSEC3 owner name hashing."""

from __future__ import annotations

import dns.dnssec
import dns.name

from .models import Nsec3Params


class HashOracle:
    """Turns names into NSEC3 hashed labels for one set of parameters."""

    def __init__(self, params: Nsec3Params):
        """Store the salt and iteration count used for every hash."""
        self.params = params

    def hash_label(self, name: dns.name.Name) -> str:
        """Return the lower-case base32hex hash of ``name``."""
        digest = dns.dnssec.nsec3_hash(
            name,
            self.params.salt,
            self.params.iterations,
            self.params.algorithm,
        )
        return digest.lower()

    def ordername(self, name: dns.name.Name, apex: dns.name.Name) -> str:
        """Return the hashed owner name, i.e. the hash label prepended to the apex."""
        return dns.name.Name((self.hash_label(name).encode("ascii"),) + apex.labels).to_text()
