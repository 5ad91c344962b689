"""Empty non-terminal bookkeeping."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

import dns.name

from .names import strict_ancestors

LOG = logging.getLogger("zone_rectify")


@dataclass
class EntPlan:
    """Empty non-terminals a zone needs and how they differ from the backend."""

    nonterm: dict[dns.name.Name, bool] = field(default_factory=dict)
    insert: set[dns.name.Name] = field(default_factory=set)
    delete: set[dns.name.Name] = field(default_factory=set)
    tracking: bool = True

    def needs_write(self) -> bool:
        """Return True when the backend's ENT markers must be replaced."""
        return bool(self.insert or self.delete or not self.tracking)


class EntBudgetExceeded(Exception):
    """Internal signal that a zone has more empty non-terminals than allowed."""


class EmptyNonTerminalReconciler:
    """Derives the ENT set from owner names and diffs it against stored markers."""

    def __init__(self, max_entries: int):
        self.max_entries = max_entries

    def candidates(
        self,
        real_auth: Mapping[dns.name.Name, bool],
        apex: dns.name.Name,
    ) -> dict[dns.name.Name, bool]:
        """Return every ENT implied by ``real_auth`` and whether it is authoritative.

        Raises EntBudgetExceeded once more than ``max_entries`` distinct ENTs
        have been found.
        """
        nonterm: dict[dns.name.Name, bool] = {}
        for qname in sorted(real_auth):
            auth = real_auth[qname]
            for ancestor in strict_ancestors(qname, apex):
                if ancestor in real_auth:
                    break
                if ancestor in nonterm:
                    if auth:
                        nonterm[ancestor] = True
                    continue
                if len(nonterm) >= self.max_entries:
                    raise EntBudgetExceeded(ancestor)
                nonterm[ancestor] = auth
        return nonterm

    def reconcile(
        self,
        real_auth: Mapping[dns.name.Name, bool],
        apex: dns.name.Name,
        known_ents: Iterable[dns.name.Name],
    ) -> EntPlan:
        """Build the insert/delete plan for a zone."""
        known = set(known_ents)
        try:
            nonterm = self.candidates(real_auth, apex)
        except EntBudgetExceeded:
            LOG.info("Zone '%s' has too many empty non terminals.", apex.to_text())
            return EntPlan(tracking=False)
        insert = set(nonterm) - known
        delete = known - set(nonterm)
        LOG.debug(
            "Zone '%s': %d empty non terminals, %d to insert, %d to delete",
            apex.to_text(),
            len(nonterm),
            len(insert),
            len(delete),
        )
        return EntPlan(nonterm=nonterm, insert=insert, delete=delete)
