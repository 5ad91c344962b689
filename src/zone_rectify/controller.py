"""High-level orchestration for zone-rectify."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .checker import IntegrityChecker, check_all_zones
from .config import AppConfig
from .exporter import store_to_json, store_to_yaml, write_store
from .models import CheckReport, RectifyResult, ZoneRectifyError
from .names import display, to_name
from .rectify import RectifyEngine, rectify_all_zones
from .store import load_store

LOG = logging.getLogger("zone_rectify")


@dataclass
class RectifyOutcome:
    """Per-zone results of a rectify run."""

    results: list[RectifyResult] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Return True when every zone was rectified."""
        return not self.failures


class ZoneController:
    """Coordinates rectify/check runs against the configured zone store."""

    def __init__(self, config: AppConfig, template_vars: dict[str, Any] | None = None):
        """Load the zone store for subsequent runs."""
        self.config = config
        self.options = config.engine_options()
        self.backend = load_store(config.zone_store, template_vars)

    def rectify(self, zones: list[str], dry_run: bool = False) -> RectifyOutcome:
        """Rectify the given zones, continuing past per-zone failures."""
        engine = RectifyEngine(self.backend, self.options)
        outcome = RectifyOutcome()
        for zone in zones:
            try:
                outcome.results.append(engine.rectify(zone))
            except Exception as exc:  # noqa: BLE001
                LOG.error("Rectifying %s failed: %s", zone, exc)
                outcome.failures[zone] = str(exc)
        if outcome.results and not dry_run:
            self.save()
        return outcome

    def rectify_all(self, dry_run: bool = False) -> tuple[int, int]:
        """Rectify every zone in the store."""
        rectified, failed = rectify_all_zones(self.backend, self.options)
        if rectified and not dry_run:
            self.save()
        return rectified, failed

    def check(self, zones: list[str]) -> list[CheckReport]:
        """Check the given zones."""
        checker = IntegrityChecker(self.backend, self.options)
        return [checker.check(zone) for zone in zones]

    def check_all(self, exit_on_error: bool = False) -> list[CheckReport]:
        """Check every zone in the store."""
        return check_all_zones(self.backend, self.options, exit_on_error=exit_on_error)

    def export(self, zone: str, fmt: str = "yaml") -> str:
        """Serialise one zone, including ordering metadata."""
        apex = to_name(zone)
        if apex not in self.backend.zones:
            raise ZoneRectifyError(f"Zone '{display(apex)}' not found.")
        if fmt == "json":
            return store_to_json(self.backend, [apex])
        return store_to_yaml(self.backend, [apex])

    def save(self, path: Path | None = None) -> None:
        """Write the store back to disk."""
        target = path or self.config.zone_store
        write_store(target, store_to_yaml(self.backend))
        LOG.info("Wrote zone store to %s", target)


def configure_logging(level: str) -> None:
    """Configure logging output."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
