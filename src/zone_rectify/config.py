"""Environment-driven configuration loader."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .models import EngineOptions


@dataclass(frozen=True)
class AppConfig:
    """Application-wide configuration values."""

    zone_store: Path
    max_ent_entries: int
    direct_dnskey: bool
    log_level: str

    def engine_options(self) -> EngineOptions:
        """Return the subset of settings the engines consume."""
        return EngineOptions(max_ent_entries=self.max_ent_entries, direct_dnskey=self.direct_dnskey)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Return a boolean parsed from a string."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _parse_int(name: str, value: str, minimum: int = 0) -> int:
    """Return a non-negative integer setting."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{value}'.") from exc
    if parsed < minimum:
        raise ValueError(f"{name} must be at least {minimum}.")
    return parsed


def load_config() -> AppConfig:
    """Load configuration values from the environment (and .env)."""
    load_dotenv()
    return AppConfig(
        zone_store=Path(os.getenv("ZONE_STORE", "zones.yaml")).resolve(),
        max_ent_entries=_parse_int("MAX_ENT_ENTRIES", os.getenv("MAX_ENT_ENTRIES", "100000")),
        direct_dnskey=_parse_bool(os.getenv("DIRECT_DNSKEY", "false")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
