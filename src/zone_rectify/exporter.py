"""Utilities to serialise zone store state into YAML or JSON."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import dns.name
import yaml

from .backend import InMemoryZoneDataSource, StoredZone
from .models import Record


def _record_to_dict(record: Record) -> dict[str, Any]:
    """Convert a record into a serialisable dictionary."""
    entry: dict[str, Any] = {
        "name": record.name,
        "type": record.type,
        "content": record.content,
        "ttl": record.ttl,
        "auth": record.auth,
    }
    if record.disabled:
        entry["disabled"] = True
    if record.ordername is not None:
        entry["ordername"] = record.ordername
    return entry


def zone_to_dict(zone: StoredZone) -> dict[str, Any]:
    """Create a dictionary describing one zone."""
    data: dict[str, Any] = {
        "name": zone.apex.to_text(),
        "id": zone.domain_id,
        "secured": zone.secured,
        "presigned": zone.presigned,
    }
    if zone.nsec3 is not None:
        data["nsec3param"] = zone.nsec3.to_text()
        data["nsec3narrow"] = zone.nsec3.narrow
    data["records"] = [
        _record_to_dict(record)
        for record in sorted(
            zone.records,
            key=lambda rec: (rec.canonical_name(), rec.canonical_type(), rec.content),
        )
    ]
    return data


def store_to_dict(backend: InMemoryZoneDataSource, zones: list[dns.name.Name] | None = None) -> dict[str, Any]:
    """Create a dictionary describing the selected (default: all) zones."""
    selected = zones if zones is not None else backend.list_zones()
    return {"zones": [zone_to_dict(backend.zones[apex]) for apex in selected]}


def store_to_yaml(backend: InMemoryZoneDataSource, zones: list[dns.name.Name] | None = None) -> str:
    """Return YAML representation of the store."""
    return yaml.safe_dump(store_to_dict(backend, zones), sort_keys=False)


def store_to_json(backend: InMemoryZoneDataSource, zones: list[dns.name.Name] | None = None) -> str:
    """Return JSON representation of the store."""
    return json.dumps(store_to_dict(backend, zones), indent=2)


def write_store(path: Path, content: str) -> None:
    """Write content to the given path, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
