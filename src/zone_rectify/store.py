"""Load and validate YAML zone store files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined
from pydantic import BaseModel, Field, field_validator

from .backend import InMemoryZoneDataSource
from .models import Nsec3Params, Record, ValidationError
from .names import to_name


class RecordSpec(BaseModel):
    """Schema for a stored DNS record."""

    name: str
    type: str = ""
    content: str = ""
    ttl: int = Field(default=3600, ge=0)
    auth: bool = True
    disabled: bool = False
    ordername: str | None = None

    @field_validator("type")
    @classmethod
    def _uppercase_type(cls, value: str) -> str:
        """Normalise RR type to uppercase."""
        return value.upper()


class ZoneSpec(BaseModel):
    """Schema for one zone and its DNSSEC settings."""

    name: str
    id: int | None = Field(default=None, ge=1)
    secured: bool = False
    presigned: bool = False
    nsec3param: str | None = Field(default=None, description="NSEC3PARAM text, e.g. '1 0 1 ab'")
    nsec3narrow: bool = False
    records: list[RecordSpec] = Field(default_factory=list)


class StoreSpec(BaseModel):
    """Schema for the YAML document."""

    zones: list[ZoneSpec] = Field(default_factory=list)


def _relative_to(name: str, origin: str) -> str:
    """Resolve ``@`` and relative owners against the zone name."""
    stripped = name.strip()
    if stripped in {"", "@"}:
        return origin
    if stripped.endswith("."):
        return stripped
    return f"{stripped}.{origin.rstrip('.')}."


def _render_yaml(path: Path, extra_context: dict[str, Any] | None = None) -> str:
    """Render a YAML file through Jinja2."""
    env = Environment(
        loader=FileSystemLoader(str(path.parent)),
        undefined=StrictUndefined,
        autoescape=False,
        keep_trailing_newline=True,
    )
    template = env.get_template(path.name)
    context = {"env": os.environ}
    if extra_context:
        context.update(extra_context)
    return template.render(**context)


def parse_store(data: dict[str, Any]) -> InMemoryZoneDataSource:
    """Build an in-memory backend from already-parsed store data."""
    try:
        spec = StoreSpec(**data)
    except Exception as exc:  # noqa: BLE001
        raise ValidationError(f"Zone store validation error: {exc}") from exc

    backend = InMemoryZoneDataSource()
    seen: set[str] = set()
    ids: set[int] = set()
    for zone in spec.zones:
        origin = to_name(zone.name).to_text()
        if origin in seen:
            raise ValidationError(f"Zone '{origin}' is defined more than once.")
        seen.add(origin)
        nsec3 = None
        if zone.nsec3param:
            try:
                nsec3 = Nsec3Params.from_text(zone.nsec3param, narrow=zone.nsec3narrow)
            except ValueError as exc:
                raise ValidationError(f"Zone '{origin}': {exc}") from exc
        records = [
            Record(
                name=_relative_to(record.name, origin),
                type=record.type,
                content=record.content,
                ttl=record.ttl,
                auth=record.auth,
                disabled=record.disabled,
                ordername=record.ordername,
            )
            for record in zone.records
        ]
        if zone.id is not None and zone.id in ids:
            raise ValidationError(f"Zone id {zone.id} is used more than once.")
        stored = backend.add_zone(
            origin,
            records,
            secured=zone.secured,
            presigned=zone.presigned,
            nsec3=nsec3,
            domain_id=zone.id,
        )
        ids.add(stored.domain_id)
    return backend


def load_store(path: Path, template_vars: dict[str, Any] | None = None) -> InMemoryZoneDataSource:
    """Load a zone store YAML file into an in-memory backend."""
    if not path.exists():
        raise ValidationError(f"Zone store '{path}' does not exist.")
    rendered = _render_yaml(path, template_vars)
    try:
        data = yaml.safe_load(rendered) or {}
    except yaml.YAMLError as exc:  # noqa: BLE001
        raise ValidationError(f"Failed to parse YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError("Zone store must be a mapping with a 'zones' list.")
    return parse_store(data)
