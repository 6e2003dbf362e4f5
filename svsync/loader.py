from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Iterable

from pydantic import ValidationError

from .errors import LoadError
from .models import ConfigRecord, ServiceEntry, ServiceSpec, validate_service_name

logger = logging.getLogger(__name__)

KNOWN_KEYS = frozenset(ServiceEntry.model_fields)


def _describe(err: ValidationError) -> str:
    parts = []
    for e in err.errors():
        loc = ".".join(str(x) for x in e.get("loc", ())) or "entry"
        parts.append(f"{loc}: {e.get('msg')}")
    return "; ".join(parts)


def parse_entry(source: str, name: str, raw: object) -> ServiceSpec:
    """Validate one ``name: {...}`` entry of a configuration record."""
    try:
        validate_service_name(name)
    except ValueError as e:
        raise LoadError(f"{source}: {e}") from e

    if not isinstance(raw, Mapping):
        raise LoadError(f"{source}: service {name!r} must be a mapping with at least a 'run' key")

    unknown = set(raw) - KNOWN_KEYS
    if unknown:
        logger.debug("%s: service %r: ignoring unknown keys %s", source, name, sorted(map(str, unknown)))

    try:
        entry = ServiceEntry.model_validate(dict(raw))
    except ValidationError as e:
        raise LoadError(f"{source}: service {name!r}: {_describe(e)}") from e
    return ServiceSpec.from_entry(name, entry)


def load_desired_state(records: Iterable[ConfigRecord]) -> dict[str, ServiceSpec]:
    """Turn configuration records into ``{name: ServiceSpec}``.

    Every record must be a non-empty mapping of service name to entry. A name
    may be declared once across *all* records. Nothing is returned unless
    every record is valid.
    """
    desired: dict[str, ServiceSpec] = {}
    origin: dict[str, str] = {}

    for rec in records:
        if not rec.data:
            raise LoadError(f"{rec.source}: configuration is empty")
        if not isinstance(rec.data, Mapping):
            raise LoadError(f"{rec.source}: configuration must be a mapping of service name to settings")

        for name, raw in rec.data.items():
            if not isinstance(name, str):
                raise LoadError(f"{rec.source}: service name {name!r} is not a string")
            if name in desired:
                raise LoadError(
                    f"{rec.source}: service {name!r} is already defined in {origin[name]}"
                )
            desired[name] = parse_entry(rec.source, name, raw)
            origin[name] = rec.source

    logger.debug("Loaded %d service(s)", len(desired))
    return desired
