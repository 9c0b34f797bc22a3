"""Entity extraction from loosely structured alert payloads."""

from __future__ import annotations

from typing import Any, Optional

from alertswarm.models import Alert, Entities

OBSERVABLES = "observables"
RAW_DATA = "raw_data"

# Ordered (source, field) precedence per entity. For observables the field
# is the observable type; for raw_data it is the payload key.
ENTITY_SOURCES: dict[str, tuple[tuple[str, str], ...]] = {
    "ip": (
        (OBSERVABLES, "ip"),
        (RAW_DATA, "dest_ip"),
        (RAW_DATA, "source_ip"),
        (RAW_DATA, "src_ip"),
        (RAW_DATA, "host_ip"),
    ),
    "username": (
        (OBSERVABLES, "user"),
        (RAW_DATA, "user_name"),
        (RAW_DATA, "user"),
        (RAW_DATA, "username"),
    ),
    "hash": (
        (OBSERVABLES, "hash"),
        (RAW_DATA, "file_hash"),
        (RAW_DATA, "sha256"),
        (RAW_DATA, "md5"),
    ),
}


def _as_value(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


def _lookup(alert: Alert, source: str, field: str) -> Optional[str]:
    if source == OBSERVABLES:
        for observable in alert.observables:
            if observable.type.lower() == field:
                value = _as_value(observable.value)
                if value:
                    return value
        return None
    return _as_value(alert.raw_data.get(field))


def extract_entities(alert: Alert) -> Entities:
    """Pull the first IP, username and hash out of an alert.

    No format validation is done; a malformed value simply fails to match
    downstream.
    """
    found: dict[str, Optional[str]] = {}
    for entity, sources in ENTITY_SOURCES.items():
        found[entity] = None
        for source, field in sources:
            value = _lookup(alert, source, field)
            if value:
                found[entity] = value
                break
    return Entities(**found)
