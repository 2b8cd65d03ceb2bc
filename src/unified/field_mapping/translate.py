"""Slug <-> provider field translation for custom field mappings.

Provider field ids may be dotted paths into nested payloads
(``properties.favorite_color``, ``custom_fields.tier``). Lookups through
a missing path yield nothing rather than None, so an unset provider field
never overwrites a stored value.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from src.unified.unification.schemas import FieldMappingDefinition

_MISSING = object()


def get_path(payload: dict[str, Any], path: str) -> Any:
    """Return the value at a dotted ``path`` in ``payload``, or _MISSING.

    An exact key match wins over path traversal, so provider ids that
    themselves contain dots still resolve.
    """
    if path in payload:
        return payload[path]

    current: Any = payload
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def set_path(target: dict[str, Any], path: str, value: Any) -> None:
    """Set ``value`` at a dotted ``path`` in ``target``, creating dicts as needed."""
    parts = path.split(".")
    current = target
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def extract_custom_values(
    payload: dict[str, Any],
    mappings: Iterable[FieldMappingDefinition],
) -> dict[str, Any]:
    """Provider payload -> {slug: value} for every mapping present in the payload."""
    values: dict[str, Any] = {}
    for mapping in mappings:
        value = get_path(payload, mapping.remote_id)
        if value is not _MISSING:
            values[mapping.slug] = value
    return values


def apply_custom_values(
    field_mappings: dict[str, Any],
    mappings: Iterable[FieldMappingDefinition],
    target: dict[str, Any],
) -> dict[str, Any]:
    """{slug: value} -> provider keys in ``target``. Slugs without a mapping are ignored."""
    by_slug = {mapping.slug: mapping.remote_id for mapping in mappings}
    for slug, value in field_mappings.items():
        remote_id = by_slug.get(slug)
        if remote_id is not None:
            set_path(target, remote_id, value)
    return target
