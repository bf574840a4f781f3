"""Parse inbound search query strings into a FilterSpec.

The portal front end sends nested filters with bracket notation, e.g.::

    keyword=report&type[pdf]=true&type[folder]=false&date=lastWeek
    &metadata[templateKey]=contract&metadata[data][status]=signed

Flags may arrive as real booleans or as strings; anything but true/"true" is
false. They are coerced here so that FilterSpec itself stays strictly boolean.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Tuple

from pydantic import ValidationError

from models.search import DateBucket, FilterSpec, MetadataFilter, SizeBucket, TypeFlags
from utils.logging_config import get_logger

logger = get_logger(__name__)

_KEY_PATTERN = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_TYPE_FLAG_ALIASES = {"threeD": "three_d", "three_d": "three_d"}


class InvalidFilterError(ValueError):
    """The inbound filter parameters cannot be turned into a FilterSpec."""


def coerce_flag(value: Any, name: str = "flag") -> bool:
    """Only ``True`` and the string "true" (any case) select a flag."""
    if isinstance(value, bool):
        return value
    normalized = value.strip().lower() if isinstance(value, str) else value
    if normalized == "true":
        return True
    if normalized not in (None, "", "false"):
        logger.debug("Treating unrecognised flag value as false", flag=name, value=value)
    return False


def unflatten(items: Iterable[Tuple[str, Any]]) -> dict:
    """Turn ``a[b][c]=v`` pairs into nested dicts. Later duplicates win."""
    nested: dict = {}
    for raw_key, value in items:
        match = _KEY_PATTERN.match(raw_key)
        if not match:
            continue
        path = [match.group(1)] + re.findall(r"\[([^\[\]]*)\]", match.group(2))
        current = nested
        for component in path[:-1]:
            child = current.get(component)
            if not isinstance(child, dict):
                child = {}
                current[component] = child
            current = child
        current[path[-1]] = value
    return nested


def _items(params: Any) -> Iterable[Tuple[str, Any]]:
    # starlette QueryParams and plain dicts both expose .items(); for
    # multi-dicts use multi_items() so repeated keys are not dropped
    if hasattr(params, "multi_items"):
        return params.multi_items()
    return params.items()


def _bucket(enum_cls, raw: Any, name: str):
    if raw is None or raw == "":
        return enum_cls("any")
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidFilterError(f"{name} must be one of: {allowed}") from exc


def _text(raw: Any) -> str:
    if raw is None:
        return ""
    return str(raw)


def _type_flags(raw: Any) -> TypeFlags:
    if raw is None or raw == "":
        return TypeFlags()
    if not isinstance(raw, Mapping):
        raise InvalidFilterError("type must be a set of named flags")
    values = {}
    for key, value in raw.items():
        field_name = _TYPE_FLAG_ALIASES.get(key, key)
        if field_name not in TypeFlags.model_fields:
            continue
        values[field_name] = coerce_flag(value, f"type[{key}]")
    return TypeFlags(**values)


def _metadata(raw: Any) -> MetadataFilter | None:
    if not isinstance(raw, Mapping):
        return None
    template_key = _text(raw.get("templateKey")).strip()
    if not template_key:
        return None
    data = raw.get("data") or {}
    if not isinstance(data, Mapping):
        raise InvalidFilterError("metadata[data] must be a set of field values")
    return MetadataFilter(
        scope=_text(raw.get("scope")) or "enterprise",
        template_key=template_key,
        field_values=dict(data),
    )


def parse_filter_params(params: Any) -> FilterSpec:
    """Build a FilterSpec from query parameters (flat or bracketed) or an already nested mapping."""
    nested = unflatten(_items(params))
    try:
        return FilterSpec(
            keyword=_text(nested.get("keyword")),
            type_flags=_type_flags(nested.get("type")),
            date_bucket=_bucket(DateBucket, nested.get("date"), "date"),
            size_bucket=_bucket(SizeBucket, nested.get("size"), "size"),
            owner=_text(nested.get("owner")),
            tags=_text(nested.get("tags")),
            metadata_filter=_metadata(nested.get("metadata")),
        )
    except ValidationError as exc:
        raise InvalidFilterError(str(exc)) from exc
