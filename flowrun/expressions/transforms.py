"""Fixed registry of named unary value transforms.

The set is closed: ``apply_transform`` raises UnknownTransform for any name
not in ``TRANSFORMS``.  Adding a transform means adding an entry here.
"""

import json
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Callable

from flowrun.exceptions import TransformTypeError, UnknownTransform
from flowrun.expressions.paths import ABSENT


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _json_default(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json", by_alias=True)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _strip_absent(value: Any) -> Any:
    """Drop ABSENT members the way JSON.stringify drops undefined."""
    if isinstance(value, Mapping):
        return {k: _strip_absent(v) for k, v in value.items() if v is not ABSENT}
    if _is_sequence(value):
        return [None if v is ABSENT else _strip_absent(v) for v in value]
    return value


def to_json(value: Any) -> Any:
    """Canonical compact JSON. ABSENT has no JSON form and stays ABSENT."""
    if value is ABSENT:
        return ABSENT
    return json.dumps(
        _strip_absent(value),
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    )


def to_display_string(value: Any) -> str:
    """String form used by the string-casting transforms.

    ``True`` -> ``"true"``, ``None`` -> ``"null"``, ABSENT -> ``"undefined"``,
    containers -> compact JSON, anything else -> ``str()``.
    """
    if value is ABSENT:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        return to_json(value)
    return str(value)


def _first(value: Any) -> Any:
    if _is_sequence(value):
        return value[0] if value else ABSENT
    return value


def _last(value: Any) -> Any:
    if _is_sequence(value):
        return value[-1] if value else ABSENT
    return value


def _length(value: Any) -> int:
    if _is_sequence(value):
        return len(value)
    return len(to_display_string(value))


def _require_mapping(value: Any, name: str) -> Mapping:
    if not isinstance(value, Mapping):
        raise TransformTypeError(
            f"Transform '{name}' requires a mapping, got {type(value).__name__}",
            transform=name,
            value_type=type(value).__name__,
        )
    return value


def _keys(value: Any) -> list:
    return list(_require_mapping(value, "keys").keys())


def _values(value: Any) -> list:
    return list(_require_mapping(value, "values").values())


TRANSFORMS: Mapping[str, Callable[[Any], Any]] = MappingProxyType({
    "first": _first,
    "last": _last,
    "length": _length,
    "uppercase": lambda v: to_display_string(v).upper(),
    "lowercase": lambda v: to_display_string(v).lower(),
    "json": to_json,
    "keys": _keys,
    "values": _values,
})


def apply_transform(value: Any, name: str) -> Any:
    """Apply the transform registered under *name* to *value*.

    Raises:
        UnknownTransform: *name* is not registered.
        TransformTypeError: ``keys``/``values`` on a non-mapping.
    """
    fn = TRANSFORMS.get(name)
    if fn is None:
        raise UnknownTransform(f"Unknown transform: {name}", transform=name)
    return fn(value)
