"""Identifier prefix convention.

Every entity kind owns a fixed string prefix followed by ``_`` and an
alphanumeric body (``ex_abc123``, ``wf_xyz789``, ``nd_node_001``).  Anything
without its kind's prefix is rejected.
"""

import re
import uuid

from flowrun.exceptions import InvalidIdentifier

ID_PREFIXES: dict[str, str] = {
    "execution": "ex",
    "workflow": "wf",
    "node": "nd",
    "edge": "ed",
    "connection": "cn",
}

_BODY = r"[A-Za-z0-9][A-Za-z0-9_-]*"
_PATTERNS = {kind: re.compile(rf"^{prefix}_{_BODY}$") for kind, prefix in ID_PREFIXES.items()}


def is_valid_id(kind: str, value: str) -> bool:
    """True if *value* is a well-formed identifier for *kind*."""
    pattern = _PATTERNS.get(kind)
    if pattern is None:
        raise KeyError(f"Unknown identifier kind: {kind!r}")
    return isinstance(value, str) and bool(pattern.match(value))


def validate_id(kind: str, value: str) -> str:
    """Return *value* unchanged or raise InvalidIdentifier."""
    if not is_valid_id(kind, value):
        raise InvalidIdentifier(
            f"Invalid {kind} id {value!r}: expected prefix '{ID_PREFIXES[kind]}_'",
            kind=kind,
            value=str(value),
        )
    return value


def new_id(kind: str) -> str:
    """Generate a fresh identifier for *kind*, e.g. ``ex_3f2a9c1b7d4e``."""
    return f"{ID_PREFIXES[kind]}_{uuid.uuid4().hex[:12]}"
