"""Safe nested-field lookup on arbitrary structured values.

``get_by_path`` never raises: any missing intermediate yields ``ABSENT``,
which is distinct from ``None`` (a stored null) and from ``False``.
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel


_INDEX = re.compile(r"-?\d+")


class _Absent:
    """Singleton marking a value that does not exist (JS ``undefined``)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (_Absent, ())


ABSENT = _Absent()


def is_absent(value: Any) -> bool:
    return value is ABSENT


def _step(current: Any, segment: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(segment, ABSENT)
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes, bytearray)):
        if not _INDEX.fullmatch(segment):
            return ABSENT
        try:
            return current[int(segment)]
        except IndexError:
            return ABSENT
    if isinstance(current, BaseModel):
        if segment in type(current).model_fields:
            return getattr(current, segment)
        return ABSENT
    return ABSENT


def get_by_path(value: Any, path: Sequence[str]) -> Any:
    """Walk *path* segments left to right through *value*.

    Mappings are indexed by key, sequences by the segment read as an integer
    (negative indices count from the end, as native indexing does), pydantic
    models by field name.  Strings and scalars are not indexable.

    Examples::

        get_by_path({"a": {"b": 1}}, ["a", "b"])      # 1
        get_by_path({"items": [10, 20]}, ["items", "1"])  # 20
        get_by_path({"a": None}, ["a", "b"])          # ABSENT
        get_by_path(5, [])                            # 5
    """
    current = value
    for segment in path:
        if current is ABSENT or current is None:
            return ABSENT
        current = _step(current, segment)
    return current
