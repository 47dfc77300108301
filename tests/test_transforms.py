"""Tests for the transform registry."""

import pytest

from flowrun.exceptions import TransformTypeError, UnknownTransform
from flowrun.expressions.paths import ABSENT
from flowrun.expressions.transforms import (
    TRANSFORMS,
    apply_transform,
    to_display_string,
    to_json,
)


def test_registry_is_closed():
    assert set(TRANSFORMS) == {
        "first", "last", "length", "uppercase", "lowercase", "json", "keys", "values",
    }
    with pytest.raises(TypeError):
        TRANSFORMS["reverse"] = lambda v: v  # type: ignore[index]


def test_unknown_transform_raises():
    with pytest.raises(UnknownTransform) as exc_info:
        apply_transform([1], "reverse")
    assert exc_info.value.transform == "reverse"


def test_first_and_last():
    assert apply_transform([1, 2, 3], "first") == 1
    assert apply_transform([1, 2, 3], "last") == 3
    assert apply_transform([], "first") is ABSENT
    assert apply_transform("scalar", "first") == "scalar"


def test_length():
    assert apply_transform([1, 2, 3], "length") == 3
    assert apply_transform("hello", "length") == 5
    assert apply_transform(12345, "length") == 5


def test_case_transforms():
    assert apply_transform("abc", "uppercase") == "ABC"
    assert apply_transform("ÀBC", "lowercase") == "àbc"
    assert apply_transform(True, "uppercase") == "TRUE"
    assert apply_transform(None, "uppercase") == "NULL"


def test_json_is_compact_and_keeps_unicode():
    assert apply_transform({"a": [1, 2], "b": "é"}, "json") == '{"a":[1,2],"b":"é"}'
    assert apply_transform(ABSENT, "json") is ABSENT
    assert to_json({"a": ABSENT, "b": 1}) == '{"b":1}'


def test_keys_and_values():
    assert apply_transform({"a": 1, "b": 2}, "keys") == ["a", "b"]
    assert apply_transform({"a": 1, "b": 2}, "values") == [1, 2]


def test_keys_on_non_mapping_raises():
    with pytest.raises(TransformTypeError) as exc_info:
        apply_transform([1, 2], "keys")
    assert exc_info.value.value_type == "list"


def test_display_string():
    assert to_display_string(ABSENT) == "undefined"
    assert to_display_string(False) == "false"
    assert to_display_string([1, "a"]) == '[1,"a"]'
    assert to_display_string(1.5) == "1.5"
