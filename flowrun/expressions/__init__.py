"""flowrun.expressions — ``{{source.path | transform}}`` reference resolution."""

from .paths import ABSENT, get_by_path, is_absent
from .resolver import (
    ExpressionResolver,
    Reference,
    Source,
    evaluate_reference,
    find_references,
    is_reference,
    parse_expression,
    resolve_params,
    resolve_value,
)
from .transforms import TRANSFORMS, apply_transform, to_display_string, to_json

__all__ = [
    "ABSENT", "get_by_path", "is_absent",
    "ExpressionResolver", "Reference", "Source", "evaluate_reference",
    "find_references", "is_reference", "parse_expression", "resolve_params", "resolve_value",
    "TRANSFORMS", "apply_transform", "to_display_string", "to_json",
]
