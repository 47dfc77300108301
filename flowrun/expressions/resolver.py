"""
Expression resolution: ``{{ source.path | transform }}`` -> concrete value.

A configuration field is either a pure literal or a pure reference; there is
no interpolation inside a larger string.  Resolution is a pure function of
the expression and the ResolutionContext, so the same pair always yields the
same value.

Grammar::

    reference := "{{" path [ "|" transform ] "}}"
    path      := source ( "." segment )*
    source    := nodes | vars | config | input | credentials | system

``nodes`` references carry the node id as their second segment, then walk the
node entry: ``{{nodes.nd_a.output.id}}``.  Only ``output`` is reachable; the
node's status is not consulted.
"""

from __future__ import annotations

import copy
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, NamedTuple, Optional

from flowrun.exceptions import (
    EmptyReference,
    MissingNodeId,
    UnknownSource,
    UnsupportedExpression,
)
from flowrun.expressions.paths import ABSENT, get_by_path
from flowrun.expressions.transforms import apply_transform
from flowrun.types import ResolutionContext

_OPEN = "{{"
_CLOSE = "}}"


class Source(str, Enum):
    NODES = "nodes"
    VARS = "vars"
    CONFIG = "config"
    INPUT = "input"
    CREDENTIALS = "credentials"
    SYSTEM = "system"


class Reference(NamedTuple):
    """Parsed form of a ``{{...}}`` expression."""
    source: Source
    node_id: Optional[str]
    path: tuple[str, ...]
    transform: Optional[str]


# ── Source dispatch ───────────────────────────────────────────────────────────


def _node_root(ctx: ResolutionContext, node_id: Optional[str]) -> Any:
    # Only ``output`` is exposed; status stays out of reach of expressions.
    entry = ctx.nodes.get(node_id)
    return {"output": entry.output} if entry is not None else ABSENT


_ROOTS: Mapping[Source, Callable[[ResolutionContext, Optional[str]], Any]] = MappingProxyType({
    Source.NODES: _node_root,
    Source.VARS: lambda ctx, _: ctx.vars,
    Source.CONFIG: lambda ctx, _: ctx.config,
    Source.INPUT: lambda ctx, _: ctx.input,
    Source.CREDENTIALS: lambda ctx, _: ctx.credentials,
    Source.SYSTEM: lambda ctx, _: ctx.system.model_dump(mode="json"),
})


# ── Parsing ───────────────────────────────────────────────────────────────────


def is_reference(expr: Any) -> bool:
    """True if *expr* is a string wrapped in ``{{`` / ``}}`` (after trimming)."""
    if not isinstance(expr, str):
        return False
    stripped = expr.strip()
    return stripped.startswith(_OPEN) and stripped.endswith(_CLOSE) and len(stripped) >= 4


def parse_expression(expr: Any) -> Optional[Reference]:
    """Parse *expr* into a Reference, or return None if it is a literal.

    Raises:
        EmptyReference: nothing between the delimiters.
        MissingNodeId: ``nodes`` reference without a node id.
        UnknownSource: root segment outside the six sources.
        UnsupportedExpression: more than one ``|`` transform.
    """
    if not is_reference(expr):
        return None

    inner = expr.strip()[len(_OPEN):-len(_CLOSE)].strip()
    path_expr, sep, transform = inner.partition("|")
    path_expr = path_expr.strip()
    transform = transform.strip() if sep else None

    if transform is not None and "|" in transform:
        raise UnsupportedExpression(
            f"Chained transforms are not supported: {expr!r}", expression=expr
        )
    if not path_expr:
        raise EmptyReference("Empty variable reference", expression=expr)

    head, *rest = path_expr.split(".")
    try:
        source = Source(head)
    except ValueError:
        raise UnknownSource(f"Unknown source: {head}", source=head, expression=expr) from None

    node_id = None
    if source is Source.NODES:
        if not rest or not rest[0]:
            raise MissingNodeId("Node ID is required for nodes reference", expression=expr)
        node_id, *rest = rest

    return Reference(source=source, node_id=node_id, path=tuple(rest), transform=transform or None)


# ── Resolution ────────────────────────────────────────────────────────────────


def evaluate_reference(ref: Reference, ctx: ResolutionContext) -> Any:
    """Resolve an already-parsed reference against *ctx*."""
    value = get_by_path(_ROOTS[ref.source](ctx, ref.node_id), ref.path)
    if ref.transform is not None:
        value = apply_transform(value, ref.transform)
    return value


def resolve_value(expr: Any, ctx: ResolutionContext) -> Any:
    """Resolve a single configuration value.

    Literals (including non-strings) come back unchanged.  A missing path
    yields ``ABSENT``, which callers must treat differently from ``None``.
    """
    ref = parse_expression(expr)
    if ref is None:
        return expr
    return evaluate_reference(ref, ctx)


def resolve_params(params: Any, ctx: ResolutionContext) -> Any:
    """Recursively resolve every string field in a node configuration.

    Handles nested dicts and lists.  Each string is resolved as a whole;
    scalar non-string values are returned unchanged.
    """
    if isinstance(params, dict):
        return {k: resolve_params(v, ctx) for k, v in params.items()}
    if isinstance(params, list):
        return [resolve_params(v, ctx) for v in params]
    return resolve_value(params, ctx)


class ExpressionResolver:
    """Resolves expressions against one ResolutionContext, memoizing results.

    Intended lifetime is a single node evaluation: the context is frozen, so
    a result cached per expression string stays valid until the instance is
    discarded.  Every call returns a deep copy, so mutating a result never
    reaches the cache or the context.
    """

    def __init__(self, context: ResolutionContext, memoize: bool = True) -> None:
        self.context = context
        self._memoize = memoize
        self._cache: dict[str, Any] = {}

    def resolve(self, expr: Any) -> Any:
        if not (self._memoize and isinstance(expr, str)):
            return copy.deepcopy(resolve_value(expr, self.context))
        if expr not in self._cache:
            self._cache[expr] = resolve_value(expr, self.context)
        return copy.deepcopy(self._cache[expr])

    def resolve_params(self, params: Any) -> Any:
        if isinstance(params, dict):
            return {k: self.resolve_params(v) for k, v in params.items()}
        if isinstance(params, list):
            return [self.resolve_params(v) for v in params]
        return self.resolve(params)


def find_references(params: Any) -> list[Reference]:
    """All references found in a node configuration, in traversal order.

    Lets an executor see which upstream nodes a configuration depends on
    before resolving it.
    """
    found: list[Reference] = []
    _collect(params, found)
    return found


def _collect(params: Any, found: list[Reference]) -> None:
    if isinstance(params, dict):
        for v in params.values():
            _collect(v, found)
    elif isinstance(params, list):
        for v in params:
            _collect(v, found)
    else:
        ref = parse_expression(params)
        if ref is not None:
            found.append(ref)
