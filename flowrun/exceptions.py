"""Typed exception hierarchy. Every error flowrun can raise."""


class FlowrunError(Exception):
    """Base exception for all flowrun errors."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


# ── Expression resolution ────────────────────────────────────────────────────


class ResolutionError(FlowrunError):
    """Base exception for failures while resolving a ``{{...}}`` reference."""
    def __init__(self, message: str, expression: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.expression = expression


class EmptyReference(ResolutionError):
    """The reference between the delimiters has no path."""
    pass


class MissingNodeId(EmptyReference):
    """A ``nodes`` reference without the node identifier segment."""
    pass


class UnknownSource(ResolutionError):
    """Root segment is not one of the six context sources."""
    def __init__(self, message: str, source: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.source = source


class UnknownTransform(ResolutionError):
    """Transform name is not in the registry."""
    def __init__(self, message: str, transform: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.transform = transform


class TransformTypeError(ResolutionError):
    """Transform was applied to a value of the wrong shape (e.g. ``keys`` on a list)."""
    def __init__(self, message: str, transform: str = "", value_type: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.transform = transform
        self.value_type = value_type


class UnsupportedExpression(ResolutionError):
    """Syntax the language deliberately does not support (chained transforms)."""
    pass


# ── Execution state ──────────────────────────────────────────────────────────


class StateError(FlowrunError):
    """Base exception for execution state model errors."""
    pass


class InvalidTransition(StateError):
    """Attempted status change is not in the allowed transition table."""
    def __init__(
        self,
        message: str,
        scope: str = "",
        from_state: str = "",
        to_state: str = "",
        node_id: str = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.scope = scope
        self.from_state = from_state
        self.to_state = to_state
        self.node_id = node_id


class RetryExhausted(InvalidTransition):
    """``failed -> queued`` requested with no attempts left."""
    def __init__(self, message: str, node_id: str = "", attempt: int = 0, max_attempts: int = None, **kwargs):
        super().__init__(
            message, scope="node", from_state="failed", to_state="queued", node_id=node_id, **kwargs
        )
        self.attempt = attempt
        self.max_attempts = max_attempts


class ExecutionNotFound(StateError):
    """No execution record with this id."""
    def __init__(self, message: str, execution_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.execution_id = execution_id


class NodeStateNotFound(StateError):
    """No node execution state for this (execution, node) pair."""
    def __init__(self, message: str, execution_id: str = "", node_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.execution_id = execution_id
        self.node_id = node_id


class DuplicateExecution(StateError):
    """An execution record with this id was already created."""
    pass


class InvalidIdentifier(FlowrunError, ValueError):
    """Identifier does not carry the prefix required for its kind.

    Also a ``ValueError`` so pydantic field validators surface it as a
    ``ValidationError``.
    """
    def __init__(self, message: str, kind: str = "", value: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.kind = kind
        self.value = value
