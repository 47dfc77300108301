"""
Transition tables for execution and node status.

These two tables and the ``check_*`` functions are the single authority on
which status changes are legal.  Nothing else in flowrun compares statuses to
decide whether a change is allowed.

Execution::

    pending ──▶ running ──▶ completed | failed | cancelled | timeout
       └──────────────────▶ cancelled

Node::

    pending ──▶ queued ──▶ running ──▶ completed | failed
    pending | queued | running ──▶ skipped | cancelled
    failed ──▶ queued      (retry: attempt < max_attempts and error.retryable)
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Union

from flowrun.exceptions import InvalidTransition, RetryExhausted
from flowrun.types import (
    ExecutionStatus,
    NodeExecutionState,
    NodeExecutionStatus,
    TransitionScope,
)

_E = ExecutionStatus
_N = NodeExecutionStatus

EXECUTION_TRANSITIONS: Mapping[ExecutionStatus, frozenset[ExecutionStatus]] = MappingProxyType({
    _E.PENDING: frozenset({_E.RUNNING, _E.CANCELLED}),
    _E.RUNNING: frozenset({_E.COMPLETED, _E.FAILED, _E.CANCELLED, _E.TIMEOUT}),
    _E.COMPLETED: frozenset(),
    _E.FAILED: frozenset(),
    _E.CANCELLED: frozenset(),
    _E.TIMEOUT: frozenset(),
})

NODE_TRANSITIONS: Mapping[NodeExecutionStatus, frozenset[NodeExecutionStatus]] = MappingProxyType({
    _N.PENDING: frozenset({_N.QUEUED, _N.SKIPPED, _N.CANCELLED}),
    _N.QUEUED: frozenset({_N.RUNNING, _N.SKIPPED, _N.CANCELLED}),
    _N.RUNNING: frozenset({_N.COMPLETED, _N.FAILED, _N.SKIPPED, _N.CANCELLED}),
    _N.COMPLETED: frozenset(),
    _N.FAILED: frozenset({_N.QUEUED}),  # retry, guarded by check_node_transition
    _N.SKIPPED: frozenset(),
    _N.CANCELLED: frozenset(),
})

TERMINAL_EXECUTION_STATES = frozenset(s for s, nxt in EXECUTION_TRANSITIONS.items() if not nxt)
_TERMINAL_NODE_STATES = frozenset({_N.COMPLETED, _N.SKIPPED, _N.CANCELLED})


def is_terminal_execution(status: Union[ExecutionStatus, str]) -> bool:
    return ExecutionStatus(status) in TERMINAL_EXECUTION_STATES


def can_retry(state: NodeExecutionState) -> bool:
    """True if a failed node may go back to ``queued``."""
    return (
        state.status == _N.FAILED
        and state.max_attempts is not None
        and state.attempt < state.max_attempts
        and state.error is not None
        and state.error.retryable
    )


def is_terminal_node(state: NodeExecutionState) -> bool:
    """Completed, skipped, cancelled, or failed with no retry available."""
    if state.status == _N.FAILED:
        return not can_retry(state)
    return state.status in _TERMINAL_NODE_STATES


def check_execution_transition(
    from_status: Union[ExecutionStatus, str],
    to_status: Union[ExecutionStatus, str],
) -> ExecutionStatus:
    """Validate an execution status change and return the target status.

    Raises:
        InvalidTransition: the change is not in EXECUTION_TRANSITIONS.
    """
    src, dst = ExecutionStatus(from_status), ExecutionStatus(to_status)
    if dst not in EXECUTION_TRANSITIONS[src]:
        raise InvalidTransition(
            f"Execution cannot move from '{src.value}' to '{dst.value}'",
            scope=TransitionScope.EXECUTION.value,
            from_state=src.value,
            to_state=dst.value,
        )
    return dst


def check_node_transition(
    state: NodeExecutionState,
    to_status: Union[NodeExecutionStatus, str],
) -> NodeExecutionStatus:
    """Validate a node status change against *state* and return the target status.

    ``failed -> queued`` additionally requires a retryable error and
    ``attempt < max_attempts``.

    Raises:
        RetryExhausted: retry requested with ``attempt >= max_attempts``.
        InvalidTransition: any other change not in NODE_TRANSITIONS, or a
            retry of a non-retryable error.
    """
    src, dst = state.status, NodeExecutionStatus(to_status)
    if dst not in NODE_TRANSITIONS[src]:
        raise InvalidTransition(
            f"Node '{state.node_id}' cannot move from '{src.value}' to '{dst.value}'",
            scope=TransitionScope.NODE.value,
            from_state=src.value,
            to_state=dst.value,
            node_id=state.node_id,
        )

    if src == _N.FAILED and dst == _N.QUEUED:
        if state.max_attempts is None or state.attempt >= state.max_attempts:
            raise RetryExhausted(
                f"Node '{state.node_id}' has used {state.attempt} of "
                f"{state.max_attempts or state.attempt} attempt(s)",
                node_id=state.node_id,
                attempt=state.attempt,
                max_attempts=state.max_attempts,
            )
        if state.error is None or not state.error.retryable:
            raise InvalidTransition(
                f"Node '{state.node_id}' failed with a non-retryable error",
                scope=TransitionScope.NODE.value,
                from_state=src.value,
                to_state=dst.value,
                node_id=state.node_id,
            )
    return dst
