"""Rebuild execution history from the transition log alone.

Observers (UIs, audit tools, the ``flowrun replay`` command) reconstruct what
happened without reading mutable records: feed the ordered log for one
execution to ``replay_transitions`` and get back the final execution status,
every node's status and attempt count, and the ordered steps.

Replay checks the log as it goes: ids must strictly increase and every
transition must be in the tables.  The retry guard (retryable error,
attempts left) depends on state the log does not carry, so a logged
``failed -> queued`` is accepted structurally and bumps the attempt count.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from flowrun.core.transitions import EXECUTION_TRANSITIONS, NODE_TRANSITIONS
from flowrun.exceptions import InvalidTransition
from flowrun.types import (
    ExecutionStatus,
    NodeExecutionStatus,
    StateTransition,
    TransitionScope,
)


@dataclass
class NodeHistory:
    node_id: str
    iteration_index: Optional[int] = None
    loop_node_id: Optional[str] = None
    status: NodeExecutionStatus = NodeExecutionStatus.PENDING
    attempts: int = 1
    transitions: list[StateTransition] = field(default_factory=list)


@dataclass
class ExecutionHistory:
    execution_id: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.PENDING
    nodes: dict[str, NodeHistory] = field(default_factory=dict)
    steps: list[StateTransition] = field(default_factory=list)

    @property
    def last_id(self) -> int:
        return self.steps[-1].id if self.steps else 0

    def node_status(
        self,
        node_id: str,
        iteration_index: Optional[int] = None,
        loop_node_id: Optional[str] = None,
    ) -> Optional[NodeExecutionStatus]:
        node = self.nodes.get(_key(node_id, iteration_index, loop_node_id))
        return node.status if node is not None else None


def _key(node_id: str, iteration_index: Optional[int], loop_node_id: Optional[str]) -> str:
    """``nd_b``, ``nd_b[2]``, or ``nd_b[nd_loop:2]`` for a loop iteration."""
    if iteration_index is None:
        return node_id
    if loop_node_id is None:
        return f"{node_id}[{iteration_index}]"
    return f"{node_id}[{loop_node_id}:{iteration_index}]"


def _node_key(t: StateTransition) -> tuple[str, Optional[int], Optional[str]]:
    """Loop iterations of one node replay independently, per enclosing loop."""
    data = t.data if isinstance(t.data, dict) else {}
    return t.node_id, data.get("iteration_index"), data.get("loop_node_id")


def _check(allowed: bool, t: StateTransition, message: str) -> None:
    if not allowed:
        raise InvalidTransition(
            f"Transition #{t.id}: {message}",
            scope=t.scope.value,
            from_state=t.from_state,
            to_state=t.to_state,
            node_id=t.node_id,
        )


def replay_transitions(
    transitions: Iterable[Union[StateTransition, dict]],
    history: Optional[ExecutionHistory] = None,
) -> ExecutionHistory:
    """
    Fold an ordered transition log into an ExecutionHistory.

    Args:
        transitions: Entries for one execution, ordered by id.  Dicts in
                     the exported (camelCase) form are accepted.
        history:     Previous result to continue from, for tailing a log.

    Raises:
        InvalidTransition: ids out of order, entries from another execution,
            a ``from_state`` that does not match the replayed state, or a
            change the transition tables do not allow.
    """
    history = history or ExecutionHistory()
    for raw in transitions:
        t = raw if isinstance(raw, StateTransition) else StateTransition.model_validate(raw)

        _check(t.id is not None and t.id > history.last_id, t, "id is not strictly increasing")
        if history.execution_id is None:
            history.execution_id = t.execution_id
        _check(t.execution_id == history.execution_id, t,
               f"belongs to '{t.execution_id}', not '{history.execution_id}'")

        if t.scope == TransitionScope.EXECUTION:
            src, dst = ExecutionStatus(t.from_state), ExecutionStatus(t.to_state)
            _check(src == history.status, t, f"log says '{src.value}', replay is at '{history.status.value}'")
            _check(dst in EXECUTION_TRANSITIONS[src], t, "not an allowed execution transition")
            history.status = dst
        else:
            node_id, index, loop_node_id = _node_key(t)
            node = history.nodes.setdefault(
                _key(node_id, index, loop_node_id),
                NodeHistory(node_id=node_id, iteration_index=index, loop_node_id=loop_node_id),
            )
            src, dst = NodeExecutionStatus(t.from_state), NodeExecutionStatus(t.to_state)
            _check(src == node.status, t, f"log says '{src.value}', replay is at '{node.status.value}'")
            _check(dst in NODE_TRANSITIONS[src], t, "not an allowed node transition")
            if src == NodeExecutionStatus.FAILED and dst == NodeExecutionStatus.QUEUED:
                node.attempts += 1
            node.status = dst
            node.transitions.append(t)

        history.steps.append(t)
    return history
