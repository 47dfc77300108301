"""Map transition log entries to observer-facing ExecutionEvents.

UIs and webhooks consume a small vocabulary of events
(``node_started``, ``execution_failed``, ...) rather than raw
``from_state -> to_state`` pairs.  Every transition maps to exactly one event.
"""

from typing import Any, Optional

from flowrun.types import (
    EventType,
    ExecutionEvent,
    ExecutionStatus,
    NodeExecutionStatus,
    StateTransition,
    TransitionScope,
)

_EXECUTION_EVENTS = {
    ExecutionStatus.RUNNING: EventType.EXECUTION_STARTED,
    ExecutionStatus.COMPLETED: EventType.EXECUTION_COMPLETED,
    ExecutionStatus.FAILED: EventType.EXECUTION_FAILED,
    ExecutionStatus.CANCELLED: EventType.EXECUTION_CANCELLED,
    ExecutionStatus.TIMEOUT: EventType.EXECUTION_TIMEOUT,
}

_NODE_EVENTS = {
    NodeExecutionStatus.QUEUED: EventType.NODE_QUEUED,
    NodeExecutionStatus.RUNNING: EventType.NODE_STARTED,
    NodeExecutionStatus.COMPLETED: EventType.NODE_COMPLETED,
    NodeExecutionStatus.FAILED: EventType.NODE_FAILED,
    NodeExecutionStatus.SKIPPED: EventType.NODE_SKIPPED,
    NodeExecutionStatus.CANCELLED: EventType.NODE_CANCELLED,
}


def _data_field(data: Any, key: str) -> Optional[Any]:
    return data.get(key) if isinstance(data, dict) else None


def event_from_transition(transition: StateTransition) -> ExecutionEvent:
    """Build the ExecutionEvent for one log entry.

    A node moving ``failed -> queued`` is reported as ``node_retrying``.
    Payload fields (output, error, duration, attempt) are read from the
    transition's ``data`` when the tracker recorded them there.

    Raises:
        ValueError: the target state has no event (``pending`` is never a
            transition target).
    """
    data = transition.data
    if transition.scope == TransitionScope.EXECUTION:
        event_type = _EXECUTION_EVENTS.get(ExecutionStatus(transition.to_state))
    elif (transition.from_state, transition.to_state) == (
        NodeExecutionStatus.FAILED.value, NodeExecutionStatus.QUEUED.value
    ):
        event_type = EventType.NODE_RETRYING
    else:
        event_type = _NODE_EVENTS.get(NodeExecutionStatus(transition.to_state))

    if event_type is None:
        raise ValueError(
            f"No event for {transition.scope.value} transition to '{transition.to_state}'"
        )

    return ExecutionEvent(
        type=event_type,
        execution_id=transition.execution_id,
        transition_id=transition.id,
        node_id=transition.node_id,
        attempt=_data_field(data, "attempt"),
        output=_data_field(data, "output"),
        error=_data_field(data, "error"),
        duration=_data_field(data, "duration"),
        reason=transition.reason,
        timestamp=transition.timestamp,
    )
