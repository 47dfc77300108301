"""flowrun — expression resolution and execution state for workflow runs.

Usage:
    from flowrun import ExecutionTracker, resolve_value

    tracker = ExecutionTracker()
    record = await tracker.create_execution("wf_demo", snapshot, {"type": "manual"})
    ctx = await tracker.build_resolution_context(record.execution_id)
    value = resolve_value("{{nodes.nd_fetch.output.id | uppercase}}", ctx)
"""

from flowrun.types import (
    ExecutionStatus, NodeExecutionStatus, TriggerType, TransitionScope, Environment,
    ExecutionError, NodeError, WorkflowSnapshot, TriggerContext, ExecutionRecord,
    LoopContext, NodeExecutionState, StateTransition, ExecutionEvent,
    ResolutionContext, NodeOutput, SystemFacts,
)
from flowrun.exceptions import (
    FlowrunError, ResolutionError, EmptyReference, UnknownSource, UnknownTransform,
    StateError, InvalidTransition, RetryExhausted, ExecutionNotFound, InvalidIdentifier,
)
from flowrun.expressions import ABSENT, ExpressionResolver, resolve_value, resolve_params
from flowrun.core.ledger import TransitionLog
from flowrun.core.tracker import ExecutionTracker
from flowrun.core.replay import replay_transitions
from flowrun.version import __version__

__all__ = [
    "ExecutionStatus", "NodeExecutionStatus", "TriggerType", "TransitionScope", "Environment",
    "ExecutionError", "NodeError", "WorkflowSnapshot", "TriggerContext", "ExecutionRecord",
    "LoopContext", "NodeExecutionState", "StateTransition", "ExecutionEvent",
    "ResolutionContext", "NodeOutput", "SystemFacts",
    "FlowrunError", "ResolutionError", "EmptyReference", "UnknownSource", "UnknownTransform",
    "StateError", "InvalidTransition", "RetryExhausted", "ExecutionNotFound", "InvalidIdentifier",
    "ABSENT", "ExpressionResolver", "resolve_value", "resolve_params",
    "TransitionLog", "ExecutionTracker", "replay_transitions",
    "__version__",
]
