"""All shared types, enums, and type aliases. Everything imports from here.

Attributes are snake_case; the serialized form uses camelCase aliases
(``executionId``, ``workflowSnapshot``) so stored records and API payloads keep
the wire format.  Either spelling is accepted on input.
"""

import time
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from flowrun.ids import validate_id


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


# ── Enums ──────────────────────────────────────────────────────────────

class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"     # assigned by the executor, no clock lives here

class NodeExecutionStatus(str, Enum):
    PENDING = "pending"
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"     # upstream condition routed around the node
    CANCELLED = "cancelled"

class NodeOutputStatus(str, Enum):
    """Coarse node status as seen from a ResolutionContext."""
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"

class TriggerType(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    WEBHOOK = "webhook"
    API = "api"
    EVENT = "event"

class TransitionScope(str, Enum):
    EXECUTION = "execution"
    NODE = "node"

class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"

class NodeType(str, Enum):
    TRIGGER = "trigger"
    ACTION = "action"
    TRANSFORM = "transform"
    CONDITION = "condition"
    LOOP = "loop"

class EventType(str, Enum):
    EXECUTION_STARTED = "execution_started"
    EXECUTION_COMPLETED = "execution_completed"
    EXECUTION_FAILED = "execution_failed"
    EXECUTION_CANCELLED = "execution_cancelled"
    EXECUTION_TIMEOUT = "execution_timeout"
    NODE_QUEUED = "node_queued"
    NODE_STARTED = "node_started"
    NODE_COMPLETED = "node_completed"
    NODE_FAILED = "node_failed"
    NODE_SKIPPED = "node_skipped"
    NODE_CANCELLED = "node_cancelled"
    NODE_RETRYING = "node_retrying"


class Schema(BaseModel):
    """Base for persisted shapes: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Errors ─────────────────────────────────────────────────────────────

class ExecutionError(Schema):
    """Error information for execution-level failures."""
    message: str
    code: Optional[str] = None
    node_id: Optional[str] = None       # originating node, if any
    stack: Optional[str] = None
    timestamp: int = Field(default_factory=now_ms)

class NodeError(Schema):
    """Error information for node-level failures."""
    message: str
    code: Optional[str] = None
    stack: Optional[str] = None
    retryable: bool = False


# ── Workflow snapshot ──────────────────────────────────────────────────

class SnapshotNode(Schema):
    model_config = ConfigDict(frozen=True)

    id: str
    type: NodeType
    label: Optional[str] = None
    config: Optional[dict[str, Any]] = None
    disabled: bool = False

    @field_validator("id")
    @classmethod
    def check_id(cls, v):
        return validate_id("node", v)

class SnapshotEdge(Schema):
    model_config = ConfigDict(frozen=True)

    id: str
    source: str = Field(min_length=1)   # "nd_a" or "nd_a:out1"
    target: str = Field(min_length=1)
    label: Optional[str] = None

    @field_validator("id")
    @classmethod
    def check_id(cls, v):
        return validate_id("edge", v)

class SnapshotVariable(Schema):
    model_config = ConfigDict(frozen=True)

    name: str
    type: Optional[str] = None

class WorkflowSnapshot(Schema):
    """Frozen workflow structure as it existed when an execution started."""
    model_config = ConfigDict(frozen=True)

    nodes: list[SnapshotNode] = Field(default_factory=list)
    edges: list[SnapshotEdge] = Field(default_factory=list)
    triggers: Optional[list[dict[str, Any]]] = None
    variables: Optional[list[SnapshotVariable]] = None  # definitions, not values


# ── Execution record ───────────────────────────────────────────────────

class TriggerContext(Schema):
    type: TriggerType
    triggered_by: Optional[str] = None   # user id or system identifier
    trigger_data: Any = None             # webhook/API/event payload
    scheduled_time: Optional[int] = None

class ExecutionRecord(Schema):
    """One workflow run. Created once, mutated only by ExecutionTracker."""
    execution_id: str
    workflow_id: str
    workflow_snapshot: WorkflowSnapshot
    status: ExecutionStatus = ExecutionStatus.PENDING
    started_at: int = Field(default_factory=now_ms)
    completed_at: Optional[int] = None
    duration: Optional[int] = None
    error: Optional[ExecutionError] = None
    trigger_context: TriggerContext
    input_vars: dict[str, Any] = Field(default_factory=dict)
    output_data: Any = None
    archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("execution_id")
    @classmethod
    def check_execution_id(cls, v):
        return validate_id("execution", v)

    @field_validator("workflow_id")
    @classmethod
    def check_workflow_id(cls, v):
        return validate_id("workflow", v)


# ── Node execution ─────────────────────────────────────────────────────

class LoopContext(Schema):
    """Iteration metadata for a node executing inside a loop."""
    loop_node_id: str
    iteration_index: int = Field(ge=0)
    iteration_key: Optional[str] = None     # stable item id for idempotent retries
    total_iterations: Optional[int] = Field(default=None, ge=0)

    @field_validator("loop_node_id")
    @classmethod
    def check_loop_node_id(cls, v):
        return validate_id("node", v)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.total_iterations is not None and self.iteration_index >= self.total_iterations:
            raise ValueError(
                f"iteration_index {self.iteration_index} out of range "
                f"for total_iterations {self.total_iterations}"
            )
        return self

class NodeExecutionState(Schema):
    """Run-time record of one node's attempt(s) within an execution."""
    id: str
    execution_id: str
    node_id: str
    status: NodeExecutionStatus = NodeExecutionStatus.PENDING
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    duration: Optional[int] = None
    input: Any = None
    output: Any = None
    error: Optional[NodeError] = None
    attempt: int = Field(default=1, ge=1)
    max_attempts: Optional[int] = Field(default=None, ge=1)
    loop_context: Optional[LoopContext] = None

    @field_validator("execution_id")
    @classmethod
    def check_execution_id(cls, v):
        return validate_id("execution", v)

    @field_validator("node_id")
    @classmethod
    def check_node_id(cls, v):
        return validate_id("node", v)


# ── Transition log ─────────────────────────────────────────────────────

class StateTransition(Schema):
    """Append-only audit entry. ``id`` is assigned by TransitionLog, never by callers."""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    execution_id: str
    timestamp: int = Field(default_factory=now_ms)
    scope: TransitionScope
    node_id: Optional[str] = None       # required iff scope == node
    from_state: str
    to_state: str
    reason: Optional[str] = None
    data: Any = None

    @field_validator("execution_id")
    @classmethod
    def check_execution_id(cls, v):
        return validate_id("execution", v)

    @model_validator(mode="after")
    def check_node_scope(self):
        if self.scope == TransitionScope.NODE and not self.node_id:
            raise ValueError("node_id is required for node-scoped transitions")
        if self.scope == TransitionScope.EXECUTION and self.node_id is not None:
            raise ValueError("node_id must be omitted for execution-scoped transitions")
        return self

class ExecutionEvent(Schema):
    """Observer-facing event derived from a transition (UI streams, webhooks)."""
    type: EventType
    execution_id: str
    transition_id: Optional[int] = None
    node_id: Optional[str] = None
    attempt: Optional[int] = None
    output: Any = None
    error: Optional[dict[str, Any]] = None
    duration: Optional[int] = None
    reason: Optional[str] = None
    timestamp: int


# ── Resolution context ─────────────────────────────────────────────────

class NodeOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    output: Any = None
    status: NodeOutputStatus = NodeOutputStatus.PENDING

class SystemFacts(BaseModel):
    model_config = ConfigDict(frozen=True)

    execution_id: str
    workflow_id: str
    timestamp: int = Field(default_factory=now_ms)
    environment: Environment = Environment.DEVELOPMENT

class ResolutionContext(BaseModel):
    """Run-time data an expression is evaluated against. Built fresh per node evaluation.

    Each root is namespaced; none may be renamed or merged.
    """
    model_config = ConfigDict(frozen=True)

    nodes: dict[str, NodeOutput] = Field(default_factory=dict)
    vars: dict[str, Any] = Field(default_factory=dict)
    config: dict[str, Any] = Field(default_factory=dict)
    input: dict[str, Any] = Field(default_factory=dict)
    credentials: dict[str, Any] = Field(default_factory=dict)
    system: SystemFacts

    def node_status(self, node_id: str) -> Optional[NodeOutputStatus]:
        """Status of *node_id* in this context, or None if it is not present.

        The resolver reads ``output`` regardless of status; callers that must
        only see completed upstream nodes check here first.
        """
        entry = self.nodes.get(node_id)
        return entry.status if entry is not None else None
