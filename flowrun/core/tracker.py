"""
ExecutionTracker — lifecycle of execution records and their node states.

The tracker is the single writer for every ExecutionRecord and
NodeExecutionState it owns.  Each status change is validated against the
transition tables, appended to the TransitionLog and only then applied, all
inside one per-execution asyncio.Lock.  That lock is what keeps the log order
equal to causal order and lets exactly one of two racing "complete the
execution" calls win.

Different executions never share a lock.  Cancellation is advisory: the
executor observes ``cancelled`` between node steps; ``cancel_execution(...,
propagate=True)`` is offered for executors that want the in-flight node
states cancelled in the same critical section.

All methods are async for consistency with the rest of the framework even
though in-memory operations are synchronous internally.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

from flowrun.config import FlowrunConfig
from flowrun.core.ledger import TransitionLog
from flowrun.core.transitions import (
    check_execution_transition,
    check_node_transition,
    is_terminal_execution,
    is_terminal_node,
)
from flowrun.exceptions import (
    DuplicateExecution,
    ExecutionNotFound,
    InvalidTransition,
    NodeStateNotFound,
    StateError,
)
from flowrun.expressions.resolver import ExpressionResolver
from flowrun.ids import new_id, validate_id
from flowrun.types import (
    Environment,
    ExecutionError,
    ExecutionRecord,
    ExecutionStatus,
    LoopContext,
    NodeError,
    NodeExecutionState,
    NodeExecutionStatus,
    NodeOutput,
    NodeOutputStatus,
    ResolutionContext,
    StateTransition,
    SystemFacts,
    TransitionScope,
    TriggerContext,
    WorkflowSnapshot,
    now_ms,
)

logger = logging.getLogger(__name__)

_N = NodeExecutionStatus

_OUTPUT_STATUS = {
    _N.COMPLETED: NodeOutputStatus.COMPLETED,
    _N.FAILED: NodeOutputStatus.FAILED,
}


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _elapsed(start: Optional[int], end: int) -> Optional[int]:
    return end - start if start is not None else None


class ExecutionTracker:
    """
    Creates execution records and advances execution/node status.

    Args:
        log:        TransitionLog to append to.  A default in-memory log is
                    created if not supplied.
        callbacks:  Objects implementing FlowrunCallback hooks, awaited in
                    order after each accepted transition.
        config:     FlowrunConfig instance.  A default instance is created if
                    not supplied.
    """

    def __init__(
        self,
        log: Optional[TransitionLog] = None,
        callbacks: Optional[list] = None,
        config: Optional[FlowrunConfig] = None,
    ) -> None:
        self._config = config or FlowrunConfig()
        self._log = log or TransitionLog()
        self._callbacks = list(callbacks or [])

        self._records: dict[str, ExecutionRecord] = {}
        # execution_id → state id → NodeExecutionState
        self._node_states: dict[str, dict[str, NodeExecutionState]] = {}
        # execution_id → node_id → state ids, one per cohort, oldest first
        self._node_index: dict[str, dict[str, list[str]]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def log(self) -> TransitionLog:
        return self._log

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _record(self, execution_id: str) -> ExecutionRecord:
        record = self._records.get(execution_id)
        if record is None:
            raise ExecutionNotFound(
                f"Execution '{execution_id}' not found", execution_id=execution_id
            )
        return record

    def _lock(self, execution_id: str) -> asyncio.Lock:
        self._record(execution_id)
        return self._locks[execution_id]

    def _state(
        self, execution_id: str, node_id: str, state_id: Optional[str] = None
    ) -> NodeExecutionState:
        states = self._node_states.get(execution_id, {})
        if state_id is not None:
            state = states.get(state_id)
            if state is not None and state.node_id == node_id:
                return state
        else:
            ids = self._node_index.get(execution_id, {}).get(node_id)
            if ids:
                return states[ids[-1]]
        raise NodeStateNotFound(
            f"No state for node '{node_id}' in execution '{execution_id}'",
            execution_id=execution_id,
            node_id=node_id,
        )

    async def _fire(self, hook: str, *args: Any) -> None:
        for cb in self._callbacks:
            fn = getattr(cb, hook, None)
            if fn is None:
                continue
            try:
                await fn(*args)
            except Exception as cb_exc:
                logger.warning(f"[Tracker] Callback error on '{hook}': {cb_exc}")

    async def _reject(self, exc: StateError, **context: Any) -> None:
        logger.info(f"[Tracker] Rejected: {exc}")
        await self._fire("on_error", exc, context)

    # ── Creation ──────────────────────────────────────────────────────────────

    async def create_execution(
        self,
        workflow_id: str,
        snapshot: Union[WorkflowSnapshot, dict],
        trigger_context: Union[TriggerContext, dict],
        input_vars: Optional[dict[str, Any]] = None,
        execution_id: Optional[str] = None,
    ) -> ExecutionRecord:
        """
        Admit a run: create its record in ``pending`` status.

        The snapshot and input vars are deep-copied, so later changes to the
        caller's objects never reach the record.

        Raises:
            InvalidIdentifier: workflow_id / execution_id lack their prefix.
            DuplicateExecution: execution_id is already in use.
        """
        validate_id("workflow", workflow_id)
        execution_id = validate_id("execution", execution_id) if execution_id else new_id("execution")
        if execution_id in self._records:
            raise DuplicateExecution(f"Execution '{execution_id}' already exists")

        if isinstance(snapshot, WorkflowSnapshot):
            snapshot = snapshot.model_copy(deep=True)
        else:
            snapshot = WorkflowSnapshot.model_validate(copy.deepcopy(snapshot))
        if not isinstance(trigger_context, TriggerContext):
            trigger_context = TriggerContext.model_validate(trigger_context)

        now = _utcnow()
        record = ExecutionRecord(
            execution_id=execution_id,
            workflow_id=workflow_id,
            workflow_snapshot=snapshot,
            status=ExecutionStatus.PENDING,
            started_at=now_ms(),
            trigger_context=trigger_context.model_copy(deep=True),
            input_vars=copy.deepcopy(input_vars or {}),
            created_at=now,
            updated_at=now,
        )
        self._records[execution_id] = record
        self._node_states[execution_id] = {}
        self._node_index[execution_id] = {}
        self._locks[execution_id] = asyncio.Lock()

        logger.info(
            f"[Tracker] Execution {execution_id} created for {workflow_id} "
            f"({len(snapshot.nodes)} node(s), trigger={trigger_context.type.value})"
        )
        await self._fire("on_execution_created", record.model_copy(deep=True))
        return record.model_copy(deep=True)

    async def register_node(
        self,
        execution_id: str,
        node_id: str,
        *,
        max_attempts: Optional[int] = None,
        loop_context: Optional[Union[LoopContext, dict]] = None,
    ) -> NodeExecutionState:
        """
        Create the ``pending`` state for a node (or one loop iteration of it).

        Registering the same node (or the same loop iteration) twice returns
        the existing state.  Each loop iteration is its own cohort with its
        own state id; retries reuse the cohort.

        Raises:
            ExecutionNotFound: unknown execution.
            NodeStateNotFound: node is not part of the workflow snapshot.
        """
        async with self._lock(execution_id):
            record = self._records[execution_id]
            validate_id("node", node_id)
            snapshot_ids = {n.id for n in record.workflow_snapshot.nodes}
            if snapshot_ids and node_id not in snapshot_ids:
                raise NodeStateNotFound(
                    f"Node '{node_id}' is not in the snapshot of execution '{execution_id}'",
                    execution_id=execution_id,
                    node_id=node_id,
                )
            if loop_context is not None and not isinstance(loop_context, LoopContext):
                loop_context = LoopContext.model_validate(loop_context)

            states = self._node_states[execution_id]
            cohorts = self._node_index[execution_id].setdefault(node_id, [])
            for sid in cohorts:
                existing = states[sid]
                if loop_context is None and existing.loop_context is None:
                    return existing.model_copy(deep=True)
                if (
                    loop_context is not None
                    and existing.loop_context is not None
                    and existing.loop_context.loop_node_id == loop_context.loop_node_id
                    and existing.loop_context.iteration_index == loop_context.iteration_index
                ):
                    return existing.model_copy(deep=True)

            state = NodeExecutionState(
                id=f"{execution_id}_{node_id}_{len(cohorts) + 1}",
                execution_id=execution_id,
                node_id=node_id,
                status=_N.PENDING,
                attempt=1,
                max_attempts=max_attempts or self._config.default_max_attempts,
                loop_context=loop_context,
            )
            states[state.id] = state
            cohorts.append(state.id)
            logger.debug(f"[Tracker] Registered {state.id}")
            return state.model_copy(deep=True)

    # ── Execution transitions ─────────────────────────────────────────────────

    async def _transition_execution_locked(
        self,
        record: ExecutionRecord,
        to_status: Union[ExecutionStatus, str],
        reason: Optional[str],
        error: Optional[Union[ExecutionError, dict]],
        output_data: Any,
        data: Any,
        timestamp: Optional[int],
    ) -> tuple[ExecutionRecord, StateTransition]:
        dst = check_execution_transition(record.status, to_status)
        ts = timestamp if timestamp is not None else now_ms()

        update: dict[str, Any] = {"status": dst, "updated_at": _utcnow()}
        if is_terminal_execution(dst):
            update["completed_at"] = ts
            update["duration"] = _elapsed(record.started_at, ts)
        if error is not None:
            update["error"] = error if isinstance(error, ExecutionError) else ExecutionError.model_validate(error)
        if output_data is not None:
            update["output_data"] = copy.deepcopy(output_data)

        payload = dict(data) if isinstance(data, dict) else ({"data": data} if data is not None else {})
        if update.get("duration") is not None:
            payload["duration"] = update["duration"]
        if "error" in update:
            payload["error"] = update["error"].model_dump(mode="json", exclude_none=True)

        transition = await self._log.append(StateTransition(
            execution_id=record.execution_id,
            timestamp=ts,
            scope=TransitionScope.EXECUTION,
            from_state=record.status.value,
            to_state=dst.value,
            reason=reason,
            data=payload or None,
        ))
        updated = record.model_copy(update=update)
        self._records[record.execution_id] = updated
        logger.info(
            f"[Tracker] Execution {record.execution_id}: {record.status.value} -> {dst.value}"
        )
        return updated, transition

    async def transition_execution(
        self,
        execution_id: str,
        to_status: Union[ExecutionStatus, str],
        *,
        reason: Optional[str] = None,
        error: Optional[Union[ExecutionError, dict]] = None,
        output_data: Any = None,
        data: Any = None,
        timestamp: Optional[int] = None,
    ) -> ExecutionRecord:
        """
        Move an execution to *to_status* and log the change.

        Terminal statuses stamp ``completed_at`` and ``duration``.

        Raises:
            ExecutionNotFound: unknown execution.
            InvalidTransition: not allowed from the current status; the
                record is left unchanged and nothing is logged.
        """
        async with self._lock(execution_id):
            record = self._records[execution_id]
            try:
                updated, transition = await self._transition_execution_locked(
                    record, to_status, reason, error, output_data, data, timestamp
                )
            except InvalidTransition as exc:
                rejected = exc
            else:
                rejected = None
        if rejected is not None:
            await self._reject(rejected, execution_id=execution_id, to_status=to_status)
            raise rejected
        await self._fire("on_transition", transition)
        return updated.model_copy(deep=True)

    async def start_execution(self, execution_id: str, reason: Optional[str] = None) -> ExecutionRecord:
        return await self.transition_execution(execution_id, ExecutionStatus.RUNNING, reason=reason)

    async def complete_execution(
        self, execution_id: str, output_data: Any = None, reason: Optional[str] = None
    ) -> ExecutionRecord:
        return await self.transition_execution(
            execution_id, ExecutionStatus.COMPLETED, reason=reason, output_data=output_data
        )

    async def fail_execution(
        self,
        execution_id: str,
        error: Union[ExecutionError, dict, str],
        reason: Optional[str] = None,
    ) -> ExecutionRecord:
        if isinstance(error, str):
            error = ExecutionError(message=error)
        return await self.transition_execution(
            execution_id, ExecutionStatus.FAILED, reason=reason, error=error
        )

    async def timeout_execution(self, execution_id: str, reason: Optional[str] = None) -> ExecutionRecord:
        return await self.transition_execution(execution_id, ExecutionStatus.TIMEOUT, reason=reason)

    async def cancel_execution(
        self,
        execution_id: str,
        reason: Optional[str] = None,
        propagate: bool = False,
    ) -> ExecutionRecord:
        """
        Cancel an execution.  With ``propagate=True`` every node state that
        can still move to ``cancelled`` is cancelled in the same critical
        section, each with its own log entry.

        Raises:
            InvalidTransition: the execution is already terminal.
        """
        appended: list[StateTransition] = []
        async with self._lock(execution_id):
            record = self._records[execution_id]
            try:
                updated, transition = await self._transition_execution_locked(
                    record, ExecutionStatus.CANCELLED, reason, None, None, None, None
                )
            except InvalidTransition as exc:
                rejected = exc
            else:
                rejected = None
                appended.append(transition)
                if propagate:
                    for state in list(self._node_states[execution_id].values()):
                        if state.status in (_N.PENDING, _N.QUEUED, _N.RUNNING):
                            _, node_transition = await self._advance_node_locked(
                                state, _N.CANCELLED,
                                reason=reason or "execution cancelled",
                            )
                            appended.append(node_transition)
        if rejected is not None:
            await self._reject(rejected, execution_id=execution_id, to_status="cancelled")
            raise rejected
        for t in appended:
            await self._fire("on_transition", t)
        return updated.model_copy(deep=True)

    async def archive_execution(self, execution_id: str) -> ExecutionRecord:
        """
        Mark a finished execution as archived.  Records are never deleted.

        Raises:
            InvalidTransition: the execution has not reached a terminal status.
        """
        async with self._lock(execution_id):
            record = self._records[execution_id]
            if not is_terminal_execution(record.status):
                raise InvalidTransition(
                    f"Execution '{execution_id}' is '{record.status.value}'; only finished runs can be archived",
                    scope=TransitionScope.EXECUTION.value,
                    from_state=record.status.value,
                    to_state="archived",
                )
            updated = record.model_copy(update={"archived": True, "updated_at": _utcnow()})
            self._records[execution_id] = updated
        logger.info(f"[Tracker] Execution {execution_id} archived")
        return updated.model_copy(deep=True)

    # ── Node transitions ──────────────────────────────────────────────────────

    async def _advance_node_locked(
        self,
        state: NodeExecutionState,
        to_status: Union[NodeExecutionStatus, str],
        *,
        input: Any = None,
        output: Any = None,
        error: Optional[Union[NodeError, dict]] = None,
        reason: Optional[str] = None,
        data: Any = None,
        timestamp: Optional[int] = None,
    ) -> tuple[NodeExecutionState, StateTransition]:
        dst = check_node_transition(state, to_status)
        ts = timestamp if timestamp is not None else now_ms()

        update: dict[str, Any] = {"status": dst}
        if state.status == _N.FAILED and dst == _N.QUEUED:
            # Same logical unit advancing: reuse the record, clear the last attempt.
            update.update({
                "attempt": state.attempt + 1,
                "started_at": None,
                "completed_at": None,
                "duration": None,
                "output": None,
                "error": None,
            })
        elif dst == _N.RUNNING:
            update["started_at"] = ts
        elif dst in (_N.COMPLETED, _N.FAILED, _N.SKIPPED, _N.CANCELLED):
            update["completed_at"] = ts
            update["duration"] = _elapsed(state.started_at, ts)
        if input is not None:
            update["input"] = copy.deepcopy(input)
        if output is not None:
            update["output"] = copy.deepcopy(output)
        if error is not None:
            update["error"] = error if isinstance(error, NodeError) else NodeError.model_validate(error)

        payload = dict(data) if isinstance(data, dict) else ({"data": data} if data is not None else {})
        payload["attempt"] = update.get("attempt", state.attempt)
        if state.loop_context is not None:
            payload["loop_node_id"] = state.loop_context.loop_node_id
            payload["iteration_index"] = state.loop_context.iteration_index
        if update.get("duration") is not None:
            payload["duration"] = update["duration"]
        if dst == _N.COMPLETED and "output" in update:
            payload["output"] = update["output"]
        if "error" in update and update["error"] is not None:
            payload["error"] = update["error"].model_dump(mode="json", exclude_none=True)

        transition = await self._log.append(StateTransition(
            execution_id=state.execution_id,
            timestamp=ts,
            scope=TransitionScope.NODE,
            node_id=state.node_id,
            from_state=state.status.value,
            to_state=dst.value,
            reason=reason,
            data=payload,
        ))
        updated = state.model_copy(update=update)
        self._node_states[state.execution_id][state.id] = updated
        logger.info(
            f"[Tracker] Node {state.node_id} ({state.execution_id}, attempt {updated.attempt}): "
            f"{state.status.value} -> {dst.value}"
        )
        return updated, transition

    async def advance_node(
        self,
        execution_id: str,
        node_id: str,
        to_status: Union[NodeExecutionStatus, str],
        *,
        state_id: Optional[str] = None,
        input: Any = None,
        output: Any = None,
        error: Optional[Union[NodeError, dict]] = None,
        reason: Optional[str] = None,
        data: Any = None,
        timestamp: Optional[int] = None,
    ) -> NodeExecutionState:
        """
        Move a node state to *to_status* and log the change.

        The latest cohort of *node_id* is advanced unless *state_id* picks a
        specific loop iteration.  ``running`` stamps ``started_at``; terminal
        statuses stamp ``completed_at``/``duration``; ``failed -> queued``
        increments ``attempt`` and clears the previous attempt's timing,
        output and error in place.

        Raises:
            ExecutionNotFound / NodeStateNotFound: unknown execution or node.
            RetryExhausted: retry requested with no attempts left.
            InvalidTransition: any other disallowed change; state unchanged,
                nothing logged.
        """
        async with self._lock(execution_id):
            state = self._state(execution_id, node_id, state_id)
            try:
                updated, transition = await self._advance_node_locked(
                    state, to_status,
                    input=input, output=output, error=error,
                    reason=reason, data=data, timestamp=timestamp,
                )
            except InvalidTransition as exc:
                rejected = exc
            else:
                rejected = None
        if rejected is not None:
            await self._reject(
                rejected, execution_id=execution_id, node_id=node_id, to_status=to_status
            )
            raise rejected
        await self._fire("on_transition", transition)
        return updated.model_copy(deep=True)

    async def retry_node(
        self,
        execution_id: str,
        node_id: str,
        *,
        state_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> NodeExecutionState:
        """``failed -> queued`` for the node's next attempt. See advance_node()."""
        return await self.advance_node(
            execution_id, node_id, _N.QUEUED, state_id=state_id, reason=reason or "retry"
        )

    # ── Reads ─────────────────────────────────────────────────────────────────

    async def get_execution(self, execution_id: str) -> ExecutionRecord:
        return self._record(execution_id).model_copy(deep=True)

    async def list_executions(
        self,
        status: Optional[ExecutionStatus] = None,
        workflow_id: Optional[str] = None,
        include_archived: bool = False,
    ) -> list[ExecutionRecord]:
        """Execution records, oldest first, optionally filtered."""
        results = [
            r for r in self._records.values()
            if (status is None or r.status == status)
            and (workflow_id is None or r.workflow_id == workflow_id)
            and (include_archived or not r.archived)
        ]
        return [r.model_copy(deep=True) for r in results]

    async def get_node_state(
        self, execution_id: str, node_id: str, state_id: Optional[str] = None
    ) -> NodeExecutionState:
        self._record(execution_id)
        return self._state(execution_id, node_id, state_id).model_copy(deep=True)

    async def list_node_states(
        self, execution_id: str, node_id: Optional[str] = None
    ) -> list[NodeExecutionState]:
        """Node states in registration order (all cohorts)."""
        self._record(execution_id)
        states = self._node_states[execution_id].values()
        return [
            s.model_copy(deep=True) for s in states
            if node_id is None or s.node_id == node_id
        ]

    async def get_transitions(
        self, execution_id: str, after_id: Optional[int] = None
    ) -> list[StateTransition]:
        """Append-only read of the log for one execution, ordered by id."""
        self._record(execution_id)
        return self._log.get(execution_id, after_id=after_id)

    async def is_settled(self, execution_id: str) -> bool:
        """True once every registered node state is terminal (no retries pending)."""
        self._record(execution_id)
        return all(is_terminal_node(s) for s in self._node_states[execution_id].values())

    async def build_resolution_context(
        self,
        execution_id: str,
        *,
        node_config: Optional[dict[str, Any]] = None,
        credentials: Optional[dict[str, Any]] = None,
        environment: Optional[Environment] = None,
        timestamp: Optional[int] = None,
    ) -> ResolutionContext:
        """
        Assemble the ResolutionContext for evaluating one node's configuration.

        ``nodes`` holds the latest cohort of every registered node, with any
        status; checking that an upstream node completed is the caller's
        decision (see ResolutionContext.node_status()).
        """
        async with self._lock(execution_id):
            record = self._records[execution_id]
            states = self._node_states[execution_id]
            nodes = {
                node_id: NodeOutput(
                    output=copy.deepcopy(states[ids[-1]].output),
                    status=_OUTPUT_STATUS.get(states[ids[-1]].status, NodeOutputStatus.PENDING),
                )
                for node_id, ids in self._node_index[execution_id].items()
            }
            trigger_data = record.trigger_context.trigger_data
            return ResolutionContext(
                nodes=nodes,
                vars=copy.deepcopy(record.input_vars),
                config=copy.deepcopy(node_config or {}),
                input=copy.deepcopy(trigger_data) if isinstance(trigger_data, dict) else {},
                credentials=dict(credentials or {}),
                system=SystemFacts(
                    execution_id=record.execution_id,
                    workflow_id=record.workflow_id,
                    timestamp=timestamp if timestamp is not None else now_ms(),
                    environment=environment or self._config.environment,
                ),
            )

    async def resolver_for(
        self,
        execution_id: str,
        *,
        node_config: Optional[dict[str, Any]] = None,
        credentials: Optional[dict[str, Any]] = None,
        environment: Optional[Environment] = None,
        timestamp: Optional[int] = None,
    ) -> ExpressionResolver:
        """
        ExpressionResolver over a fresh context for one node evaluation.

        Memoization follows ``FlowrunConfig.memoize_resolution``.
        """
        ctx = await self.build_resolution_context(
            execution_id,
            node_config=node_config,
            credentials=credentials,
            environment=environment,
            timestamp=timestamp,
        )
        return ExpressionResolver(ctx, memoize=self._config.memoize_resolution)
