"""Tests for rebuilding execution history from the transition log."""

import pytest

from flowrun.core.replay import ExecutionHistory, replay_transitions
from flowrun.exceptions import InvalidTransition
from flowrun.types import ExecutionStatus, NodeExecutionStatus


def _entry(id, from_state, to_state, node_id=None, execution_id="ex_1", **data):
    return {
        "id": id,
        "executionId": execution_id,
        "timestamp": 1_700_000_000_000 + id,
        "scope": "node" if node_id else "execution",
        "nodeId": node_id,
        "fromState": from_state,
        "toState": to_state,
        "data": data or None,
    }


def test_empty_log():
    history = replay_transitions([])
    assert history.execution_id is None
    assert history.status == ExecutionStatus.PENDING
    assert history.last_id == 0


@pytest.mark.asyncio
async def test_replay_matches_tracker(tracker, sample_snapshot, manual_trigger):
    record = await tracker.create_execution("wf_demo", sample_snapshot, manual_trigger)
    execution_id = record.execution_id
    await tracker.start_execution(execution_id)
    await tracker.register_node(execution_id, "nd_a", max_attempts=2)
    for status in ("queued", "running"):
        await tracker.advance_node(execution_id, "nd_a", status)
    await tracker.advance_node(
        execution_id, "nd_a", "failed", error={"message": "503", "retryable": True}
    )
    await tracker.retry_node(execution_id, "nd_a")
    await tracker.advance_node(execution_id, "nd_a", "running")
    await tracker.advance_node(execution_id, "nd_a", "completed", output={"ok": True})
    await tracker.complete_execution(execution_id)

    history = replay_transitions(tracker.log.export(execution_id))
    assert history.execution_id == execution_id
    assert history.status == ExecutionStatus.COMPLETED
    assert history.node_status("nd_a") == NodeExecutionStatus.COMPLETED
    assert history.nodes["nd_a"].attempts == 2
    assert len(history.steps) == len(await tracker.get_transitions(execution_id))


def test_replay_continues_from_previous_history():
    history = replay_transitions([_entry(1, "pending", "running")])
    history = replay_transitions([_entry(2, "running", "completed")], history=history)
    assert history.status == ExecutionStatus.COMPLETED
    assert history.last_id == 2


def test_loop_iterations_replay_independently():
    history = replay_transitions([
        _entry(1, "pending", "running"),
        _entry(2, "pending", "queued", node_id="nd_body", iteration_index=0),
        _entry(3, "pending", "queued", node_id="nd_body", iteration_index=1),
        _entry(4, "queued", "running", node_id="nd_body", iteration_index=0),
    ])
    assert history.node_status("nd_body", 0) == NodeExecutionStatus.RUNNING
    assert history.node_status("nd_body", 1) == NodeExecutionStatus.QUEUED
    assert history.node_status("nd_body") is None


def test_out_of_order_ids_rejected():
    with pytest.raises(InvalidTransition, match="strictly increasing"):
        replay_transitions([_entry(2, "pending", "running"), _entry(2, "running", "completed")])


def test_foreign_execution_rejected():
    with pytest.raises(InvalidTransition):
        replay_transitions([
            _entry(1, "pending", "running"),
            _entry(2, "running", "completed", execution_id="ex_2"),
        ])


def test_disallowed_transition_rejected():
    with pytest.raises(InvalidTransition, match="not an allowed"):
        replay_transitions([_entry(1, "pending", "completed")])


def test_from_state_mismatch_rejected():
    with pytest.raises(InvalidTransition, match="replay is at"):
        replay_transitions([_entry(1, "running", "completed")])


def test_history_is_a_dataclass():
    history = ExecutionHistory()
    assert history.node_status("nd_a") is None


@pytest.mark.asyncio
async def test_same_node_in_two_loops_replays_separately(tracker, manual_trigger):
    snapshot = {
        "nodes": [
            {"id": "nd_outer", "type": "loop"},
            {"id": "nd_inner", "type": "loop"},
            {"id": "nd_body", "type": "action"},
        ],
    }
    record = await tracker.create_execution("wf_demo", snapshot, manual_trigger)
    execution_id = record.execution_id
    await tracker.start_execution(execution_id)
    outer = await tracker.register_node(
        execution_id, "nd_body", loop_context={"loop_node_id": "nd_outer", "iteration_index": 0}
    )
    inner = await tracker.register_node(
        execution_id, "nd_body", loop_context={"loop_node_id": "nd_inner", "iteration_index": 0}
    )
    assert outer.id != inner.id
    await tracker.advance_node(execution_id, "nd_body", "queued", state_id=outer.id)
    await tracker.advance_node(execution_id, "nd_body", "queued", state_id=inner.id)
    await tracker.advance_node(execution_id, "nd_body", "running", state_id=inner.id)

    entries = await tracker.get_transitions(execution_id)
    assert entries[-1].data["loop_node_id"] == "nd_inner"

    history = replay_transitions(entries)
    assert history.node_status("nd_body", 0, "nd_outer") == NodeExecutionStatus.QUEUED
    assert history.node_status("nd_body", 0, "nd_inner") == NodeExecutionStatus.RUNNING
    assert history.nodes["nd_body[nd_inner:0]"].loop_node_id == "nd_inner"


@pytest.mark.asyncio
async def test_full_tracker_history_replays(tracker, sample_snapshot, manual_trigger):
    record = await tracker.create_execution("wf_demo", sample_snapshot, manual_trigger)
    execution_id = record.execution_id
    await tracker.start_execution(execution_id)
    await tracker.register_node(execution_id, "nd_a")
    for status in ("queued", "running", "completed"):
        await tracker.advance_node(execution_id, "nd_a", status)
    await tracker.complete_execution(execution_id)

    entries = await tracker.get_transitions(execution_id)
    assert [t.id for t in entries] == list(range(1, 6))
    history = replay_transitions(entries)
    assert history.status == ExecutionStatus.COMPLETED
    assert history.node_status("nd_a") == NodeExecutionStatus.COMPLETED
