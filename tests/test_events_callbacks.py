"""Tests for ExecutionEvent mapping and the logging callback."""

import json
import logging

import pytest

from flowrun.callbacks import BaseCallback, FlowrunCallback, LoggingCallback
from flowrun.core.events import event_from_transition
from flowrun.core.tracker import ExecutionTracker
from flowrun.types import EventType, StateTransition, TransitionScope


def _node(from_state, to_state, **data):
    return StateTransition(
        id=7,
        execution_id="ex_1",
        scope=TransitionScope.NODE,
        node_id="nd_a",
        from_state=from_state,
        to_state=to_state,
        data=data or None,
    )


@pytest.mark.parametrize("to_state,event", [
    ("running", EventType.EXECUTION_STARTED),
    ("completed", EventType.EXECUTION_COMPLETED),
    ("failed", EventType.EXECUTION_FAILED),
    ("cancelled", EventType.EXECUTION_CANCELLED),
    ("timeout", EventType.EXECUTION_TIMEOUT),
])
def test_execution_events(to_state, event):
    t = StateTransition(
        id=1, execution_id="ex_1", scope=TransitionScope.EXECUTION,
        from_state="running", to_state=to_state,
    )
    assert event_from_transition(t).type == event


def test_node_events_carry_payload():
    event = event_from_transition(_node("running", "completed", attempt=1, output={"id": 1}, duration=12))
    assert event.type == EventType.NODE_COMPLETED
    assert event.node_id == "nd_a"
    assert event.transition_id == 7
    assert event.output == {"id": 1}
    assert event.duration == 12
    assert event.attempt == 1


def test_retry_is_reported_as_retrying():
    assert event_from_transition(_node("failed", "queued")).type == EventType.NODE_RETRYING
    assert event_from_transition(_node("pending", "queued")).type == EventType.NODE_QUEUED


def test_event_serializes_camel_case():
    dumped = event_from_transition(_node("queued", "running")).model_dump(by_alias=True)
    assert dumped["type"] == EventType.NODE_STARTED
    assert dumped["executionId"] == "ex_1"


def test_callback_protocol():
    assert isinstance(BaseCallback(), FlowrunCallback)
    assert isinstance(LoggingCallback(), FlowrunCallback)


@pytest.mark.asyncio
async def test_logging_callback_emits_json(caplog, config, sample_snapshot, manual_trigger):
    tracker = ExecutionTracker(callbacks=[LoggingCallback()], config=config)
    with caplog.at_level(logging.INFO, logger="flowrun.audit"):
        record = await tracker.create_execution("wf_demo", sample_snapshot, manual_trigger)
        await tracker.start_execution(record.execution_id)
        await tracker.register_node(record.execution_id, "nd_a")
        await tracker.advance_node(record.execution_id, "nd_a", "queued")
        with pytest.raises(Exception):
            await tracker.advance_node(record.execution_id, "nd_a", "completed")

    lines = [json.loads(r.getMessage()) for r in caplog.records if r.name == "flowrun.audit"]
    events = [line["event"] for line in lines]
    assert events == ["execution_created", "execution_started", "node_queued", "transition_rejected"]
    assert lines[0]["node_count"] == 2
    assert lines[2]["node_id"] == "nd_a"
    assert lines[3]["error_type"] == "InvalidTransition"
