"""Test fixtures: sample snapshot, tracker, resolution context.

All tests should use these fixtures for consistency.
"""

import pytest

from flowrun.config import FlowrunConfig
from flowrun.core.ledger import TransitionLog
from flowrun.core.tracker import ExecutionTracker
from flowrun.types import (
    NodeOutput,
    NodeOutputStatus,
    ResolutionContext,
    SystemFacts,
    TriggerContext,
    TriggerType,
    WorkflowSnapshot,
)


@pytest.fixture
def config():
    """Test configuration with safe defaults."""
    return FlowrunConfig(debug=True, default_max_attempts=1)


@pytest.fixture
def sample_snapshot():
    """Two-node workflow: nd_a → nd_b."""
    return WorkflowSnapshot(
        nodes=[
            {"id": "nd_a", "type": "action", "label": "Fetch user"},
            {"id": "nd_b", "type": "action", "label": "Send email"},
        ],
        edges=[{"id": "ed_1", "source": "nd_a", "target": "nd_b"}],
        variables=[{"name": "items", "type": "array"}],
    )


@pytest.fixture
def manual_trigger():
    return TriggerContext(type=TriggerType.MANUAL, triggered_by="user_1", trigger_data={"email": "a@b.co"})


@pytest.fixture
def transition_log():
    return TransitionLog()


@pytest.fixture
def tracker(config, transition_log):
    """In-memory ExecutionTracker with no callbacks."""
    return ExecutionTracker(log=transition_log, config=config)


@pytest.fixture
def sample_context():
    """ResolutionContext with one completed node and a few variables."""
    return ResolutionContext(
        nodes={
            "nd_a": NodeOutput(
                output={"user": {"id": "u42", "name": "Ada", "tags": ["x", "y"]}},
                status=NodeOutputStatus.COMPLETED,
            ),
            "nd_pending": NodeOutput(),
        },
        vars={"items": [1, 2, 3], "name": "abc", "flag": False, "nothing": None},
        config={"url": "https://example.com", "headers": {"Accept": "json"}},
        input={"email": "a@b.co"},
        credentials={"api_key": "sk-test"},
        system=SystemFacts(
            execution_id="ex_test01",
            workflow_id="wf_test01",
            timestamp=1_700_000_000_000,
        ),
    )
