"""Tests for the append-only TransitionLog."""

import asyncio

import pytest

from flowrun.core.ledger import TransitionLog
from flowrun.types import StateTransition, TransitionScope


def _t(execution_id="ex_1", from_state="pending", to_state="running", **kw):
    return StateTransition(
        execution_id=execution_id,
        scope=kw.pop("scope", TransitionScope.EXECUTION),
        from_state=from_state,
        to_state=to_state,
        **kw,
    )


class RecordingRepository:
    def __init__(self):
        self.saved = []

    async def create_transition(self, transition):
        self.saved.append(transition)


class FailingRepository:
    async def create_transition(self, transition):
        raise RuntimeError("disk full")


@pytest.mark.asyncio
async def test_append_assigns_increasing_ids():
    log = TransitionLog()
    first = await log.append(_t())
    second = await log.append(_t(from_state="running", to_state="completed"))
    assert (first.id, second.id) == (1, 2)
    assert log.last_id == 2
    assert [t.id for t in log.get("ex_1")] == [1, 2]


@pytest.mark.asyncio
async def test_caller_supplied_id_is_replaced():
    log = TransitionLog()
    entry = await log.append(_t(id=999))
    assert entry.id == 1


@pytest.mark.asyncio
async def test_get_filters_by_execution_and_after_id():
    log = TransitionLog()
    await log.append(_t("ex_1"))
    await log.append(_t("ex_2"))
    await log.append(_t("ex_1", "running", "completed"))
    assert [t.id for t in log.get("ex_1")] == [1, 3]
    assert [t.id for t in log.get("ex_1", after_id=1)] == [3]
    assert log.get("ex_missing") == []
    assert log.executions() == ["ex_1", "ex_2"]


@pytest.mark.asyncio
async def test_for_node():
    log = TransitionLog()
    await log.append(_t())
    await log.append(_t(scope=TransitionScope.NODE, node_id="nd_a", to_state="queued"))
    await log.append(_t(scope=TransitionScope.NODE, node_id="nd_b", to_state="queued"))
    assert [t.node_id for t in log.for_node("ex_1", "nd_a")] == ["nd_a"]


@pytest.mark.asyncio
async def test_concurrent_appends_get_unique_ids():
    log = TransitionLog()
    entries = await asyncio.gather(*[log.append(_t()) for _ in range(50)])
    assert sorted(t.id for t in entries) == list(range(1, 51))
    ids = [t.id for t in log.get("ex_1")]
    assert ids == sorted(ids)


@pytest.mark.asyncio
async def test_long_history_is_kept_in_full():
    log = TransitionLog()
    for _ in range(12_000):
        await log.append(_t())
    entries = log.get("ex_1")
    assert len(entries) == 12_000
    assert entries[0].id == 1
    assert entries[-1].id == 12_000


@pytest.mark.asyncio
async def test_repository_receives_entries():
    repo = RecordingRepository()
    log = TransitionLog(repository=repo)
    await log.append(_t())
    assert [t.id for t in repo.saved] == [1]


@pytest.mark.asyncio
async def test_repository_failure_leaves_memory_unchanged():
    log = TransitionLog(repository=FailingRepository())
    with pytest.raises(RuntimeError):
        await log.append(_t())
    assert log.get("ex_1") == []


@pytest.mark.asyncio
async def test_export_uses_camel_case():
    log = TransitionLog()
    await log.append(_t(reason="go"))
    exported = log.export("ex_1")
    assert exported[0]["executionId"] == "ex_1"
    assert exported[0]["fromState"] == "pending"
    assert exported[0]["scope"] == "execution"
