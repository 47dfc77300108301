"""Structured JSON logging callback for flowrun lifecycle events."""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from flowrun.callbacks.base import BaseCallback
from flowrun.core.events import event_from_transition
from flowrun.types import ExecutionRecord, StateTransition

logger = logging.getLogger("flowrun.audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class LoggingCallback(BaseCallback):
    """Emits structured JSON log lines for every lifecycle event.

    Each log line is a self-contained JSON object with:
      - event: event type name (``execution_started``, ``node_failed``, ...)
      - ts: ISO-8601 UTC timestamp
      - relevant fields depending on event

    Log level: INFO for normal events, WARNING for rejected transitions.
    Logger name: flowrun.audit (configure in your logging setup)

        tracker = ExecutionTracker(callbacks=[LoggingCallback()])
    """

    async def on_execution_created(self, record: ExecutionRecord, **kwargs: Any) -> None:
        logger.info(json.dumps({
            "event": "execution_created",
            "ts": _now(),
            "execution_id": record.execution_id,
            "workflow_id": record.workflow_id,
            "trigger": record.trigger_context.type.value,
            "node_count": len(record.workflow_snapshot.nodes),
        }))

    async def on_transition(self, transition: StateTransition, **kwargs: Any) -> None:
        event = event_from_transition(transition)
        line = {
            "event": event.type.value,
            "ts": _now(),
            "transition_id": transition.id,
            "execution_id": transition.execution_id,
            "from": transition.from_state,
            "to": transition.to_state,
        }
        if event.node_id:
            line["node_id"] = event.node_id
        if event.attempt is not None:
            line["attempt"] = event.attempt
        if event.duration is not None:
            line["duration_ms"] = event.duration
        if event.reason:
            line["reason"] = event.reason[:200]
        if event.error:
            line["error"] = str(event.error.get("message", ""))[:200]
        logger.info(json.dumps(line))

    async def on_error(
        self, error: Exception, context: dict[str, Any], **kwargs: Any
    ) -> None:
        logger.warning(json.dumps({
            "event": "transition_rejected",
            "ts": _now(),
            "error_type": type(error).__name__,
            "error": str(error),
            "context": {k: str(v)[:200] for k, v in context.items()},
        }))
