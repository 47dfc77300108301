"""Base callback protocol for flowrun lifecycle hooks.

Callbacks are called after every accepted state change.
Implement this protocol to observe or instrument execution tracking without
modifying core logic.

Usage:
    class MyCallback(BaseCallback):
        async def on_transition(self, transition, **kw):
            print(f"{transition.from_state} -> {transition.to_state}")

    tracker = ExecutionTracker(callbacks=[MyCallback()])
"""

from typing import Any, Protocol, runtime_checkable

from flowrun.types import ExecutionRecord, StateTransition


@runtime_checkable
class FlowrunCallback(Protocol):
    """Protocol defining hooks for flowrun lifecycle events.

    All methods are async; the tracker awaits each registered callback in
    order, after the transition has been appended to the log.
    """

    async def on_execution_created(
        self,
        record: ExecutionRecord,
        **kwargs: Any,
    ) -> None:
        """Called once when a run is admitted (status ``pending``)."""
        ...

    async def on_transition(
        self,
        transition: StateTransition,
        **kwargs: Any,
    ) -> None:
        """Called for every appended StateTransition, execution or node scope."""
        ...

    async def on_error(
        self,
        error: Exception,
        context: dict[str, Any],
        **kwargs: Any,
    ) -> None:
        """Called when a requested transition is rejected."""
        ...


class BaseCallback:
    """Concrete base with no-op implementations of all hooks.

    Subclass this instead of implementing the Protocol directly
    to avoid implementing every method.
    """

    async def on_execution_created(self, record: ExecutionRecord, **kwargs: Any) -> None:
        pass

    async def on_transition(self, transition: StateTransition, **kwargs: Any) -> None:
        pass

    async def on_error(
        self, error: Exception, context: dict[str, Any], **kwargs: Any
    ) -> None:
        pass
