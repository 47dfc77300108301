"""Append-only transition log. Every accepted status change goes here.

The log is the single writer of ``StateTransition.id``: ids come from one
monotonic counter, so within an execution every new entry has an id strictly
greater than all earlier ones.  Id assignment and append happen under one
lock, making each append atomic.

In-memory store is always maintained and holds the full history of every
execution; nothing is ever dropped from it.  If a repository is injected,
entries are also persisted.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Optional, Protocol

from flowrun.types import StateTransition

logger = logging.getLogger(__name__)


class TransitionRepository(Protocol):
    """Persistence hook. Storage technology is the caller's choice."""

    async def create_transition(self, transition: StateTransition) -> None:
        ...


class TransitionLog:
    """Append-only audit log of execution- and node-scoped transitions."""

    def __init__(
        self,
        repository: Optional[TransitionRepository] = None,
    ):
        """
        Args:
            repository: Injected persistence for transitions.
                        Can be None for in-memory only mode.
        """
        self._memory_store: dict[str, list[StateTransition]] = {}
        self._repository = repository
        self._counter = itertools.count(1)
        self._last_id = 0
        self._lock = asyncio.Lock()

    @property
    def last_id(self) -> int:
        """Highest id handed out so far (0 when empty)."""
        return self._last_id

    async def append(self, transition: StateTransition) -> StateTransition:
        """Assign the next id to *transition* and append it.

        Any id already on *transition* is ignored and replaced.

        Args:
            transition: Entry to record (``id`` unset)

        Returns:
            The stored entry, carrying its assigned id
        """
        async with self._lock:
            entry_id = next(self._counter)
            entry = transition.model_copy(update={"id": entry_id})
            if self._repository is not None:
                await self._repository.create_transition(entry)
            self._memory_store.setdefault(entry.execution_id, []).append(entry)
            self._last_id = entry_id
        logger.debug(
            f"[TransitionLog] #{entry_id} {entry.execution_id} {entry.scope.value}"
            f"{'/' + entry.node_id if entry.node_id else ''}: "
            f"{entry.from_state} -> {entry.to_state}"
        )
        return entry

    def get(self, execution_id: str, after_id: Optional[int] = None) -> list[StateTransition]:
        """All entries for an execution, ordered by id.

        Args:
            execution_id: Execution to read
            after_id: If given, only entries with a larger id (for tailing)

        Returns:
            Ordered list of transitions
        """
        entries = self._memory_store.get(execution_id, [])
        if after_id is not None:
            return [t for t in entries if t.id > after_id]
        return list(entries)

    def for_node(self, execution_id: str, node_id: str) -> list[StateTransition]:
        """Node-scoped entries for one node, ordered by id."""
        return [t for t in self.get(execution_id) if t.node_id == node_id]

    def executions(self) -> list[str]:
        """Execution ids with at least one entry, in first-seen order."""
        return list(self._memory_store)

    def export(self, execution_id: str) -> list[dict[str, Any]]:
        """JSON-ready entries (camelCase keys) for one execution."""
        return [t.model_dump(mode="json", by_alias=True) for t in self.get(execution_id)]
