"""DialogueState load/save contract and an in-memory implementation.

Design notes:
    - The store only persists; it never interprets a state.
    - ``load`` of an unknown id returns a fresh AWAITING_START state.
    - States are kept as their JSON serialization, so load → save with no
      transition in between leaves the stored bytes unchanged.
    - ``lock(conversation_id)`` hands out one asyncio.Lock per id for
      callers that serialize turns.  Locks are weakly referenced, so an id
      nobody is holding or waiting on drops out of the table.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from abc import ABC, abstractmethod

from socratic_dialogue.domain.dialogue import DialogueState, create_initial_state

logger = logging.getLogger(__name__)


class DialogueStateStore(ABC):
    """Persistence boundary for DialogueState."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @abstractmethod
    async def load(self, conversation_id: str, topic: str = "") -> DialogueState:
        """Return the stored state, or a fresh one for *topic* if none exists."""
        ...

    @abstractmethod
    async def save(self, conversation_id: str, state: DialogueState) -> None:
        ...

    def lock(self, conversation_id: str) -> asyncio.Lock:
        """Per-conversation lock for serializing turns."""
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = self._locks[conversation_id] = asyncio.Lock()
        return lock


class InMemoryDialogueStateStore(DialogueStateStore):
    """Keeps serialized states in a dict.  Suitable for tests and the CLI."""

    def __init__(self) -> None:
        super().__init__()
        self._states: dict[str, str] = {}

    async def load(self, conversation_id: str, topic: str = "") -> DialogueState:
        raw = self._states.get(conversation_id)
        if raw is None:
            logger.debug("No stored state for %s; starting fresh", conversation_id)
            return create_initial_state(topic)
        return DialogueState.model_validate_json(raw)

    async def save(self, conversation_id: str, state: DialogueState) -> None:
        self._states[conversation_id] = state.model_dump_json()
        logger.debug(
            "Saved %s at %s/%s", conversation_id, state.stage.value, state.sub_state.value,
        )

    async def delete(self, conversation_id: str) -> bool:
        """Forget a conversation.  Returns True if it existed."""
        self._locks.pop(conversation_id, None)
        return self._states.pop(conversation_id, None) is not None

    def raw(self, conversation_id: str) -> str | None:
        """Stored JSON for *conversation_id*, if any."""
        return self._states.get(conversation_id)

    @property
    def conversation_ids(self) -> list[str]:
        return list(self._states)

    @property
    def count(self) -> int:
        return len(self._states)
