"""ConversationService — load, orchestrate, save for one conversation id.

Each call runs under the store's per-conversation lock so two turns of
the same conversation never interleave.  State is saved only after a
turn succeeds; a failed turn leaves the stored state as it was.
"""

from __future__ import annotations

import logging

from socratic_dialogue.domain.enums import DialogueStage
from socratic_dialogue.foundation.identifiers import new_conversation_id
from socratic_dialogue.models.result import ConversationSummary, StageResult
from socratic_dialogue.orchestrator.orchestrator import SocraticOrchestrator
from socratic_dialogue.store.state_store import DialogueStateStore

logger = logging.getLogger(__name__)


class ConversationService:
    def __init__(self, store: DialogueStateStore, orchestrator: SocraticOrchestrator) -> None:
        self._store = store
        self._orchestrator = orchestrator

    async def start(
        self,
        topic: str,
        topic_context: str = "",
        conversation_id: str | None = None,
    ) -> tuple[str, StageResult]:
        """Create (or resume an unstarted) conversation and open it."""
        conversation_id = conversation_id or new_conversation_id()
        async with self._store.lock(conversation_id):
            state = await self._store.load(conversation_id, topic=topic)
            if state.stage == DialogueStage.AWAITING_START:
                state = self._orchestrator.initialize_session(topic)
            result = await self._orchestrator.start_conversation(state, topic_context)
            await self._store.save(conversation_id, result.state)

        logger.info("Started conversation %s on %r", conversation_id, result.state.topic)
        return conversation_id, result

    async def send(
        self,
        conversation_id: str,
        student_message: str,
        topic_context: str = "",
    ) -> StageResult:
        async with self._store.lock(conversation_id):
            state = await self._store.load(conversation_id)
            result = await self._orchestrator.process_student_input(
                state, student_message, topic_context,
            )
            await self._store.save(conversation_id, result.state)

        if result.ended:
            logger.info("Conversation %s ended", conversation_id)
        return result

    async def summary(self, conversation_id: str) -> ConversationSummary:
        state = await self._store.load(conversation_id)
        return self._orchestrator.extract_conversation_summary(state)
