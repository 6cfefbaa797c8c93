"""SocraticOrchestrator — entry points for driving one conversation.

Usage:
    orchestrator = SocraticOrchestrator(GeminiPromptExecutor())
    state = orchestrator.initialize_session("Is lying ever justified?")
    result = await orchestrator.start_conversation(state)
    result = await orchestrator.process_student_input(result.state, "Yes, because ...")

The orchestrator holds no per-conversation state and no lock; callers
persist ``result.state`` and serialize turns per conversation id.

Failure semantics:
    Preconditions are checked before any provider call and raise
    PreconditionError.  Provider, malformed-response and illegal-intent
    errors are wrapped in TurnFailedError, whose ``state`` is the very
    object passed in.  Cancellation propagates untouched.
"""

from __future__ import annotations

import logging
from typing import Optional

from socratic_dialogue.builders.registry import BuilderRegistry, default_registry
from socratic_dialogue.domain.dialogue import DialogueState, create_initial_state
from socratic_dialogue.domain.enums import Role
from socratic_dialogue.errors import (
    IllegalIntentError,
    MalformedResponseError,
    PreconditionError,
    ProviderError,
    TurnFailedError,
)
from socratic_dialogue.executor.base import PromptExecutor
from socratic_dialogue.models.result import ConversationSummary, StageResult
from socratic_dialogue.models.usage import TokenUsage
from socratic_dialogue.orchestrator.graph import TurnState, TurnTrace, build_turn_graph
from socratic_dialogue.orchestrator.transitions import (
    OrchestratorConfig,
    check_input_preconditions,
    opening_transition,
)

logger = logging.getLogger(__name__)


class SocraticOrchestrator:
    """Runs the four-stage Socratic state machine over a PromptExecutor.

    Args:
        executor: Provider capability used for every classification and
                  generation call.
        config: Dialogue bounds; defaults to the values in settings.
        registry: Stage builders; defaults to the full built-in set.
    """

    def __init__(
        self,
        executor: PromptExecutor,
        config: Optional[OrchestratorConfig] = None,
        registry: Optional[BuilderRegistry] = None,
    ) -> None:
        self.executor = executor
        self.config = config or OrchestratorConfig.from_settings()
        self.registry = registry or default_registry()
        self._graph = build_turn_graph(self.executor, self.registry, self.config)

    # ── Entry points ─────────────────────────────────────────────────────

    def initialize_session(self, topic: str) -> DialogueState:
        if not topic or not topic.strip():
            raise PreconditionError("Topic must not be empty")
        return create_initial_state(topic.strip())

    async def start_conversation(
        self,
        state: DialogueState,
        topic_context: str = "",
    ) -> StageResult:
        """Produce the opening message and move to ASKING_STANCE.

        Raises:
            PreconditionError: If the conversation has already started.
            TurnFailedError: If generating the opening message failed.
        """
        transition = opening_transition(state, topic_context)
        return await self._run(
            state,
            {
                "dialogue": transition.state,
                "topic_context": topic_context,
                "follow_up": transition.follow_up,
            },
        )

    async def process_student_input(
        self,
        state: DialogueState,
        student_message: str,
        topic_context: str = "",
    ) -> StageResult:
        """Classify *student_message*, apply the transition and reply.

        Raises:
            PreconditionError: If the state cannot accept student input.
            TurnFailedError: If classification, transition or generation failed.
        """
        check_input_preconditions(state, student_message)
        return await self._run(
            state,
            {
                "dialogue": state.with_turn(Role.USER, student_message),
                "student_message": student_message,
                "topic_context": topic_context,
            },
        )

    def is_ended(self, state: DialogueState) -> bool:
        return state.is_ended

    def extract_conversation_summary(self, state: DialogueState) -> ConversationSummary:
        """Read-only projection of *state* for client display."""
        return ConversationSummary.from_state(state)

    # ── Internals ────────────────────────────────────────────────────────

    async def _run(self, state: DialogueState, turn: TurnState) -> StageResult:
        trace = TurnTrace()
        turn["trace"] = trace
        turn["usage"] = TokenUsage()

        logger.info(
            "Turn start: topic=%r stage=%s/%s loop=%d",
            state.topic, state.stage.value, state.sub_state.value, state.loop_count,
        )
        try:
            final = await self._graph.ainvoke(turn)
        except (ProviderError, MalformedResponseError, IllegalIntentError) as exc:
            logger.error(
                "Turn failed in %s/%s (decision=%s): %s",
                state.stage.value,
                state.sub_state.value,
                trace.decision.detected_intent if trace.decision else None,
                exc,
            )
            raise TurnFailedError(
                stage=state.stage,
                sub_state=state.sub_state,
                state=state,
                cause=exc,
                decision=trace.decision,
            ) from exc

        new_state: DialogueState = final["dialogue"]
        logger.info(
            "Turn done: stage %s/%s → %s/%s loop=%d stances=%d principles=%d",
            state.stage.value, state.sub_state.value,
            new_state.stage.value, new_state.sub_state.value,
            new_state.loop_count, len(new_state.stance_history), len(new_state.principle_history),
        )
        return StageResult(
            message=final["message"],
            state=new_state,
            ended=new_state.is_ended,
            usage=final.get("usage", TokenUsage()),
            decision=final.get("decision"),
            applied_intent=final.get("applied_intent"),
        )
